"""
Vault hosts: the file, metadata and change-feed services a store runs on.
"""

from .base import VaultHost, VaultFile, VaultError, EventHandler, FrontmatterMutator
from .filesystem import FileSystemVault
from .frontmatter import split_frontmatter, render_frontmatter

__all__ = [
    "VaultHost",
    "VaultFile",
    "VaultError",
    "EventHandler",
    "FrontmatterMutator",
    "FileSystemVault",
    "split_frontmatter",
    "render_frontmatter",
]
