"""
Vault change notifications.

Key Components:
- VaultEvent: Event model for created, deleted, renamed and changed notes
- VaultWatcher: Cross-platform directory monitoring feeding the filesystem host
"""

from .events import VaultEvent, VaultEventType
from .watcher import VaultWatcher

__all__ = [
    "VaultEvent",
    "VaultEventType",
    "VaultWatcher",
]
