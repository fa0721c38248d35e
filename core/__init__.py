"""
occurrence-store core package

In-memory occurrence records kept in sync with markdown notes in a vault.
"""

__version__ = "1.0.0"

from .models import Record, RecordChanges, Reference, ReferenceKind, StoreConfig, VaultConfig
from .store import OccurrenceStore, NotificationBus, StoreEvent
from .search import SearchOptions, SearchResult
from .vault import VaultHost, VaultFile, FileSystemVault

__all__ = [
    "Record",
    "RecordChanges",
    "Reference",
    "ReferenceKind",
    "StoreConfig",
    "VaultConfig",
    "OccurrenceStore",
    "NotificationBus",
    "StoreEvent",
    "SearchOptions",
    "SearchResult",
    "VaultHost",
    "VaultFile",
    "FileSystemVault",
]
