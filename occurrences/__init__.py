"""
Occurrences - dated event notes kept in sync with a markdown vault.

An in-memory, searchable store of occurrence records whose source of truth is
a folder of markdown notes with YAML front-matter.
"""

__version__ = "1.0.0"

# Package imports for convenient access
from core.models.record import Record, RecordChanges
from core.models.config import StoreConfig, VaultConfig
from core.search.index import SearchOptions, SearchResult
from core.store import OccurrenceStore

__all__ = [
    "Record",
    "RecordChanges",
    "StoreConfig",
    "VaultConfig",
    "SearchOptions",
    "SearchResult",
    "OccurrenceStore",
    "__version__",
]
