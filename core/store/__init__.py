"""
Occurrence store: the record map, its vault adapter and notification bus.
"""

from .adapter import OccurrenceAdapter
from .bus import NotificationBus, StoreEvent
from .errors import (
    OccurrenceStoreError,
    RecordNotFoundError,
    DuplicateRecordError,
    InvalidTitleError,
)
from .store import OccurrenceStore

__all__ = [
    "OccurrenceStore",
    "OccurrenceAdapter",
    "NotificationBus",
    "StoreEvent",
    "OccurrenceStoreError",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "InvalidTitleError",
]
