"""
Error types raised by the occurrence store.
"""

from typing import Optional


class OccurrenceStoreError(Exception):
    """Base class for store errors"""
    pass


class RecordNotFoundError(OccurrenceStoreError):
    """Raised when an operation targets an id the store does not hold"""

    def __init__(self, record_id: str):
        super().__init__(f"Occurrence not found: {record_id}")
        self.record_id = record_id


class DuplicateRecordError(OccurrenceStoreError):
    """Raised when a create or rename target already exists"""

    def __init__(self, path: str, record_id: Optional[str] = None):
        super().__init__(f"Occurrence already exists: {path}")
        self.path = path
        self.record_id = record_id


class InvalidTitleError(OccurrenceStoreError):
    """Raised when a title cannot be used in a file name"""

    def __init__(self, title: str):
        super().__init__(f"Invalid occurrence title: {title!r}")
        self.title = title
