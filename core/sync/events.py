"""
Vault Event Models.

Defines the change notifications a vault host delivers to its subscribers:
file created, file deleted, file renamed and metadata changed.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import uuid


class VaultEventType(Enum):
    """Kinds of vault notifications"""
    CREATED = "created"     # New file created
    DELETED = "deleted"     # File deleted (or moved to trash)
    RENAMED = "renamed"     # File moved/renamed
    CHANGED = "changed"     # Metadata cache refreshed for a file


class VaultEvent(BaseModel):
    """
    A single vault notification.

    Paths are vault-relative POSIX paths, the same strings used as record ids.
    """
    model_config = ConfigDict(frozen=True)

    # Event identification
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: VaultEventType

    # File information
    path: str
    old_path: Optional[str] = None  # For rename events

    timestamp: datetime = Field(default_factory=datetime.now)

    @field_validator('path', 'old_path')
    @classmethod
    def validate_relative(cls, v: Optional[str]) -> Optional[str]:
        """Ensure paths are vault-relative"""
        if v is not None and (v.startswith('/') or not v):
            raise ValueError('Vault event paths must be relative and non-empty')
        return v

    @model_validator(mode='after')
    def validate_old_path(self) -> 'VaultEvent':
        """Rename events need the previous path"""
        if self.event_type == VaultEventType.RENAMED and self.old_path is None:
            raise ValueError('Rename events require old_path')
        return self

    @classmethod
    def created(cls, path: str) -> 'VaultEvent':
        """Create a file creation event"""
        return cls(event_type=VaultEventType.CREATED, path=path)

    @classmethod
    def deleted(cls, path: str) -> 'VaultEvent':
        """Create a file deletion event"""
        return cls(event_type=VaultEventType.DELETED, path=path)

    @classmethod
    def renamed(cls, old_path: str, new_path: str) -> 'VaultEvent':
        """Create a file rename event"""
        return cls(event_type=VaultEventType.RENAMED, path=new_path, old_path=old_path)

    @classmethod
    def changed(cls, path: str) -> 'VaultEvent':
        """Create a metadata changed event"""
        return cls(event_type=VaultEventType.CHANGED, path=path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization"""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "path": self.path,
            "old_path": self.old_path,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        """String representation for logging"""
        old_part = f" (from {self.old_path})" if self.old_path else ""
        return f"{self.event_type.value.upper()}: {self.path}{old_part}"
