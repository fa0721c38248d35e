"""
Configuration models for occurrence-store.

Handles store conventions (managed folder, naming format, paging defaults),
vault settings and environment-driven global settings.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .naming import DATE_TOKEN_PATTERN, DEFAULT_DATE_FORMAT

# Vault-local configuration directory and file
CONFIG_DIR_NAME = ".occurrences"
CONFIG_FILE_NAME = "config.json"


class StoreConfig(BaseModel):
    """Conventions for the notes an occurrence store owns"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Managed notes live under <folder>/ and end with <extension>
    folder: str = "Occurrences"
    extension: str = ".md"

    # File name prefix format (tokens: YYYY MM DD HH mm ss)
    date_format: str = DEFAULT_DATE_FORMAT
    default_title: str = "Untitled Occurrence"

    # Search paging
    default_limit: int = Field(default=100, ge=1, le=10000)

    # Bounded wait for the host metadata cache after create/rename
    cache_poll_attempts: int = Field(default=10, ge=1, le=100)
    cache_poll_delay_ms: int = Field(default=50, ge=0, le=10000)

    @field_validator('folder')
    @classmethod
    def validate_folder(cls, v: str) -> str:
        """Folder is vault-relative without surrounding slashes"""
        v = v.strip('/')
        if not v:
            raise ValueError('Managed folder cannot be empty')
        return v

    @field_validator('extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Extension must start with a dot"""
        if not v.startswith('.') or len(v) < 2:
            raise ValueError('Extension must start with "." (e.g. ".md")')
        return v.lower()

    @field_validator('date_format')
    @classmethod
    def validate_date_format(cls, v: str) -> str:
        """Format must contain at least one date token"""
        if not DATE_TOKEN_PATTERN.search(v):
            raise ValueError('Date format must contain at least one of YYYY, MM, DD, HH, mm, ss')
        return v

    @property
    def cache_poll_delay_seconds(self) -> float:
        return self.cache_poll_delay_ms / 1000.0

    def is_managed(self, path: str) -> bool:
        """Check if a vault-relative path belongs to the store"""
        return path.startswith(f"{self.folder}/") and path.lower().endswith(self.extension)

    def path_for(self, file_name: str, folder: Optional[str] = None) -> str:
        """Vault-relative path for a file name (without extension)"""
        folder = self.folder if folder is None else folder
        return f"{folder}/{file_name}{self.extension}" if folder else f"{file_name}{self.extension}"


class VaultConfig(BaseModel):
    """Vault location and the store running inside it"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    path: Path
    trash_folder: str = ".trash"
    watch: bool = True
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: Path) -> Path:
        """Validate vault path exists"""
        if not v.exists():
            raise ValueError(f'Vault path does not exist: {v}')
        if not v.is_dir():
            raise ValueError(f'Vault path is not a directory: {v}')
        return v.resolve()

    @field_validator('trash_folder')
    @classmethod
    def validate_trash_folder(cls, v: str) -> str:
        v = v.strip('/')
        if not v:
            raise ValueError('Trash folder cannot be empty')
        return v

    def get_config_dir(self) -> Path:
        """Vault-local configuration directory"""
        return self.path / CONFIG_DIR_NAME

    def get_config_file(self) -> Path:
        return self.get_config_dir() / CONFIG_FILE_NAME

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = self.model_dump()
        data['path'] = str(data['path'])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultConfig':
        if 'path' in data:
            data['path'] = Path(data['path'])
        return cls(**data)


class GlobalSettings(BaseSettings):
    """Global application settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="OCCURRENCES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    vault_path: Optional[Path] = None

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

