"""
Core data models for occurrence-store

Pydantic models for records, references and configuration, plus the pure
functions that translate between front-matter and records.
"""

from .links import Reference, ReferenceKind, parse_link, convert_list_to_links
from .naming import DEFAULT_DATE_FORMAT, canonical_file_name, parse_file_name
from .record import (
    Record,
    RecordChanges,
    parse_record,
    serialize_record,
    records_equal,
    apply_changes,
    OCCURRENCE_FRONTMATTER_MAPPING,
)
from .config import StoreConfig, VaultConfig, GlobalSettings

__all__ = [
    # References
    "Reference",
    "ReferenceKind",
    "parse_link",
    "convert_list_to_links",

    # Naming
    "DEFAULT_DATE_FORMAT",
    "canonical_file_name",
    "parse_file_name",

    # Records
    "Record",
    "RecordChanges",
    "parse_record",
    "serialize_record",
    "records_equal",
    "apply_changes",
    "OCCURRENCE_FRONTMATTER_MAPPING",

    # Configuration
    "StoreConfig",
    "VaultConfig",
    "GlobalSettings",
]
