"""
Occurrence record model.

Pure data and pure transformations between a note's front-matter and the typed
Record. Nothing in this module performs I/O; parsing is tolerant and never
raises on malformed front-matter.
"""

import logging
from datetime import date, datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .links import Reference, convert_list_to_links, parse_link
from .naming import DEFAULT_DATE_FORMAT, parse_file_name

logger = logging.getLogger(__name__)


# Record attribute -> front-matter key
OCCURRENCE_FRONTMATTER_MAPPING = {
    "timestamp": "occurrence_occurred_at",
    "needs_processing": "occurrence_to_process",
    "participants": "occurrence_participants",
    "related_goals": "occurrence_intents",
    "location": "occurrence_location",
    "tags": "tags",
}

MAPPED_FRONTMATTER_KEYS = frozenset(OCCURRENCE_FRONTMATTER_MAPPING.values())

_TRUE_STRINGS = {"true", "yes", "y", "on", "1"}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Interpret a raw occurred-at value as an aware datetime.

    Accepts ISO-8601 strings, datetime/date objects (as produced by YAML) and
    epoch milliseconds. Anything else, or an unparsable value, returns None.
    Naive values are taken to be in local time.
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            parsed = datetime.fromisoformat(text)
        else:
            return None
    except (ValueError, OverflowError, OSError) as e:
        logger.debug(f"Unparsable timestamp {value!r}: {e}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def format_timestamp(timestamp: datetime) -> str:
    """ISO-8601 with an explicit UTC offset"""
    if timestamp.tzinfo is None:
        timestamp = timestamp.astimezone()
    return timestamp.isoformat()


def coerce_flag(value: Any) -> bool:
    """Front-matter booleans may arrive as strings"""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def derive_processing_state(occurred_at: Any, to_process: Any) -> Tuple[Optional[datetime], bool]:
    """
    Derive (timestamp, needs_processing) from the raw front-matter fields.

    This is the single place the two values are computed, on load, on change
    detection and on write-back alike.
    """
    timestamp = parse_timestamp(occurred_at)
    return timestamp, timestamp is None or coerce_flag(to_process)


def normalize_tags(tags: Any) -> List[str]:
    """Normalize tags to an ordered list of unique strings"""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = [tags]
    elif not isinstance(tags, (list, tuple, set)):
        return []

    normalized = []
    for tag in tags:
        if tag is None or isinstance(tag, (list, dict)):
            continue
        text = str(tag).strip()
        if text and text not in normalized:
            normalized.append(text)
    return normalized


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, dict)) and not value)


class Record(BaseModel):
    """One occurrence, backed by exactly one note in the vault"""
    model_config = ConfigDict(frozen=True)

    id: str  # Vault-relative path of the backing note
    title: str
    timestamp: Optional[datetime] = None  # None when missing or unparsable
    needs_processing: bool = True

    participants: List[Reference] = Field(default_factory=list)
    related_goals: List[Reference] = Field(default_factory=list)
    location: Optional[Reference] = None
    tags: List[str] = Field(default_factory=list)

    # Every other front-matter field, verbatim
    extra: Dict[str, Any] = Field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.id

    @property
    def basename(self) -> str:
        return PurePosixPath(self.id).stem

    def __str__(self) -> str:
        when = self.timestamp.isoformat() if self.timestamp else "undated"
        return f"{self.title} ({when})"


class RecordChanges(BaseModel):
    """
    Partial set of record properties.

    Only fields explicitly provided are applied. In ``extra``, keys with a
    value overwrite, keys mapped to None are removed and absent keys are left
    untouched.
    """
    model_config = ConfigDict(extra='forbid')

    title: Optional[str] = None
    timestamp: Optional[datetime] = None
    needs_processing: Optional[bool] = None
    participants: Optional[List[Reference]] = None
    related_goals: Optional[List[Reference]] = None
    location: Optional[Reference] = None
    tags: Optional[List[str]] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('participants', 'related_goals', mode='before')
    @classmethod
    def parse_reference_lists(cls, v: Any) -> Any:
        """Allow link text in place of Reference objects"""
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            parsed = [parse_link(item) if isinstance(item, str) else item for item in v]
            return [item for item in parsed if item is not None]
        return convert_list_to_links(v)

    @field_validator('location', mode='before')
    @classmethod
    def parse_location(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_link(v)
        return v

    @field_validator('timestamp')
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.astimezone()
        return v

    @field_validator('tags', mode='before')
    @classmethod
    def parse_tags(cls, v: Any) -> Any:
        if v is None:
            return None
        return normalize_tags(v)

    @field_validator('extra')
    @classmethod
    def validate_extra(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Mapped keys must be changed through their typed fields"""
        clashes = MAPPED_FRONTMATTER_KEYS.intersection(v)
        if clashes:
            raise ValueError(f'Use typed fields instead of extra keys: {sorted(clashes)}')
        return v

    @property
    def removed_extra_keys(self) -> List[str]:
        return [key for key, value in self.extra.items() if value is None]


def parse_record(
    path: str,
    frontmatter: Optional[Mapping[str, Any]],
    date_format: str = DEFAULT_DATE_FORMAT
) -> Record:
    """
    Build a Record from a note path and its front-matter.

    Never raises on malformed front-matter: an unparsable timestamp becomes
    None and forces ``needs_processing``.
    """
    fields = dict(frontmatter or {})
    keys = OCCURRENCE_FRONTMATTER_MAPPING

    timestamp, needs_processing = derive_processing_state(
        fields.get(keys["timestamp"]),
        fields.get(keys["needs_processing"])
    )
    location = parse_link(fields.get(keys["location"])) if fields.get(keys["location"]) else None

    extra = {key: value for key, value in fields.items() if key not in MAPPED_FRONTMATTER_KEYS}

    return Record(
        id=path,
        title=parse_file_name(PurePosixPath(path).stem, date_format),
        timestamp=timestamp,
        needs_processing=needs_processing,
        participants=convert_list_to_links(fields.get(keys["participants"])),
        related_goals=convert_list_to_links(fields.get(keys["related_goals"])),
        location=location,
        tags=normalize_tags(fields.get(keys["tags"])),
        extra=extra,
    )


def serialize_record(record: Record) -> Dict[str, Any]:
    """
    Convert a Record to front-matter fields.

    Empty values are omitted rather than written as null.
    """
    keys = OCCURRENCE_FRONTMATTER_MAPPING
    fields: Dict[str, Any] = {}

    if record.timestamp is not None:
        fields[keys["timestamp"]] = format_timestamp(record.timestamp)
    fields[keys["needs_processing"]] = record.needs_processing
    if record.participants:
        fields[keys["participants"]] = [ref.to_text() for ref in record.participants]
    if record.related_goals:
        fields[keys["related_goals"]] = [ref.to_text() for ref in record.related_goals]
    if record.location is not None:
        fields[keys["location"]] = record.location.to_text()
    if record.tags:
        fields[keys["tags"]] = list(record.tags)

    for key, value in record.extra.items():
        if not _is_empty(value):
            fields[key] = value

    return fields


def frontmatter_updates(record: Record, removed_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Front-matter changes needed to make a note match ``record``.

    Every mapped key is present; None marks a key for removal.
    """
    updates: Dict[str, Any] = {key: None for key in MAPPED_FRONTMATTER_KEYS}
    updates.update({key: None for key in removed_keys})
    updates.update(serialize_record(record))
    return updates


def apply_frontmatter_updates(frontmatter: Dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Apply updates in place; empty values delete the key"""
    for key, value in updates.items():
        if _is_empty(value):
            frontmatter.pop(key, None)
        else:
            frontmatter[key] = value


def apply_changes(record: Record, changes: RecordChanges) -> Record:
    """Merge partial changes into a record, returning a new Record"""
    update: Dict[str, Any] = {}
    for field_name in changes.model_fields_set:
        if field_name == 'extra':
            continue
        value = getattr(changes, field_name)
        if field_name in ('title', 'needs_processing', 'participants', 'related_goals', 'tags') and value is None:
            continue
        update[field_name] = value

    if changes.extra:
        extra = dict(record.extra)
        for key, value in changes.extra.items():
            if value is None:
                extra.pop(key, None)
            else:
                extra[key] = value
        update['extra'] = extra

    merged = record.model_copy(update=update)
    if merged.timestamp is None and not merged.needs_processing:
        merged = merged.model_copy(update={'needs_processing': True})
    return merged


def records_equal(a: Optional[Record], b: Optional[Record]) -> bool:
    """
    Compare the fields that make a front-matter change relevant.

    Tags compare as sets; references compare by kind, target and display text.
    """
    if a is None or b is None:
        return a is b

    if a.timestamp != b.timestamp:
        return False
    if a.needs_processing != b.needs_processing:
        return False
    if a.participants != b.participants or a.related_goals != b.related_goals:
        return False
    if a.location != b.location:
        return False
    if set(a.tags) != set(b.tags):
        return False
    return a.extra == b.extra
