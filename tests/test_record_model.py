"""
Unit tests for the occurrence record model.

Tests front-matter parsing, serialization, equality and partial changes.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from core.models.links import Reference, ReferenceKind
from core.models.record import (
    Record, RecordChanges, parse_record, serialize_record, records_equal,
    apply_changes, frontmatter_updates, apply_frontmatter_updates,
    parse_timestamp, derive_processing_state, normalize_tags
)

CET = timezone(timedelta(hours=1))
PATH = "Occurrences/2024-03-01 0930 Team sync.md"


def full_frontmatter():
    return {
        "occurrence_occurred_at": "2024-03-01T09:30:00+01:00",
        "occurrence_to_process": False,
        "occurrence_participants": ["[[Alice]]", "[[Bob|Robert]]"],
        "occurrence_intents": ["[[Ship v2]]"],
        "occurrence_location": "[[Office]]",
        "tags": ["work", "meeting"],
    }


class TestParseRecord:
    """Test building records from front-matter"""

    def test_missing_occurred_at_needs_processing(self):
        """Test that a missing timestamp is invalid and forces processing"""
        record = parse_record(PATH, {"occurrence_to_process": False})

        assert record.timestamp is None
        assert record.needs_processing is True

    def test_empty_frontmatter(self):
        """Test that None front-matter parses to defaults"""
        record = parse_record(PATH, None)

        assert record.timestamp is None
        assert record.needs_processing is True
        assert record.participants == []
        assert record.location is None
        assert record.tags == []
        assert record.extra == {}

    def test_unparsable_timestamp(self):
        """Test that garbage timestamps never raise"""
        record = parse_record(PATH, {"occurrence_occurred_at": "next tuesday-ish"})

        assert record.timestamp is None
        assert record.needs_processing is True

    def test_full_record(self):
        """Test parsing every mapped field"""
        record = parse_record(PATH, full_frontmatter())

        assert record.id == PATH
        assert record.title == "Team sync"
        assert record.timestamp == datetime(2024, 3, 1, 9, 30, tzinfo=CET)
        assert record.needs_processing is False
        assert [p.target for p in record.participants] == ["Alice", "Bob"]
        assert record.participants[1].display_text == "Robert"
        assert record.related_goals == [Reference(target="Ship v2")]
        assert record.location == Reference(kind=ReferenceKind.WIKI, target="Office")
        assert record.tags == ["work", "meeting"]

    def test_explicit_flag_with_valid_timestamp(self):
        """Test that the to-process flag is honoured when the timestamp is valid"""
        frontmatter = full_frontmatter()
        frontmatter["occurrence_to_process"] = "true"

        record = parse_record(PATH, frontmatter)

        assert record.timestamp is not None
        assert record.needs_processing is True

    def test_unquoted_wiki_links_from_yaml(self):
        """Test nested lists produced by unquoted [[x]] in YAML"""
        frontmatter = {"occurrence_participants": [[["Alice"]], [["Bob"]], None]}

        record = parse_record(PATH, frontmatter)

        assert [p.target for p in record.participants] == ["Alice", "Bob"]

    def test_extra_properties_kept_verbatim(self):
        """Test that unmapped keys land in extra"""
        frontmatter = full_frontmatter()
        frontmatter["mood"] = "good"
        frontmatter["rating"] = 4

        record = parse_record(PATH, frontmatter)

        assert record.extra == {"mood": "good", "rating": 4}

    def test_title_without_prefix(self):
        """Test that names without a date prefix keep their full name"""
        record = parse_record("Occurrences/Loose note.md", {})

        assert record.title == "Loose note"


class TestTimestamps:
    """Test timestamp interpretation"""

    def test_datetime_from_yaml(self):
        """Test aware datetimes pass through"""
        value = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert parse_timestamp(value) == value

    def test_naive_values_become_aware(self):
        """Test naive values are interpreted as local time"""
        parsed = parse_timestamp("2024-01-01T08:00:00")
        assert parsed.tzinfo is not None

    def test_epoch_milliseconds(self):
        """Test numeric timestamps are epoch milliseconds"""
        parsed = parse_timestamp(1704067200000)
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_booleans_are_not_timestamps(self):
        """Test that YAML booleans are rejected"""
        assert parse_timestamp(True) is None

    def test_derive_processing_state(self):
        """Test the single derivation of timestamp and flag"""
        assert derive_processing_state(None, False) == (None, True)
        timestamp, needs_processing = derive_processing_state("2024-01-01T08:00:00+00:00", "no")
        assert timestamp == datetime(2024, 1, 1, 8, tzinfo=timezone.utc)
        assert needs_processing is False


class TestSerializeRecord:
    """Test converting records back to front-matter"""

    def test_round_trip(self):
        """Test parse(serialize(r)) equals r"""
        record = parse_record(PATH, full_frontmatter())

        again = parse_record(PATH, serialize_record(record))

        assert records_equal(record, again)

    def test_round_trip_extra(self):
        """Test extra properties round-trip as a map"""
        frontmatter = full_frontmatter()
        frontmatter.update({"mood": "good", "attendees": ["x", "y"]})
        record = parse_record(PATH, frontmatter)

        again = parse_record(PATH, serialize_record(record))

        assert again.extra == {"mood": "good", "attendees": ["x", "y"]}
        assert records_equal(record, again)

    def test_timestamp_has_offset(self):
        """Test dates serialize with an explicit UTC offset"""
        record = parse_record(PATH, full_frontmatter())

        fields = serialize_record(record)

        assert fields["occurrence_occurred_at"] == "2024-03-01T09:30:00+01:00"

    def test_empty_fields_omitted(self):
        """Test that empty values are not written"""
        record = Record(id=PATH, title="Team sync", extra={"blank": "", "none": None})

        fields = serialize_record(record)

        assert fields == {"occurrence_to_process": True}

    def test_references_written_as_links(self):
        """Test reference serialization"""
        record = parse_record(PATH, full_frontmatter())

        fields = serialize_record(record)

        assert fields["occurrence_participants"] == ["[[Alice]]", "[[Bob|Robert]]"]
        assert fields["occurrence_location"] == "[[Office]]"


class TestRecordsEqual:
    """Test relevance comparison"""

    def test_tag_order_ignored(self):
        """Test tags compare as sets"""
        a = parse_record(PATH, full_frontmatter())
        b = a.model_copy(update={"tags": ["meeting", "work"]})

        assert records_equal(a, b)

    def test_flag_change_detected(self):
        """Test a flipped processing flag is relevant"""
        a = parse_record(PATH, full_frontmatter())
        b = a.model_copy(update={"needs_processing": True})

        assert not records_equal(a, b)

    def test_extra_change_detected(self):
        """Test extra properties participate in equality"""
        a = parse_record(PATH, full_frontmatter())
        b = a.model_copy(update={"extra": {"mood": "bad"}})

        assert not records_equal(a, b)

    def test_none_handling(self):
        """Test comparisons with missing records"""
        a = parse_record(PATH, {})
        assert records_equal(None, None)
        assert not records_equal(a, None)


class TestRecordChanges:
    """Test partial changes"""

    def test_apply_title_and_tags(self):
        """Test only provided fields change"""
        record = parse_record(PATH, full_frontmatter())

        merged = apply_changes(record, RecordChanges(title="Retro", tags=["work"]))

        assert merged.title == "Retro"
        assert merged.tags == ["work"]
        assert merged.participants == record.participants
        assert merged.timestamp == record.timestamp

    def test_clearing_timestamp_forces_processing(self):
        """Test that removing the timestamp keeps the derivation consistent"""
        record = parse_record(PATH, full_frontmatter())

        merged = apply_changes(record, RecordChanges(timestamp=None))

        assert merged.timestamp is None
        assert merged.needs_processing is True

    def test_extra_merge_semantics(self):
        """Test extra keys overwrite, None removes, absent keys stay"""
        frontmatter = full_frontmatter()
        frontmatter.update({"mood": "good", "rating": 4})
        record = parse_record(PATH, frontmatter)

        changes = RecordChanges(extra={"mood": "great", "rating": None})
        merged = apply_changes(record, changes)

        assert merged.extra == {"mood": "great"}
        assert changes.removed_extra_keys == ["rating"]

    def test_link_text_accepted(self):
        """Test references may be given as link text"""
        changes = RecordChanges(participants=["[[Carol]]", "Dave"], location="[[Home]]")

        assert [p.target for p in changes.participants] == ["Carol", "Dave"]
        assert changes.location.target == "Home"

    def test_mapped_keys_rejected_in_extra(self):
        """Test typed fields cannot be bypassed through extra"""
        with pytest.raises(ValidationError):
            RecordChanges(extra={"occurrence_to_process": True})

    def test_unknown_fields_rejected(self):
        """Test typos in change sets fail loudly"""
        with pytest.raises(ValidationError):
            RecordChanges(titel="oops")


class TestFrontmatterUpdates:
    """Test writing records into existing front-matter"""

    def test_removed_fields_deleted(self):
        """Test mapped keys the record no longer has are removed"""
        frontmatter = full_frontmatter()
        frontmatter["unrelated"] = "kept"
        record = parse_record(PATH, frontmatter).model_copy(update={"location": None, "tags": []})

        apply_frontmatter_updates(frontmatter, frontmatter_updates(record))

        assert "occurrence_location" not in frontmatter
        assert "tags" not in frontmatter
        assert frontmatter["unrelated"] == "kept"
        assert frontmatter["occurrence_to_process"] is False

    def test_removed_extra_keys(self):
        """Test explicit extra removals"""
        frontmatter = {"mood": "good"}
        record = parse_record(PATH, {})

        apply_frontmatter_updates(frontmatter, frontmatter_updates(record, ["mood"]))

        assert "mood" not in frontmatter


class TestNormalizeTags:
    """Test tag normalization"""

    def test_dedupes_and_keeps_order(self):
        assert normalize_tags(["b", "a", "b", " c ", None, ""]) == ["b", "a", "c"]

    def test_scalar(self):
        assert normalize_tags("solo") == ["solo"]

    def test_invalid(self):
        assert normalize_tags({"a": 1}) == []
