"""
Tests for the occurrence adapter.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from core.models.config import StoreConfig
from core.store.adapter import OccurrenceAdapter
from core.vault.base import VaultFile
from tests.fixtures.vault import InMemoryVault

CET = timezone(timedelta(hours=1))
PATH = "Occurrences/2024-03-01 0930 Team sync.md"


@pytest.fixture
def vault():
    return InMemoryVault({
        PATH: {
            "occurrence_occurred_at": "2024-03-01T09:30:00+01:00",
            "occurrence_to_process": False,
            "occurrence_location": "[[Office]]",
            "tags": ["work"],
        },
        "Notes/Other.md": {"tags": ["x"]},
    })


@pytest.fixture
def adapter(vault):
    return OccurrenceAdapter(vault, StoreConfig(cache_poll_attempts=3, cache_poll_delay_ms=0))


class TestParsing:
    """Test reading records through the host cache"""

    def test_is_managed(self, adapter):
        assert adapter.is_managed(PATH)
        assert not adapter.is_managed("Notes/Other.md")
        assert not adapter.is_managed("Occurrences/image.png")
        assert not adapter.is_managed("OccurrencesArchive/x.md")

    @pytest.mark.asyncio
    async def test_load(self, adapter):
        record = await adapter.load(VaultFile(PATH))

        assert record.id == PATH
        assert record.title == "Team sync"
        assert record.location.target == "Office"

    @pytest.mark.asyncio
    async def test_load_unmanaged(self, adapter):
        assert await adapter.load(VaultFile("Notes/Other.md")) is None

    def test_parse_failure_returns_none(self, adapter):
        with patch("core.store.adapter.parse_record", side_effect=ValueError("bad")):
            assert adapter.parse(VaultFile(PATH)) is None


class TestRelevantChange:
    """Test change detection"""

    @pytest.mark.asyncio
    async def test_no_previous_is_relevant(self, adapter):
        assert await adapter.detect_relevant_change(VaultFile(PATH), None) is True

    @pytest.mark.asyncio
    async def test_unchanged(self, adapter):
        file = VaultFile(PATH)
        previous = await adapter.load(file)

        assert await adapter.detect_relevant_change(file, previous) is False

    @pytest.mark.asyncio
    async def test_location_change(self, adapter, vault):
        file = VaultFile(PATH)
        previous = await adapter.load(file)
        vault.cache[PATH]["occurrence_location"] = "[[Home]]"

        assert await adapter.detect_relevant_change(file, previous) is True

    @pytest.mark.asyncio
    async def test_cache_not_ready(self, adapter, vault):
        """Test missing metadata is reported as no change"""
        file = VaultFile(PATH)
        previous = await adapter.load(file)
        vault.cache.pop(PATH)

        assert await adapter.detect_relevant_change(file, previous) is False


class TestNaming:
    """Test canonical name computation"""

    @pytest.mark.asyncio
    async def test_canonical_file_needs_no_rename(self, adapter):
        assert await adapter.desired_file_name(VaultFile(PATH)) is None

    @pytest.mark.asyncio
    async def test_wrong_prefix(self, adapter, vault):
        vault.cache[PATH]["occurrence_occurred_at"] = "2024-03-02T18:05:00+01:00"

        assert await adapter.desired_file_name(VaultFile(PATH)) == "2024-03-02 1805 Team sync"

    @pytest.mark.asyncio
    async def test_missing_prefix(self, adapter, vault):
        vault.add_note("Occurrences/Lunch.md", {"occurrence_occurred_at": "2024-03-01T12:00:00+01:00"})

        assert await adapter.desired_file_name(VaultFile("Occurrences/Lunch.md")) == "2024-03-01 1200 Lunch"

    @pytest.mark.asyncio
    async def test_no_timestamp_no_rename(self, adapter, vault):
        vault.add_note("Occurrences/Someday.md", {})

        assert await adapter.desired_file_name(VaultFile("Occurrences/Someday.md")) is None

    @pytest.mark.asyncio
    async def test_unmanaged_no_rename(self, adapter):
        assert await adapter.desired_file_name(VaultFile("Notes/Other.md")) is None

    def test_canonical_name(self, adapter):
        assert adapter.canonical_name("Lunch", datetime(2024, 3, 1, 12, 0, tzinfo=CET)) == "2024-03-01 1200 Lunch"
        assert adapter.canonical_name(" Lunch ", None) == "Lunch"


class TestHostAccess:
    """Test metadata polling and write-back"""

    @pytest.mark.asyncio
    async def test_wait_for_metadata_ready(self, adapter):
        assert await adapter.wait_for_metadata(VaultFile(PATH)) is True

    @pytest.mark.asyncio
    async def test_wait_for_metadata_gives_up(self, adapter, vault, caplog):
        vault.cache.pop(PATH)

        assert await adapter.wait_for_metadata(VaultFile(PATH)) is False
        assert "not ready after 3 attempts" in caplog.text

    @pytest.mark.asyncio
    async def test_write_single_host_call(self, adapter, vault):
        """Test a record is written in one front-matter transaction"""
        file = VaultFile(PATH)
        vault.cache[PATH]["mood"] = "good"
        vault.notes[PATH]["mood"] = "good"
        record = await adapter.load(file)
        record = record.model_copy(update={"location": None, "tags": ["work", "retro"], "extra": {}})

        await adapter.write(file, record, removed_keys=["mood"])

        assert vault.write_count == 1
        frontmatter = vault.notes[PATH]
        assert "occurrence_location" not in frontmatter
        assert "mood" not in frontmatter
        assert frontmatter["tags"] == ["work", "retro"]
        assert frontmatter["occurrence_occurred_at"] == "2024-03-01T09:30:00+01:00"
