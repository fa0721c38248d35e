"""
Occurrence adapter.

Bridges vault notes and occurrence records: decides which notes the store
owns, parses them, detects relevant changes and computes the canonical file
name a note should carry. All host access goes through the VaultHost.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional

from ..models.config import StoreConfig
from ..models.naming import canonical_file_name, parse_file_name
from ..models.record import (
    OCCURRENCE_FRONTMATTER_MAPPING,
    Record,
    apply_frontmatter_updates,
    frontmatter_updates,
    parse_record,
    parse_timestamp,
    records_equal,
)
from ..vault.base import VaultFile, VaultHost

logger = logging.getLogger(__name__)


class OccurrenceAdapter:
    """
    Translates between vault notes and Records.

    Parsing never raises: malformed front-matter falls back to the record
    model's defaults, and notes outside the managed folder are ignored.
    """

    def __init__(self, host: VaultHost, config: Optional[StoreConfig] = None):
        """
        Initialize the adapter.

        Args:
            host: Vault host providing files and metadata
            config: Store conventions (folder, extension, naming format)
        """
        self.host = host
        self.config = config or StoreConfig()

    def is_managed(self, path: str) -> bool:
        """Check if a vault path belongs to the store"""
        return self.config.is_managed(path)

    def parse(self, file: VaultFile) -> Optional[Record]:
        """Parse the host's cached front-matter for a managed file"""
        if not self.is_managed(file.path):
            return None

        frontmatter = self.host.get_frontmatter(file)
        try:
            return parse_record(file.path, frontmatter, self.config.date_format)
        except Exception as e:
            logger.warning(f"Skipping unparsable occurrence {file.path}: {e}")
            return None

    async def load(self, file: VaultFile) -> Optional[Record]:
        """
        Load a record for a file.

        Returns:
            Record, or None for files outside the managed folder or that
            cannot be parsed
        """
        if not self.is_managed(file.path):
            logger.debug(f"Not an occurrence, skipping: {file.path}")
            return None
        return self.parse(file)

    async def detect_relevant_change(self, file: VaultFile, previous: Optional[Record]) -> bool:
        """
        Check whether the note's current metadata changes its record.

        Builds the record the note would produce now, without touching the
        store, and compares it with ``previous``. A missing previous record is
        always a relevant change. Metadata the host has not cached yet is
        reported as no change.
        """
        if previous is None:
            return True

        if self.host.get_frontmatter(file) is None:
            logger.debug(f"Metadata not ready for {file.path}, treating as unchanged")
            return False

        candidate = self.parse(file)
        if candidate is None:
            return False
        return not records_equal(previous, candidate)

    def canonical_name(self, title: str, timestamp: Optional[datetime]) -> str:
        """File name (without extension) for a title and timestamp"""
        if timestamp is None:
            return title.strip()
        return canonical_file_name(title, timestamp, self.config.date_format)

    async def desired_file_name(self, file: VaultFile) -> Optional[str]:
        """
        The name a note should have given its current metadata.

        Returns:
            Canonical file name without extension, or None when no rename is
            needed (already canonical, no valid timestamp, or metadata not
            ready)
        """
        if not self.is_managed(file.path):
            return None

        frontmatter = self.host.get_frontmatter(file)
        if frontmatter is None:
            return None

        timestamp = parse_timestamp(frontmatter.get(OCCURRENCE_FRONTMATTER_MAPPING["timestamp"]))
        if timestamp is None:
            return None

        title = parse_file_name(file.basename, self.config.date_format)
        desired = canonical_file_name(title, timestamp, self.config.date_format)
        return None if desired == file.basename else desired

    async def wait_for_metadata(self, file: VaultFile) -> bool:
        """
        Poll until the host has cached the file's metadata.

        Returns:
            True if metadata became available within the configured attempts
        """
        for attempt in range(self.config.cache_poll_attempts):
            if self.host.get_frontmatter(file) is not None:
                return True
            if attempt < self.config.cache_poll_attempts - 1:
                await asyncio.sleep(self.config.cache_poll_delay_seconds)

        logger.warning(
            f"Metadata for {file.path} not ready after {self.config.cache_poll_attempts} attempts, "
            f"loading anyway"
        )
        return False

    async def write(self, file: VaultFile, record: Record, removed_keys: Iterable[str] = ()) -> None:
        """Write a record's fields into the note's front-matter in one host call"""
        updates = frontmatter_updates(record, removed_keys)
        await self.host.process_frontmatter(file, lambda fm: apply_frontmatter_updates(fm, updates))
