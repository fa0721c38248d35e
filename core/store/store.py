"""
Occurrence store.

Owns the authoritative id -> Record map, keeps it in sync with the vault's
change feed, maintains the index engine symmetrically on every mutation and
announces lifecycle events on the notification bus.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from ..models.config import StoreConfig
from ..models.naming import is_valid_title
from ..models.record import Record, RecordChanges, apply_changes
from ..search.index import IndexAction, IndexEngine, SearchOptions, SearchResult
from ..sync.events import VaultEvent, VaultEventType
from ..vault.base import VaultFile, VaultHost
from .adapter import OccurrenceAdapter
from .bus import Handler, NotificationBus, StoreEvent
from .errors import DuplicateRecordError, InvalidTitleError, RecordNotFoundError

logger = logging.getLogger(__name__)


class OccurrenceStore:
    """
    In-memory occurrence collection backed by vault notes.

    All mutations of the record map go through this class. Vault
    notifications are handled one at a time in delivery order; update(),
    create() and event handling share one lock so a notification never
    interleaves with a write in progress.

    Lifecycle:
        store = OccurrenceStore(host)
        await store.start()     # waits for the host, subscribes to changes
        await store.load()
        ...
        await store.stop()
    """

    def __init__(
        self,
        host: VaultHost,
        config: Optional[StoreConfig] = None,
        bus: Optional[NotificationBus] = None,
        adapter: Optional[OccurrenceAdapter] = None
    ):
        """
        Initialize the store.

        Args:
            host: Vault host providing files, metadata and change notifications
            config: Store conventions
            bus: Notification bus for lifecycle events (created if omitted)
            adapter: Note <-> record adapter (created if omitted)
        """
        self.host = host
        self.config = config or StoreConfig()
        self.bus = bus or NotificationBus()
        self.adapter = adapter or OccurrenceAdapter(host, self.config)

        self._records: Dict[str, Record] = {}
        self.index = IndexEngine(
            self._records,
            lambda: self.host.resolved_links,
            default_limit=self.config.default_limit
        )

        self._mutation_lock = asyncio.Lock()
        self._loading = False
        self._loaded = False
        self._subscription: Optional[int] = None

        logger.info(f"Initialized OccurrenceStore for folder '{self.config.folder}'")

    # Lifecycle

    async def start(self) -> None:
        """Wait for the host to be ready, then follow its change feed"""
        if self._subscription is not None:
            return
        await self.host.wait_until_ready()
        self._subscription = self.host.subscribe(self.handle_vault_event)
        logger.info("OccurrenceStore subscribed to vault changes")

    async def stop(self) -> None:
        """Stop following the host's change feed"""
        if self._subscription is None:
            return
        self.host.unsubscribe(self._subscription)
        self._subscription = None
        logger.info("OccurrenceStore unsubscribed from vault changes")

    @property
    def is_loaded(self) -> bool:
        return self._loaded and not self._loading

    async def ensure_loaded(self) -> None:
        """Load unless the store is already loaded or loading"""
        if self._loaded or self._loading:
            return
        await self.load()

    async def load(self) -> None:
        """
        Rebuild the store from every managed note.

        A call made while a load is already running returns immediately.
        """
        if self._loading:
            logger.debug("Load already in progress, ignoring")
            return

        self._loading = True
        start_time = time.perf_counter()
        try:
            async with self._mutation_lock:
                self._records.clear()
                self.index.clear()

                for file in self.host.get_markdown_files():
                    if not self.adapter.is_managed(file.path):
                        continue
                    record = await self.adapter.load(file)
                    if record is None:
                        continue
                    self._records[record.id] = record
                    self.index.index(record, IndexAction.ADD)

                self._loaded = True
        finally:
            self._loading = False

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"Loaded {len(self._records)} occurrences in {duration_ms:.1f}ms")
        self.bus.emit(StoreEvent.LOADED)

    # Reads

    def get(self, record_id: str) -> Optional[Record]:
        return self._records.get(record_id)

    def get_all(self) -> List[Record]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    def search(self, options: Optional[Union[SearchOptions, Mapping[str, Any]]] = None) -> SearchResult:
        """Filter, sort and page the current records"""
        if options is not None and not isinstance(options, SearchOptions):
            options = SearchOptions(**options)
        return self.index.search(options)

    def all_tags(self) -> List[str]:
        """Tags used by at least one occurrence"""
        return self.index.all_tags()

    # Notification bus

    def subscribe(self, event: Union[StoreEvent, str], handler: Handler) -> int:
        return self.bus.subscribe(event, handler)

    def unsubscribe(self, token: int) -> bool:
        return self.bus.unsubscribe(token)

    # Map mutation (the only code that writes self._records)

    def _insert(self, record: Record) -> None:
        self._records[record.id] = record
        self.index.index(record, IndexAction.ADD)
        logger.debug(f"Added occurrence {record.id}")
        self.bus.emit(StoreEvent.ITEM_ADDED, record)

    def _replace(self, previous: Record, record: Record) -> None:
        # The previous version's tags are removed, not the new ones
        self.index.index(previous, IndexAction.REMOVE)
        self._records[record.id] = record
        self.index.index(record, IndexAction.ADD)
        logger.debug(f"Updated occurrence {record.id}")
        self.bus.emit(StoreEvent.ITEM_UPDATED, record)

    def _upsert(self, record: Record) -> Record:
        previous = self._records.get(record.id)
        if previous is None:
            self._insert(record)
        elif previous != record:
            self._replace(previous, record)
        return record

    def remove(self, record_id: str) -> Optional[Record]:
        """
        Drop a record from the map and indexes.

        Returns:
            The removed record, or None if the id was unknown
        """
        record = self._records.pop(record_id, None)
        if record is None:
            logger.debug(f"Remove ignored, occurrence not in store: {record_id}")
            return None

        self.index.index(record, IndexAction.REMOVE)
        logger.info(f"Removed occurrence {record_id}")
        self.bus.emit(StoreEvent.ITEM_REMOVED, record)
        return record

    async def add(self, file: VaultFile) -> Optional[Record]:
        """
        Parse a note and insert its record.

        Adding a note already in the store replaces its record when it
        changed and is a no-op otherwise. Notes outside the managed folder
        are skipped.
        """
        async with self._mutation_lock:
            return await self._add_file(file)

    async def _add_file(self, file: VaultFile) -> Optional[Record]:
        record = await self.adapter.load(file)
        if record is None:
            logger.debug(f"Skipped {file.path}: not an occurrence")
            return None
        return self._upsert(record)

    # Writes

    async def create(
        self,
        properties: Optional[Union[RecordChanges, Mapping[str, Any]]] = None
    ) -> VaultFile:
        """
        Create a new occurrence note.

        Args:
            properties: Initial properties; title defaults to the configured
                default title and timestamp to now

        Returns:
            The new note's VaultFile (the record arrives via the host's
            creation notification)

        Raises:
            InvalidTitleError: Title cannot be used in a file name
            DuplicateRecordError: A note with the canonical name exists
        """
        changes = self._coerce_changes(properties)

        title = (changes.title or self.config.default_title).strip()
        if not is_valid_title(title):
            raise InvalidTitleError(title)

        if 'timestamp' in changes.model_fields_set:
            timestamp = changes.timestamp
        else:
            timestamp = datetime.now().astimezone()

        async with self._mutation_lock:
            path = self.config.path_for(self.adapter.canonical_name(title, timestamp))
            if self.host.exists(path):
                raise DuplicateRecordError(path)

            draft = apply_changes(
                Record(id=path, title=title, timestamp=timestamp, needs_processing=True),
                changes
            )

            file = await self.host.create(path, "")
            await self.adapter.write(file, draft)

        logger.info(f"Created occurrence {path}")
        return file

    async def update(
        self,
        record_id: str,
        changes: Union[RecordChanges, Mapping[str, Any]]
    ) -> Record:
        """
        Apply partial changes to an occurrence and write them to its note.

        The note is renamed when the title or timestamp imply a new canonical
        name. The returned record is re-derived from the written note.

        Raises:
            RecordNotFoundError: Unknown id
            InvalidTitleError: New title cannot be used in a file name
            DuplicateRecordError: Implied rename target already exists
        """
        changes = self._coerce_changes(changes)
        if changes.title is not None and not is_valid_title(changes.title):
            raise InvalidTitleError(changes.title)

        async with self._mutation_lock:
            current = self._records.get(record_id)
            if current is None:
                raise RecordNotFoundError(record_id)

            file = self.host.get_file(record_id)
            if file is None:
                raise RecordNotFoundError(record_id)

            merged = apply_changes(current, changes)
            if merged.timestamp is None and merged.title == current.title:
                new_name = file.basename
            else:
                new_name = self.adapter.canonical_name(merged.title, merged.timestamp) or file.basename
            new_path = file.sibling(new_name)

            if new_path != file.path and self.host.exists(new_path):
                raise DuplicateRecordError(new_path, record_id)

            await self.adapter.write(file, merged, changes.removed_extra_keys)

            if new_path != file.path:
                self.remove(file.path)
                try:
                    file = await self.host.rename(file, new_path)
                except Exception as e:
                    logger.error(f"Rename of {record_id} to {new_path} failed: {e}")
                    restored = await self.adapter.load(file)
                    self._upsert(restored or current)
                    raise

            await self.adapter.wait_for_metadata(file)
            record = await self.adapter.load(file)
            if record is None:
                raise RecordNotFoundError(file.path)

            logger.info(f"Updated occurrence {record.id}")
            return self._upsert(record)

    async def delete(self, record_id: str) -> None:
        """
        Move an occurrence's note to the vault trash.

        The record leaves the store when the host reports the deletion.

        Raises:
            RecordNotFoundError: Unknown id
        """
        if record_id not in self._records:
            raise RecordNotFoundError(record_id)

        file = self.host.get_file(record_id)
        if file is None:
            raise RecordNotFoundError(record_id)

        await self.host.trash(file)
        logger.info(f"Moved occurrence {record_id} to trash")

    @staticmethod
    def _coerce_changes(changes: Optional[Union[RecordChanges, Mapping[str, Any]]]) -> RecordChanges:
        if changes is None:
            return RecordChanges()
        if isinstance(changes, RecordChanges):
            return changes
        return RecordChanges(**changes)

    # Vault change feed

    async def handle_vault_event(self, event: VaultEvent) -> None:
        """Apply one host notification to the store"""
        logger.debug(f"Vault event: {event}")

        async with self._mutation_lock:
            if event.event_type == VaultEventType.CREATED:
                await self._on_created(event.path)
            elif event.event_type == VaultEventType.DELETED:
                self._on_deleted(event.path)
            elif event.event_type == VaultEventType.RENAMED:
                await self._on_renamed(event.old_path, event.path)
            elif event.event_type == VaultEventType.CHANGED:
                await self._on_changed(event.path)

    async def _on_created(self, path: str) -> None:
        if self.adapter.is_managed(path):
            await self._add_when_ready(path)

    def _on_deleted(self, path: str) -> None:
        if self.adapter.is_managed(path):
            self.remove(path)

    async def _on_renamed(self, old_path: str, new_path: str) -> None:
        if self.adapter.is_managed(old_path):
            self.remove(old_path)
        if self.adapter.is_managed(new_path):
            await self._add_when_ready(new_path)

    async def _add_when_ready(self, path: str) -> None:
        file = self.host.get_file(path)
        if file is None:
            logger.debug(f"{path} vanished before it could be added")
            return

        await self.adapter.wait_for_metadata(file)
        await self._add_file(file)

        desired = await self.adapter.desired_file_name(file)
        if desired is not None:
            await self._rename_to_canonical(file, desired)

    async def _on_changed(self, path: str) -> None:
        if not self.adapter.is_managed(path):
            return

        file = self.host.get_file(path)
        if file is None:
            return

        desired = await self.adapter.desired_file_name(file)
        if desired is not None and await self._rename_to_canonical(file, desired):
            # The host's rename notification completes the update
            return

        previous = self._records.get(path)
        if not await self.adapter.detect_relevant_change(file, previous):
            logger.debug(f"Ignoring irrelevant change to {path}")
            return

        await self._add_file(file)

    async def _rename_to_canonical(self, file: VaultFile, desired: str) -> bool:
        """
        Rename a note to its canonical name.

        The record is removed under its old id before the rename and is
        restored if the host rename fails.

        Returns:
            True if the note was renamed
        """
        new_path = file.sibling(desired)
        if self.host.exists(new_path):
            logger.warning(f"Cannot rename {file.path}: {new_path} already exists")
            return False

        previous = self.remove(file.path)
        try:
            await self.host.rename(file, new_path)
        except Exception as e:
            logger.error(f"Rename of {file.path} to {new_path} failed, restoring record: {e}")
            if previous is not None:
                self._insert(previous)
            return False

        logger.info(f"Renamed {file.path} -> {new_path}")
        return True
