"""
Directory-backed vault host.

Implements VaultHost over a plain directory of markdown notes: an in-memory
front-matter cache, link graph resolution, trash folder, and a change feed fed
by the watchdog-based VaultWatcher.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from ..models.config import VaultConfig
from ..models.links import extract_link_texts
from ..sync.events import VaultEvent, VaultEventType
from ..sync.watcher import VaultWatcher
from .base import FrontmatterMutator, VaultError, VaultFile, VaultHost
from .frontmatter import render_frontmatter, split_frontmatter

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSION = ".md"


@dataclass
class CachedNote:
    """Metadata cache entry for one note"""
    frontmatter: Dict[str, Any]
    link_texts: List[str] = field(default_factory=list)


def _collect_link_texts(frontmatter: Dict[str, Any], body: str) -> List[str]:
    """Link targets found in the body and in string front-matter values"""
    texts = extract_link_texts(body)

    def visit(value: Any) -> None:
        if isinstance(value, str):
            texts.extend(extract_link_texts(value))
        elif isinstance(value, list):
            # Unquoted [[x]] in YAML becomes [['x']]
            if len(value) == 1 and isinstance(value[0], list) and len(value[0]) == 1 \
                    and isinstance(value[0][0], str):
                texts.extend(extract_link_texts(f"[[{value[0][0]}]]"))
                return
            for item in value:
                visit(item)
        elif isinstance(value, dict):
            for item in value.values():
                visit(item)

    visit(frontmatter)
    return texts


class FileSystemVault(VaultHost):
    """
    Vault host over a directory on disk.

    Writes made through this host (front-matter updates, renames, trash) update
    the metadata cache immediately; changes made by other programs arrive via
    the watcher and are delivered to subscribers in order by a single
    dispatch task.
    """

    def __init__(self, config: VaultConfig, watch: Optional[bool] = None):
        """
        Initialize the vault.

        Args:
            config: Vault configuration
            watch: Override config.watch (monitor the directory for changes)
        """
        super().__init__()
        self.config = config
        self.root = config.path
        self.watch = config.watch if watch is None else watch

        self._cache: Dict[str, CachedNote] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self.watcher: Optional[VaultWatcher] = None

        logger.info(f"Initialized FileSystemVault at {self.root}")

    # Lifecycle

    async def start(self) -> None:
        """Scan the vault, start the dispatcher and (optionally) the watcher"""
        if self._dispatch_task is not None:
            return

        self.scan()
        self._queue = asyncio.Queue()
        self._dispatch_task = asyncio.create_task(self._dispatch_worker())

        if self.watch:
            self.watcher = VaultWatcher(self.root, self.enqueue)
            if not await self.watcher.start_monitoring():
                logger.warning(f"Vault watcher failed to start for {self.root}; external changes will be missed")

        self.mark_ready()
        logger.info(f"Vault ready: {len(self._cache)} notes cached")

    async def stop(self) -> None:
        """Stop watching and dispatching"""
        if self.watcher:
            await self.watcher.stop_monitoring()
            self.watcher = None

        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None
        self._queue = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # Path helpers

    def _absolute(self, path: str) -> Path:
        return self.root / Path(*path.split('/'))

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def is_note_path(self, path: str) -> bool:
        """Markdown file outside hidden folders and the trash"""
        if not path.lower().endswith(MARKDOWN_EXTENSION):
            return False
        parts = path.split('/')
        if parts[0] == self.config.trash_folder:
            return False
        return not any(part.startswith('.') for part in parts[:-1])

    # Metadata cache

    def scan(self) -> None:
        """Rebuild the metadata cache from disk"""
        self._cache.clear()
        for file in self.get_markdown_files():
            self._refresh_sync(file.path)

    def _read_note(self, path: str) -> Optional[CachedNote]:
        try:
            text = self._absolute(path).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {path}: {e}")
            return None
        frontmatter, body = split_frontmatter(text)
        return CachedNote(frontmatter=frontmatter, link_texts=_collect_link_texts(frontmatter, body))

    def _refresh_sync(self, path: str) -> bool:
        """Re-read one note into the cache; True if its metadata changed"""
        note = self._read_note(path)
        if note is None:
            return self._cache.pop(path, None) is not None

        previous = self._cache.get(path)
        self._cache[path] = note
        return previous is None or previous != note

    async def refresh(self, path: str) -> bool:
        """Re-read one note into the cache; True if its metadata changed"""
        return self._refresh_sync(path)

    # Change feed

    def enqueue(self, event: VaultEvent) -> None:
        """Queue a raw filesystem change for ordered processing"""
        if self._queue is None:
            logger.debug(f"Vault not started, dropping {event}")
            return
        self._queue.put_nowait(event)

    async def flush(self) -> None:
        """Wait until every queued change has been delivered"""
        if self._queue is not None:
            await self._queue.join()

    async def _dispatch_worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._process_change(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error processing vault change {event}: {e}")
            finally:
                self._queue.task_done()

    async def _process_change(self, event: VaultEvent) -> None:
        """Translate a raw filesystem change into host notifications"""
        path = event.path

        if event.event_type == VaultEventType.CREATED:
            if not self.is_note_path(path) or not self._absolute(path).is_file():
                return
            changed = await self.refresh(path)
            await self.deliver(VaultEvent.created(path))
            if changed:
                await self.deliver(VaultEvent.changed(path))

        elif event.event_type == VaultEventType.CHANGED:
            if not self.is_note_path(path) or not self._absolute(path).is_file():
                return
            if await self.refresh(path):
                await self.deliver(VaultEvent.changed(path))

        elif event.event_type == VaultEventType.DELETED:
            if not self.is_note_path(path):
                return
            self._cache.pop(path, None)
            await self.deliver(VaultEvent.deleted(path))

        elif event.event_type == VaultEventType.RENAMED:
            old_path = event.old_path
            old_is_note = self.is_note_path(old_path)
            new_is_note = self.is_note_path(path)

            if old_is_note and new_is_note:
                cached = self._cache.pop(old_path, None)
                if cached is not None and path not in self._cache:
                    self._cache[path] = cached
                changed = await self.refresh(path)
                await self.deliver(VaultEvent.renamed(old_path, path))
                if changed:
                    await self.deliver(VaultEvent.changed(path))
            elif old_is_note:
                # Moved out of view (e.g. into the trash)
                self._cache.pop(old_path, None)
                await self.deliver(VaultEvent.deleted(old_path))
            elif new_is_note:
                await self._process_change(VaultEvent.created(path))

    # VaultHost file services

    def get_markdown_files(self) -> List[VaultFile]:
        files = []
        for current, dirs, names in os.walk(self.root):
            dirs[:] = sorted(d for d in dirs if not d.startswith('.') and d != self.config.trash_folder)
            for name in sorted(names):
                rel = self._relative(Path(current) / name)
                if self.is_note_path(rel):
                    files.append(VaultFile(rel))
        return files

    def get_file(self, path: str) -> Optional[VaultFile]:
        if self._absolute(path).is_file():
            return VaultFile(path)
        return None

    def get_frontmatter(self, file: VaultFile) -> Optional[Dict[str, Any]]:
        note = self._cache.get(file.path)
        return dict(note.frontmatter) if note is not None else None

    @property
    def resolved_links(self) -> Dict[str, Dict[str, int]]:
        """Resolve every cached note's links against the current file set"""
        paths = set(self._cache)
        by_basename: Dict[str, List[str]] = {}
        for path in paths:
            by_basename.setdefault(VaultFile(path).basename.lower(), []).append(path)

        graph: Dict[str, Dict[str, int]] = {}
        for source, note in self._cache.items():
            targets: Dict[str, int] = {}
            for text in note.link_texts:
                target = self._resolve_link(text, source, paths, by_basename)
                if target is not None:
                    targets[target] = targets.get(target, 0) + 1
            if targets:
                graph[source] = targets
        return graph

    def _resolve_link(
        self,
        text: str,
        source: str,
        paths: set,
        by_basename: Dict[str, List[str]]
    ) -> Optional[str]:
        """Resolve link text to a note path the way note apps do"""
        candidate = text.lstrip('/')
        for option in (candidate, f"{candidate}{MARKDOWN_EXTENSION}"):
            if option in paths:
                return option

        # Relative to the linking note's folder
        parent = VaultFile(source).parent
        if parent:
            for option in (f"{parent}/{candidate}", f"{parent}/{candidate}{MARKDOWN_EXTENSION}"):
                if option in paths:
                    return option

        name = candidate.rsplit('/', 1)[-1]
        if name.lower().endswith(MARKDOWN_EXTENSION):
            name = name[:-len(MARKDOWN_EXTENSION)]
        matches = sorted(by_basename.get(name.lower(), []))
        if not matches:
            return None
        # Prefer the shortest path when several notes share a name
        return min(matches, key=lambda p: (p.count('/'), p))

    async def create(self, path: str, content: str = "") -> VaultFile:
        target = self._absolute(path)
        if target.exists():
            raise VaultError(f"File already exists: {path}")

        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiofiles.open(target, 'x', encoding='utf-8') as f:
                await f.write(content)
        except OSError as e:
            raise VaultError(f"Failed to create {path}: {e}") from e

        logger.info(f"Created {path}")
        return VaultFile(path)

    async def rename(self, file: VaultFile, new_path: str) -> VaultFile:
        source = self._absolute(file.path)
        target = self._absolute(new_path)
        if not source.is_file():
            raise VaultError(f"File does not exist: {file.path}")
        if target.exists():
            raise VaultError(f"File already exists: {new_path}")

        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            source.rename(target)
        except OSError as e:
            raise VaultError(f"Failed to rename {file.path} to {new_path}: {e}") from e

        cached = self._cache.pop(file.path, None)
        if cached is not None:
            self._cache[new_path] = cached

        logger.info(f"Renamed {file.path} -> {new_path}")
        return VaultFile(new_path)

    async def trash(self, file: VaultFile) -> None:
        source = self._absolute(file.path)
        if not source.is_file():
            raise VaultError(f"File does not exist: {file.path}")

        trash_dir = self.root / self.config.trash_folder
        trash_dir.mkdir(parents=True, exist_ok=True)

        target = trash_dir / source.name
        counter = 1
        while target.exists():
            target = trash_dir / f"{source.stem} {counter}{source.suffix}"
            counter += 1

        try:
            source.rename(target)
        except OSError as e:
            raise VaultError(f"Failed to trash {file.path}: {e}") from e

        self._cache.pop(file.path, None)
        logger.info(f"Moved {file.path} to trash")

    async def process_frontmatter(self, file: VaultFile, mutate: FrontmatterMutator) -> None:
        target = self._absolute(file.path)
        try:
            async with aiofiles.open(target, 'r', encoding='utf-8') as f:
                text = await f.read()
        except OSError as e:
            raise VaultError(f"Failed to read {file.path}: {e}") from e

        frontmatter, body = split_frontmatter(text)
        mutate(frontmatter)

        try:
            async with aiofiles.open(target, 'w', encoding='utf-8') as f:
                await f.write(render_frontmatter(frontmatter, body))
        except OSError as e:
            raise VaultError(f"Failed to write {file.path}: {e}") from e

        self._cache[file.path] = CachedNote(
            frontmatter=frontmatter,
            link_texts=_collect_link_texts(frontmatter, body)
        )

    def get_status(self) -> Dict[str, Any]:
        """Status information for diagnostics"""
        return {
            "root": str(self.root),
            "ready": self.is_ready,
            "cached_notes": len(self._cache),
            "subscribers": self.subscriber_count,
            "pending_changes": self._queue.qsize() if self._queue else 0,
            "watcher": self.watcher.get_status() if self.watcher else None,
        }
