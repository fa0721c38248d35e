"""
Vault File System Watcher.

Provides cross-platform file system monitoring for a vault directory and
converts watchdog notifications into vault-relative VaultEvents. Events are
forwarded in arrival order without coalescing.
"""

import asyncio
import logging
import platform
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileSystemEvent as WatchdogEvent
from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileDeletedEvent, FileMovedEvent

from .events import VaultEvent, VaultEventType

logger = logging.getLogger(__name__)


class VaultWatcher:
    """
    Cross-platform vault watcher.

    This class monitors a vault directory for markdown changes and hands them
    to a callback as VaultEvent objects. The callback always runs on the
    asyncio loop that started monitoring.

    Features:
    - Cross-platform monitoring via watchdog
    - Markdown-only filtering with ignored tool directories
    - Moves are reported when either side is a markdown file
    - Thread-safe bridge from the watchdog thread to asyncio
    """

    WATCHED_EXTENSIONS = {'.md'}

    # Directories that never hold notes
    IGNORED_DIRECTORIES = {
        '.git', '.obsidian', '.occurrences', 'node_modules', '__pycache__',
        '.svn', '.hg', '.DS_Store'
    }

    def __init__(
        self,
        vault_path: Path,
        on_event: Callable[[VaultEvent], None],
        recursive: bool = True
    ):
        """
        Initialize the watcher.

        Args:
            vault_path: Root directory to monitor
            on_event: Called on the event loop for every relevant change
            recursive: Whether to monitor subdirectories
        """
        self.vault_path = Path(vault_path).resolve()
        self.on_event = on_event
        self.recursive = recursive
        self._platform = platform.system()

        # Watchdog components
        self.observer: Optional[Observer] = None
        self.event_handler: Optional['SyncVaultEventHandler'] = None

        # Monitoring state
        self._is_monitoring = False
        self._monitor_start_time: Optional[datetime] = None
        self._events_forwarded = 0

        # Error tracking
        self._error_count = 0
        self._last_error: Optional[str] = None
        self._last_error_time: Optional[datetime] = None

        logger.info(f"Initialized VaultWatcher for {self.vault_path} (platform: {self._platform})")

    async def start_monitoring(self) -> bool:
        """
        Start file system monitoring.

        Returns:
            True if monitoring started successfully, False otherwise
        """
        if self._is_monitoring:
            logger.warning("Vault monitoring is already active")
            return True

        try:
            if not self.vault_path.is_dir():
                raise NotADirectoryError(f"Vault path is not a directory: {self.vault_path}")

            self.event_handler = SyncVaultEventHandler(self)

            # Set the current event loop on the handler for thread-safe communication
            try:
                self.event_handler.set_event_loop(asyncio.get_running_loop())
            except RuntimeError:
                logger.error("No running event loop found when starting watcher - events will be dropped")
                return False

            self.observer = Observer()
            self.observer.schedule(
                self.event_handler,
                str(self.vault_path),
                recursive=self.recursive
            )
            self.observer.start()

            self._is_monitoring = True
            self._monitor_start_time = datetime.now()
            self._error_count = 0

            logger.info(f"Started monitoring {self.vault_path} (recursive={self.recursive})")
            return True

        except Exception as e:
            error_msg = f"Failed to start vault monitoring: {e}"
            logger.error(error_msg)
            self._record_error(error_msg)
            return False

    async def stop_monitoring(self) -> None:
        """Stop file system monitoring and cleanup resources."""
        if not self._is_monitoring:
            return

        self._is_monitoring = False

        # Clear event loop reference in handler to prevent further events
        if self.event_handler:
            self.event_handler.set_event_loop(None)

        if self.observer:
            try:
                self.observer.stop()
                await asyncio.to_thread(self.observer.join, 5.0)
            except Exception as e:
                logger.warning(f"Error stopping observer: {e}")
            finally:
                self.observer = None

        self.event_handler = None
        logger.info(f"Stopped vault monitoring (duration: {self.monitoring_duration})")

    def _relative(self, path: str) -> Optional[str]:
        """Vault-relative POSIX path, or None outside the vault"""
        try:
            return Path(path).resolve().relative_to(self.vault_path).as_posix()
        except ValueError:
            return None

    def should_monitor_file(self, relative_path: Optional[str]) -> bool:
        """
        Check if a vault-relative path is a markdown file worth reporting.

        Dot folders other than the ones in IGNORED_DIRECTORIES are still
        reported so the vault can see moves into its trash.
        """
        if not relative_path:
            return False

        parts = relative_path.split('/')
        if any(part in self.IGNORED_DIRECTORIES for part in parts[:-1]):
            return False

        return Path(parts[-1]).suffix.lower() in self.WATCHED_EXTENSIONS

    def convert_watchdog_event(self, event: WatchdogEvent) -> Optional[VaultEvent]:
        """
        Convert a watchdog event into a VaultEvent.

        Args:
            event: Watchdog file system event

        Returns:
            VaultEvent or None if the event should be ignored
        """
        if event.is_directory:
            return None

        path = self._relative(event.src_path)

        if isinstance(event, FileMovedEvent):
            new_path = self._relative(event.dest_path)
            old_watched = self.should_monitor_file(path)
            new_watched = self.should_monitor_file(new_path)
            # Accept if EITHER path is monitored (rename .txt -> .md)
            if old_watched and new_watched:
                return VaultEvent.renamed(path, new_path)
            if old_watched:
                return VaultEvent.deleted(path)
            if new_watched:
                return VaultEvent.created(new_path)
            return None

        if not self.should_monitor_file(path):
            return None

        if isinstance(event, FileCreatedEvent):
            return VaultEvent.created(path)
        elif isinstance(event, FileModifiedEvent):
            return VaultEvent(event_type=VaultEventType.CHANGED, path=path)
        elif isinstance(event, FileDeletedEvent):
            return VaultEvent.deleted(path)

        logger.debug(f"Ignoring watchdog event type: {type(event).__name__}")
        return None

    def handle_watchdog_event(self, event: WatchdogEvent) -> None:
        """
        Handle a watchdog event on the event loop thread.

        Args:
            event: Watchdog file system event
        """
        try:
            vault_event = self.convert_watchdog_event(event)
            if vault_event is None:
                return

            self._events_forwarded += 1
            logger.debug(f"Vault change: {vault_event}")
            self.on_event(vault_event)

        except Exception as e:
            logger.error(f"Error handling watchdog event {event}: {e}")
            self._record_error(str(e))

    def _record_error(self, message: str) -> None:
        self._error_count += 1
        self._last_error = message
        self._last_error_time = datetime.now()

    @property
    def is_monitoring(self) -> bool:
        """Check if file system monitoring is active."""
        return self._is_monitoring

    @property
    def monitoring_duration(self) -> Optional[timedelta]:
        """Get duration of current monitoring session."""
        if not self._monitor_start_time:
            return None
        return datetime.now() - self._monitor_start_time

    def get_status(self) -> Dict[str, Any]:
        """
        Get status information.

        Returns:
            Dictionary with status information
        """
        return {
            "is_monitoring": self._is_monitoring,
            "vault_path": str(self.vault_path),
            "platform": self._platform,
            "recursive": self.recursive,
            "monitoring_duration": str(self.monitoring_duration) if self.monitoring_duration else None,
            "events_forwarded": self._events_forwarded,
            "error_count": self._error_count,
            "last_error": self._last_error,
            "last_error_time": self._last_error_time.isoformat() if self._last_error_time else None
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start_monitoring()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop_monitoring()


class SyncVaultEventHandler(FileSystemEventHandler):
    """
    Watchdog event handler that forwards events to VaultWatcher.

    This class bridges the synchronous watchdog thread with the asyncio loop.
    """

    def __init__(self, watcher: VaultWatcher):
        super().__init__()
        self.watcher = watcher
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None

    def set_event_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        """
        Set the event loop to use for scheduling callbacks.

        Args:
            loop: The asyncio event loop to use, or None to clear
        """
        self._event_loop = loop

    def _forward(self, event: WatchdogEvent) -> None:
        # Watchdog runs in a separate thread, so hand the event to the loop thread
        if self._event_loop and not self._event_loop.is_closed():
            try:
                self._event_loop.call_soon_threadsafe(self.watcher.handle_watchdog_event, event)
            except RuntimeError as e:
                # Event loop might be closing or closed
                if "closed" not in str(e).lower():
                    self.logger.error(f"Failed to schedule event on loop: {e}")
        else:
            self.logger.debug(f"No event loop available, dropping event: {event}")

    def on_created(self, event: FileCreatedEvent) -> None:
        """Handle file creation events."""
        self._forward(event)

    def on_modified(self, event: FileModifiedEvent) -> None:
        """Handle file modification events."""
        self._forward(event)

    def on_deleted(self, event: FileDeletedEvent) -> None:
        """Handle file deletion events."""
        self._forward(event)

    def on_moved(self, event: FileMovedEvent) -> None:
        """Handle file move/rename events."""
        self._forward(event)
