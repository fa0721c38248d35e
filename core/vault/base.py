"""
Vault host interface.

The store never touches files directly: it consumes a VaultHost that offers
file enumeration, a front-matter metadata cache, file create/rename/trash,
transactional front-matter writes, a resolved link graph and a change feed.
"""

import asyncio
import inspect
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..sync.events import VaultEvent

logger = logging.getLogger(__name__)


EventHandler = Callable[[VaultEvent], Union[None, Awaitable[None]]]
FrontmatterMutator = Callable[[Dict[str, Any]], None]


class VaultError(Exception):
    """Raised when a host file operation fails"""
    pass


@dataclass(frozen=True)
class VaultFile:
    """Handle to a file in the vault, addressed by vault-relative path"""
    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        """File name without extension"""
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix

    @property
    def parent(self) -> str:
        """Vault-relative parent folder ('' for the vault root)"""
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent

    def sibling(self, file_name: str) -> str:
        """Path of a file with another name (without extension) in the same folder"""
        name = f"{file_name}{self.extension}"
        return f"{self.parent}/{name}" if self.parent else name

    def __str__(self) -> str:
        return self.path


class VaultHost(ABC):
    """
    Host file and metadata services.

    Subscribers receive VaultEvents one at a time in delivery order; coroutine
    handlers are awaited before the next event is delivered. Hosts never
    deliver notifications from inside a mutating call such as rename().
    """

    def __init__(self):
        self._subscribers: Dict[int, EventHandler] = {}
        self._tokens = itertools.count(1)
        self._ready = asyncio.Event()

    # Change feed

    def subscribe(self, handler: EventHandler) -> int:
        """Register a handler for all vault events"""
        token = next(self._tokens)
        self._subscribers[token] = handler
        return token

    def unsubscribe(self, token: int) -> bool:
        """Remove a handler; returns False for unknown tokens"""
        return self._subscribers.pop(token, None) is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def deliver(self, event: VaultEvent) -> None:
        """Hand one event to every subscriber, in registration order"""
        for handler in list(self._subscribers.values()):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Vault event handler failed for {event}: {e}")

    def mark_ready(self) -> None:
        """Signal that the host has finished its initial layout"""
        self._ready.set()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_until_ready(self) -> None:
        await self._ready.wait()

    # File and metadata services

    @abstractmethod
    def get_markdown_files(self) -> List[VaultFile]:
        """All markdown files currently in the vault"""

    @abstractmethod
    def get_file(self, path: str) -> Optional[VaultFile]:
        """Look up a file by path; None if it does not exist"""

    @abstractmethod
    def get_frontmatter(self, file: VaultFile) -> Optional[Dict[str, Any]]:
        """Cached front-matter; None while the cache has not seen the file"""

    @property
    @abstractmethod
    def resolved_links(self) -> Dict[str, Dict[str, int]]:
        """Link graph: source path -> {target path -> link count}"""

    @abstractmethod
    async def create(self, path: str, content: str = "") -> VaultFile:
        """Create a new file; raises VaultError if it exists"""

    @abstractmethod
    async def rename(self, file: VaultFile, new_path: str) -> VaultFile:
        """Move a file; raises VaultError if the target exists"""

    @abstractmethod
    async def trash(self, file: VaultFile) -> None:
        """Move a file to the vault trash"""

    @abstractmethod
    async def process_frontmatter(self, file: VaultFile, mutate: FrontmatterMutator) -> None:
        """Read-modify-write a file's front-matter in a single operation"""

    def exists(self, path: str) -> bool:
        return self.get_file(path) is not None
