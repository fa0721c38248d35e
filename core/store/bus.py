"""
In-process notification bus.

Handlers subscribe to an event name and are called synchronously, in
subscription order, each time the event is emitted. There is no persistence
or replay.
"""

import itertools
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class StoreEvent(str, Enum):
    """Lifecycle events announced by the store"""
    LOADED = "loaded"
    ITEM_ADDED = "item-added"
    ITEM_UPDATED = "item-updated"
    ITEM_REMOVED = "item-removed"


Handler = Callable[[Any], None]


class NotificationBus:
    """
    Minimal publish/subscribe bus.

    emit() iterates over a snapshot of the handler list, so handlers may
    subscribe or unsubscribe while being called: a handler added during an
    emit is first called on the next emit, and one removed during an emit
    is still called for the emit in progress if it had not run yet.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Tuple[int, Handler]]] = {}
        self._tokens = itertools.count(1)
        self._token_events: Dict[int, str] = {}

    def subscribe(self, event: Union[StoreEvent, str], handler: Handler) -> int:
        """
        Register a handler for an event.

        Returns:
            Token to pass to unsubscribe()
        """
        name = self._event_name(event)
        token = next(self._tokens)
        self._handlers.setdefault(name, []).append((token, handler))
        self._token_events[token] = name
        return token

    def unsubscribe(self, token: int) -> bool:
        """Remove a subscription; returns False for unknown tokens"""
        name = self._token_events.pop(token, None)
        if name is None:
            return False

        remaining = [entry for entry in self._handlers.get(name, []) if entry[0] != token]
        if remaining:
            self._handlers[name] = remaining
        else:
            self._handlers.pop(name, None)
        return True

    def emit(self, event: Union[StoreEvent, str], payload: Optional[Any] = None) -> int:
        """
        Call every handler subscribed to ``event``.

        A failing handler is logged and does not stop the others.

        Returns:
            Number of handlers called
        """
        name = self._event_name(event)
        snapshot = list(self._handlers.get(name, []))
        logger.debug(f"Emitting {name} to {len(snapshot)} handler(s)")

        for _, handler in snapshot:
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Handler for {name} failed: {e}")
        return len(snapshot)

    def handler_count(self, event: Optional[Union[StoreEvent, str]] = None) -> int:
        if event is None:
            return len(self._token_events)
        return len(self._handlers.get(self._event_name(event), []))

    def clear(self) -> None:
        """Remove all subscriptions"""
        self._handlers.clear()
        self._token_events.clear()

    @staticmethod
    def _event_name(event: Union[StoreEvent, str]) -> str:
        return event.value if isinstance(event, StoreEvent) else str(event)
