"""Mutation events published by the bucket store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional

__all__ = ["TRANSACTION_ADDED", "TRANSACTION_REMOVED", "StoreEvent", "EventBus"]

logger = logging.getLogger(__name__)

TRANSACTION_ADDED = "transaction_added"
TRANSACTION_REMOVED = "transaction_removed"


class StoreEvent(NamedTuple):
    name: str
    ts: str
    payload: Dict[str, Any]


Listener = Callable[[StoreEvent], None]


class EventBus:
    """Fan-out of store events to listeners such as the mirror worker."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._listeners: List[Listener] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, name: str, payload: Dict[str, Any]) -> StoreEvent:
        event = StoreEvent(
            name=name,
            ts=self._clock().isoformat(),
            payload=payload,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A listener failure must not undo or fail the local mutation.
                logger.exception("Listener %r failed for event %s", listener, name)
        return event
