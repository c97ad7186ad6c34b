"""Events published by the listing manager.

Every event is a typed message with a wire form shared by all types::

    {
        "version": "1",
        "type": "<event_type>",
        "timestamp": "<ISO8601>",
        "payload": { ... }
    }

Event types:
    - queue_changed: pending creates/removes changed
    - listing_created: the API confirmed a created listing
    - listing_removed: the API confirmed a removed listing
    - action_error: a create/delete/flush action failed
    - inventory_refreshed: backpack.tf reports a new inventory load time
    - heartbeat_sent: listings were bumped

Usage:
    hub = EventHub()
    hub.subscribe(lambda event: print(event.to_wire()))
    hub.publish(ListingRemovedMessage(id="440_123"))
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel

from bptflistings.infrastructure.observability import get_logger

MESSAGE_FORMAT_VERSION = "1"

logger = get_logger(__name__)


class WireMessage(BaseModel):
    """Wire format for all events."""

    version: str = MESSAGE_FORMAT_VERSION
    type: str
    timestamp: str
    payload: dict[str, Any]


class EventMessage(BaseModel):
    """Base class for event payloads."""

    event_type: ClassVar[str] = ""

    def to_wire(self) -> dict[str, Any]:
        return WireMessage(
            type=self.event_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
            payload=self.model_dump(),
        ).model_dump()


class QueueChangedMessage(EventMessage):
    """Snapshot of the action queue after a mutation."""

    event_type: ClassVar[str] = "queue_changed"

    creates: list[dict[str, Any]]
    removes: list[str]


class ListingCreatedMessage(EventMessage):
    event_type: ClassVar[str] = "listing_created"

    identity: str


class ListingRemovedMessage(EventMessage):
    event_type: ClassVar[str] = "listing_removed"

    id: str


class ActionErrorMessage(EventMessage):
    """A create, delete or flush failed; ``identity`` is a key or listing id."""

    event_type: ClassVar[str] = "action_error"

    phase: str
    identity: str | None = None
    reason: str | int
    retry_after: float | None = None


class InventoryRefreshedMessage(EventMessage):
    event_type: ClassVar[str] = "inventory_refreshed"

    timestamp: int


class HeartbeatSentMessage(EventMessage):
    event_type: ClassVar[str] = "heartbeat_sent"

    bumped: int


MESSAGE_TYPE_MAP: dict[str, type[EventMessage]] = {
    cls.event_type: cls
    for cls in (
        QueueChangedMessage,
        ListingCreatedMessage,
        ListingRemovedMessage,
        ActionErrorMessage,
        InventoryRefreshedMessage,
        HeartbeatSentMessage,
    )
}


def parse_message(data: dict[str, Any]) -> EventMessage | None:
    """Parse a wire-format dict back into a typed event, or ``None``."""
    cls = MESSAGE_TYPE_MAP.get(str(data.get("type")))
    if cls is None:
        return None
    try:
        return cls.model_validate(data.get("payload", {}))
    except ValueError:
        return None


EventHandler = Callable[[EventMessage], "Awaitable[None] | None"]


class EventHub:
    """Observer registry. Handlers may be plain functions or coroutines.

    Publishing never raises: a failing handler is logged and the remaining
    handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler``; returns a function that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, message: EventMessage) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._pending.add(task)
                    task.add_done_callback(self._handler_finished)
            except Exception:
                logger.exception("Event handler failed for %s", message.event_type)

    def _handler_finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Async event handler failed: %s", task.exception(), exc_info=task.exception()
            )

    async def drain(self) -> None:
        """Wait for coroutine handlers that are still running."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = [
    "ActionErrorMessage",
    "EventHandler",
    "EventHub",
    "EventMessage",
    "HeartbeatSentMessage",
    "InventoryRefreshedMessage",
    "ListingCreatedMessage",
    "ListingRemovedMessage",
    "MESSAGE_FORMAT_VERSION",
    "QueueChangedMessage",
    "WireMessage",
    "parse_message",
]
