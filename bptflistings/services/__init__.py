"""Service layer modules for bptflistings."""

from .events import EventHub  # noqa: F401
from .flush import FlushExecutor, FlushResult  # noqa: F401
from .manager import ListingManager  # noqa: F401
from .queue import ActionQueue, PendingCreate  # noqa: F401
from .remote_sync import RemoteSync  # noqa: F401
from .scheduler import AsyncioScheduler  # noqa: F401

__all__ = [
    "ActionQueue",
    "AsyncioScheduler",
    "EventHub",
    "FlushExecutor",
    "FlushResult",
    "ListingManager",
    "PendingCreate",
    "RemoteSync",
]
