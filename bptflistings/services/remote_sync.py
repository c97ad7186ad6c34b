"""Periodic synchronisation with backpack.tf.

Keeps three things fresh: the heartbeat that bumps listings, the timestamp
at which backpack.tf last loaded the inventory (sell listings can only be
created for items it has seen), and the full listing snapshot that the
action queue reconciles against.
"""

from __future__ import annotations

import asyncio

from bptflistings.domain.models.listing import Listing, ListingOwner
from bptflistings.errors import InventoryUnavailableError, TransportError
from bptflistings.infrastructure.observability import Timer, get_logger
from bptflistings.infrastructure.observability.metrics import LISTING_REFRESH_DURATION
from bptflistings.services.cache import ListingCache
from bptflistings.services.dto import ClassifiedsApi
from bptflistings.services.events import (
    EventHub,
    HeartbeatSentMessage,
    InventoryRefreshedMessage,
)
from bptflistings.services.queue import ActionQueue
from bptflistings.services.scheduler import Scheduler

logger = get_logger(__name__)

HEARTBEAT_TIMER = "heartbeat"
INVENTORY_TIMER = "inventory"


class RemoteSync:
    """Heartbeat, inventory and listing refreshes for one account.

    Attributes:
        inventory_timestamp: Last inventory load time reported by backpack.tf,
            ``None`` until the first successful refresh.
    """

    def __init__(
        self,
        api: ClassifiedsApi,
        cache: ListingCache,
        queue: ActionQueue,
        events: EventHub,
        scheduler: Scheduler,
        *,
        steamid64: str,
        owner: ListingOwner | None = None,
        heartbeat_interval: float = 90.0,
        inventory_interval: float = 120.0,
    ) -> None:
        self.api = api
        self.cache = cache
        self.queue = queue
        self.events = events
        self.scheduler = scheduler
        self.steamid64 = steamid64
        self.owner = owner
        self.heartbeat_interval = heartbeat_interval
        self.inventory_interval = inventory_interval
        self.inventory_timestamp: int | None = None
        self._inventory_task: asyncio.Task | None = None
        self._listings_task: asyncio.Task | None = None

    # -------------------- heartbeat --------------------
    async def send_heartbeat(self) -> int:
        bumped = await self.api.send_heartbeat()
        logger.debug("Heartbeat bumped %d listing(s)", bumped)
        self.events.publish(HeartbeatSentMessage(bumped=bumped))
        return bumped

    # -------------------- inventory --------------------
    async def refresh_inventory(self) -> int | None:
        """Fetch the inventory load time; concurrent callers share one request.

        Raises:
            InventoryUnavailableError: If backpack.tf could not load the inventory.
        """
        if self._inventory_task is None or self._inventory_task.done():
            self._inventory_task = asyncio.ensure_future(self._refresh_inventory())
        return await asyncio.shield(self._inventory_task)

    async def _refresh_inventory(self) -> int | None:
        status = await self.api.fetch_inventory_status(self.steamid64)
        if not status.available:
            raise InventoryUnavailableError(status.message or "Inventory unavailable")
        if status.timestamp is not None and status.timestamp != self.inventory_timestamp:
            self.inventory_timestamp = status.timestamp
            logger.debug("Inventory loaded at %s", status.timestamp)
            self.events.publish(InventoryRefreshedMessage(timestamp=status.timestamp))
            if self.queue.pending_creates:
                self.queue.schedule_flush()
        return self.inventory_timestamp

    # -------------------- listings --------------------
    async def refresh_listings(self, *, schedule_flush: bool = True) -> int:
        """Replace the cache with the server's listings and reconcile the queue.

        Returns the number of cached listings. The flush executor refreshes
        with ``schedule_flush=False`` since it continues on its own.
        """
        if self._listings_task is None or self._listings_task.done():
            self._listings_task = asyncio.ensure_future(self._refresh_listings())
        count = await asyncio.shield(self._listings_task)
        if schedule_flush:
            self.queue.schedule_flush()
        return count

    async def _refresh_listings(self) -> int:
        with Timer(LISTING_REFRESH_DURATION, help_text="Listing refresh duration in seconds"):
            snapshot = await self.api.fetch_listings()
        listings = []
        for data in snapshot.listings:
            try:
                listings.append(Listing.from_api(data, self.owner))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed listing %s: %s", data.get("id"), exc)
        self.cache.replace(
            listings, cap=snapshot.cap, promotes_remaining=snapshot.promotes_remaining
        )
        logger.debug("Fetched %d listing(s), cap %d", len(listings), snapshot.cap)
        self.queue.reconcile()
        return len(listings)

    # -------------------- timers --------------------
    def start(self) -> None:
        self.scheduler.every(HEARTBEAT_TIMER, self.heartbeat_interval, self._heartbeat_tick)
        self.scheduler.every(INVENTORY_TIMER, self.inventory_interval, self._inventory_tick)

    def stop(self) -> None:
        self.scheduler.cancel(HEARTBEAT_TIMER)
        self.scheduler.cancel(INVENTORY_TIMER)

    async def _heartbeat_tick(self) -> None:
        try:
            await self.send_heartbeat()
        except TransportError as exc:
            logger.warning("Heartbeat failed: %s", exc)
        # Catch anything a debounce timer may have missed.
        self.queue.schedule_flush()

    async def _inventory_tick(self) -> None:
        try:
            await self.refresh_inventory()
        except TransportError as exc:
            logger.warning("Inventory refresh failed: %s", exc)


__all__ = ["HEARTBEAT_TIMER", "INVENTORY_TIMER", "RemoteSync"]
