"""Listing manager: the public entry point of bptflistings.

Wires the identity resolver, listing cache, action queue, flush executor and
remote sync together for one account.

Usage:
    manager = ListingManager(load_settings("config.json"), schema)
    await manager.init()
    manager.create_listing({"intent": "buy", "sku": "5021;6", "currencies": {"metal": 51.77}})
    ...
    await manager.shutdown()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from bptflistings.app.config import ListingManagerSettings, validate_settings
from bptflistings.domain.identity import (
    IdentityResolver,
    ItemInput,
    buy_identity,
    descriptor_from_input,
)
from bptflistings.domain.models.currencies import Currencies
from bptflistings.domain.models.item import ListingIntent
from bptflistings.domain.models.listing import Listing
from bptflistings.domain.schema import ItemSchema
from bptflistings.errors import FlushError, InvalidItemError, InventoryUnavailableError, NotReadyError
from bptflistings.infrastructure.http import BackpackApiClient
from bptflistings.infrastructure.observability import get_logger, log_context
from bptflistings.services.cache import ListingCache
from bptflistings.services.dto import ClassifiedsApi, ListingRequestDTO
from bptflistings.services.events import ActionErrorMessage, EventHandler, EventHub
from bptflistings.services.flush import FlushExecutor, FlushResult
from bptflistings.services.queue import FLUSH_TIMER, ActionQueue, PendingCreate
from bptflistings.services.remote_sync import RemoteSync
from bptflistings.services.scheduler import AsyncioScheduler, Scheduler

logger = get_logger(__name__)


class ListingManager:
    """Creates, updates and removes backpack.tf listings for one account.

    Enqueue methods are synchronous and only valid after :meth:`init`. Work
    is flushed in the background once the queue has been quiet for
    ``wait_time`` seconds, or immediately when ``batch_size`` creates are
    pending; :meth:`process_actions` flushes on demand.
    """

    def __init__(
        self,
        settings: ListingManagerSettings | Mapping[str, Any],
        schema: ItemSchema,
        *,
        api: ClassifiedsApi | None = None,
        scheduler: Scheduler | None = None,
        events: EventHub | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if not isinstance(settings, ListingManagerSettings):
            settings = validate_settings(dict(settings))
        self.settings = settings
        self.schema = schema
        self.resolver = IdentityResolver(schema)
        self.clock = clock
        self.events = events or EventHub()
        self.scheduler = scheduler or AsyncioScheduler()
        self._owns_api = api is None
        self.api: ClassifiedsApi = api or BackpackApiClient(
            settings.token, base_url=settings.base_url, timeout=settings.request_timeout
        )
        self.cache = ListingCache()
        self.queue = ActionQueue(
            self.cache,
            self.events,
            self.scheduler,
            wait_time=settings.wait_time,
            batch_size=settings.batch_size,
            relist_window=settings.relist_window,
            clock=clock,
        )
        self.sync = RemoteSync(
            self.api,
            self.cache,
            self.queue,
            self.events,
            self.scheduler,
            steamid64=settings.steamid64,
            owner=self,
            heartbeat_interval=settings.heartbeat_interval,
            inventory_interval=settings.inventory_interval,
        )
        self.executor = FlushExecutor(
            self.api,
            self.queue,
            self.events,
            inventory_timestamp=lambda: self.sync.inventory_timestamp,
            refresh_listings=lambda: self.sync.refresh_listings(schedule_flush=False),
            batch_size=settings.batch_size,
            max_attempts=settings.max_flush_attempts,
            backoff_base=settings.backoff_base,
            sleep=sleep,
        )
        self.queue.flush_job = self._scheduled_flush
        self.ready = False

    async def __aenter__(self) -> "ListingManager":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    # -------------------- lifecycle --------------------
    async def init(self) -> None:
        """Load the inventory state and current listings, then start syncing.

        An unavailable inventory is logged, not raised: buy listings work
        without it and sell listings wait for the next inventory refresh.
        """
        if self.ready:
            return
        inventory, listings = await asyncio.gather(
            self.sync.refresh_inventory(),
            self.sync.refresh_listings(schedule_flush=False),
            return_exceptions=True,
        )
        if isinstance(inventory, InventoryUnavailableError):
            logger.warning("Inventory not available yet: %s", inventory)
        elif isinstance(inventory, BaseException):
            raise inventory
        if isinstance(listings, BaseException):
            raise listings
        self.ready = True
        self.sync.start()
        logger.info("Listing manager ready with %d listing(s)", len(self.cache))
        self.queue.schedule_flush()

    async def shutdown(self) -> None:
        """Stop timers, wait for jobs already running and close the client."""
        self.ready = False
        self.sync.stop()
        self.scheduler.cancel(FLUSH_TIMER)
        await self.scheduler.shutdown()
        await self.events.drain()
        if self._owns_api and isinstance(self.api, BackpackApiClient):
            await self.api.close()

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        return self.events.subscribe(handler)

    # -------------------- state --------------------
    @property
    def listings(self) -> list[Listing]:
        return list(self.cache)

    @property
    def cap(self) -> int:
        return self.cache.cap

    @property
    def promotes_remaining(self) -> int:
        return self.cache.promotes_remaining

    def get_listing(self, listing_id: str) -> Listing | None:
        return self.cache.get(listing_id)

    def find_listing(self, sku: str, intent: ListingIntent | int | str) -> Listing | None:
        """First live listing for ``sku`` with ``intent``."""
        matches = self.cache.find_by_sku(sku, ListingIntent.parse(intent))
        return matches[0] if matches else None

    def find_listings(self, sku: str) -> list[Listing]:
        return self.cache.find_by_sku(sku)

    def find_listing_for_item(
        self, intent: ListingIntent | int | str, item: ItemInput | str
    ) -> Listing | None:
        """Live listing with the same identity as ``item`` (asset id for sell)."""
        return self.cache.find_by_identity(self.resolver.resolve_identity(intent, item))

    # -------------------- enqueue --------------------
    def _ensure_ready(self) -> None:
        if not self.ready:
            raise NotReadyError("Call init() before queueing listing actions")

    def create_listing(self, listing: Mapping[str, Any], force: bool = False) -> bool:
        """Queue a listing creation; returns ``False`` if a newer one is pending.

        With ``force`` a live listing for the same item that is still inside
        the relist window is removed first so it can be replaced.

        Raises:
            NotReadyError: Before :meth:`init`.
            InvalidItemError: If the request or its item is invalid.
        """
        self._ensure_ready()
        entry = self._build_request(listing)
        return self.queue.enqueue_create(entry, force=force)

    def create_listings(self, listings: Iterable[Mapping[str, Any]], force: bool = False) -> int:
        """Queue several creations; invalid ones are reported and skipped.

        Returns the number of requests that were queued.
        """
        self._ensure_ready()
        queued = 0
        for listing in listings:
            try:
                entry = self._build_request(listing)
            except InvalidItemError as exc:
                logger.warning("Skipping invalid listing: %s", exc)
                self.events.publish(
                    ActionErrorMessage(phase="create", identity=_describe(listing), reason=str(exc))
                )
                continue
            if self.queue.enqueue_create(entry, force=force):
                queued += 1
        return queued

    def remove_listing(self, listing_id: str) -> bool:
        self._ensure_ready()
        return self.queue.enqueue_remove(str(listing_id))

    def remove_listings(self, listing_ids: Iterable[str]) -> int:
        self._ensure_ready()
        return sum(1 for listing_id in listing_ids if self.queue.enqueue_remove(str(listing_id)))

    def remove_listing_for_item(
        self, intent: ListingIntent | int | str, item: ItemInput | str
    ) -> bool:
        """Remove the listing for ``item`` and cancel any pending create for it."""
        self._ensure_ready()
        identity = self.resolver.resolve_identity(intent, item)
        cancelled = self.queue.cancel_create(identity)
        live = self.cache.find_by_identity(identity)
        removed = self.queue.enqueue_remove(live.id) if live is not None else False
        return cancelled or removed

    def _build_request(self, listing: Mapping[str, Any]) -> PendingCreate:
        try:
            request = ListingRequestDTO.model_validate(dict(listing))
        except ValidationError as exc:
            raise InvalidItemError(f"Invalid listing request: {exc}") from exc

        try:
            currencies = Currencies.from_dict(request.currencies)
        except (TypeError, ValueError) as exc:
            raise InvalidItemError(f"Invalid currencies: {exc}") from exc
        enqueued_at = request.time if request.time is not None else self.clock()
        common: dict[str, Any] = {
            "intent": request.intent,
            "currencies": currencies,
            "enqueued_at": enqueued_at,
            "details": request.details,
            "offers": request.offers,
            "buyout": request.buyout,
        }

        if request.intent is ListingIntent.SELL:
            identity = self.resolver.resolve_identity(ListingIntent.SELL, request.id)
            return PendingCreate(identity=identity, asset_id=request.id, **common)

        try:
            item = descriptor_from_input(request.sku if request.sku is not None else request.item)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidItemError(f"Invalid item: {exc}") from exc
        remote_item = self.resolver.to_remote_item(item)
        return PendingCreate(
            identity=buy_identity(remote_item),
            item=item,
            remote_item=remote_item,
            **common,
        )

    # -------------------- flushing --------------------
    async def process_actions(self) -> FlushResult | None:
        """Flush the queue now.

        Returns ``None`` when a flush is already running; that flush picks
        up the new work when it finishes.

        Raises:
            FlushError: If the flush gave up on transport errors.
        """
        self._ensure_ready()
        self.scheduler.cancel(FLUSH_TIMER)
        return await self.executor.flush()

    async def _scheduled_flush(self) -> None:
        with log_context(trigger="timer"):
            try:
                await self.executor.flush()
            except FlushError as exc:
                logger.error("Scheduled flush failed: %s", exc)


def _describe(listing: Mapping[str, Any]) -> str | None:
    for key in ("sku", "id"):
        if listing.get(key) is not None:
            return str(listing[key])
    return None


__all__ = ["ListingManager"]
