"""Action queue: pending listing creations and removals.

Creates are keyed by identity (see :mod:`bptflistings.domain.identity`) and
obey "latest wins": a request only replaces the pending one for the same
identity when its enqueue timestamp is strictly newer. Removes are a set of
listing ids.

Per identity a create moves through::

    Absent -> Pending -> Flushing -> Absent              (created / failed)
                                  -> Pending (waiting)   (not in inventory yet)
                                  -> Pending (retrying)  (relist timeout)

Retry bookkeeping lives in side maps keyed by identity, not on the requests:
a create that reports "not in inventory" twice against the same inventory
timestamp, or fails again after its one replace-and-retry, is dropped.

Every method here is synchronous, so enqueue calls are applied in program
order and a supersede never interleaves with a flush response. Each enqueue
is numbered; a flush only takes work numbered up to the sequence it saw when
it started, so anything enqueued while it runs waits for the next flush.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from bptflistings.domain.models.currencies import Currencies
from bptflistings.domain.models.item import ItemDescriptor, ListingIntent
from bptflistings.infrastructure.observability import get_logger, log_context
from bptflistings.services.cache import ListingCache
from bptflistings.services.events import EventHub, QueueChangedMessage
from bptflistings.services.scheduler import Job, Scheduler

logger = get_logger(__name__)

FLUSH_TIMER = "flush"
DEFAULT_RELIST_WINDOW = 30 * 60


@dataclass(frozen=True, eq=False)
class PendingCreate:
    """One queued listing creation.

    Compared by identity of the object: two requests with equal fields are
    still different queue entries.
    """

    identity: str
    intent: ListingIntent
    currencies: Currencies
    enqueued_at: float
    details: str = ""
    offers: bool = True
    buyout: bool = True
    item: ItemDescriptor | None = None
    asset_id: str | None = None
    remote_item: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "intent": int(self.intent),
            "currencies": self.currencies.to_dict(),
            "details": self.details,
            "offers": 1 if self.offers else 0,
            "buyout": 1 if self.buyout else 0,
        }
        if self.intent is ListingIntent.SELL:
            payload["id"] = self.asset_id
        else:
            payload["item"] = dict(self.remote_item)
        return payload

    def response_keys(self) -> list[str]:
        """Keys the list endpoint may use for this request's result."""
        keys = [self.identity]
        if self.asset_id is not None:
            keys.append(self.asset_id)
        if self.remote_item.get("item_name"):
            keys.append(str(self.remote_item["item_name"]))
        return keys

    def summary(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "intent": int(self.intent),
            "currencies": self.currencies.to_dict(),
            "details": self.details,
            "enqueued_at": self.enqueued_at,
        }


class ActionQueue:
    """Holds pending creates and removes and decides when to flush them."""

    def __init__(
        self,
        cache: ListingCache,
        events: EventHub,
        scheduler: Scheduler,
        *,
        wait_time: float = 1.0,
        batch_size: int = 25,
        relist_window: float = DEFAULT_RELIST_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.events = events
        self.scheduler = scheduler
        self.wait_time = wait_time
        self.batch_size = batch_size
        self.relist_window = relist_window
        self.clock = clock
        self.flush_job: Job | None = None

        self._sequence = 0
        self._creates: dict[str, PendingCreate] = {}
        # identity -> enqueue sequence of the pending create
        self._create_seq: dict[str, int] = {}
        # listing id -> enqueue sequence; 0 for removals the flush schedules itself
        self._removes: dict[str, int] = {}
        # listing id -> identity whose pending create replaces that listing
        self._replacing: dict[str, str] = {}
        # identity -> inventory timestamp of the last "not in inventory" failure
        self._wait_markers: dict[str, int | None] = {}
        self._retrying: set[str] = set()
        self._in_flight: dict[str, PendingCreate] = {}
        # in-flight identities whose request was superseded or cancelled locally
        self._stale_in_flight: set[str] = set()
        # identities whose live listing must be removed once it is visible
        self._orphans: set[str] = set()
        # identities whose live listing blocks their create (relist timeout)
        self._conflicts: set[str] = set()
        self._reported_remove_errors: set[str] = set()

    # -------------------- read access --------------------
    @property
    def pending_creates(self) -> list[PendingCreate]:
        return list(self._creates.values())

    @property
    def pending_removes(self) -> list[str]:
        return list(self._removes)

    def get_create(self, identity: str) -> PendingCreate | None:
        return self._creates.get(identity)

    def is_current(self, entry: PendingCreate) -> bool:
        return self._creates.get(entry.identity) is entry

    def is_in_flight(self, identity: str) -> bool:
        return identity in self._in_flight

    def wait_marker(self, identity: str) -> int | None:
        return self._wait_markers.get(identity)

    def is_waiting(self, identity: str) -> bool:
        return identity in self._wait_markers

    def is_retrying(self, identity: str) -> bool:
        return identity in self._retrying

    def is_replacement(self, listing_id: str) -> bool:
        return str(listing_id) in self._replacing

    @property
    def sequence(self) -> int:
        return self._sequence

    def is_empty(self) -> bool:
        return not self._creates and not self._removes

    def __len__(self) -> int:
        return len(self._creates) + len(self._removes)

    # -------------------- enqueue --------------------
    def enqueue_create(self, request: PendingCreate, force: bool = False) -> bool:
        """Install ``request`` unless an equal-or-newer one is pending.

        Superseding and scheduling the removal of whatever the new request
        replaces happen here in one step:

        * if the superseded request is in flight, a successful creation of it
          is treated as an orphan and removed before the new one is created;
        * with ``force``, a live listing for the identity created inside the
          relist window is queued for removal as a replacement, since the
          marketplace would refuse to overwrite it.
        """
        key = request.identity
        existing = self._creates.get(key)
        if existing is not None and existing.enqueued_at >= request.enqueued_at:
            logger.debug("Discarding create for %s, a newer request is pending", key)
            return False

        if self._in_flight.get(key) is not None:
            self._stale_in_flight.add(key)

        self._sequence += 1
        live = self.cache.find_by_identity(key)
        if live is not None:
            if live.id in self._removes:
                self._replacing[live.id] = key
            elif force and self.clock() - live.created.timestamp() <= self.relist_window:
                self._removes[live.id] = self._sequence
                self._replacing[live.id] = key

        self._creates[key] = request
        self._create_seq[key] = self._sequence
        self._wait_markers.pop(key, None)
        self._retrying.discard(key)
        self._conflicts.discard(key)
        logger.debug("Queued create for %s", key)
        self.notify()
        self.schedule_flush()
        return True

    def enqueue_remove(self, listing_id: str) -> bool:
        """Queue ``listing_id`` for removal.

        A pending create for the same identity is cancelled: the caller wants
        the item gone, and re-creating it would undo that. If that create is
        in flight its result is ignored when it fails, and a listing it did
        create is removed as an orphan.
        """
        listing_id = str(listing_id)
        if listing_id in self._removes:
            return False
        self._sequence += 1
        self._removes[listing_id] = self._sequence

        listing = self.cache.get(listing_id)
        key = self.cache.identity_of(listing) if listing is not None else None
        if key is not None and key in self._creates:
            if key in self._in_flight:
                self._stale_in_flight.add(key)
            self._drop(key)
            logger.debug("Removal of %s cancelled pending create %s", listing_id, key)

        self.notify()
        self.schedule_flush()
        return True

    def cancel_create(self, identity: str) -> bool:
        """Drop the pending create for ``identity``, if any."""
        if identity not in self._creates:
            return False
        if identity in self._in_flight:
            self._stale_in_flight.add(identity)
        self._drop(identity)
        self.notify()
        return True

    # -------------------- scheduling --------------------
    def schedule_flush(self) -> None:
        """Debounce a flush; flush right away once a batch is full."""
        if self.flush_job is None or self.is_empty():
            return
        if len(self._creates) >= self.batch_size:
            self.scheduler.call_later(FLUSH_TIMER, 0, self.flush_job)
        else:
            self.scheduler.call_later(FLUSH_TIMER, self.wait_time, self.flush_job)

    def notify(self) -> None:
        self.events.publish(
            QueueChangedMessage(
                creates=[entry.summary() for entry in self._creates.values()],
                removes=list(self._removes),
            )
        )

    # -------------------- flush support: removals --------------------
    def snapshot_removes(
        self, exclude: Iterable[str] = (), up_to: int | None = None
    ) -> list[str]:
        skip = set(exclude)
        return [
            listing_id
            for listing_id, seq in self._removes.items()
            if listing_id not in skip and (up_to is None or seq <= up_to)
        ]

    def confirm_removed(self, listing_id: str) -> None:
        self._removes.pop(listing_id, None)
        self._replacing.pop(listing_id, None)
        self._reported_remove_errors.discard(listing_id)
        self.cache.discard(listing_id)

    def remove_failed(self, listing_id: str) -> bool:
        """Record a failed removal; ``True`` the first time it is reported."""
        if listing_id in self._reported_remove_errors:
            return False
        self._reported_remove_errors.add(listing_id)
        return True

    # -------------------- flush support: creates --------------------
    def next_create_batch(
        self,
        *,
        limit: int,
        inventory_timestamp: int | None,
        capacity: int | None = None,
        failed_removes: Iterable[str] = (),
        up_to: int | None = None,
    ) -> list[PendingCreate]:
        """Pick up to ``limit`` creates, oldest first (ties by identity).

        Skipped: creates waiting on the current inventory timestamp, creates
        whose replaced listing has not been removed yet, creates sharing a
        response key with one already in the batch, new listings beyond
        ``capacity`` and creates enqueued after sequence ``up_to``.
        """
        failed = set(failed_removes)
        blocked = {
            key
            for listing_id, key in self._replacing.items()
            if listing_id in self._removes and listing_id not in failed
        }
        batch: list[PendingCreate] = []
        used_keys: set[str] = set()
        new_listings = 0
        ordered = sorted(self._creates.values(), key=lambda e: (e.enqueued_at, e.identity))
        for entry in ordered:
            if len(batch) >= limit:
                break
            key = entry.identity
            if key in self._in_flight or key in blocked:
                continue
            if up_to is not None and self._create_seq.get(key, 0) > up_to:
                continue
            if key in self._wait_markers and self._wait_markers[key] == inventory_timestamp:
                continue
            response_keys = set(entry.response_keys())
            if response_keys & used_keys:
                continue
            if capacity is not None and self.cache.find_by_identity(key) is None:
                if new_listings >= capacity:
                    continue
                new_listings += 1
            used_keys |= response_keys
            batch.append(entry)
        return batch

    def blocked_by_capacity(self, capacity: int | None, up_to: int | None = None) -> bool:
        """True when creates are pending and none of them fits under the cap."""
        keys = [
            key
            for key in self._creates
            if up_to is None or self._create_seq.get(key, 0) <= up_to
        ]
        if capacity is None or capacity > 0 or not keys:
            return False
        return all(self.cache.find_by_identity(key) is None for key in keys)

    def mark_in_flight(self, batch: Iterable[PendingCreate]) -> None:
        for entry in batch:
            self._in_flight[entry.identity] = entry

    def clear_in_flight(self) -> None:
        self._in_flight.clear()
        self._stale_in_flight.clear()

    def confirm_created(self, entry: PendingCreate) -> bool:
        """Apply a successful creation; ``False`` when the entry was stale."""
        key = entry.identity
        if key in self._stale_in_flight:
            # The listing now on the server is older than what the caller wants.
            self._orphans.add(key)
        if not self.is_current(entry):
            return False
        if self.cache.find_by_identity(key) is None:
            self.cache.about_to_have += 1
        self._drop(key)
        return True

    def mark_waiting(self, entry: PendingCreate, inventory_timestamp: int | None) -> bool:
        """Keep ``entry`` until the inventory changes; ``False`` if dropped.

        A flush never submits an entry whose marker equals the current
        inventory timestamp, so the drop branch only guards against callers
        that report the same failure twice without a new inventory load.
        """
        key = entry.identity
        if not self.is_current(entry):
            return True
        if key in self._wait_markers and self._wait_markers[key] == inventory_timestamp:
            with log_context(identity=key):
                logger.info("Still not in inventory after refresh %s, dropping", inventory_timestamp)
            self._drop(key)
            return False
        self._wait_markers[key] = inventory_timestamp
        return True

    def mark_retry(self, entry: PendingCreate) -> bool:
        """Replace the conflicting listing and retry once; ``False`` if dropped."""
        key = entry.identity
        if not self.is_current(entry):
            return True
        if key in self._retrying:
            self._drop(key)
            return False
        self._retrying.add(key)
        self._conflicts.add(key)
        return True

    def drop_create(self, entry: PendingCreate) -> bool:
        if not self.is_current(entry):
            return False
        self._drop(entry.identity)
        return True

    # -------------------- reconciliation --------------------
    def resolve_replacements(self, final: bool = False) -> set[str]:
        """Turn conflicts and orphans into removals of their live listings.

        Returns the identities whose listing is not in the cache yet. With
        ``final`` (right after a full refresh) those are forgotten instead.
        """
        unresolved: set[str] = set()
        for key in sorted(self._conflicts | self._orphans):
            live = self.cache.find_by_identity(key)
            if live is None:
                unresolved.add(key)
                continue
            if live.id not in self._removes:
                self._removes[live.id] = 0
            if key in self._creates:
                self._replacing[live.id] = key
            self._conflicts.discard(key)
            self._orphans.discard(key)
        if final:
            self._conflicts -= unresolved
            self._orphans -= unresolved
        return unresolved

    def reconcile(self) -> None:
        """Align the queue with a freshly fetched cache."""
        changed = False
        for listing_id in list(self._removes):
            if listing_id not in self.cache:
                self._removes.pop(listing_id)
                self._replacing.pop(listing_id, None)
                self._reported_remove_errors.discard(listing_id)
                changed = True
        before = len(self._removes)
        self.resolve_replacements(final=True)
        if changed or len(self._removes) != before:
            self.notify()

    # -------------------- internals --------------------
    def _drop(self, key: str) -> None:
        self._creates.pop(key, None)
        self._create_seq.pop(key, None)
        self._wait_markers.pop(key, None)
        self._retrying.discard(key)
        self._conflicts.discard(key)
        for listing_id, replaced_for in list(self._replacing.items()):
            if replaced_for == key:
                del self._replacing[listing_id]


__all__ = ["ActionQueue", "DEFAULT_RELIST_WINDOW", "FLUSH_TIMER", "PendingCreate"]
