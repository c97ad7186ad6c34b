from types import SimpleNamespace
from typing import Any

import pytest

from bptflistings.domain.identity import IdentityResolver
from bptflistings.domain.models.currencies import Currencies
from bptflistings.domain.models.item import ItemDescriptor, ListingIntent
from bptflistings.domain.models.listing import Listing
from bptflistings.services.cache import ListingCache
from bptflistings.services.events import EventHub, QueueChangedMessage
from bptflistings.services.queue import FLUSH_TIMER, ActionQueue, PendingCreate

KEY_IDENTITY = "buy:Mann Co. Supply Crate Key;6;1;"


def sell(asset_id: str, enqueued_at: float, metal: float = 1.0) -> PendingCreate:
    return PendingCreate(
        identity=f"sell:{asset_id}",
        intent=ListingIntent.SELL,
        currencies=Currencies(metal=metal),
        enqueued_at=enqueued_at,
        asset_id=asset_id,
    )


def buy_key(enqueued_at: float, metal: float = 51.77) -> PendingCreate:
    return PendingCreate(
        identity=KEY_IDENTITY,
        intent=ListingIntent.BUY,
        currencies=Currencies(metal=metal),
        enqueued_at=enqueued_at,
        item=ItemDescriptor(defindex=5021),
        remote_item={"item_name": "Mann Co. Supply Crate Key", "quality": 6},
    )


def live_sell(owner: Any, asset_id: str, created: float) -> Listing:
    return Listing.from_api(
        {
            "id": f"440_{asset_id}",
            "intent": 1,
            "item": {"id": asset_id, "defindex": 5021, "quality": 6},
            "currencies": {"metal": 1},
            "created": int(created),
            "bump": int(created),
        },
        owner,
    )


@pytest.fixture
def owner(schema) -> Any:
    return SimpleNamespace(resolver=IdentityResolver(schema))


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def queue(scheduler, clock, events) -> ActionQueue:
    hub = EventHub()
    hub.subscribe(events.append)
    queue = ActionQueue(ListingCache(), hub, scheduler, wait_time=1.5, batch_size=3, clock=clock)

    async def flush() -> None:
        return None

    queue.flush_job = flush
    return queue


def test_same_request_twice_is_idempotent(queue: ActionQueue) -> None:
    request = sell("1", 10.0)
    assert queue.enqueue_create(request) is True
    assert queue.enqueue_create(sell("1", 10.0)) is False
    assert queue.pending_creates == [request]


def test_latest_enqueue_timestamp_wins_in_order(queue: ActionQueue) -> None:
    older, newer = sell("1", 1.0, metal=1), sell("1", 2.0, metal=2)
    queue.enqueue_create(older)
    queue.enqueue_create(newer)
    assert queue.pending_creates == [newer]


def test_latest_enqueue_timestamp_wins_out_of_order(queue: ActionQueue) -> None:
    older, newer = sell("1", 1.0, metal=1), sell("1", 2.0, metal=2)
    queue.enqueue_create(newer)
    assert queue.enqueue_create(older) is False
    assert queue.pending_creates == [newer]


def test_sell_requests_for_different_assets_never_collapse(queue: ActionQueue) -> None:
    queue.enqueue_create(sell("1", 1.0))
    queue.enqueue_create(sell("2", 1.0))
    assert {entry.identity for entry in queue.pending_creates} == {"sell:1", "sell:2"}


def test_duplicate_removes_collapse(queue: ActionQueue) -> None:
    assert queue.enqueue_remove("440_1") is True
    assert queue.enqueue_remove("440_1") is False
    assert queue.pending_removes == ["440_1"]


def test_remove_cancels_pending_create_for_same_listing(queue: ActionQueue, owner, clock) -> None:
    queue.cache.replace([live_sell(owner, "1", clock())], cap=10, promotes_remaining=0)
    queue.enqueue_create(sell("1", 1.0))

    queue.enqueue_remove("440_1")

    assert queue.pending_creates == []
    assert queue.pending_removes == ["440_1"]


def test_remove_cancels_in_flight_create(queue: ActionQueue, owner, clock) -> None:
    queue.cache.replace([live_sell(owner, "1", clock())], cap=10, promotes_remaining=0)
    request = sell("1", 1.0)
    queue.enqueue_create(request)
    queue.mark_in_flight([request])

    queue.enqueue_remove("440_1")

    assert queue.pending_creates == []
    assert not queue.is_replacement("440_1")
    # a listing the in-flight request did create is removed, never kept
    assert queue.confirm_created(request) is False
    queue.clear_in_flight()
    assert queue.resolve_replacements() == set()
    assert queue.pending_removes == ["440_1"]


def test_batch_skips_work_enqueued_after_sequence(queue: ActionQueue) -> None:
    early = sell("1", 1.0)
    queue.enqueue_create(early)
    queue.enqueue_remove("440_9")
    up_to = queue.sequence
    queue.enqueue_create(sell("2", 0.5))
    queue.enqueue_remove("440_10")

    assert queue.next_create_batch(limit=10, inventory_timestamp=None, up_to=up_to) == [early]
    assert queue.snapshot_removes(up_to=up_to) == ["440_9"]
    assert len(queue.next_create_batch(limit=10, inventory_timestamp=None)) == 2


def test_cancel_create(queue: ActionQueue) -> None:
    queue.enqueue_create(sell("1", 1.0))
    assert queue.cancel_create("sell:1") is True
    assert queue.cancel_create("sell:1") is False
    assert queue.is_empty()


def test_every_mutation_publishes_queue_changed(queue: ActionQueue, events: list) -> None:
    queue.enqueue_create(sell("1", 1.0))
    queue.enqueue_remove("440_9")

    assert [type(event) for event in events] == [QueueChangedMessage, QueueChangedMessage]
    assert events[-1].removes == ["440_9"]
    assert events[-1].creates[0]["identity"] == "sell:1"


def test_flush_is_debounced(queue: ActionQueue, scheduler) -> None:
    queue.enqueue_create(sell("1", 1.0))
    assert scheduler.delay(FLUSH_TIMER) == 1.5
    queue.enqueue_create(sell("2", 2.0))
    assert scheduler.delay(FLUSH_TIMER) == 1.5


def test_full_batch_flushes_immediately(queue: ActionQueue, scheduler) -> None:
    for index in range(3):
        queue.enqueue_create(sell(str(index), float(index)))
    assert scheduler.delay(FLUSH_TIMER) == 0


def test_not_in_inventory_twice_for_same_timestamp_drops(queue: ActionQueue) -> None:
    request = sell("1", 1.0)
    queue.enqueue_create(request)

    assert queue.mark_waiting(request, 1000) is True
    assert queue.wait_marker("sell:1") == 1000
    assert queue.mark_waiting(request, 1000) is False
    assert queue.get_create("sell:1") is None


def test_waiting_create_is_skipped_until_inventory_changes(queue: ActionQueue) -> None:
    request = sell("1", 1.0)
    queue.enqueue_create(request)
    queue.mark_waiting(request, 1000)

    assert queue.next_create_batch(limit=10, inventory_timestamp=1000) == []
    assert queue.next_create_batch(limit=10, inventory_timestamp=1001) == [request]


def test_retry_is_one_shot(queue: ActionQueue) -> None:
    request = sell("1", 1.0)
    queue.enqueue_create(request)

    assert queue.mark_retry(request) is True
    assert queue.is_retrying("sell:1")
    assert queue.mark_retry(request) is False
    assert queue.is_empty()


def test_new_request_clears_retry_bookkeeping(queue: ActionQueue) -> None:
    first = sell("1", 1.0)
    queue.enqueue_create(first)
    queue.mark_waiting(first, 1000)
    queue.mark_retry(first)

    queue.enqueue_create(sell("1", 2.0))

    assert not queue.is_waiting("sell:1")
    assert not queue.is_retrying("sell:1")


def test_forced_create_replaces_recent_listing(queue: ActionQueue, owner, clock) -> None:
    queue.cache.replace([live_sell(owner, "1", clock() - 60)], cap=10, promotes_remaining=0)
    request = sell("1", 1.0, metal=5)

    queue.enqueue_create(request, force=True)

    assert queue.pending_removes == ["440_1"]
    assert queue.is_replacement("440_1")
    assert queue.next_create_batch(limit=10, inventory_timestamp=None) == []

    queue.confirm_removed("440_1")
    assert queue.next_create_batch(limit=10, inventory_timestamp=None) == [request]


def test_forced_create_outside_relist_window_overwrites(queue: ActionQueue, owner, clock) -> None:
    queue.cache.replace([live_sell(owner, "1", clock() - 3600)], cap=10, promotes_remaining=0)
    queue.enqueue_create(sell("1", 1.0), force=True)
    assert queue.pending_removes == []


def test_superseded_in_flight_create_becomes_orphan(queue: ActionQueue, owner, clock) -> None:
    first, second = sell("1", 1.0, metal=1), sell("1", 2.0, metal=2)
    queue.enqueue_create(first)
    queue.mark_in_flight([first])
    queue.enqueue_create(second)

    assert queue.confirm_created(first) is False
    queue.clear_in_flight()

    # listing created from the stale request is not cached yet
    assert queue.resolve_replacements() == {"sell:1"}

    queue.cache.replace([live_sell(owner, "1", clock())], cap=10, promotes_remaining=0)
    assert queue.resolve_replacements() == set()
    assert queue.pending_removes == ["440_1"]
    assert queue.next_create_batch(limit=10, inventory_timestamp=None) == []

    queue.confirm_removed("440_1")
    assert queue.next_create_batch(limit=10, inventory_timestamp=None) == [second]


def test_batch_order_and_limit(queue: ActionQueue) -> None:
    late, early_b, early_a = sell("3", 5.0), sell("2", 1.0), sell("1", 1.0)
    for entry in (late, early_b, early_a):
        queue.enqueue_create(entry)
    assert queue.next_create_batch(limit=2, inventory_timestamp=None) == [early_a, early_b]


def test_batch_respects_listing_cap(queue: ActionQueue, owner, clock) -> None:
    queue.cache.replace([live_sell(owner, "1", clock() - 3600)], cap=2, promotes_remaining=0)
    update, first_new, second_new = sell("1", 1.0), sell("2", 2.0), sell("3", 3.0)
    for entry in (update, first_new, second_new):
        queue.enqueue_create(entry)

    batch = queue.next_create_batch(
        limit=10, inventory_timestamp=None, capacity=queue.cache.capacity()
    )

    assert batch == [update, first_new]


def test_reconcile_drops_removes_of_vanished_listings(queue: ActionQueue, owner, clock) -> None:
    queue.cache.replace([live_sell(owner, "1", clock())], cap=10, promotes_remaining=0)
    queue.enqueue_remove("440_1")
    queue.enqueue_remove("440_2")

    queue.reconcile()

    assert queue.pending_removes == ["440_1"]
