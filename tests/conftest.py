from __future__ import annotations

from typing import Any, Callable

import pytest

from bptflistings.infrastructure.http import DeleteFailure, DeleteResult, InventoryStatus, ListingsSnapshot
from bptflistings.infrastructure.observability import get_registry
from bptflistings.infrastructure.schema import JsonItemSchema
from bptflistings.services.manager import ListingManager

STEAMID = "76561198000000000"
SERVER_TIME = 1_700_000_000

SCHEMA_DATA: dict[str, Any] = {
    "items": [
        {"defindex": 5021, "item_name": "Mann Co. Supply Crate Key", "proper_name": False},
        {"defindex": 200, "item_name": "Scattergun", "proper_name": False},
        {"defindex": 378, "item_name": "Team Captain", "proper_name": True},
        {"defindex": 15013, "item_name": "Sniper Rifle", "proper_name": False},
    ],
    "qualities": {"1": "Genuine", "5": "Unusual", "6": "Unique", "11": "Strange", "15": "Decorated Weapon"},
    "effects": {"13": "Burning Flames"},
    "paintkits": {"102": "Night Owl"},
}


def make_schema() -> JsonItemSchema:
    return JsonItemSchema.from_dict(SCHEMA_DATA)


class FakeApi:
    """In-memory stand-in for :class:`BackpackApiClient`.

    Creations succeed by default and add a listing on the "server"; tests
    override ``create_handler`` or queue exceptions in ``failures``.
    """

    def __init__(self) -> None:
        self.listings: list[dict[str, Any]] = []
        self.cap = 100
        self.promotes_remaining = 5
        self.inventory_timestamp: int | None = 1000
        self.inventory_available = True
        self.now = SERVER_TIME
        self.create_calls: list[list[dict[str, Any]]] = []
        self.delete_calls: list[list[str]] = []
        self.fetch_calls = 0
        self.inventory_calls = 0
        self.heartbeats = 0
        self.delete_errors: dict[str, str] = {}
        self.create_handler: Callable[[list[dict[str, Any]]], dict[str, Any]] | None = None
        self.failures: dict[str, list[Exception]] = {}
        self._next_id = 1
        self._defindex_by_name = {item["item_name"]: item["defindex"] for item in SCHEMA_DATA["items"]}

    def fail(self, method: str, *errors: Exception) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def _maybe_fail(self, method: str) -> None:
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def add_listing(self, payload: dict[str, Any], *, created: int | None = None) -> dict[str, Any]:
        """Put a listing on the server as if ``payload`` had been created."""
        if payload["intent"] == 1:
            item: dict[str, Any] = {"id": str(payload["id"]), "defindex": 5021, "quality": 6}
        else:
            remote = payload["item"]
            item = {"defindex": self._defindex_by_name[remote["item_name"]], "quality": remote["quality"]}
            if remote.get("craftable") == 0:
                item["flag_cannot_craft"] = True
            if remote.get("priceindex") is not None:
                item["attributes"] = [{"defindex": 134, "float_value": remote["priceindex"]}]
        listing = {
            "id": f"440_{STEAMID}_{self._next_id}",
            "steamid": STEAMID,
            "intent": payload["intent"],
            "appid": 440,
            "item": item,
            "currencies": payload.get("currencies") or {},
            "offers": payload.get("offers", 1),
            "buyout": payload.get("buyout", 1),
            "details": payload.get("details", ""),
            "created": self.now if created is None else created,
            "bump": self.now if created is None else created,
        }
        self._next_id += 1
        self.listings.append(listing)
        return listing

    @staticmethod
    def result_key(payload: dict[str, Any]) -> str:
        return str(payload["id"]) if payload["intent"] == 1 else payload["item"]["item_name"]

    async def create_listings(self, batch: list[dict[str, Any]]) -> dict[str, Any]:
        self.create_calls.append(batch)
        self._maybe_fail("create_listings")
        if self.create_handler is not None:
            return self.create_handler(batch)
        results = {}
        for payload in batch:
            self.add_listing(payload)
            results[self.result_key(payload)] = {"created": True}
        return results

    async def delete_listings(self, listing_ids: list[str]) -> DeleteResult:
        self.delete_calls.append(list(listing_ids))
        self._maybe_fail("delete_listings")
        errors = [
            DeleteFailure(listing_id=listing_id, message=self.delete_errors[listing_id])
            for listing_id in listing_ids
            if listing_id in self.delete_errors
        ]
        failed = {error.listing_id for error in errors}
        before = len(self.listings)
        self.listings = [
            listing
            for listing in self.listings
            if listing["id"] not in listing_ids or listing["id"] in failed
        ]
        return DeleteResult(deleted=before - len(self.listings), errors=errors)

    async def fetch_listings(self) -> ListingsSnapshot:
        self.fetch_calls += 1
        self._maybe_fail("fetch_listings")
        return ListingsSnapshot(
            cap=self.cap,
            promotes_remaining=self.promotes_remaining,
            listings=[dict(listing) for listing in self.listings],
        )

    async def send_heartbeat(self) -> int:
        self._maybe_fail("send_heartbeat")
        self.heartbeats += 1
        return len(self.listings)

    async def fetch_inventory_status(self, steamid64: str) -> InventoryStatus:
        self.inventory_calls += 1
        self._maybe_fail("fetch_inventory_status")
        if not self.inventory_available:
            return InventoryStatus(timestamp=None, available=False, message="Private (inventory)")
        return InventoryStatus(timestamp=self.inventory_timestamp, available=True)


class ManualScheduler:
    """Records timers instead of running them; tests fire them explicitly."""

    def __init__(self) -> None:
        self.timers: dict[str, tuple[float, Any]] = {}
        self.intervals: dict[str, tuple[float, Any]] = {}

    def call_later(self, purpose: str, delay: float, job: Any) -> None:
        self.timers[purpose] = (delay, job)

    def every(self, purpose: str, interval: float, job: Any) -> None:
        self.intervals[purpose] = (interval, job)

    def cancel(self, purpose: str) -> None:
        self.timers.pop(purpose, None)
        self.intervals.pop(purpose, None)

    def is_scheduled(self, purpose: str) -> bool:
        return purpose in self.timers or purpose in self.intervals

    async def shutdown(self) -> None:
        self.timers.clear()
        self.intervals.clear()

    def delay(self, purpose: str) -> float:
        return self.timers[purpose][0]

    async def fire(self, purpose: str) -> None:
        _, job = self.timers.pop(purpose)
        await job()

    async def tick(self, purpose: str) -> None:
        _, job = self.intervals[purpose]
        await job()


class FakeClock:
    def __init__(self, now: float = float(SERVER_TIME)) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1.0) -> float:
        self.now += seconds
        return self.now


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_settings(**overrides: Any) -> dict[str, Any]:
    settings = {"token": "test-token", "steamid64": STEAMID}
    settings.update(overrides)
    return settings


def build_manager(api: FakeApi | None = None, **overrides: Any) -> ListingManager:
    """Manager wired to fakes; reach them through ``manager.api`` etc."""
    return ListingManager(
        make_settings(**overrides),
        make_schema(),
        api=api or FakeApi(),
        scheduler=ManualScheduler(),
        clock=FakeClock(),
        sleep=RecordingSleep(),
    )


@pytest.fixture
def schema() -> JsonItemSchema:
    return make_schema()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    get_registry().reset()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager_factory() -> Callable[..., ListingManager]:
    return build_manager
