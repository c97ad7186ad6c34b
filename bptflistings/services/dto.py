"""
Centralized DTOs and collaborator protocols for the service layer.
"""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from bptflistings.domain.models.currencies import Currencies
from bptflistings.domain.models.item import ListingIntent
from bptflistings.infrastructure.http.client import (
    DeleteResult,
    InventoryStatus,
    ListingsSnapshot,
)


class ClassifiedsApi(Protocol):
    """Remote operations the services need; see ``BackpackApiClient``."""

    async def create_listings(self, batch: list[dict[str, Any]]) -> dict[str, Any]: ...

    async def delete_listings(self, listing_ids: list[str]) -> DeleteResult: ...

    async def fetch_listings(self) -> ListingsSnapshot: ...

    async def send_heartbeat(self) -> int: ...

    async def fetch_inventory_status(self, steamid64: str) -> InventoryStatus: ...


class ListingRequestDTO(BaseModel):
    """A caller's request to create (or overwrite) a listing.

    Sell requests name the asset with ``id``; buy requests describe the item
    with ``sku`` or an ``item`` dict. ``time`` overrides the enqueue timestamp
    used by the latest-wins rule.
    """

    model_config = ConfigDict(extra="forbid")

    intent: ListingIntent
    id: str | None = None
    sku: str | None = None
    item: dict[str, Any] | None = None
    currencies: dict[str, Any] | None = None
    details: str = ""
    offers: bool = True
    buyout: bool = True
    time: float | None = None

    @field_validator("intent", mode="before")
    @classmethod
    def _parse_intent(cls, value: Any) -> ListingIntent:
        return ListingIntent.parse(value)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @field_validator("currencies", mode="before")
    @classmethod
    def _currencies_to_dict(cls, value: Any) -> dict[str, Any] | None:
        if isinstance(value, Currencies):
            return value.to_dict()
        return value

    @field_validator("details", mode="before")
    @classmethod
    def _details_default(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @model_validator(mode="after")
    def _check_target(self) -> "ListingRequestDTO":
        if self.intent is ListingIntent.SELL and not self.id:
            raise ValueError("Sell listings require the asset id")
        if self.intent is ListingIntent.BUY and self.sku is None and self.item is None:
            raise ValueError("Buy listings require a sku or an item")
        return self


__all__ = ["ClassifiedsApi", "ListingRequestDTO"]
