"""Listing entity wrapping one record returned by the classifieds API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from bptflistings.domain import sku
from bptflistings.domain.identity import IdentityResolver, descriptor_from_listing_item
from bptflistings.domain.models.currencies import Currencies
from bptflistings.domain.models.item import ItemDescriptor, ListingIntent
from bptflistings.infrastructure.observability import get_logger

TF2_APPID = 440

logger = get_logger(__name__)


class ListingOwner(Protocol):
    """What a listing needs from the manager that created it."""

    resolver: IdentityResolver

    def get_listing(self, listing_id: str) -> "Listing | None": ...

    def create_listing(self, listing: dict[str, Any], force: bool = False) -> bool: ...

    def remove_listing(self, listing_id: str) -> bool: ...


def _from_unix(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value or 0), tz=timezone.utc)


@dataclass
class Listing:
    """A live listing as last seen on backpack.tf.

    Derived values (identity key, item, name) are computed on every access so
    they always reflect the current schema.
    """

    id: str
    steamid: str
    intent: ListingIntent
    item: dict[str, Any]
    appid: int
    currencies: Currencies
    offers: bool
    buyout: bool
    details: str
    created: datetime
    bump: datetime
    manager: ListingOwner | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_api(cls, data: dict[str, Any], manager: ListingOwner | None = None) -> "Listing":
        return cls(
            id=str(data["id"]),
            steamid=str(data.get("steamid", "")),
            intent=ListingIntent.parse(data["intent"]),
            item=dict(data.get("item") or {}),
            appid=int(data.get("appid", TF2_APPID)),
            currencies=Currencies.from_dict(data.get("currencies")),
            offers=data.get("offers") == 1 or data.get("offers") is True,
            buyout=data.get("buyout") == 1 or data.get("buyout") is True,
            details=data.get("details") or "",
            created=_from_unix(data.get("created")),
            bump=_from_unix(data.get("bump")),
            manager=manager,
        )

    @property
    def version(self) -> int:
        """Staleness marker: changes whenever the listing is re-created."""
        return int(self.created.timestamp())

    @property
    def asset_id(self) -> str | None:
        if self.intent is ListingIntent.SELL and "id" in self.item:
            return str(self.item["id"])
        return None

    def _resolver(self) -> IdentityResolver:
        if self.manager is None:
            raise RuntimeError("Listing is not attached to a manager")
        return self.manager.resolver

    def get_item(self) -> ItemDescriptor | None:
        if self.appid != TF2_APPID:
            return None
        return descriptor_from_listing_item(self.item)

    def get_sku(self) -> str | None:
        item = self.get_item()
        return None if item is None else sku.to_string(item)

    @property
    def identity_key(self) -> str | None:
        if self.appid != TF2_APPID:
            return None
        return self._resolver().identity_of_listing_item(self.intent, self.item)

    @property
    def display_name(self) -> str | None:
        item = self.get_item()
        if item is None:
            return None
        return self._resolver().schema.get_name(item)

    def request_update(
        self,
        *,
        version: int | None = None,
        currencies: Currencies | dict[str, Any] | None = None,
        details: str | None = None,
        offers: bool | None = None,
        buyout: bool | None = None,
    ) -> bool:
        """Queue a replacement of this listing with some fields changed.

        ``version`` must be the :attr:`version` the caller based its change
        on. When it is missing, or the manager's cache holds a newer copy of
        the listing (or none at all), nothing is queued and ``False`` is
        returned.
        """
        if self.manager is None:
            return False
        if version is None:
            logger.debug("Ignoring update of listing %s without version", self.id)
            return False
        current = self.manager.get_listing(self.id)
        if current is None or current.version != version:
            logger.debug("Ignoring stale update of listing %s", self.id)
            return False

        listing: dict[str, Any] = {
            "intent": int(self.intent),
            "currencies": Currencies.from_dict(currencies if currencies is not None else self.currencies),
            "details": self.details if details is None else details,
            "offers": self.offers if offers is None else offers,
            "buyout": self.buyout if buyout is None else buyout,
        }
        if self.intent is ListingIntent.SELL:
            listing["id"] = self.asset_id
        else:
            listing["sku"] = self.get_sku()
        return self.manager.create_listing(listing, force=True)

    def request_removal(self) -> bool:
        if self.manager is None:
            return False
        return self.manager.remove_listing(self.id)


__all__ = ["Listing", "ListingOwner", "TF2_APPID"]
