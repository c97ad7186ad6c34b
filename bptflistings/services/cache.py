"""Local copy of the account's live listings."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from bptflistings.domain.models.item import ListingIntent
from bptflistings.domain.models.listing import Listing
from bptflistings.errors import InvalidItemError
from bptflistings.infrastructure.observability import get_logger

logger = get_logger(__name__)


class ListingCache:
    """Listings by id plus the account's cap as of the last full refresh.

    ``about_to_have`` counts listings created since that refresh so the cap
    can be respected before the server confirms the new total.
    """

    def __init__(self) -> None:
        self._listings: dict[str, Listing] = {}
        self.cap = -1
        self.promotes_remaining = -1
        self.about_to_have = 0

    def replace(
        self, listings: Iterable[Listing], *, cap: int, promotes_remaining: int
    ) -> None:
        self._listings = {listing.id: listing for listing in listings}
        self.cap = cap
        self.promotes_remaining = promotes_remaining
        self.about_to_have = 0

    def get(self, listing_id: str) -> Listing | None:
        return self._listings.get(str(listing_id))

    def discard(self, listing_id: str) -> Listing | None:
        return self._listings.pop(str(listing_id), None)

    def __contains__(self, listing_id: object) -> bool:
        return str(listing_id) in self._listings

    def __iter__(self) -> Iterator[Listing]:
        return iter(list(self._listings.values()))

    def __len__(self) -> int:
        return len(self._listings)

    def identity_of(self, listing: Listing) -> str | None:
        try:
            return listing.identity_key
        except (InvalidItemError, KeyError, ValueError) as exc:
            logger.debug("Cannot resolve identity of listing %s: %s", listing.id, exc)
            return None

    def find_by_identity(self, identity: str) -> Listing | None:
        for listing in self._listings.values():
            if self.identity_of(listing) == identity:
                return listing
        return None

    def find_by_sku(self, sku: str, intent: ListingIntent | None = None) -> list[Listing]:
        matches = []
        for listing in self._listings.values():
            if intent is not None and listing.intent is not intent:
                continue
            if listing.get_sku() == sku:
                matches.append(listing)
        return matches

    def capacity(self) -> int | None:
        """How many new listings fit under the cap, or ``None`` when unknown."""
        if self.cap < 0:
            return None
        return max(0, self.cap - len(self._listings) - self.about_to_have)


__all__ = ["ListingCache"]
