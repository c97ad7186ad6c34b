"""Per-listing failure reasons returned by the list endpoint."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any


class FailureReason(IntEnum):
    OK = 0
    ITEM_NOT_IN_INVENTORY = 1
    INVALID_ITEM = 2
    ITEM_NOT_LISTABLE = 3
    ITEM_NOT_TRADABLE = 4
    MARKETPLACE_ITEM_NOT_PRICED = 5
    RELIST_TIMEOUT = 6
    LISTING_CAP_EXCEEDED = 7
    CURRENCIES_NOT_SPECIFIED = 8
    CYCLIC_CURRENCY = 9
    PRICE_NOT_SPECIFIED = 10
    UNKNOWN_INTENT = 11

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


class FailureAction(str, Enum):
    """What the flush executor does with a failed create."""

    WAIT_FOR_INVENTORY = "wait_for_inventory"
    REPLACE_EXISTING = "replace_existing"
    DROP = "drop"


ALREADY_EXISTS = "ListingAlreadyExists"


def classify_failure(error: Any) -> tuple[FailureAction, str]:
    """Map the ``error`` value of a list result onto an action and a label.

    The API reports either a numeric reason, an empty string (the item is not
    visible in the inventory yet) or a free-text message.
    """
    if isinstance(error, dict):
        error = error.get("message", error.get("code", ""))
    if error is None or error == "":
        return FailureAction.WAIT_FOR_INVENTORY, FailureReason.ITEM_NOT_IN_INVENTORY.label

    code: int | None = None
    if isinstance(error, bool):
        code = None
    elif isinstance(error, int):
        code = error
    elif isinstance(error, str) and error.strip().isdigit():
        code = int(error.strip())

    if code is not None:
        try:
            reason = FailureReason(code)
        except ValueError:
            return FailureAction.DROP, f"Unknown({code})"
        if reason is FailureReason.ITEM_NOT_IN_INVENTORY:
            return FailureAction.WAIT_FOR_INVENTORY, reason.label
        if reason is FailureReason.RELIST_TIMEOUT:
            return FailureAction.REPLACE_EXISTING, reason.label
        return FailureAction.DROP, reason.label

    message = str(error)
    lowered = message.lower()
    if "already" in lowered and ("exist" in lowered or "listed" in lowered):
        return FailureAction.REPLACE_EXISTING, ALREADY_EXISTS
    if "not in inventory" in lowered or "not found in inventory" in lowered:
        return FailureAction.WAIT_FOR_INVENTORY, FailureReason.ITEM_NOT_IN_INVENTORY.label
    return FailureAction.DROP, message


__all__ = ["ALREADY_EXISTS", "FailureAction", "FailureReason", "classify_failure"]
