import pytest

from bptflistings.services.failures import (
    ALREADY_EXISTS,
    FailureAction,
    FailureReason,
    classify_failure,
)


def test_labels() -> None:
    assert FailureReason.ITEM_NOT_TRADABLE.label == "ItemNotTradable"
    assert FailureReason.RELIST_TIMEOUT.label == "RelistTimeout"


@pytest.mark.parametrize(
    "error, expected",
    [
        ("", (FailureAction.WAIT_FOR_INVENTORY, "ItemNotInInventory")),
        (None, (FailureAction.WAIT_FOR_INVENTORY, "ItemNotInInventory")),
        (1, (FailureAction.WAIT_FOR_INVENTORY, "ItemNotInInventory")),
        ("6", (FailureAction.REPLACE_EXISTING, "RelistTimeout")),
        (4, (FailureAction.DROP, "ItemNotTradable")),
        (7, (FailureAction.DROP, "ListingCapExceeded")),
        (42, (FailureAction.DROP, "Unknown(42)")),
        ("Item already listed", (FailureAction.REPLACE_EXISTING, ALREADY_EXISTS)),
        ({"message": "Listing already exists"}, (FailureAction.REPLACE_EXISTING, ALREADY_EXISTS)),
        ("Item not in inventory", (FailureAction.WAIT_FOR_INVENTORY, "ItemNotInInventory")),
        ("Price too high", (FailureAction.DROP, "Price too high")),
    ],
)
def test_classify_failure(error, expected) -> None:
    assert classify_failure(error) == expected
