"""HTTP adapters for bptflistings.

This package provides the async client for the backpack.tf API.
"""

from .client import (
    BackpackApiClient,
    DeleteFailure,
    DeleteResult,
    InventoryStatus,
    ListingsSnapshot,
)

__all__ = [
    "BackpackApiClient",
    "DeleteFailure",
    "DeleteResult",
    "InventoryStatus",
    "ListingsSnapshot",
]
