"""Exception hierarchy for bptflistings.

Local problems (bad configuration, unknown items, calling before ``init``)
are raised immediately and never reach the queue. Transport problems are
raised by the HTTP client and handled by the flush executor's backoff.
Per-listing errors reported by the API are not exceptions; they are
published as ``action_error`` events.
"""

from __future__ import annotations


class ListingsError(Exception):
    """Base class for all bptflistings errors."""


class ConfigurationError(ListingsError):
    """Raised when required settings are missing or invalid."""


class NotReadyError(ListingsError):
    """Raised when the manager is used before ``init`` completed."""


class InvalidItemError(ListingsError):
    """Raised when an item descriptor cannot be mapped through the schema."""

    def __init__(self, message: str, *, defindex: int | None = None) -> None:
        super().__init__(message)
        self.defindex = defindex


class TransportError(ListingsError):
    """Raised when a request fails outside the per-item error channel."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(TransportError):
    """Raised on HTTP 429; ``retry_after`` is in seconds when the server sent one."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class AuthenticationError(TransportError):
    """Raised when the access token is rejected."""


class BadRequestError(TransportError):
    """Raised when the API rejects the request body."""


class InventoryUnavailableError(TransportError):
    """Raised when backpack.tf cannot report the inventory state."""


class FlushError(ListingsError):
    """Raised when a flush gave up after exhausting its attempts."""

    def __init__(self, message: str, *, attempts: int, cause: Exception) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


__all__ = [
    "AuthenticationError",
    "BadRequestError",
    "ConfigurationError",
    "FlushError",
    "InvalidItemError",
    "InventoryUnavailableError",
    "ListingsError",
    "NotReadyError",
    "RateLimitedError",
    "TransportError",
]
