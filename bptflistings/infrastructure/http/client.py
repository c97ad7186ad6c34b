"""Async client for the backpack.tf classifieds API.

The client is a thin transport adapter: it builds URLs, attaches the access
token, maps HTTP failures onto :mod:`bptflistings.errors` and returns parsed
bodies. Queueing, batching and retry policy live in the service layer.

Usage:
    async with BackpackApiClient(token="...") as client:
        snapshot = await client.fetch_listings()
        print(snapshot.cap, len(snapshot.listings))
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from bptflistings.errors import (
    AuthenticationError,
    BadRequestError,
    RateLimitedError,
    TransportError,
)
from bptflistings.infrastructure.observability import get_logger, record_api_request

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://backpack.tf"
DEFAULT_TIMEOUT_SECONDS = 20.0


@dataclass
class ListingsSnapshot:
    """Body of ``GET /api/classifieds/listings/v1``."""

    cap: int
    promotes_remaining: int
    listings: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class DeleteFailure:
    listing_id: str
    message: str


@dataclass
class DeleteResult:
    """Body of ``DELETE /api/classifieds/delete/v1``."""

    deleted: int
    errors: list[DeleteFailure] = field(default_factory=list)


@dataclass
class InventoryStatus:
    """Result of asking backpack.tf when it last loaded the inventory."""

    timestamp: int | None
    available: bool
    message: str | None = None


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class BackpackApiClient:
    """Async client for the classifieds, heartbeat and inventory endpoints.

    Attributes:
        base_url: Site root, ``https://backpack.tf`` unless overridden.
        timeout: Per-request timeout in seconds; a timeout is a transport error.
    """

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BackpackApiClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            from bptflistings import __version__

            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": f"bptflistings/{__version__}"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -------------------- request helpers --------------------
    def _check_response(self, response: httpx.Response) -> None:
        status = response.status_code
        if status == 429:
            raise RateLimitedError(
                "Too Many Requests",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if status in (401, 403):
            raise AuthenticationError("Unauthorized", status_code=status)
        if status == 400:
            raise BadRequestError(f"Bad Request: {response.text[:200]}", status_code=status)
        if not 200 <= status < 300:
            raise TransportError(f"HTTP Error {status}", status_code=status)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        client = await self._get_client()
        started = time.perf_counter()
        try:
            response = await client.request(method, url, params=params, json=json)
        except httpx.TimeoutException as exc:
            record_api_request(endpoint, method, 0, time.perf_counter() - started)
            raise TransportError(f"Request to {endpoint} timed out") from exc
        except httpx.HTTPError as exc:
            record_api_request(endpoint, method, 0, time.perf_counter() - started)
            raise TransportError(f"Request to {endpoint} failed: {exc}") from exc

        record_api_request(
            endpoint, method, response.status_code, time.perf_counter() - started
        )
        self._check_response(response)
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError("Malformed JSON response") from exc
        if body is None:
            raise TransportError("Malformed JSON response")
        return body

    async def _api_call(
        self,
        method: str,
        name: str,
        *,
        face: str = "classifieds",
        version: str = "v1",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.token:
            raise AuthenticationError("No access token set")
        url = f"{self.base_url}/api/{face}/{name}/{version}"
        logger.debug("%s %s", method, url)
        return await self._request(
            method,
            url,
            endpoint=f"{face}/{name}",
            params={"token": self.token},
            json=body if method != "GET" else None,
        )

    # -------------------- endpoints --------------------
    async def create_listings(self, batch: list[dict[str, Any]]) -> dict[str, Any]:
        """Submit a batch of listings; returns the per-listing result mapping."""
        response = await self._api_call("POST", "list", body={"listings": batch})
        return dict(response.get("listings") or {})

    async def delete_listings(self, listing_ids: list[str]) -> DeleteResult:
        response = await self._api_call(
            "DELETE", "delete", body={"listing_ids": list(listing_ids)}
        )
        errors = [
            DeleteFailure(
                listing_id=str(error.get("listing_id")),
                message=str(error.get("message", "")),
            )
            for error in response.get("errors") or []
        ]
        return DeleteResult(deleted=int(response.get("deleted", 0)), errors=errors)

    async def fetch_listings(self) -> ListingsSnapshot:
        response = await self._api_call("GET", "listings")
        return ListingsSnapshot(
            cap=int(response.get("cap", -1)),
            promotes_remaining=int(response.get("promotes_remaining", -1)),
            listings=list(response.get("listings") or []),
        )

    async def send_heartbeat(self) -> int:
        """Bump every listing; returns the number of listings bumped."""
        response = await self._api_call(
            "POST", "heartbeat", face="aux", body={"automatic": "all"}
        )
        return int(response.get("bumped", 0))

    async def fetch_inventory_status(self, steamid64: str) -> InventoryStatus:
        """Ask backpack.tf when it last loaded ``steamid64``'s inventory."""
        body = await self._request(
            "GET",
            f"{self.base_url}/_inventory/{steamid64}",
            endpoint="_inventory",
        )
        status = body.get("status") or {}
        if status.get("id") == -1:
            message = f"{status.get('text')} ({status.get('extra')})"
            return InventoryStatus(timestamp=None, available=False, message=message)
        timestamp = (body.get("time") or {}).get("timestamp")
        return InventoryStatus(
            timestamp=None if timestamp is None else int(timestamp),
            available=True,
        )


__all__ = [
    "BackpackApiClient",
    "DEFAULT_BASE_URL",
    "DeleteFailure",
    "DeleteResult",
    "InventoryStatus",
    "ListingsSnapshot",
]
