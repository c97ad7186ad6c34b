"""Flush executor: submits queued removals and creations to backpack.tf.

A flush runs passes until no eligible work is left. Each pass deletes first
so replaced listings are gone before their successors are created, then
submits at most one batch of creates and interprets the per-listing results.

Transport failures (network errors, timeouts, non-2xx responses) abort the
current pass and the whole flush is retried after a backoff. Per-listing
errors never raise; they end up as ``action_error`` events.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from bptflistings.errors import (
    AuthenticationError,
    FlushError,
    RateLimitedError,
    TransportError,
)
from bptflistings.infrastructure.observability import (
    get_logger,
    log_context,
    record_flush,
    record_listing_action,
)
from bptflistings.services.dto import ClassifiedsApi
from bptflistings.services.events import (
    ActionErrorMessage,
    EventHub,
    ListingCreatedMessage,
    ListingRemovedMessage,
)
from bptflistings.services.failures import FailureAction, classify_failure
from bptflistings.services.queue import ActionQueue, PendingCreate

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 25
DELETE_BATCH_LIMIT = 100
MISSING_RESULT = "MissingResult"


@dataclass
class FlushResult:
    """What one call to :meth:`FlushExecutor.flush` did."""

    passes: int = 0
    attempts: int = 0
    removed: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    waiting: list[str] = field(default_factory=list)
    retrying: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def submitted(self) -> bool:
        return bool(
            self.removed
            or self.created
            or self.waiting
            or self.retrying
            or self.dropped
            or self.errors
        )


class FlushExecutor:
    """Runs delete -> create cycles against the classifieds API.

    Only one flush runs at a time. Calling :meth:`flush` while one is in
    progress returns ``None`` right away and makes the running flush schedule
    another one when it finishes.
    """

    def __init__(
        self,
        api: ClassifiedsApi,
        queue: ActionQueue,
        events: EventHub,
        *,
        inventory_timestamp: Callable[[], int | None],
        refresh_listings: Callable[[], Awaitable[object]],
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.api = api
        self.queue = queue
        self.events = events
        self.inventory_timestamp = inventory_timestamp
        self.refresh_listings = refresh_listings
        self.batch_size = batch_size
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.sleep = sleep
        self._busy = False
        self._requested = False

    @property
    def busy(self) -> bool:
        return self._busy

    def backoff_delay(self, exc: TransportError, attempt: int) -> float:
        """Seconds to wait before attempt ``attempt + 1``."""
        if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
            return exc.retry_after
        return self.backoff_base * 2 ** (attempt - 1)

    async def flush(self) -> FlushResult | None:
        """Flush the queue.

        Raises:
            FlushError: If every attempt failed with a transport error. The
                queue is left as it was before the failed pass.
        """
        if self._busy:
            self._requested = True
            return None

        self._busy = True
        started = time.perf_counter()
        result = FlushResult()
        failed_removes: set[str] = set()
        # Work enqueued after this point waits for the next flush.
        up_to = self.queue.sequence
        try:
            while True:
                result.attempts += 1
                try:
                    await self._run_passes(result, failed_removes, up_to)
                    break
                except TransportError as exc:
                    self.queue.clear_in_flight()
                    attempt = result.attempts
                    if attempt >= self.max_attempts or isinstance(exc, AuthenticationError):
                        record_flush("failed", time.perf_counter() - started)
                        logger.error("Flush failed after %d attempt(s): %s", attempt, exc)
                        self.events.publish(
                            ActionErrorMessage(
                                phase="flush",
                                reason=str(exc),
                                retry_after=getattr(exc, "retry_after", None),
                            )
                        )
                        raise FlushError(
                            f"Flush failed after {attempt} attempt(s): {exc}",
                            attempts=attempt,
                            cause=exc,
                        ) from exc
                    delay = self.backoff_delay(exc, attempt)
                    logger.warning(
                        "Flush attempt %d failed (%s), retrying in %.1fs", attempt, exc, delay
                    )
                    await self.sleep(delay)
            record_flush("ok", time.perf_counter() - started)
            logger.debug(
                "Flush done: %d removed, %d created, %d dropped in %d pass(es)",
                len(result.removed),
                len(result.created),
                len(result.dropped),
                result.passes,
            )
            return result
        finally:
            self.queue.clear_in_flight()
            self._busy = False
            if self._requested:
                self._requested = False
                self.queue.schedule_flush()

    # -------------------- passes --------------------
    async def _run_passes(
        self, result: FlushResult, failed_removes: set[str], up_to: int
    ) -> None:
        refreshed_for_cap = False
        while True:
            if self.queue.is_empty():
                if result.submitted:
                    await self.refresh_listings()
                return

            removes = self.queue.snapshot_removes(exclude=failed_removes, up_to=up_to)[
                :DELETE_BATCH_LIMIT
            ]
            inventory_ts = self.inventory_timestamp()
            capacity = self.queue.cache.capacity()
            has_creates = bool(
                self.queue.next_create_batch(
                    limit=1,
                    inventory_timestamp=inventory_ts,
                    capacity=capacity,
                    failed_removes=failed_removes,
                    up_to=up_to,
                )
            )
            if not removes and not has_creates:
                if not refreshed_for_cap and self.queue.blocked_by_capacity(capacity, up_to):
                    logger.info("Listing cap reached, refreshing listings before giving up")
                    refreshed_for_cap = True
                    await self.refresh_listings()
                    continue
                return

            result.passes += 1
            with log_context(flush_pass=result.passes):
                if removes:
                    await self._delete_phase(removes, result, failed_removes)
                batch = self.queue.next_create_batch(
                    limit=self.batch_size,
                    inventory_timestamp=inventory_ts,
                    capacity=self.queue.cache.capacity(),
                    failed_removes=failed_removes,
                    up_to=up_to,
                )
                if batch:
                    await self._create_phase(batch, inventory_ts, result)
                if self.queue.resolve_replacements():
                    # A conflicting listing is not cached yet; fetch it so it
                    # can be removed in the next pass.
                    await self.refresh_listings()

    async def _delete_phase(
        self, removes: list[str], result: FlushResult, failed_removes: set[str]
    ) -> None:
        logger.debug("Removing %d listing(s)", len(removes))
        outcome = await self.api.delete_listings(removes)
        errors = {failure.listing_id: failure.message for failure in outcome.errors}
        for listing_id in removes:
            if listing_id in errors:
                failed_removes.add(listing_id)
                record_listing_action("delete", "error")
                if self.queue.remove_failed(listing_id):
                    logger.warning("Could not remove listing %s: %s", listing_id, errors[listing_id])
                    result.errors.append(
                        {"phase": "delete", "identity": listing_id, "reason": errors[listing_id]}
                    )
                    self.events.publish(
                        ActionErrorMessage(
                            phase="delete", identity=listing_id, reason=errors[listing_id]
                        )
                    )
                continue
            self.queue.confirm_removed(listing_id)
            result.removed.append(listing_id)
            record_listing_action("delete", "removed")
            self.events.publish(ListingRemovedMessage(id=listing_id))
        self.queue.notify()

    async def _create_phase(
        self, batch: list[PendingCreate], inventory_ts: int | None, result: FlushResult
    ) -> None:
        logger.debug("Creating %d listing(s)", len(batch))
        self.queue.mark_in_flight(batch)
        try:
            response = await self.api.create_listings([entry.to_payload() for entry in batch])
            for entry in batch:
                outcome = self._find_result(response, entry)
                with log_context(identity=entry.identity):
                    self._apply_create_result(entry, outcome, inventory_ts, result)
        finally:
            self.queue.clear_in_flight()
        self.queue.notify()

    @staticmethod
    def _find_result(response: dict[str, Any], entry: PendingCreate) -> dict[str, Any] | None:
        for key in entry.response_keys():
            outcome = response.get(key)
            if isinstance(outcome, dict):
                return outcome
        return None

    def _apply_create_result(
        self,
        entry: PendingCreate,
        outcome: dict[str, Any] | None,
        inventory_ts: int | None,
        result: FlushResult,
    ) -> None:
        key = entry.identity
        if outcome is not None and outcome.get("created"):
            self.queue.confirm_created(entry)
            result.created.append(key)
            record_listing_action("create", "created")
            logger.info("Created listing")
            self.events.publish(ListingCreatedMessage(identity=key))
            return

        if not self.queue.is_current(entry):
            logger.debug("Ignoring result for superseded request")
            return

        if outcome is None:
            action, label = FailureAction.DROP, MISSING_RESULT
        else:
            action, label = classify_failure(outcome.get("error"))

        if action is FailureAction.WAIT_FOR_INVENTORY:
            if self.queue.mark_waiting(entry, inventory_ts):
                result.waiting.append(key)
                record_listing_action("create", "waiting")
                logger.debug("Item not in inventory yet, waiting for refresh")
                return
        elif action is FailureAction.REPLACE_EXISTING:
            if self.queue.mark_retry(entry):
                result.retrying.append(key)
                record_listing_action("create", "retrying")
                logger.info("Listing already exists, replacing it")
                self.events.publish(
                    ActionErrorMessage(
                        phase="create",
                        identity=key,
                        reason=label,
                        retry_after=_retry_after(outcome),
                    )
                )
                return

        self.queue.drop_create(entry)
        result.dropped.append(key)
        result.errors.append({"phase": "create", "identity": key, "reason": label})
        record_listing_action("create", "dropped")
        logger.warning("Dropping create: %s", label)
        self.events.publish(ActionErrorMessage(phase="create", identity=key, reason=label))


def _retry_after(outcome: dict[str, Any] | None) -> float | None:
    """Seconds until the marketplace accepts the listing again, if reported."""
    if outcome is None or outcome.get("retry") is None:
        return None
    try:
        return float(outcome["retry"])
    except (TypeError, ValueError):
        return None


__all__ = ["DEFAULT_BATCH_SIZE", "FlushExecutor", "FlushResult"]
