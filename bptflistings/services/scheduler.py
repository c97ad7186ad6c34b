"""Named, cancellable timers on the running asyncio loop.

Each timer has a purpose (``"flush"``, ``"heartbeat"``, ``"inventory"``) and
at most one timer per purpose is active: scheduling again replaces the
previous timer. Cancelling only affects timers that have not fired yet; a job
that already started runs to completion so in-flight requests always get
their results processed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from bptflistings.infrastructure.observability import get_logger, log_exception

Job = Callable[[], Awaitable[object]]

logger = get_logger(__name__)


class Scheduler(Protocol):
    def call_later(self, purpose: str, delay: float, job: Job) -> None: ...

    def every(self, purpose: str, interval: float, job: Job) -> None: ...

    def cancel(self, purpose: str) -> None: ...

    def is_scheduled(self, purpose: str) -> bool: ...

    async def shutdown(self) -> None: ...


class AsyncioScheduler:
    """:class:`Scheduler` backed by asyncio tasks."""

    def __init__(self) -> None:
        self._timers: dict[str, asyncio.Task] = {}
        self._jobs: set[asyncio.Task] = set()
        self._running: dict[str, asyncio.Task] = {}

    def call_later(self, purpose: str, delay: float, job: Job) -> None:
        """Run ``job`` once after ``delay`` seconds, replacing any pending timer."""
        self.cancel(purpose)
        self._timers[purpose] = asyncio.ensure_future(self._fire_once(purpose, delay, job))

    def every(self, purpose: str, interval: float, job: Job) -> None:
        """Run ``job`` every ``interval`` seconds.

        A tick is skipped while the previous run of the same purpose is still
        in flight.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.cancel(purpose)
        self._timers[purpose] = asyncio.ensure_future(self._fire_every(purpose, interval, job))

    def cancel(self, purpose: str) -> None:
        timer = self._timers.pop(purpose, None)
        if timer is not None and not timer.done():
            timer.cancel()

    def is_scheduled(self, purpose: str) -> bool:
        timer = self._timers.get(purpose)
        return timer is not None and not timer.done()

    async def shutdown(self) -> None:
        """Cancel all timers and wait for jobs that already started."""
        for purpose in list(self._timers):
            self.cancel(purpose)
        if self._jobs:
            await asyncio.gather(*list(self._jobs), return_exceptions=True)

    async def _fire_once(self, purpose: str, delay: float, job: Job) -> None:
        await asyncio.sleep(delay)
        if self._timers.get(purpose) is asyncio.current_task():
            del self._timers[purpose]
        self._start(purpose, job)

    async def _fire_every(self, purpose: str, interval: float, job: Job) -> None:
        while True:
            await asyncio.sleep(interval)
            running = self._running.get(purpose)
            if running is not None and not running.done():
                logger.debug("Skipping %s tick, previous run still active", purpose)
                continue
            self._start(purpose, job)

    def _start(self, purpose: str, job: Job) -> None:
        # Detached from the timer so cancelling the timer never cancels the job.
        task = asyncio.ensure_future(self._run_job(purpose, job))
        self._jobs.add(task)
        self._running[purpose] = task
        task.add_done_callback(self._jobs.discard)

    async def _run_job(self, purpose: str, job: Job) -> None:
        try:
            await job()
        except Exception as exc:
            log_exception(logger, f"Scheduled {purpose} job failed", exc, timer=purpose)


__all__ = ["AsyncioScheduler", "Job", "Scheduler"]
