"""
SpotFeed | Day-Ahead Price Refresh Scheduler

Runs the fetch → parse → normalize → publish pipeline on a fixed cadence in
one supervised asyncio task.

Lifecycle
---------
    IDLE → FETCHING → (PUBLISHING | FAILED) → WAITING → FETCHING → …
    any state → STOPPED on cancellation

- The first cycle runs as soon as the task starts; the pause is measured
  from the end of the previous cycle.
- A failed cycle is logged and counted, and the store keeps serving the
  last good series.
- ``trigger()`` cuts the current pause short.
- ``stop()`` cancels the task.  A cycle interrupted mid-fetch never
  publishes; an interrupted pause is a normal exit.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from loguru import logger

from prices.config import MarketConfig
from prices.errors import EmptyDocument, MarketDataError
from prices.models import FetchWindow
from prices.normalizer import fill_gaps
from prices.parser import parse_document
from prices.store import PriceStore


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PUBLISHING = "publishing"
    FAILED = "failed"
    WAITING = "waiting"
    STOPPED = "stopped"


class PriceFetcher(Protocol):
    async def fetch(self, window: FetchWindow) -> str: ...


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class RefreshScheduler:
    """
    Periodic background refresh of the ``PriceStore``.

    Parameters
    ----------
    fetcher:
        Anything with ``async fetch(window) -> str``, normally ``EntsoeClient``.
    store:
        Destination of every successfully normalized series.
    config:
        Supplies the refresh period, sampling interval and hourly tag.
    clock:
        Returns "now" as an aware datetime; the fetch window is derived
        from it every cycle.
    """

    def __init__(
        self,
        fetcher: PriceFetcher,
        store: PriceStore,
        config: MarketConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._config = config
        self._clock = clock

        self._task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()

        self._state = SchedulerState.IDLE
        self.cycles = 0
        self.failures = 0
        self.last_error: Optional[str] = None
        self.last_success_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> bool:
        """
        Fetch, parse, normalize and publish once.

        Returns True when a new series was published.  Every ``Exception`` is
        caught and logged here; cancellation propagates untouched.
        """
        self.cycles += 1
        self._state = SchedulerState.FETCHING
        window = FetchWindow.for_instant(self._clock())

        try:
            payload = await self._fetcher.fetch(window)
            observations = parse_document(payload, self._config.hourly_resolution_tag)
            if not observations:
                raise EmptyDocument("Market document contained no price points.")

            report = fill_gaps(observations, window, self._config.sampling_interval)

            self._state = SchedulerState.PUBLISHING
            self._store.publish(report.prices, window)
        except MarketDataError as exc:
            self._record_failure(exc)
            logger.error("Price refresh failed for {}: {}: {}", window, type(exc).__name__, exc)
            return False
        except Exception as exc:
            self._record_failure(exc)
            logger.exception("Unexpected error while refreshing prices for {}", window)
            return False

        self.last_error = None
        self.last_success_at = self._clock()
        return True

    def _record_failure(self, exc: Exception) -> None:
        self._state = SchedulerState.FAILED
        self.failures += 1
        self.last_error = f"{type(exc).__name__}: {exc}"

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _wait(self) -> None:
        self._state = SchedulerState.WAITING
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self._config.refresh_interval_seconds)
            logger.info("Price refresh triggered ahead of schedule.")
        except asyncio.TimeoutError:
            pass
        finally:
            self._wake.clear()

    async def _run(self) -> None:
        logger.info(
            "Day-ahead price refresh started (every {:.0f}s, domain {}).",
            self._config.refresh_interval_seconds,
            self._config.market_domain,
        )
        try:
            while True:
                await self.run_cycle()
                await self._wait()
        finally:
            self._state = SchedulerState.STOPPED
            logger.info("Day-ahead price refresh stopped after {} cycles.", self.cycles)

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.opt(exception=task.exception()).error("Price refresh task died.")

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Spawn the refresh loop on the running event loop."""
        if self.is_running:
            logger.warning("Price refresh already running; start() ignored.")
            return self._task
        self._task = asyncio.create_task(self._run(), name="day-ahead-price-refresh")
        self._task.add_done_callback(self._on_task_done)
        return self._task

    def trigger(self) -> bool:
        """Ask for a refresh now; returns False when the loop is not running."""
        if not self.is_running:
            return False
        self._wake.set()
        return True

    async def stop(self) -> None:
        """Cancel the loop and wait until it has exited."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._state = SchedulerState.STOPPED
