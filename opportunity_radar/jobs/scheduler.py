from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from opentelemetry import trace

from opportunity_radar.services.aggregation import AggregationCoordinator, RefreshReport, run_aggregation_pass
from opportunity_radar.services.repository import OpportunityRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AggregationInProgressError(Exception):
    """Raised when a pass is requested while another one is still running."""


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AggregationScheduler:
    """Background refresh loop for the opportunity store.

    After ``startup_delay_seconds`` the store is checked once and seeded only
    when it holds no opportunities. From then on a pass runs every
    ``interval_seconds``. Passes never overlap and a failed pass never stops
    the loop.
    """

    def __init__(
        self,
        coordinator: AggregationCoordinator,
        repository: OpportunityRepository,
        *,
        enabled: bool = True,
        startup_delay_seconds: float = 5.0,
        interval_seconds: float = 6 * 60 * 60,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.coordinator = coordinator
        self.repository = repository
        self.enabled = enabled
        self.startup_delay_seconds = startup_delay_seconds
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

        self.last_run_trigger: str | None = None
        self.last_run_started_at: datetime | None = None
        self.last_run_finished_at: datetime | None = None
        self.last_run_stats: dict[str, int] | None = None
        self.last_error: str | None = None
        self.next_run_at: datetime | None = None

    @property
    def started(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def start(self) -> None:
        if not self.enabled:
            logger.info("aggregation scheduler disabled")
            return
        if self.started:
            return
        logger.info(
            "aggregation scheduler starting startup_delay_seconds=%s interval_seconds=%s",
            self.startup_delay_seconds,
            self.interval_seconds,
        )
        self._task = asyncio.create_task(self._run_loop(), name="aggregation-scheduler")

    async def stop(self) -> None:
        task, self._task = self._task, None
        self.next_run_at = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("aggregation scheduler stopped")

    async def _run_loop(self) -> None:
        self.next_run_at = self._clock() + timedelta(seconds=self.startup_delay_seconds)
        await self._sleep(self.startup_delay_seconds)
        await self.startup_check()

        # Fixed rate: ticks stay on the grid no matter how long a pass takes.
        interval = timedelta(seconds=self.interval_seconds)
        next_run = self._clock() + interval
        while True:
            self.next_run_at = next_run
            await self._sleep(max(0.0, (next_run - self._clock()).total_seconds()))
            await self.run_once(trigger="interval")
            next_run += interval
            now = self._clock()
            if next_run <= now:
                missed = (now - next_run) // interval + 1
                logger.warning("aggregation pass overran its interval; skipping %s tick(s)", missed)
                next_run += interval * missed

    async def startup_check(self) -> RefreshReport | None:
        """Seed an empty store; leave a populated one alone."""
        try:
            existing = await self.repository.count_opportunities()
        except Exception as exc:
            self.last_error = f"startup check failed: {exc}"
            logger.exception("startup check could not count stored opportunities")
            return None

        if existing > 0:
            logger.info("startup check found %s stored opportunities; skipping initial aggregation", existing)
            return None
        logger.info("opportunity store is empty; running initial aggregation")
        return await self.run_once(trigger="startup")

    async def run_once(self, trigger: str = "manual", *, raise_errors: bool = False) -> RefreshReport | None:
        """Run one aggregation pass unless one is already running.

        With ``raise_errors`` a busy scheduler raises ``AggregationInProgressError``
        and pass failures propagate; otherwise both are logged and ``None`` is
        returned.
        """
        if self._lock.locked():
            logger.warning("aggregation pass already running; skipping trigger=%s", trigger)
            if raise_errors:
                raise AggregationInProgressError("an aggregation pass is already running")
            return None

        async with self._lock:
            self.last_run_trigger = trigger
            self.last_run_started_at = self._clock()
            self.last_error = None
            logger.info("aggregation pass starting trigger=%s", trigger)
            try:
                with tracer.start_as_current_span("scheduler.run_once") as span:
                    span.set_attribute("scheduler.trigger", trigger)
                    report = await run_aggregation_pass(self.coordinator, self.repository, trigger=trigger)
            except Exception as exc:
                self.last_error = f"{type(exc).__name__}: {exc}"
                self.last_run_finished_at = self._clock()
                logger.exception("aggregation pass failed trigger=%s", trigger)
                if raise_errors:
                    raise
                return None

            self.last_run_finished_at = report.finished_at
            self.last_run_stats = {
                "fetched": report.fetched,
                "inserted": report.stats.inserted,
                "updated": report.stats.updated,
                "failed": report.stats.failed,
                "failed_sources": sum(1 for outcome in report.outcomes if not outcome.ok),
            }
            logger.info("aggregation pass complete trigger=%s stats=%s", trigger, self.last_run_stats)
            return report

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "started": self.started,
            "running": self.is_running,
            "startup_delay_seconds": self.startup_delay_seconds,
            "interval_seconds": self.interval_seconds,
            "last_run_trigger": self.last_run_trigger,
            "last_run_started_at": self.last_run_started_at,
            "last_run_finished_at": self.last_run_finished_at,
            "last_run_stats": self.last_run_stats,
            "last_error": self.last_error,
            "next_run_at": self.next_run_at,
        }
