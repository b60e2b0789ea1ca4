"""
APScheduler entry point for running the ingestion loop on a fixed interval.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from gator.infra.http import HttpFetcher
from gator.models import CycleResult, CycleStatus
from gator.pipelines.store import Store
from gator.schedulers.claim import FetchScheduler

logger = logging.getLogger(__name__)

JOB_ID = "gator_agg"


class DriverState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class TickDriver:
    """
    Two-state loop around a single ingestion cycle.

    ``tick`` moves IDLE -> RUNNING, runs the cycle and always returns to IDLE,
    whatever the outcome. A tick that arrives while a cycle is still running is
    dropped, so at most one cycle is ever in flight. The timer itself is an
    APScheduler scheduler, injectable for tests.
    """

    def __init__(
        self,
        cycle: Callable[[], CycleResult],
        interval: timedelta,
        scheduler: Optional[BaseScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._cycle = cycle
        self.interval = interval
        self.scheduler = scheduler or BlockingScheduler(timezone="UTC")
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = DriverState.IDLE
        self.ticks = 0
        self.skipped = 0
        self.last_result: Optional[CycleResult] = None
        self._lock = threading.Lock()

    def tick(self) -> Optional[CycleResult]:
        with self._lock:
            if self.state is DriverState.RUNNING:
                self.skipped += 1
                logger.warning("Previous cycle still running; skipping tick")
                return None
            self.state = DriverState.RUNNING

        started_at = self.clock()
        try:
            result = self._cycle()
        except Exception as exc:
            logger.exception("Error scraping feeds: %s", exc)
            result = CycleResult(status=CycleStatus.ERROR, started_at=started_at, error=str(exc))
        finally:
            with self._lock:
                self.state = DriverState.IDLE

        self.ticks += 1
        self.last_result = result
        return result

    def start(self) -> None:
        """Run one cycle immediately, then one per interval until stopped."""
        self.scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval.total_seconds(),
            next_run_time=self.clock(),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("Collecting feeds every %s", self.interval)
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Ingestion loop interrupted")
            self.stop()

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)


def run_scheduler(
    store: Store,
    fetcher: HttpFetcher,
    interval: timedelta,
    deadline: Optional[float] = None,
    scheduler: Optional[BaseScheduler] = None,
) -> TickDriver:
    fetch_scheduler = FetchScheduler(store, fetcher, deadline=deadline)
    driver = TickDriver(fetch_scheduler.run_cycle, interval, scheduler=scheduler)
    driver.start()
    return driver

