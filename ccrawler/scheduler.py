"""One-shot and fixed-rate execution of crawl jobs using APScheduler."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Generic, TypeVar

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ccrawler.utils.logger import get_logger

LOGGER = get_logger(__name__)

JOB_ID = "crawl_exchange_rates"

T = TypeVar("T")


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATED = "terminated"


class CrawlScheduler(Generic[T]):
    """Drive ``job`` once or every ``interval`` seconds.

    Interval mode fires on fixed wall-clock boundaries measured from the first
    run, not after the previous run finished. When a tick fires while the
    previous one is still running, APScheduler skips it unless
    ``max_instances`` allows concurrent runs.
    """

    def __init__(
        self,
        job: Callable[[], T],
        *,
        scheduler: BaseScheduler | None = None,
        max_instances: int = 1,
    ) -> None:
        if max_instances < 1:
            raise ValueError("max_instances must be at least 1")
        self.job = job
        self.max_instances = max_instances
        self.state = SchedulerState.IDLE
        self.ticks = 0
        self._scheduler = scheduler

    @property
    def scheduler(self) -> BaseScheduler:
        if self._scheduler is None:
            self._scheduler = BlockingScheduler(timezone=timezone.utc)
        return self._scheduler

    def _tick(self) -> T | None:
        self.state = SchedulerState.RUNNING
        self.ticks += 1
        try:
            return self.job()
        except Exception:
            LOGGER.exception("Crawl tick %s failed", self.ticks)
            return None
        finally:
            if self.state is SchedulerState.RUNNING:
                self.state = SchedulerState.IDLE

    def run_once(self) -> T | None:
        """Execute the job a single time and return its result."""

        LOGGER.info("Crawling once")
        try:
            return self._tick()
        finally:
            self.state = SchedulerState.TERMINATED

    def schedule(self, interval: float) -> None:
        """Register the job to run now and then every ``interval`` seconds."""

        if interval <= 0:
            raise ValueError("interval must be positive")
        self.scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=interval, timezone=timezone.utc),
            id=JOB_ID,
            name=JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=self.max_instances,
            coalesce=False,
            misfire_grace_time=None,
            replace_existing=True,
        )
        LOGGER.info("Scheduling crawl every %ss", interval)

    def run_every(self, interval: float) -> None:
        """Schedule the job and start the underlying scheduler.

        With the default :class:`BlockingScheduler` this call only returns once
        the scheduler is shut down from another thread or by a signal.
        """

        self.schedule(interval)
        self.scheduler.start()

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self.state = SchedulerState.TERMINATED


__all__ = ["CrawlScheduler", "JOB_ID", "SchedulerState"]
