"""
Scheduler: periodic execution of the scrape cycle.

Infrastructure layer: uses APScheduler (3.x) BackgroundScheduler with a
fixed IntervalTrigger, so the HTTP server keeps the main thread.

CycleJob runs run_cycle + publish inside a LoggingExecutionContext and is
guarded by a single-slot lock: if a trigger fires while a cycle is still
running, that trigger is skipped and the next one follows the fixed
schedule. APScheduler's max_instances=1 enforces the same from the
scheduler side.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from railway import ErrorCode, LoggingExecutionContext
from railway.result import Result

from elb_trust_store_exporter.domain.models import Snapshot
from elb_trust_store_exporter.publisher import SnapshotPublisher

log = structlog.get_logger()

JOB_ID = "elb_trust_store_scrape"


class CycleJob:
    """
    One scrape cycle followed by publication of its Snapshot.

    Not re-entrant: a call made while another one is running returns False
    immediately. A cycle that raises leaves the previous Snapshot in place.
    """

    def __init__(
        self,
        cycle_fn: Callable[[], Snapshot],
        publisher: SnapshotPublisher,
    ) -> None:
        self._cycle_fn = cycle_fn
        self._publisher = publisher
        self._running = threading.Lock()
        self._ctx = LoggingExecutionContext(operation="TrustStoreScrape")

    @property
    def running(self) -> bool:
        return self._running.locked()

    def __call__(self) -> bool:
        """Run one cycle. Returns True if a Snapshot was published."""
        if not self._running.acquire(blocking=False):
            log.warning("scheduler.cycle_skipped", reason="previous cycle still running")
            return False
        try:
            result = self._ctx.execute(
                lambda: Result.from_computation(
                    self._cycle_fn, ErrorCode.TECHNICAL_ERROR, "Scrape cycle crashed"
                )
            )
        finally:
            self._running.release()

        if result.is_failure():
            log.error("scheduler.cycle_failed", failure=str(result.error()))
            return False

        snapshot = result.value()
        self._publisher.publish(snapshot)
        log.info("scheduler.snapshot_published", samples=len(snapshot), success=snapshot.success)
        return True


def create_scheduler(
    job: CycleJob,
    interval_seconds: float,
    run_on_startup: bool = True,
) -> BackgroundScheduler:
    """
    Create a configured APScheduler that runs the job on a fixed interval.

    Args:
        job: The cycle job to trigger.
        interval_seconds: Period of the schedule.
        run_on_startup: If True, execute once immediately, before the
                        scheduler is started.

    Returns:
        A configured BackgroundScheduler (call .start() to begin).
    """
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        job,
        trigger=IntervalTrigger(seconds=interval_seconds),
        id=JOB_ID,
        name="ELB trust store scrape",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    if run_on_startup:
        log.info("scheduler.startup_run", message="Running scrape cycle immediately on startup")
        job()

    return scheduler
