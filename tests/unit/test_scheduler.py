"""
Unit tests for the scheduler module.

Tests verify scheduler creation, job wiring, startup execution and the
no-overlap guarantee of CycleJob.
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from unittest.mock import MagicMock

from apscheduler.triggers.interval import IntervalTrigger

from elb_trust_store_exporter.domain.metrics import COLLECTOR_SUCCESS
from elb_trust_store_exporter.domain.models import MetricSample, Snapshot
from elb_trust_store_exporter.publisher import SnapshotPublisher
from elb_trust_store_exporter.scheduler import JOB_ID, CycleJob, create_scheduler


def _snapshot(success: int = 1) -> Snapshot:
    return Snapshot(samples=(MetricSample(COLLECTOR_SUCCESS, (), success),))


class TestCreateScheduler:
    """Verify scheduler factory configuration."""

    def test_creates_scheduler_with_job(self) -> None:
        """
        GIVEN a cycle job
        WHEN create_scheduler is called
        THEN the returned scheduler has exactly one job configured.
        """
        job = CycleJob(MagicMock(return_value=_snapshot()), SnapshotPublisher())
        scheduler = create_scheduler(job, interval_seconds=300, run_on_startup=False)

        jobs = scheduler.get_jobs()
        assert len(jobs) == 1
        assert jobs[0].id == JOB_ID

    def test_uses_fixed_interval_trigger(self) -> None:
        """
        GIVEN a 300 second interval
        WHEN create_scheduler is called
        THEN the job runs on an IntervalTrigger of 300 seconds, one instance at a time.
        """
        job = CycleJob(MagicMock(return_value=_snapshot()), SnapshotPublisher())
        scheduler = create_scheduler(job, interval_seconds=300, run_on_startup=False)

        scheduled = scheduler.get_jobs()[0]
        assert isinstance(scheduled.trigger, IntervalTrigger)
        assert scheduled.trigger.interval == timedelta(seconds=300)
        assert scheduled.max_instances == 1
        assert scheduled.coalesce is True

    def test_run_on_startup_executes_cycle_immediately(self) -> None:
        """
        GIVEN run_on_startup=True
        WHEN create_scheduler is called
        THEN the cycle runs once and its Snapshot is published.
        """
        cycle_fn = MagicMock(return_value=_snapshot())
        publisher = SnapshotPublisher()

        create_scheduler(CycleJob(cycle_fn, publisher), interval_seconds=300, run_on_startup=True)

        cycle_fn.assert_called_once()
        assert publisher.published_count == 1

    def test_run_on_startup_false_does_not_execute(self) -> None:
        cycle_fn = MagicMock(return_value=_snapshot())

        create_scheduler(CycleJob(cycle_fn, SnapshotPublisher()), interval_seconds=300, run_on_startup=False)

        cycle_fn.assert_not_called()


class TestCycleJob:
    """Verify publication and the single-slot guard."""

    def test_publishes_snapshot(self) -> None:
        snapshot = _snapshot(success=0)
        publisher = SnapshotPublisher()

        assert CycleJob(lambda: snapshot, publisher)() is True
        assert publisher.current() is snapshot

    def test_crash_keeps_previous_snapshot(self) -> None:
        """
        GIVEN a published Snapshot
        WHEN the next cycle raises
        THEN the job reports False and the previous Snapshot stays current.
        """
        previous = _snapshot()
        publisher = SnapshotPublisher(initial=previous)

        def exploding_cycle() -> Snapshot:
            raise RuntimeError("kaboom")

        assert CycleJob(exploding_cycle, publisher)() is False
        assert publisher.current() is previous
        assert publisher.published_count == 0

    def test_overlapping_call_is_skipped(self) -> None:
        """
        GIVEN a cycle that is still running
        WHEN the job is triggered again
        THEN the second trigger returns False without running the cycle.
        """
        started = threading.Event()
        release = threading.Event()
        calls: list[int] = []

        def slow_cycle() -> Snapshot:
            calls.append(1)
            started.set()
            release.wait(5)
            return _snapshot()

        job = CycleJob(slow_cycle, SnapshotPublisher())
        first = threading.Thread(target=job)
        first.start()
        assert started.wait(5)

        assert job.running is True
        assert job() is False

        release.set()
        first.join(5)
        assert job.running is False
        assert len(calls) == 1

    def test_scheduler_never_overlaps_cycles(self) -> None:
        """
        GIVEN cycles that take longer than the interval
        WHEN the scheduler runs for a while
        THEN at most one cycle is ever in flight.
        """
        in_flight = 0
        max_in_flight = 0
        lock = threading.Lock()

        def slow_cycle() -> Snapshot:
            nonlocal in_flight, max_in_flight
            with lock:
                in_flight += 1
                max_in_flight = max(max_in_flight, in_flight)
            time.sleep(0.15)
            with lock:
                in_flight -= 1
            return _snapshot()

        publisher = SnapshotPublisher()
        scheduler = create_scheduler(
            CycleJob(slow_cycle, publisher), interval_seconds=0.05, run_on_startup=False
        )
        scheduler.start()
        try:
            time.sleep(0.6)
        finally:
            scheduler.shutdown(wait=True)

        assert max_in_flight == 1
        assert publisher.published_count >= 1
