"""Tests for the cleanup scheduler."""

import threading
import time
from datetime import timedelta

import pytest

from upload_governance.artifacts import CleanupOutcome, RetentionCollector
from upload_governance.core import ManualClock
from upload_governance.scheduler import CleanupScheduler, SchedulerStatus

from conftest import FaultyMetadataIndex, T0


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestRunOnce:
    """Tests for single scheduled passes."""

    def test_runs_collect(self, collector: RetentionCollector, seed_artifact) -> None:
        """A pass deletes expired artifacts and keeps the outcome."""
        seed_artifact("old.png", timedelta(days=2))
        scheduler = CleanupScheduler(collector)

        outcome = scheduler.run_once()

        assert outcome is not None
        assert outcome.deleted == 1
        assert scheduler.pass_count == 1
        assert scheduler.last_outcome is outcome
        assert scheduler.last_error is None
        assert scheduler.last_run_at is not None

    def test_run_time_from_clock(self, collector: RetentionCollector, clock: ManualClock) -> None:
        """Pass timestamps come from the injected clock."""
        scheduler = CleanupScheduler(collector, clock=clock)
        scheduler.run_once()
        assert scheduler.last_run_at == T0

        clock.advance(hours=24)
        scheduler.run_once()
        assert scheduler.last_run_at == T0 + timedelta(hours=24)

    def test_uses_configured_ttl(self, collector: RetentionCollector, seed_artifact) -> None:
        """The scheduler passes its own TTL to collect."""
        seed_artifact("recent.png", timedelta(hours=2))
        scheduler = CleanupScheduler(collector, ttl=timedelta(hours=1))
        assert scheduler.run_once().deleted == 1

    def test_never_raises(self, collector: RetentionCollector, metadata_index: FaultyMetadataIndex) -> None:
        """An unavailable store is recorded, not raised."""
        metadata_index.fail_query = True
        scheduler = CleanupScheduler(collector)

        assert scheduler.run_once() is None
        assert scheduler.pass_count == 1
        assert scheduler.last_error == "Cannot query expired artifacts"

    def test_error_clears_after_success(
        self, collector: RetentionCollector, metadata_index: FaultyMetadataIndex
    ) -> None:
        """A later successful pass clears the last error."""
        scheduler = CleanupScheduler(collector)
        metadata_index.fail_query = True
        scheduler.run_once()
        metadata_index.fail_query = False
        scheduler.run_once()
        assert scheduler.last_error is None

    def test_interval_must_be_positive(self, collector: RetentionCollector) -> None:
        """A zero interval is rejected."""
        with pytest.raises(ValueError):
            CleanupScheduler(collector, interval=timedelta(0))


class TestLifecycle:
    """Tests for starting and stopping the background thread."""

    def test_start_runs_immediately(self, collector: RetentionCollector, seed_artifact) -> None:
        """The first pass runs as soon as the thread starts."""
        seed_artifact("old.png", timedelta(days=2))
        scheduler = CleanupScheduler(collector, interval=timedelta(hours=24))

        assert scheduler.start()
        try:
            assert scheduler.status == SchedulerStatus.RUNNING
            assert _wait_for(lambda: scheduler.pass_count >= 1)
            assert scheduler.last_outcome.deleted == 1
        finally:
            scheduler.stop(timeout=5.0)

        assert scheduler.status == SchedulerStatus.STOPPED

    def test_repeats_on_interval(self, collector: RetentionCollector) -> None:
        """Passes repeat at the configured cadence."""
        scheduler = CleanupScheduler(collector, interval=timedelta(milliseconds=20))
        scheduler.start()
        try:
            assert _wait_for(lambda: scheduler.pass_count >= 3)
        finally:
            scheduler.stop(timeout=5.0)

    def test_deferred_first_pass(self, collector: RetentionCollector) -> None:
        """Without run_immediately nothing happens before the first interval."""
        scheduler = CleanupScheduler(collector, interval=timedelta(hours=1), run_immediately=False)
        scheduler.start()
        try:
            time.sleep(0.05)
            assert scheduler.pass_count == 0
        finally:
            scheduler.stop(timeout=5.0)

    def test_start_twice(self, collector: RetentionCollector) -> None:
        """A running scheduler is not started again."""
        scheduler = CleanupScheduler(collector, run_immediately=False)
        assert scheduler.start()
        try:
            assert not scheduler.start()
        finally:
            scheduler.stop(timeout=5.0)

    def test_stop_when_stopped(self, collector: RetentionCollector) -> None:
        """Stopping an idle scheduler is a no-op."""
        scheduler = CleanupScheduler(collector)
        scheduler.stop()
        assert scheduler.status == SchedulerStatus.STOPPED

    def test_wait_returns_after_stop(self, collector: RetentionCollector) -> None:
        """wait() reports the shutdown signal."""
        scheduler = CleanupScheduler(collector, run_immediately=False)
        scheduler.start()
        assert not scheduler.wait(0.01)
        scheduler.stop(timeout=5.0)
        assert scheduler.wait(0.01)

    def test_stop_timeout_keeps_stopping(self, collector: RetentionCollector) -> None:
        """A pass outliving stop(timeout) blocks a second loop from starting."""
        entered = threading.Event()
        release = threading.Event()

        class BlockingCollector:
            def collect(self, ttl=None, now=None) -> CleanupOutcome:
                entered.set()
                release.wait(5.0)
                return collector.collect(ttl=ttl, now=now)

        scheduler = CleanupScheduler(BlockingCollector(), interval=timedelta(hours=1))
        scheduler.start()
        assert entered.wait(5.0)

        assert not scheduler.stop(timeout=0.05)
        assert scheduler.status == SchedulerStatus.STOPPING
        assert not scheduler.start()

        release.set()
        assert scheduler.stop(timeout=5.0)
        assert scheduler.status == SchedulerStatus.STOPPED
        assert scheduler.pass_count == 1

        assert scheduler.start()
        scheduler.stop(timeout=5.0)
