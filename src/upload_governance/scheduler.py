"""
Cleanup Scheduler - recurring retention passes.

Runs RetentionCollector.collect() on a background daemon thread at a
fixed cadence (daily by default). The thread sleeps on a shutdown event
so stop() takes effect immediately rather than after the next tick.

A scheduled pass is not excluded from operator-triggered passes; both
are idempotent per item.
"""

import logging
import threading
from datetime import datetime, timedelta
from enum import Enum

from upload_governance.artifacts.models import CleanupOutcome
from upload_governance.artifacts.retention import RetentionCollector
from upload_governance.core.clock import Clock, SystemClock
from upload_governance.core.exceptions import GovernanceError, format_exception

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(hours=24)
DEFAULT_TTL = timedelta(days=1)


class SchedulerStatus(Enum):
    """Status of the scheduler."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class CleanupScheduler:
    """
    Periodic cleanup runner.

    Example:
        scheduler = CleanupScheduler(collector)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        collector: RetentionCollector,
        interval: timedelta = DEFAULT_INTERVAL,
        ttl: timedelta = DEFAULT_TTL,
        run_immediately: bool = True,
        clock: Clock | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            collector: Collector to run each pass with
            interval: Time between passes
            ttl: Age threshold passed to every collect()
            run_immediately: Run a pass as soon as the thread starts
            clock: Source of pass timestamps (default: SystemClock)
        """
        if interval <= timedelta(0):
            raise ValueError("Cleanup interval must be positive")

        self._collector = collector
        self._interval = interval
        self._ttl = ttl
        self._run_immediately = run_immediately
        self._clock = clock or SystemClock()

        self._status = SchedulerStatus.STOPPED
        self._thread: threading.Thread | None = None
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()

        self._pass_count = 0
        self._last_outcome: CleanupOutcome | None = None
        self._last_error: str | None = None
        self._last_run_at: datetime | None = None

    @property
    def status(self) -> SchedulerStatus:
        """Get current scheduler status."""
        if self._status == SchedulerStatus.STOPPING and not (self._thread and self._thread.is_alive()):
            return SchedulerStatus.STOPPED
        return self._status

    @property
    def pass_count(self) -> int:
        return self._pass_count

    @property
    def last_outcome(self) -> CleanupOutcome | None:
        return self._last_outcome

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def last_run_at(self) -> datetime | None:
        return self._last_run_at

    def run_once(self) -> CleanupOutcome | None:
        """
        Run a single cleanup pass.

        Never raises; a failed pass is logged and kept as last_error.

        Returns:
            The pass outcome, or None if the pass could not run
        """
        with self._lock:
            self._pass_count += 1
            self._last_run_at = self._clock.now()
            logger.info(f"Running scheduled cleanup pass #{self._pass_count}")

            try:
                outcome = self._collector.collect(ttl=self._ttl)
            except GovernanceError as e:
                self._last_error = format_exception(e)
                logger.error(f"Scheduled cleanup failed: {e}")
                return None
            except Exception as e:
                self._last_error = format_exception(e)
                logger.exception("Scheduled cleanup crashed")
                return None

            self._last_outcome = outcome
            self._last_error = None
            logger.info(
                "Scheduled cleanup finished",
                extra={"deleted": outcome.deleted, "failed": outcome.failed},
            )
            return outcome

    def start(self) -> bool:
        """
        Start the scheduler thread.

        Returns:
            True if started, False if already running or still stopping
        """
        if self._thread is not None and self._thread.is_alive():
            return False

        self._shutdown_event.clear()
        self._thread = threading.Thread(
            target=self._scheduler_loop,
            name="CleanupScheduler",
            daemon=True,
        )
        self._status = SchedulerStatus.RUNNING
        self._thread.start()

        logger.info(f"Cleanup scheduler started (interval={self._interval}, ttl={self._ttl})")
        return True

    def stop(self, timeout: float = 30.0) -> bool:
        """
        Signal the thread to exit and wait for it.

        Returns:
            True once the thread has exited, False if a pass is still
            running after timeout (the scheduler stays STOPPING)
        """
        if self._status == SchedulerStatus.STOPPED:
            return True

        self._status = SchedulerStatus.STOPPING
        self._shutdown_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"Cleanup scheduler still running a pass after {timeout}s")
                return False

        self._thread = None
        self._status = SchedulerStatus.STOPPED
        logger.info("Cleanup scheduler stopped")
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the scheduler is told to stop; True if it was."""
        return self._shutdown_event.wait(timeout)

    def _scheduler_loop(self) -> None:
        """Main scheduler loop."""
        if self._run_immediately:
            self.run_once()

        while not self._shutdown_event.wait(self._interval.total_seconds()):
            self.run_once()
