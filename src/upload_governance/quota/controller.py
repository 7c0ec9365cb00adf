"""
Admission controller.

Decides whether a principal may start another upload under two sliding
windows evaluated together:

- at most ``hourly_limit`` admissions in any trailing hour
- at most ``daily_limit`` admissions in any trailing 24 hours

History older than 24 hours is pruned (and the pruned list written back)
on every evaluation, so a principal's history never grows unbounded.
Checking quota does not consume it; only record_admission() does.

The read-prune-evaluate-append cycle is not transactional. Two
concurrent calls for the same principal on the same device can both be
admitted, exceeding the limit by one. This is a soft UX throttle, not a
security boundary, so the race is accepted.
"""

import logging
import math
from datetime import datetime, timedelta

from upload_governance.core.clock import Clock, SystemClock, ensure_utc
from upload_governance.core.exceptions import InvalidPrincipalError, QuotaStoreError
from upload_governance.quota.models import (
    AdmissionDecision,
    DenialReason,
    QuotaExceeded,
    UsageStats,
)
from upload_governance.quota.store import InMemoryQuotaStore, QuotaStore

logger = logging.getLogger(__name__)

HOURLY_WINDOW = timedelta(hours=1)
DAILY_WINDOW = timedelta(hours=24)

DEFAULT_HOURLY_LIMIT = 2
DEFAULT_DAILY_LIMIT = 5


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


class AdmissionController:
    """
    Per-principal upload throttle backed by a QuotaStore.

    Example:
        controller = AdmissionController(JsonFileQuotaStore(Path("var/quota")))
        decision = controller.try_admit("alice")
        if decision.allowed:
            ...  # perform the upload
            controller.record_admission("alice")
    """

    def __init__(
        self,
        store: QuotaStore | None = None,
        clock: Clock | None = None,
        hourly_limit: int = DEFAULT_HOURLY_LIMIT,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
    ):
        """
        Initialize the controller.

        Args:
            store: Where admission history lives (default: in-memory)
            clock: Source of "now" when callers don't pass one
            hourly_limit: Admissions allowed per rolling hour
            daily_limit: Admissions allowed per rolling 24 hours
        """
        if hourly_limit < 1 or daily_limit < 1:
            raise ValueError("Quota limits must be at least 1")

        self._store = store or InMemoryQuotaStore()
        self._clock = clock or SystemClock()
        self.hourly_limit = hourly_limit
        self.daily_limit = daily_limit

    def _resolve(self, principal_id: str, now: datetime | None) -> tuple[str, datetime]:
        if not principal_id or not principal_id.strip():
            raise InvalidPrincipalError()
        return principal_id, ensure_utc(now) if now is not None else self._clock.now()

    def _load_pruned(self, principal_id: str, now: datetime) -> list[datetime]:
        """Load history, drop entries outside the daily window and persist the result."""
        timestamps = [ensure_utc(ts) for ts in self._store.load(principal_id)]
        pruned = sorted(ts for ts in timestamps if now - ts < DAILY_WINDOW)

        try:
            self._store.save(principal_id, pruned)
        except QuotaStoreError as e:
            # Evaluation still uses the pruned view
            logger.warning(f"Could not persist pruned quota history: {e}")

        return pruned

    def try_admit(self, principal_id: str, now: datetime | None = None) -> AdmissionDecision:
        """
        Check whether a principal may start an upload.

        Args:
            principal_id: Identity the quota is scoped to
            now: Evaluation instant (default: the controller's clock)

        Returns:
            AdmissionDecision with current counts, and a QuotaExceeded
            denial when either window is full. The hourly window is
            checked first, so a principal at both limits is denied for
            the hourly reason.

        Raises:
            InvalidPrincipalError: If principal_id is empty
        """
        principal_id, now = self._resolve(principal_id, now)
        timestamps = self._load_pruned(principal_id, now)

        hourly = [ts for ts in timestamps if now - ts < HOURLY_WINDOW]
        hourly_count = len(hourly)
        daily_count = len(timestamps)

        denial: QuotaExceeded | None = None

        if hourly_count >= self.hourly_limit:
            wait_seconds = max(0.0, (HOURLY_WINDOW - (now - min(hourly))).total_seconds())
            minutes = math.ceil(wait_seconds / 60)
            denial = QuotaExceeded(
                reason=DenialReason.HOURLY,
                wait_time_seconds=wait_seconds,
                message=(
                    f"Upload limit reached. You can upload {self.hourly_limit} images per hour. "
                    f"Please wait {_plural(minutes, 'minute')}."
                ),
            )
        elif daily_count >= self.daily_limit:
            wait_seconds = max(0.0, (DAILY_WINDOW - (now - min(timestamps))).total_seconds())
            hours = math.ceil(wait_seconds / 3600)
            denial = QuotaExceeded(
                reason=DenialReason.DAILY,
                wait_time_seconds=wait_seconds,
                message=(
                    f"Daily limit reached. You can upload {self.daily_limit} images per day. "
                    f"Please wait {_plural(hours, 'hour')}."
                ),
            )

        if denial:
            logger.info(
                "Admission denied",
                extra={
                    "principal_id": principal_id,
                    "reason": denial.reason.value,
                    "hourly_count": hourly_count,
                    "daily_count": daily_count,
                    "wait_time_seconds": denial.wait_time_seconds,
                },
            )

        return AdmissionDecision(
            allowed=denial is None,
            hourly_count=hourly_count,
            daily_count=daily_count,
            hourly_limit=self.hourly_limit,
            daily_limit=self.daily_limit,
            denial=denial,
        )

    def record_admission(self, principal_id: str, now: datetime | None = None) -> None:
        """
        Consume one admission for a principal.

        Call only once the governed upload is known to be proceeding;
        a denied admission must never be recorded.

        Raises:
            InvalidPrincipalError: If principal_id is empty
            QuotaStoreError: If the history cannot be persisted
        """
        principal_id, now = self._resolve(principal_id, now)
        timestamps = [
            ensure_utc(ts) for ts in self._store.load(principal_id) if now - ensure_utc(ts) < DAILY_WINDOW
        ]
        timestamps.append(now)
        self._store.save(principal_id, sorted(timestamps))

        logger.debug(f"Recorded admission for {principal_id} ({len(timestamps)} in last 24h)")

    def usage(self, principal_id: str, now: datetime | None = None) -> UsageStats:
        """
        Current usage for display.

        An empty principal reports zero usage instead of raising.
        """
        if not principal_id or not principal_id.strip():
            return UsageStats(hourly_limit=self.hourly_limit, daily_limit=self.daily_limit)

        principal_id, now = self._resolve(principal_id, now)
        timestamps = self._load_pruned(principal_id, now)

        return UsageStats(
            hourly_count=sum(1 for ts in timestamps if now - ts < HOURLY_WINDOW),
            daily_count=len(timestamps),
            hourly_limit=self.hourly_limit,
            daily_limit=self.daily_limit,
        )
