"""
Time sources.

Every governed operation takes its "now" from an injected clock so
sliding windows and TTL cutoffs can be tested without real delays.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Supplies the current instant as a timezone-aware UTC datetime."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and dry runs to pin "now" to a known instant.
    """

    def __init__(self, start: datetime | None = None):
        self._now = ensure_utc(start or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, instant: datetime) -> None:
        """Jump to an absolute instant."""
        with self._lock:
            self._now = ensure_utc(instant)

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """
        Move the clock forward.

        Accepts either a timedelta or timedelta keyword arguments,
        e.g. ``clock.advance(minutes=30)``.
        """
        step = delta if delta is not None else timedelta(**kwargs)
        with self._lock:
            self._now = self._now + step
            return self._now


def ensure_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_epoch_ms(instant: datetime) -> int:
    """Convert an instant to integer milliseconds since the epoch."""
    return int(round(ensure_utc(instant).timestamp() * 1000))


def from_epoch_ms(value: int | float) -> datetime:
    """Convert milliseconds since the epoch to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
