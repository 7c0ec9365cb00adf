"""
Pydantic models for admission control.

A denied admission is an ordinary result, not an error: callers branch
on AdmissionDecision.allowed and show QuotaExceeded.message to the user.
"""

import math
from enum import Enum

from pydantic import BaseModel, Field


class DenialReason(Enum):
    """Which sliding window refused the admission."""

    HOURLY = "hourly"
    DAILY = "daily"


class QuotaExceeded(BaseModel):
    """Details of a refused admission."""

    reason: DenialReason = Field(description="Window that is full")
    wait_time_seconds: float = Field(
        ge=0, description="Seconds until the oldest entry in the full window ages out"
    )
    message: str = Field(description="Human-readable wait estimate")

    @property
    def wait_minutes(self) -> int:
        """Wait time rounded up to whole minutes."""
        return math.ceil(self.wait_time_seconds / 60)

    @property
    def wait_hours(self) -> int:
        """Wait time rounded up to whole hours."""
        return math.ceil(self.wait_time_seconds / 3600)


class AdmissionDecision(BaseModel):
    """Outcome of an admission check, with counts for display."""

    allowed: bool = Field(description="Whether the upload may proceed")
    hourly_count: int = Field(ge=0, description="Admissions in the trailing hour")
    daily_count: int = Field(ge=0, description="Admissions in the trailing 24 hours")
    hourly_limit: int = Field(ge=1, description="Configured hourly limit")
    daily_limit: int = Field(ge=1, description="Configured daily limit")
    denial: QuotaExceeded | None = Field(default=None, description="Set when denied")

    @property
    def reason(self) -> str | None:
        return self.denial.message if self.denial else None

    def to_summary(self) -> dict[str, object]:
        """Convert to the operator-facing summary."""
        summary: dict[str, object] = {
            "allowed": self.allowed,
            "hourly_count": self.hourly_count,
            "daily_count": self.daily_count,
        }
        if self.denial:
            summary["reason"] = self.denial.message
            summary["wait_time_seconds"] = round(self.denial.wait_time_seconds, 3)
        return summary


class UsageStats(BaseModel):
    """Current quota usage for a principal."""

    hourly_count: int = Field(default=0, ge=0)
    daily_count: int = Field(default=0, ge=0)
    hourly_limit: int = Field(ge=1)
    daily_limit: int = Field(ge=1)

    @property
    def hourly_remaining(self) -> int:
        return max(0, self.hourly_limit - self.hourly_count)

    @property
    def daily_remaining(self) -> int:
        return max(0, self.daily_limit - self.daily_count)
