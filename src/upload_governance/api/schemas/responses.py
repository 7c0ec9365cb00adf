"""
Pydantic response schemas for API endpoints.

All API responses conform to these schemas for consistent output.
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Check timestamp")
    components: dict[str, str] = Field(default_factory=dict, description="Component statuses")

    model_config = {"extra": "forbid"}


class QuotaCheckResponse(BaseModel):
    """Admission decision for a principal (quota is not consumed)."""

    allowed: bool = Field(..., description="Whether an upload may start now")
    hourly_count: int = Field(..., description="Admissions in the trailing hour")
    daily_count: int = Field(..., description="Admissions in the trailing 24 hours")
    reason: str | None = Field(None, description="Why the admission would be denied")
    wait_time_seconds: float | None = Field(None, description="Seconds until a slot frees up")


class UsageResponse(BaseModel):
    """Current quota usage for a principal."""

    principal_id: str
    hourly_count: int
    daily_count: int
    hourly_limit: int
    daily_limit: int
    hourly_remaining: int
    daily_remaining: int


class ExpiredCountResponse(BaseModel):
    """Dry-run count of expired artifacts."""

    count: int = Field(..., ge=0, description="Artifacts the next cleanup would attempt")
    ttl_days: float = Field(..., description="TTL the count was taken with")


class CleanupFailure(BaseModel):
    """One artifact a cleanup pass could not reclaim."""

    path: str
    error: str


class CleanupResponse(BaseModel):
    """Result of a cleanup pass."""

    deleted: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    errors: list[CleanupFailure] = Field(default_factory=list)
    interrupted: bool = Field(False, description="True if the pass stopped early")
    interruption: str | None = None
    duration_ms: float | None = None
