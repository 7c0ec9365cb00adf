"""
Cleanup endpoints.

Operator-triggered retention passes and dry-run counts. A pass started
here may overlap the scheduled one; both are idempotent per item.
"""

import logging

from fastapi import APIRouter, Depends, Query

from upload_governance.api.deps import get_services
from upload_governance.api.schemas.responses import CleanupResponse, ExpiredCountResponse
from upload_governance.artifacts.retention import MAX_TTL_DAYS, ttl_from_days
from upload_governance.services import GovernanceServices

router = APIRouter()
logger = logging.getLogger(__name__)


def _ttl_days(ttl_days: float | None, services: GovernanceServices) -> float:
    return ttl_days if ttl_days is not None else services.settings.retention_ttl_days


@router.get("/expired", response_model=ExpiredCountResponse)
def count_expired(
    ttl_days: float | None = Query(
        None, ge=0, le=MAX_TTL_DAYS, allow_inf_nan=False, description="Age threshold in days"
    ),
    services: GovernanceServices = Depends(get_services),
) -> ExpiredCountResponse:
    """Count artifacts the next cleanup would attempt."""
    days = _ttl_days(ttl_days, services)
    count = services.collector.count_expired(ttl=ttl_from_days(days))
    return ExpiredCountResponse(count=count, ttl_days=days)


@router.post("", response_model=CleanupResponse)
def run_cleanup(
    ttl_days: float | None = Query(
        None, ge=0, le=MAX_TTL_DAYS, allow_inf_nan=False, description="Age threshold in days"
    ),
    services: GovernanceServices = Depends(get_services),
) -> CleanupResponse:
    """Delete every artifact older than the TTL from both stores."""
    days = _ttl_days(ttl_days, services)
    logger.info(f"Operator cleanup requested (ttl_days={days})")

    outcome = services.collector.collect(ttl=ttl_from_days(days))
    return CleanupResponse(
        deleted=outcome.deleted,
        failed=outcome.failed,
        errors=[{"path": e.path, "error": e.error} for e in outcome.errors],
        interrupted=outcome.interrupted,
        interruption=outcome.interruption,
        duration_ms=outcome.duration_ms,
    )
