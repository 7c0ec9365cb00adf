"""
Quota endpoints.

Read-only views of a principal's admission state. Checking quota here
never consumes it.
"""

import logging

from fastapi import APIRouter, Depends

from upload_governance.api.deps import get_services
from upload_governance.api.schemas.responses import QuotaCheckResponse, UsageResponse
from upload_governance.services import GovernanceServices

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{principal_id}", response_model=QuotaCheckResponse)
def check_quota(
    principal_id: str,
    services: GovernanceServices = Depends(get_services),
) -> QuotaCheckResponse:
    """Evaluate whether the principal may start an upload now."""
    decision = services.controller.try_admit(principal_id)
    return QuotaCheckResponse(**decision.to_summary())


@router.get("/{principal_id}/usage", response_model=UsageResponse)
def get_usage(
    principal_id: str,
    services: GovernanceServices = Depends(get_services),
) -> UsageResponse:
    """Current hourly and daily usage with remaining allowance."""
    stats = services.controller.usage(principal_id)
    return UsageResponse(
        principal_id=principal_id,
        hourly_count=stats.hourly_count,
        daily_count=stats.daily_count,
        hourly_limit=stats.hourly_limit,
        daily_limit=stats.daily_limit,
        hourly_remaining=stats.hourly_remaining,
        daily_remaining=stats.daily_remaining,
    )
