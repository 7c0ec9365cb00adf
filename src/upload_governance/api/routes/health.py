"""
Health check endpoints.

Provides health status and version information for the API.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from upload_governance import __version__
from upload_governance.api.deps import get_services
from upload_governance.api.schemas.responses import HealthResponse
from upload_governance.core.exceptions import StoreError
from upload_governance.services import GovernanceServices

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse, include_in_schema=False)
async def health_check(services: GovernanceServices = Depends(get_services)) -> HealthResponse:
    """
    Report API health.

    The metadata index is probed with a cheap count; the blob store
    root must exist.
    """
    components: dict[str, str] = {}

    try:
        services.metadata_index.count_older_than(services.clock.now())
        components["metadata_index"] = "healthy"
    except StoreError as e:
        logger.warning(f"Metadata index health check failed: {e}")
        components["metadata_index"] = "unhealthy"

    root = getattr(services.blob_store, "root", None)
    components["blob_store"] = "healthy" if root is None or root.is_dir() else "unhealthy"

    status = "healthy" if all(v == "healthy" for v in components.values()) else "degraded"
    return HealthResponse(
        status=status,
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=components,
    )
