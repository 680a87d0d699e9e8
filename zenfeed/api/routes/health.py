"""
Health check endpoint.
"""

import structlog
from fastapi import APIRouter, Depends

from zenfeed import __version__
from zenfeed.api.dependencies import get_aggregation_service
from zenfeed.api.models import HealthResponse
from zenfeed.config.settings import get_settings
from zenfeed.services.aggregation_service import ContentAggregationService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Liveness plus which platforms have app-level credentials.",
)
async def health_check(
    service: ContentAggregationService = Depends(get_aggregation_service),
) -> HealthResponse:
    """
    Report liveness and credential configuration.

    Status logic:
    - degraded: no app-level credentials for any token platform, so those
      sources only work through linked accounts
    - healthy: otherwise
    """
    settings = get_settings()

    credentials_configured = {
        "youtube": settings.youtube_configured,
        "twitter": settings.twitter_configured,
        "instagram": settings.instagram_configured,
    }

    status = "healthy" if any(credentials_configured.values()) else "degraded"

    return HealthResponse(
        status=status,
        version=__version__,
        environment=settings.environment,
        platforms=service.get_available_platforms(),
        credentials_configured=credentials_configured,
    )
