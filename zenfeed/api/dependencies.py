"""
Dependency injection for FastAPI endpoints.
"""

from zenfeed.services.aggregation_service import ContentAggregationService

# Global service instance (initialized on first request)
_aggregation_service: ContentAggregationService | None = None


async def get_aggregation_service() -> ContentAggregationService:
    """
    Get aggregation service instance.

    Creates a singleton service over the default adapter registry. The
    service is stateless, so one instance serves every request.
    """
    global _aggregation_service

    if _aggregation_service is None:
        _aggregation_service = ContentAggregationService()

    return _aggregation_service


def reset_dependencies() -> None:
    """Drop the cached service so the next request rebuilds it from settings."""
    global _aggregation_service
    _aggregation_service = None
