"""Services - aggregation orchestration over platform adapters."""

from zenfeed.services.aggregation_service import ContentAggregationService

__all__ = ["ContentAggregationService"]
