"""Content aggregation - adapters, schemas, and error taxonomy."""

from zenfeed.content.errors import (
    ConfigurationError,
    ContentAggregationError,
    ErrorCode,
    MalformedRequestError,
    UpstreamError,
    ValidationError,
)
from zenfeed.content.schemas import (
    AggregationResult,
    ContentItem,
    ContentSource,
    FetchOptions,
    FetchResult,
    Platform,
    Priority,
    ValidationResult,
)

__all__ = [
    "AggregationResult",
    "ConfigurationError",
    "ContentAggregationError",
    "ContentItem",
    "ContentSource",
    "ErrorCode",
    "FetchOptions",
    "FetchResult",
    "MalformedRequestError",
    "Platform",
    "Priority",
    "UpstreamError",
    "ValidationError",
    "ValidationResult",
]
