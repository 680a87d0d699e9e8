"""
Error taxonomy for content aggregation.

Adapters raise these internally; the adapter's public methods turn them
into result objects so that one failing source never faults a batch.
Only MalformedRequestError is allowed to escape the aggregation service.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from zenfeed.content.schemas import RateLimitInfo


class ErrorCode(str, Enum):
    """Categories surfaced in FetchResult.error_code and AggregationResult.errors."""

    INVALID_SOURCE = "invalid_source"
    UNSUPPORTED_TYPE = "unsupported_type"
    INACTIVE = "inactive"
    RATE_LIMIT = "rate_limit"
    AUTH_ERROR = "auth_error"
    API_ERROR = "api_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class ContentAggregationError(Exception):
    """Base exception for everything that can go wrong with one source."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        source_id: str | None = None,
        code: ErrorCode | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.source_id = source_id
        if code is not None:
            self.code = code
        self.retry_after = retry_after


class ValidationError(ContentAggregationError):
    """Bad or missing descriptor fields. Caller error, never retried."""

    code = ErrorCode.INVALID_SOURCE


class MalformedRequestError(ValidationError):
    """The request as a whole is structurally invalid and is rejected before any fetch."""


class UpstreamError(ContentAggregationError):
    """Platform API failure: auth expired, rate limited, transport or parse failure."""

    code = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        source_id: str | None = None,
        code: ErrorCode | None = None,
        retry_after: float | None = None,
        rate_limit: RateLimitInfo | None = None,
        status_code: int | None = None,
    ):
        super().__init__(
            message,
            platform=platform,
            source_id=source_id,
            code=code,
            retry_after=retry_after,
        )
        self.rate_limit = rate_limit
        self.status_code = status_code


class ConfigurationError(ContentAggregationError):
    """Missing adapter credentials or environment. Fails the specific source only."""

    code = ErrorCode.CONFIGURATION
