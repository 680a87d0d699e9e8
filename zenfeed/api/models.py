"""
Request and response models for the content sources API.

All models serialize with camelCase aliases to match the dashboard client.
"""

from typing import Any

from pydantic import Field

from zenfeed.content.errors import ErrorCode
from zenfeed.content.schemas import (
    AggregationResult,
    ContentSource,
    FetchOptions,
    SourceInfo,
    WireModel,
)


class FetchContentRequest(WireModel):
    """
    Batch fetch request.

    `sources` is left untyped so that structural problems are reported as a
    400 with a message instead of a field-level 422.
    """

    sources: Any = Field(
        default=None,
        description="List of source descriptors, each with at least id and type",
    )
    options: FetchOptions = Field(default_factory=FetchOptions)
    prioritize: bool = Field(
        default=False,
        description="Split the limit across priority groups and rank by priority-weighted recency",
    )


class FetchContentResponse(AggregationResult):
    """Batch fetch response."""

    success: bool = True
    total_items: int = 0
    supported_platforms: list[str] = Field(default_factory=list)


class ValidateSourceRequest(WireModel):
    """Descriptor to validate. No id is needed before a source is saved."""

    type: str = Field(..., min_length=1)
    name: str = ""
    url: str | None = None
    username: str | None = None
    description: str | None = None

    def to_source(self) -> ContentSource:
        return ContentSource(
            id="validation",
            type=self.type,
            name=self.name,
            url=self.url,
            username=self.username,
            description=self.description,
        )


class ValidateSourceResponse(WireModel):
    valid: bool
    error: str | None = None
    error_code: ErrorCode | None = None
    source_info: SourceInfo | None = None
    supported_platforms: list[str] = Field(default_factory=list)


class PlatformsResponse(WireModel):
    platforms: list[str]


class ErrorResponse(WireModel):
    """Error body for 4xx/5xx responses."""

    detail: str
    error_type: str | None = None


class HealthResponse(WireModel):
    """Liveness plus which platforms have app-level credentials configured."""

    status: str = Field(..., description="healthy or degraded")
    version: str
    environment: str
    platforms: list[str] = Field(default_factory=list)
    credentials_configured: dict[str, bool] = Field(default_factory=dict)
