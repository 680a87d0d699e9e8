"""
Normalized content schema shared by every platform adapter.

All adapters MUST output ContentItem instances and every aggregation
call returns the result models below. Field names are snake_case in
Python and camelCase on the wire (aliases), matching the dashboard's
JSON contract.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from zenfeed.content.errors import ContentAggregationError, ErrorCode, UpstreamError


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Platform(str, Enum):
    """Supported content source types."""

    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    RSS = "rss"
    NEWSLETTER = "newsletter"
    CATEGORY = "category"

    @classmethod
    def parse(cls, value: str | None) -> "Platform | None":
        """Return the Platform for a raw type string, or None if unsupported."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Priority(str, Enum):
    """How prominently a source should appear in the feed."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class WireModel(BaseModel):
    """Base model with camelCase aliases for the HTTP boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ContentSource(WireModel):
    """
    One external feed a user wants aggregated.

    `type` is kept as the caller's raw string so that an unsupported type
    can be reported against this source instead of rejecting the batch.
    """

    id: str = Field(..., min_length=1, description="Unique source identifier")
    type: str = Field(..., min_length=1, description="Platform type string")
    name: str = Field(default="", description="Display name")
    url: str | None = None
    username: str | None = None
    priority: Priority = Priority.MEDIUM
    active: bool = True
    description: str | None = None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("url", "username", "description")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def platform(self) -> Platform | None:
        """Resolved platform, or None when the type is unsupported."""
        return Platform.parse(self.type)


class FetchOptions(WireModel):
    """Per-call fetch options. Never persisted."""

    limit: int = Field(default=10, description="Maximum items to return")
    include_metrics: bool = Field(default=False, description="Populate item metrics")
    since: datetime | None = Field(
        default=None,
        description="Drop items published before this instant",
    )
    order: Literal["source", "recent"] = Field(
        default="source",
        description="source: concatenate in source order; recent: newest first",
    )

    @field_validator("since")
    @classmethod
    def since_to_utc(cls, v: datetime | None) -> datetime | None:
        """Naive values are taken as UTC; aware ones are converted."""
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def clamped(self, cap: int) -> "FetchOptions":
        """Return a copy whose limit lies in [1, cap]."""
        return self.model_copy(update={"limit": max(1, min(self.limit, cap))})


class ContentAuthor(WireModel):
    name: str
    url: str | None = None
    avatar: str | None = None


class ContentMetrics(WireModel):
    """Platform-normalized engagement counters."""

    views: int | None = Field(default=None, ge=0)
    likes: int | None = Field(default=None, ge=0)
    comments: int | None = Field(default=None, ge=0)
    shares: int | None = Field(default=None, ge=0)


class ContentItem(WireModel):
    """
    Platform-agnostic representation of one fetched post, video or article.

    Produced by adapters and never mutated afterwards.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )

    id: str = Field(..., description="Unique ID in format: {platform}_{external_id}")
    source_id: str
    platform: Platform
    external_id: str
    title: str
    description: str | None = None
    url: str
    thumbnail_url: str | None = None
    published_at: datetime
    fetched_at: datetime = Field(default_factory=_utc_now)
    author: ContentAuthor
    content_type: Literal["video", "image", "text", "article"] = "text"
    duration_seconds: int | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)
    metrics: ContentMetrics | None = None

    @field_validator("published_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def without_metrics(self) -> "ContentItem":
        return self.model_copy(update={"metrics": None})


class RateLimitInfo(WireModel):
    """Quota metadata reported by an upstream platform, passed through opaquely."""

    remaining: int | None = None
    limit: int | None = None
    reset: datetime | None = None
    retry_after_seconds: float | None = None


class FetchResult(WireModel):
    """Outcome of fetching one source."""

    source_id: str
    success: bool
    items: list[ContentItem] = Field(default_factory=list)
    error: str | None = None
    error_code: ErrorCode | None = None
    rate_limit: RateLimitInfo | None = None

    @classmethod
    def from_error(cls, source_id: str, exc: ContentAggregationError) -> "FetchResult":
        rate_limit = exc.rate_limit if isinstance(exc, UpstreamError) else None
        return cls(
            source_id=source_id,
            success=False,
            error=exc.message,
            error_code=exc.code,
            rate_limit=rate_limit,
        )


class SourceInfo(WireModel):
    """Best-effort metadata for previewing a source."""

    name: str
    description: str | None = None
    follower_count: int | None = None
    url: str | None = None
    thumbnail_url: str | None = None


class InfoResult(WireModel):
    success: bool
    info: SourceInfo | None = None
    error: str | None = None
    error_code: ErrorCode | None = None


class ValidationResult(WireModel):
    valid: bool
    error: str | None = None
    error_code: ErrorCode | None = None
    source_info: SourceInfo | None = None

    @classmethod
    def from_error(cls, exc: ContentAggregationError) -> "ValidationResult":
        return cls(valid=False, error=exc.message, error_code=exc.code)


class SourceError(WireModel):
    """One failed source in an aggregation pass."""

    source_id: str
    message: str
    code: ErrorCode


class AggregationResult(WireModel):
    """Result of one aggregation pass. Ephemeral."""

    items: list[ContentItem] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)
    total_sources: int = 0
    successful_sources: int = 0

    @property
    def failed_sources(self) -> int:
        return len(self.errors)
