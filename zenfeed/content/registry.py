"""
Adapter registry - maps a source type to the adapter that serves it.

Unknown types resolve to UnsupportedAdapter, which fails every call with
UNSUPPORTED_TYPE and never performs I/O. The registry keys are the single
source of truth for which platforms are supported.
"""

import logging

from zenfeed.config.settings import Settings, get_settings
from zenfeed.content.base_adapter import BaseAdapter, Credentials
from zenfeed.content.category_adapter import CategoryAdapter
from zenfeed.content.errors import ErrorCode
from zenfeed.content.instagram_adapter import InstagramAdapter
from zenfeed.content.rss_adapter import NewsletterAdapter, RSSAdapter
from zenfeed.content.schemas import (
    ContentSource,
    FetchOptions,
    FetchResult,
    InfoResult,
    Platform,
    ValidationResult,
)
from zenfeed.content.twitter_adapter import TwitterAdapter
from zenfeed.content.youtube_adapter import YouTubeAdapter

logger = logging.getLogger(__name__)


class UnsupportedAdapter:
    """Fallback for source types with no registered adapter."""

    max_limit = 0

    def __init__(self, source_type: str):
        self.source_type = source_type

    @property
    def message(self) -> str:
        return f"Unsupported source type: {self.source_type}"

    async def validate(
        self,
        source: ContentSource,
        credentials: Credentials | None = None,
        check_remote: bool = True,
    ) -> ValidationResult:
        return ValidationResult(
            valid=False,
            error=self.message,
            error_code=ErrorCode.UNSUPPORTED_TYPE,
        )

    async def fetch(
        self,
        source: ContentSource,
        options: FetchOptions | None = None,
        credentials: Credentials | None = None,
    ) -> FetchResult:
        return FetchResult(
            source_id=source.id,
            success=False,
            error=self.message,
            error_code=ErrorCode.UNSUPPORTED_TYPE,
        )

    async def describe(
        self,
        source: ContentSource,
        credentials: Credentials | None = None,
    ) -> InfoResult:
        return InfoResult(
            success=False,
            error=self.message,
            error_code=ErrorCode.UNSUPPORTED_TYPE,
        )


class AdapterRegistry:
    """
    Interface table from Platform to adapter instance.

    Usage:
        registry = AdapterRegistry.default()
        adapter = registry.get("youtube")
        result = await adapter.fetch(source, options)
    """

    def __init__(self, adapters: dict[Platform, BaseAdapter] | None = None):
        self._adapters: dict[Platform, BaseAdapter] = dict(adapters or {})

    @classmethod
    def default(cls, settings: Settings | None = None) -> "AdapterRegistry":
        """
        Register every built-in adapter.

        Adapters needing credentials are registered even when no app-level
        key is configured: a linked account can still supply a per-user token,
        and a missing token fails the source with CONFIGURATION.
        """
        settings = settings or get_settings()
        adapters = [
            YouTubeAdapter(settings=settings),
            InstagramAdapter(settings=settings),
            TwitterAdapter(settings=settings),
            RSSAdapter(settings=settings),
            NewsletterAdapter(settings=settings),
            CategoryAdapter(settings=settings),
        ]
        registry = cls({adapter.platform: adapter for adapter in adapters})

        if not settings.youtube_configured:
            logger.info("YouTube API key not configured; YouTube sources need a linked account")
        if not settings.twitter_configured:
            logger.info("Twitter bearer token not configured; Twitter sources need a linked account")
        if not settings.instagram_configured:
            logger.info("Instagram access token not configured; Instagram sources need a linked account")

        return registry

    def register(self, adapter: BaseAdapter) -> None:
        self._adapters[adapter.platform] = adapter

    def get(self, source_type: str | None) -> BaseAdapter | UnsupportedAdapter:
        platform = Platform.parse(source_type)
        if platform is None or platform not in self._adapters:
            return UnsupportedAdapter(source_type or "")
        return self._adapters[platform]

    def is_supported(self, source_type: str | None) -> bool:
        platform = Platform.parse(source_type)
        return platform is not None and platform in self._adapters

    @property
    def platforms(self) -> list[str]:
        """Registered platform values in declaration order."""
        return [p.value for p in Platform if p in self._adapters]
