"""Pytest fixtures for zenfeed tests."""

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from zenfeed.config.settings import Settings
from zenfeed.content.schemas import ContentAuthor, ContentItem, ContentSource, Platform
from zenfeed.observability.metrics import MetricsCollector


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing, with app-level credentials for every platform."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        youtube_api_key="yt-key-1,yt-key-2",
        twitter_bearer_token="tw-bearer",
        instagram_access_token="ig-token",
        fetch_timeout_seconds=5.0,
        validation_timeout_seconds=5.0,
        info_timeout_seconds=5.0,
        max_http_retries=0,
    )


@pytest.fixture
def bare_settings() -> Settings:
    """Settings with no platform credentials."""
    return Settings(
        environment="development",
        youtube_api_key=None,
        twitter_bearer_token=None,
        instagram_access_token=None,
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


def make_source(source_id: str = "src_1", source_type: str = "rss", **kwargs) -> ContentSource:
    """Create a ContentSource with sensible defaults."""
    return ContentSource(
        id=source_id,
        type=source_type,
        name=kwargs.pop("name", f"Source {source_id}"),
        **kwargs,
    )


def make_item(
    source_id: str = "src_1",
    external_id: str = "1",
    published_at: datetime | None = None,
    platform: Platform = Platform.RSS,
    **kwargs,
) -> ContentItem:
    """Create a ContentItem with sensible defaults."""
    return ContentItem(
        id=f"{platform.value}_{external_id}",
        source_id=source_id,
        platform=platform,
        external_id=external_id,
        title=kwargs.pop("title", f"Item {external_id}"),
        url=kwargs.pop("url", f"https://example.com/{external_id}"),
        published_at=published_at or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        author=kwargs.pop("author", ContentAuthor(name="Example")),
        **kwargs,
    )


@pytest.fixture
def sample_item() -> ContentItem:
    return make_item()
