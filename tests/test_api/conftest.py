"""Shared fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from tests.conftest import make_item
from zenfeed.api.app import create_app
from zenfeed.api.dependencies import get_aggregation_service
from zenfeed.content.errors import ErrorCode
from zenfeed.content.registry import AdapterRegistry
from zenfeed.content.schemas import (
    FetchResult,
    InfoResult,
    Platform,
    SourceInfo,
    ValidationResult,
)
from zenfeed.services.aggregation_service import ContentAggregationService


class StubAdapter:
    """Adapter returning canned results without any I/O."""

    max_limit = 100

    def __init__(self, platform: Platform, fail: bool = False):
        self.platform = platform
        self.fail = fail
        self.fetch_calls = []

    async def fetch(self, source, options=None, credentials=None):
        self.fetch_calls.append((source, options))
        if self.fail:
            return FetchResult(
                source_id=source.id,
                success=False,
                error=f"{self.platform.value.capitalize()} API error: 500",
                error_code=ErrorCode.API_ERROR,
            )
        items = [
            make_item(source_id=source.id, external_id=f"{source.id}-{i}", platform=self.platform)
            for i in range(2)
        ]
        return FetchResult(source_id=source.id, success=True, items=items[: options.limit])

    async def validate(self, source, credentials=None, check_remote=True):
        if not source.url:
            return ValidationResult(
                valid=False,
                error="RSS source requires a URL",
                error_code=ErrorCode.INVALID_SOURCE,
            )
        return ValidationResult(valid=True)

    async def describe(self, source, credentials=None):
        return InfoResult(success=True, info=SourceInfo(name="Example Feed", url=source.url))


@pytest.fixture
def rss_stub():
    return StubAdapter(Platform.RSS)


@pytest.fixture
def service(test_settings, metrics, rss_stub):
    registry = AdapterRegistry()
    registry.register(rss_stub)
    registry.register(StubAdapter(Platform.TWITTER, fail=True))
    return ContentAggregationService(registry=registry, settings=test_settings, metrics=metrics)


@pytest.fixture
def client(service):
    """FastAPI TestClient with the aggregation service overridden."""
    app = create_app()
    app.dependency_overrides[get_aggregation_service] = lambda: service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
