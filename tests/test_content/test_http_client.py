"""Tests for HTTP client infrastructure layer."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest
import respx

from zenfeed.content.http_client import (
    APIKeyRotator,
    HTTPClient,
    HTTPClientError,
    HTTPTimeoutError,
    HTTPTransportError,
    RateLimitError,
    RetryConfig,
    parse_rate_limit_headers,
)


class TestAPIKeyRotator:
    """Tests for APIKeyRotator."""

    def test_from_env_var_with_multiple_keys(self):
        rotator = APIKeyRotator.from_env_var("key1,key2,key3")

        assert rotator is not None
        assert rotator.keys == ["key1", "key2", "key3"]
        assert rotator.key_count == 3

    def test_from_env_var_with_whitespace_and_empty_segments(self):
        rotator = APIKeyRotator.from_env_var("  key1  ,, key2 ,  ")

        assert rotator is not None
        assert rotator.keys == ["key1", "key2"]

    @pytest.mark.parametrize("value", [None, "", "   ", ",,"])
    def test_from_env_var_without_keys(self, value):
        assert APIKeyRotator.from_env_var(value) is None

    @pytest.mark.asyncio
    async def test_get_key_rotation(self):
        rotator = APIKeyRotator(keys=["x", "y", "z"])

        assert await rotator.get_key() == "x"
        assert await rotator.get_key() == "y"
        assert await rotator.get_key() == "z"
        assert await rotator.get_key() == "x"

    @pytest.mark.asyncio
    async def test_get_key_concurrent_access(self):
        """Each key is handed out evenly under concurrency."""
        rotator = APIKeyRotator(keys=["1", "2", "3"])

        results = await asyncio.gather(*(rotator.get_key() for _ in range(9)))

        assert results.count("1") == 3
        assert results.count("2") == 3
        assert results.count("3") == 3


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_is_single_attempt(self):
        config = RetryConfig()

        assert config.max_retries == 0
        assert config.max_backoff_seconds == 10.0
        assert config.base_delay == 1.0

    def test_calculate_backoff_exponential_and_capped(self):
        config = RetryConfig(base_delay=1.0, max_backoff_seconds=5.0, jitter_factor=0.0)

        assert config.calculate_backoff(0) == 1.0
        assert config.calculate_backoff(1) == 2.0
        assert config.calculate_backoff(2) == 4.0
        assert config.calculate_backoff(3) == 5.0
        assert config.calculate_backoff(10) == 5.0

    def test_calculate_backoff_with_jitter(self):
        config = RetryConfig(base_delay=1.0, jitter_factor=0.1)

        backoffs = [config.calculate_backoff(0) for _ in range(100)]

        assert all(1.0 <= b < 1.1 for b in backoffs)

    def test_retryable_statuses(self):
        config = RetryConfig()

        for code in (429, 500, 502, 503, 504):
            assert config.is_retryable_status(code) is True
        for code in (200, 400, 401, 403, 404):
            assert config.is_retryable_status(code) is False

    def test_retryable_exceptions(self):
        config = RetryConfig()

        assert config.is_retryable_exception(httpx.TimeoutException("timeout")) is True
        assert config.is_retryable_exception(httpx.ConnectError("refused")) is True
        assert config.is_retryable_exception(ValueError("bad value")) is False


class TestParseRateLimitHeaders:
    """Tests for parse_rate_limit_headers."""

    def test_twitter_style_headers(self):
        info = parse_rate_limit_headers(
            {
                "x-rate-limit-remaining": "0",
                "x-rate-limit-limit": "900",
                "x-rate-limit-reset": "1767225600",
            }
        )

        assert info is not None
        assert info.remaining == 0
        assert info.limit == 900
        assert info.reset == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_retry_after_seconds(self):
        info = parse_rate_limit_headers({"Retry-After": "30"})

        assert info is not None
        assert info.retry_after_seconds == 30.0

    def test_retry_after_http_date_in_past(self):
        info = parse_rate_limit_headers({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})

        assert info is not None
        assert info.retry_after_seconds == 0.0

    def test_no_quota_headers(self):
        assert parse_rate_limit_headers({"content-type": "application/json"}) is None
        assert parse_rate_limit_headers(None) is None


class TestHTTPClient:
    """Tests for HTTPClient."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_success(self):
        respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(200, json={"result": "success"})
        )

        async with HTTPClient() as client:
            response = await client.get("https://api.example.com/data")

        assert response.status_code == 200
        assert response.json() == {"result": "success"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_with_params_and_user_agent(self):
        route = respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(200, json={})
        )

        async with HTTPClient(user_agent="ZenFeed/1.0 (Content Aggregator)") as client:
            await client.get("https://api.example.com/data", params={"q": "search", "limit": 10})

        request = route.calls.last.request
        assert "q=search" in str(request.url)
        assert "limit=10" in str(request.url)
        assert request.headers["User-Agent"] == "ZenFeed/1.0 (Content Aggregator)"

    @pytest.mark.asyncio
    @respx.mock
    async def test_api_key_in_query_param(self):
        route = respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(200, json={})
        )

        rotator = APIKeyRotator(keys=["my_secret_key"])

        async with HTTPClient() as client:
            await client.get(
                "https://api.example.com/data",
                api_key_rotator=rotator,
                api_key_param="key",
            )

        assert "key=my_secret_key" in str(route.calls.last.request.url)

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_retry_by_default(self):
        """A single 503 fails immediately with the default config."""
        route = respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(503, text="Service unavailable")
        )

        async with HTTPClient() as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("https://api.example.com/data")

        assert route.call_count == 1
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    @respx.mock
    async def test_retry_on_429_with_success(self):
        call_count = 0

        def side_effect(request):
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                return httpx.Response(429, text="Rate limited")
            return httpx.Response(200, json={"success": True})

        respx.get("https://api.example.com/data").mock(side_effect=side_effect)

        config = RetryConfig(max_retries=3, base_delay=0.01, jitter_factor=0.0)
        async with HTTPClient(retry_config=config) as client:
            response = await client.get("https://api.example.com/data")

        assert response.status_code == 200
        assert call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_error_carries_headers(self):
        respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(
                429,
                text="Rate limited",
                headers={"x-rate-limit-remaining": "0", "retry-after": "60"},
            )
        )

        async with HTTPClient() as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get("https://api.example.com/data")

        rate_limit = exc_info.value.rate_limit
        assert exc_info.value.status_code == 429
        assert rate_limit is not None
        assert rate_limit.remaining == 0
        assert rate_limit.retry_after_seconds == 60.0

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_retry_on_4xx(self):
        route = respx.get("https://api.example.com/data").mock(
            return_value=httpx.Response(404, text="Not found")
        )

        config = RetryConfig(max_retries=3, base_delay=0.01, jitter_factor=0.0)
        async with HTTPClient(retry_config=config) as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("https://api.example.com/data")

        assert route.call_count == 1
        assert exc_info.value.status_code == 404
        assert exc_info.value.response_body == "Not found"

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises_typed_error(self):
        respx.get("https://api.example.com/data").mock(
            side_effect=httpx.ReadTimeout("Request timed out")
        )

        async with HTTPClient() as client:
            with pytest.raises(HTTPTimeoutError):
                await client.get("https://api.example.com/data")

    @pytest.mark.asyncio
    @respx.mock
    async def test_connect_error_raises_transport_error(self):
        respx.get("https://api.example.com/data").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )

        async with HTTPClient() as client:
            with pytest.raises(HTTPTransportError) as exc_info:
                await client.get("https://api.example.com/data")

        assert "ConnectError" in str(exc_info.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_retry_on_connect_error(self):
        call_count = 0

        def side_effect(request):
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise httpx.ConnectError("Connection refused")
            return httpx.Response(200, json={"success": True})

        respx.get("https://api.example.com/data").mock(side_effect=side_effect)

        config = RetryConfig(max_retries=3, base_delay=0.01, jitter_factor=0.0)
        async with HTTPClient(retry_config=config) as client:
            response = await client.get("https://api.example.com/data")

        assert response.status_code == 200
        assert call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_key_rotation_on_retry(self):
        used_keys = []

        def side_effect(request):
            used_keys.append(request.url.params.get("key"))
            if len(used_keys) <= 2:
                return httpx.Response(429, text="Rate limited")
            return httpx.Response(200, json={"success": True})

        respx.get("https://api.example.com/data").mock(side_effect=side_effect)

        rotator = APIKeyRotator(keys=["key_a", "key_b", "key_c"])
        config = RetryConfig(max_retries=3, base_delay=0.01, jitter_factor=0.0)

        async with HTTPClient(retry_config=config) as client:
            await client.get(
                "https://api.example.com/data",
                api_key_rotator=rotator,
                api_key_param="key",
            )

        assert used_keys == ["key_a", "key_b", "key_c"]

    @pytest.mark.asyncio
    async def test_client_not_used_as_context_manager(self):
        client = HTTPClient()

        with pytest.raises(RuntimeError, match="must be used as async context manager"):
            await client.get("https://api.example.com/data")
