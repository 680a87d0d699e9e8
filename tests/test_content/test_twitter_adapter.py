"""Tests for the Twitter API v2 adapter."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from tests.conftest import make_source
from zenfeed.content.errors import ErrorCode
from zenfeed.content.schemas import ContentSource, FetchOptions, Platform
from zenfeed.content.twitter_adapter import TwitterAdapter

USER_URL = "https://api.twitter.com/2/users/by/username/jack"
TWEETS_URL = "https://api.twitter.com/2/users/12/tweets"

USER_PAYLOAD = {
    "data": {
        "id": "12",
        "name": "jack",
        "username": "jack",
        "description": "no state is the best state",
        "profile_image_url": "https://pbs.twimg.com/jack.jpg",
        "public_metrics": {"followers_count": 6400000},
    }
}

RATE_LIMIT_HEADERS = {
    "x-rate-limit-limit": "5",
    "x-rate-limit-remaining": "4",
    "x-rate-limit-reset": "1772625600",
}


def _tweet(tweet_id: str, created_at: str, text: str = "hello world", **extra) -> dict:
    return {
        "id": tweet_id,
        "text": text,
        "created_at": created_at,
        "public_metrics": {
            "impression_count": 900,
            "like_count": 40,
            "reply_count": 3,
            "retweet_count": 8,
        },
        **extra,
    }


TWEETS_PAYLOAD = {
    "data": [
        _tweet(
            "1001",
            "2026-03-04T12:00:00.000Z",
            text="just setting up my twttr " + "x" * 120,
            attachments={"media_keys": ["3_1"]},
        ),
        _tweet("1000", "2026-03-03T12:00:00.000Z"),
        _tweet("999", "2026-03-02T12:00:00.000Z"),
    ],
    "includes": {
        "media": [
            {"media_key": "3_1", "type": "photo", "url": "https://pbs.twimg.com/media/1.jpg"}
        ]
    },
}


@pytest.fixture
def adapter(test_settings):
    return TwitterAdapter(settings=test_settings)


def _mock_twitter(tweets=TWEETS_PAYLOAD):
    user_route = respx.get(USER_URL).mock(return_value=httpx.Response(200, json=USER_PAYLOAD))
    tweets_route = respx.get(TWEETS_URL).mock(
        return_value=httpx.Response(200, json=tweets, headers=RATE_LIMIT_HEADERS)
    )
    return user_route, tweets_route


class TestExtractUsername:
    """Tests for username extraction."""

    @pytest.mark.parametrize(
        "kwargs,expected",
        [
            ({"username": "@jack"}, "jack"),
            ({"username": "jack"}, "jack"),
            ({"url": "https://twitter.com/jack"}, "jack"),
            ({"url": "https://x.com/jack/status/20"}, "jack"),
        ],
    )
    def test_extract(self, kwargs, expected):
        source = ContentSource(id="s", type="twitter", **kwargs)

        assert TwitterAdapter.extract_username(source) == expected


class TestTwitterValidation:
    """Tests for Twitter source validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs,error",
        [
            ({}, "Twitter source requires a username or profile URL"),
            ({"username": "not-valid!"}, "Please enter a valid Twitter username"),
            ({"url": "https://mastodon.social/@jack"}, "Please enter a valid Twitter profile URL"),
        ],
    )
    async def test_local_failures(self, adapter, kwargs, error):
        result = await adapter.validate(make_source(source_type="twitter", **kwargs))

        assert result.valid is False
        assert result.error == error

    @pytest.mark.asyncio
    @respx.mock
    async def test_remote_validation(self, adapter):
        _mock_twitter()

        result = await adapter.validate(make_source(source_type="twitter", username="jack"))

        assert result.valid is True
        assert result.source_info.follower_count == 6400000
        assert result.source_info.url == "https://twitter.com/jack"

    @pytest.mark.asyncio
    @respx.mock
    async def test_user_not_found(self, adapter):
        respx.get(USER_URL).mock(
            return_value=httpx.Response(200, json={"errors": [{"title": "Not Found Error"}]})
        )

        result = await adapter.validate(make_source(source_type="twitter", username="jack"))

        assert result.valid is False
        assert result.error == "Twitter user not found"
        assert result.error_code == ErrorCode.INVALID_SOURCE


class TestTwitterFetch:
    """Tests for fetching a user timeline."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_normalizes_tweets(self, adapter):
        _mock_twitter()

        result = await adapter.fetch(
            make_source(source_id="tw", source_type="twitter", username="@jack"),
            FetchOptions(limit=10, include_metrics=True),
        )

        assert result.success is True
        assert [item.id for item in result.items] == ["twitter_1001", "twitter_1000", "twitter_999"]

        first = result.items[0]
        assert first.source_id == "tw"
        assert first.platform == Platform.TWITTER
        assert first.url == "https://twitter.com/jack/status/1001"
        assert first.title.endswith("...")
        assert len(first.title) == 103
        assert first.description.startswith("just setting up my twttr")
        assert first.thumbnail_url == "https://pbs.twimg.com/media/1.jpg"
        assert first.published_at == datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)
        assert first.author.avatar == "https://pbs.twimg.com/jack.jpg"
        assert first.metrics.views == 900
        assert first.metrics.likes == 40
        assert first.metrics.comments == 3
        assert first.metrics.shares == 8

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_headers_passed_through(self, adapter):
        _mock_twitter()

        result = await adapter.fetch(make_source(source_type="twitter", username="jack"))

        assert result.rate_limit is not None
        assert result.rate_limit.remaining == 4
        assert result.rate_limit.limit == 5

    @pytest.mark.asyncio
    @respx.mock
    async def test_small_limit_requests_minimum_and_slices(self, adapter):
        _, tweets_route = _mock_twitter()

        result = await adapter.fetch(
            make_source(source_type="twitter", username="jack"), FetchOptions(limit=2)
        )

        assert tweets_route.calls.last.request.url.params["max_results"] == "5"
        assert len(result.items) == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_since_sent_as_start_time(self, adapter):
        _, tweets_route = _mock_twitter()

        await adapter.fetch(
            make_source(source_type="twitter", username="jack"),
            FetchOptions(since=datetime(2026, 3, 3, tzinfo=timezone.utc)),
        )

        params = tweets_route.calls.last.request.url.params
        assert params["start_time"] == "2026-03-03T00:00:00Z"

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_utc_since_sent_in_utc(self, adapter):
        _, tweets_route = _mock_twitter()
        tokyo = timezone(timedelta(hours=9))

        await adapter.fetch(
            make_source(source_type="twitter", username="jack"),
            FetchOptions(since=datetime(2026, 3, 3, 9, 0, tzinfo=tokyo)),
        )

        params = tweets_route.calls.last.request.url.params
        assert params["start_time"] == "2026-03-03T00:00:00Z"

    @pytest.mark.asyncio
    @respx.mock
    async def test_user_token_takes_precedence(self, adapter):
        user_route, _ = _mock_twitter()

        await adapter.fetch(
            make_source(source_type="twitter", username="jack"),
            credentials={"twitter": "user-token"},
        )

        assert user_route.calls.last.request.headers["Authorization"] == "Bearer user-token"

    @pytest.mark.asyncio
    @respx.mock
    async def test_app_token_fallback(self, adapter):
        user_route, _ = _mock_twitter()

        await adapter.fetch(make_source(source_type="twitter", username="jack"))

        assert user_route.calls.last.request.headers["Authorization"] == "Bearer tw-bearer"

    @pytest.mark.asyncio
    async def test_missing_token(self, bare_settings):
        adapter = TwitterAdapter(settings=bare_settings)

        result = await adapter.fetch(make_source(source_type="twitter", username="jack"))

        assert result.success is False
        assert result.error_code == ErrorCode.CONFIGURATION
        assert result.error == "Twitter API bearer token not configured"

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limited(self, adapter):
        respx.get(USER_URL).mock(
            return_value=httpx.Response(
                429,
                text="Too Many Requests",
                headers={"x-rate-limit-remaining": "0", "x-rate-limit-reset": "1772625600"},
            )
        )

        result = await adapter.fetch(make_source(source_type="twitter", username="jack"))

        assert result.success is False
        assert result.error_code == ErrorCode.RATE_LIMIT
        assert result.rate_limit.remaining == 0
        assert result.rate_limit.reset == datetime.fromtimestamp(1772625600, tz=timezone.utc)

    @pytest.mark.asyncio
    @respx.mock
    async def test_unauthorized(self, adapter):
        respx.get(USER_URL).mock(return_value=httpx.Response(401, text="Unauthorized"))

        result = await adapter.fetch(make_source(source_type="twitter", username="jack"))

        assert result.error_code == ErrorCode.AUTH_ERROR

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_timeline(self, adapter):
        _mock_twitter(tweets={"meta": {"result_count": 0}})

        result = await adapter.fetch(make_source(source_type="twitter", username="jack"))

        assert result.success is True
        assert result.items == []
