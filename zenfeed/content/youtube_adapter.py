"""
YouTube Data API v3 adapter.

Fetches recent uploads of a channel. Handles:
- Channel resolution from /channel/ URLs, @handles, legacy /user/ and /c/ URLs
- Uploads playlist lookup, then video details (duration, statistics)
- Quota errors (403 quotaExceeded) reported as rate limits
- API key rotation across comma-separated YOUTUBE_API_KEY values

Identifier preference: a /channel/UC... id in `url` is the most specific
and is used directly; otherwise the handle from `url` or `username` is
resolved to a channel id.
"""

import json
import logging
import re
from typing import Any

from zenfeed.config.settings import Settings
from zenfeed.content.base_adapter import (
    BaseAdapter,
    Credentials,
    clean_text,
    parse_iso_datetime,
    to_int,
)
from zenfeed.content.errors import ConfigurationError, ErrorCode, UpstreamError
from zenfeed.content.http_client import APIKeyRotator, HTTPClient, HTTPClientError, RetryConfig
from zenfeed.content.schemas import (
    ContentAuthor,
    ContentItem,
    ContentMetrics,
    ContentSource,
    FetchOptions,
    Platform,
    RateLimitInfo,
    SourceInfo,
)

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"

YOUTUBE_URL_PATTERN = re.compile(
    r"^(https?://)?(www\.|m\.)?youtube\.com/(channel/|c/|user/|@)",
    re.IGNORECASE,
)
USERNAME_PATTERN = re.compile(r"^@?[a-zA-Z0-9_.-]+$")
CHANNEL_ID_PATTERN = re.compile(r"^UC[a-zA-Z0-9_-]{22}$")
DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)

_URL_FORMATS = [
    (re.compile(r"youtube\.com/channel/([a-zA-Z0-9_-]+)", re.IGNORECASE), "channel"),
    (re.compile(r"youtube\.com/@([a-zA-Z0-9_.-]+)", re.IGNORECASE), "handle"),
    (re.compile(r"youtube\.com/c/([a-zA-Z0-9_.-]+)", re.IGNORECASE), "custom"),
    (re.compile(r"youtube\.com/user/([a-zA-Z0-9_.-]+)", re.IGNORECASE), "user"),
]

_QUOTA_REASONS = {"quotaExceeded", "rateLimitExceeded", "userRateLimitExceeded", "dailyLimitExceeded"}
_KEY_REASONS = {"keyInvalid", "keyExpired", "accessNotConfigured"}


def parse_duration(duration: str | None) -> int | None:
    """
    Parse an ISO 8601 duration into seconds.

    "PT4M13S" -> 253, "PT1H" -> 3600. Returns None for unparseable input.
    """
    if not duration:
        return None
    match = DURATION_PATTERN.match(duration)
    if not match:
        return None
    parts = {k: int(v) for k, v in match.groupdict().items() if v}
    return (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )


def _error_reasons(body: str | None) -> set[str]:
    """Pull `reason` values out of a Google API error body."""
    if not body:
        return set()
    try:
        payload = json.loads(body)
    except ValueError:
        return set()
    errors = payload.get("error", {}).get("errors", []) if isinstance(payload, dict) else []
    return {e.get("reason", "") for e in errors if isinstance(e, dict)}


class YouTubeAdapter(BaseAdapter):
    """
    YouTube adapter for fetching a channel's recent videos.

    Quota (Data API v3):
        - 10,000 units per day per key
        - search costs 100 units, channels/playlistItems/videos cost 1 unit

    The API returns at most 50 results per page, which is the adapter's
    per-fetch maximum.
    """

    max_limit = 50

    def __init__(
        self,
        settings: Settings | None = None,
        retry_config: RetryConfig | None = None,
        api_key: str | None = None,
    ):
        super().__init__(settings=settings, retry_config=retry_config)
        self._key_rotator = APIKeyRotator.from_env_var(api_key or self._settings.youtube_api_key)

    @property
    def platform(self) -> Platform:
        return Platform.YOUTUBE

    # ── Identifier handling ─────────────────────────────────────

    def _check_fields(self, source: ContentSource) -> None:
        if not source.url and not source.username:
            raise self._invalid("YouTube source requires a channel URL or username", source)
        if source.url and not YOUTUBE_URL_PATTERN.match(source.url):
            raise self._invalid("Please enter a valid YouTube channel URL", source)
        if source.username and not USERNAME_PATTERN.match(source.username):
            raise self._invalid("Please enter a valid YouTube username", source)

    @staticmethod
    def extract_identifier(source: ContentSource) -> tuple[str, str] | None:
        """
        Pick the most specific identifier for a source.

        Returns:
            ("channel", channel_id) when the id is known directly,
            ("handle", name) when it must be resolved, or None
        """
        if source.url:
            for pattern, kind in _URL_FORMATS:
                match = pattern.search(source.url)
                if not match:
                    continue
                if kind == "channel":
                    return "channel", match.group(1)
                return "handle", match.group(1)

        if source.username:
            username = source.username.lstrip("@")
            if CHANNEL_ID_PATTERN.match(username):
                return "channel", username
            return "handle", username

        return None

    # ── API plumbing ────────────────────────────────────────────

    async def _api_get(
        self,
        client: HTTPClient,
        endpoint: str,
        params: dict[str, Any],
        credentials: Credentials,
    ) -> dict[str, Any]:
        """GET a Data API endpoint with either the user's OAuth token or an app key."""
        user_token = credentials.get(self.platform.value)
        if user_token:
            response = await client.get(
                f"{YOUTUBE_API_BASE}/{endpoint}",
                params=params,
                headers={"Authorization": f"Bearer {user_token}"},
            )
        elif self._key_rotator:
            response = await client.get(
                f"{YOUTUBE_API_BASE}/{endpoint}",
                params=params,
                api_key_rotator=self._key_rotator,
                api_key_param="key",
            )
        else:
            raise ConfigurationError(
                "YouTube API key not configured. Please set YOUTUBE_API_KEY environment variable.",
                platform=self.platform.value,
            )
        return response.json()

    def _classify_http_error(self, exc: HTTPClientError, source: ContentSource) -> UpstreamError:
        reasons = _error_reasons(exc.response_body)
        if exc.status_code == 403 and reasons & _QUOTA_REASONS:
            return self._upstream(
                "YouTube API quota exceeded",
                source,
                code=ErrorCode.RATE_LIMIT,
                status_code=exc.status_code,
                rate_limit=exc.rate_limit or RateLimitInfo(remaining=0),
            )
        if reasons & _KEY_REASONS:
            return self._upstream(
                "YouTube API key rejected",
                source,
                code=ErrorCode.AUTH_ERROR,
                status_code=exc.status_code,
            )
        return super()._classify_http_error(exc, source)

    async def _resolve_channel_id(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> str:
        identifier = self.extract_identifier(source)
        if identifier is None:
            raise self._invalid("Could not resolve YouTube channel", source)

        kind, value = identifier
        if kind == "channel":
            return value

        data = await self._api_get(
            client,
            "channels",
            {"part": "id", "forHandle": f"@{value}"},
            credentials,
        )
        items = data.get("items") or []
        if items:
            return items[0]["id"]

        # Legacy custom URLs and usernames: fall back to channel search
        data = await self._api_get(
            client,
            "search",
            {"part": "snippet", "type": "channel", "q": value, "maxResults": 1},
            credentials,
        )
        for item in data.get("items") or []:
            channel_id = item.get("id", {}).get("channelId")
            if channel_id:
                return channel_id

        raise self._upstream(
            f"YouTube channel not found: {value}",
            source,
            code=ErrorCode.INVALID_SOURCE,
        )

    async def _fetch_channel(
        self,
        client: HTTPClient,
        source: ContentSource,
        channel_id: str,
        parts: str,
        credentials: Credentials,
    ) -> dict[str, Any]:
        data = await self._api_get(
            client,
            "channels",
            {"part": parts, "id": channel_id},
            credentials,
        )
        items = data.get("items") or []
        if not items:
            raise self._upstream(
                "YouTube channel not found",
                source,
                code=ErrorCode.INVALID_SOURCE,
            )
        return items[0]

    # ── Hooks ───────────────────────────────────────────────────

    async def _verify_remote(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo | None:
        channel_id = await self._resolve_channel_id(client, source, credentials)
        channel = await self._fetch_channel(
            client, source, channel_id, "snippet,statistics", credentials
        )
        return self._channel_info(channel)

    async def _fetch_items(
        self,
        client: HTTPClient,
        source: ContentSource,
        options: FetchOptions,
        credentials: Credentials,
    ) -> tuple[list[ContentItem], RateLimitInfo | None]:
        channel_id = await self._resolve_channel_id(client, source, credentials)
        channel = await self._fetch_channel(
            client, source, channel_id, "contentDetails", credentials
        )

        try:
            uploads_playlist = channel["contentDetails"]["relatedPlaylists"]["uploads"]
        except KeyError as e:
            raise self._upstream(
                "YouTube channel has no uploads playlist",
                source,
                code=ErrorCode.PARSE_ERROR,
            ) from e

        playlist = await self._api_get(
            client,
            "playlistItems",
            {
                "part": "snippet",
                "playlistId": uploads_playlist,
                "maxResults": options.limit,
            },
            credentials,
        )
        video_ids = [
            entry["snippet"]["resourceId"]["videoId"]
            for entry in playlist.get("items") or []
            if entry.get("snippet", {}).get("resourceId", {}).get("videoId")
        ]
        if not video_ids:
            return [], None

        videos = await self._api_get(
            client,
            "videos",
            {
                "part": "snippet,contentDetails,statistics",
                "id": ",".join(video_ids[: options.limit]),
            },
            credentials,
        )

        items = []
        for video in videos.get("items") or []:
            item = self._transform(video, source)
            if item is not None:
                items.append(item)
        return items, None

    async def _describe(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo:
        channel_id = await self._resolve_channel_id(client, source, credentials)
        channel = await self._fetch_channel(
            client, source, channel_id, "snippet,statistics", credentials
        )
        return self._channel_info(channel)

    # ── Normalization ───────────────────────────────────────────

    @staticmethod
    def _channel_info(channel: dict[str, Any]) -> SourceInfo:
        snippet = channel.get("snippet", {})
        statistics = channel.get("statistics", {})
        thumbnails = snippet.get("thumbnails", {})
        return SourceInfo(
            name=snippet.get("title", ""),
            description=snippet.get("description") or None,
            follower_count=to_int(statistics.get("subscriberCount")),
            url=f"https://www.youtube.com/channel/{channel.get('id')}",
            thumbnail_url=(thumbnails.get("default") or {}).get("url"),
        )

    def _transform(self, video: dict[str, Any], source: ContentSource) -> ContentItem | None:
        """Transform a videos.list resource into a ContentItem."""
        try:
            snippet = video["snippet"]
            thumbnails = snippet.get("thumbnails", {})
            thumbnail = (
                thumbnails.get("medium")
                or thumbnails.get("default")
                or thumbnails.get("high")
                or {}
            ).get("url")
            statistics = video.get("statistics")

            metrics = None
            if statistics:
                metrics = ContentMetrics(
                    views=to_int(statistics.get("viewCount")),
                    likes=to_int(statistics.get("likeCount")),
                    comments=to_int(statistics.get("commentCount")),
                )

            return ContentItem(
                id=f"youtube_{video['id']}",
                source_id=source.id,
                platform=Platform.YOUTUBE,
                external_id=video["id"],
                title=clean_text(snippet.get("title", "")) or "Untitled video",
                description=snippet.get("description") or None,
                url=f"https://www.youtube.com/watch?v={video['id']}",
                thumbnail_url=thumbnail,
                published_at=parse_iso_datetime(snippet.get("publishedAt")),
                author=ContentAuthor(
                    name=snippet.get("channelTitle", ""),
                    url=f"https://www.youtube.com/channel/{snippet.get('channelId', '')}",
                ),
                content_type="video",
                duration_seconds=parse_duration(
                    video.get("contentDetails", {}).get("duration")
                ),
                tags=snippet.get("tags", []),
                metrics=metrics,
            )

        except Exception as e:
            logger.debug(f"Failed to transform YouTube video: {e}")
            return None
