"""
Twitter API v2 adapter.

Fetches a user's recent tweets. Handles:
- Username resolution from `username` or a twitter.com / x.com profile URL
- User lookup, then the user timeline with media expansions
- Rate-limit headers (x-rate-limit-*) passed through on every result
"""

import logging
import re
from datetime import timezone
from typing import Any

from zenfeed.content.base_adapter import (
    BaseAdapter,
    Credentials,
    parse_iso_datetime,
    to_int,
    truncate_title,
)
from zenfeed.content.errors import ErrorCode
from zenfeed.content.http_client import HTTPClient, parse_rate_limit_headers
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

# Twitter API v2 endpoints
TWITTER_API_BASE = "https://api.twitter.com/2"
USER_BY_USERNAME = f"{TWITTER_API_BASE}/users/by/username/{{username}}"
USER_TWEETS = f"{TWITTER_API_BASE}/users/{{user_id}}/tweets"

# The timeline endpoint rejects max_results outside [5, 100]
MIN_RESULTS_PER_REQUEST = 5

TWITTER_URL_PATTERN = re.compile(r"(?:twitter\.com|x\.com)/([a-zA-Z0-9_]+)", re.IGNORECASE)
USERNAME_PATTERN = re.compile(r"^@?[a-zA-Z0-9_]+$")


class TwitterAdapter(BaseAdapter):
    """
    Twitter API v2 adapter for fetching a user's timeline.

    Rate Limits (Basic tier):
        - User lookup: 100 requests per 24 hours per user
        - Timeline: 5 requests per 15-minute window per user

    Authentication:
        - The linked account's OAuth token when the caller passes one
        - Otherwise the app bearer token (TWITTER_BEARER_TOKEN)
    """

    max_limit = 100

    @property
    def platform(self) -> Platform:
        return Platform.TWITTER

    # ── Identifier handling ─────────────────────────────────────

    def _check_fields(self, source: ContentSource) -> None:
        if not source.url and not source.username:
            raise self._invalid("Twitter source requires a username or profile URL", source)
        if source.username and not USERNAME_PATTERN.match(source.username):
            raise self._invalid("Please enter a valid Twitter username", source)
        if source.url and not TWITTER_URL_PATTERN.search(source.url):
            raise self._invalid("Please enter a valid Twitter profile URL", source)

    @staticmethod
    def extract_username(source: ContentSource) -> str | None:
        """Username from the `username` field, else from the profile URL."""
        if source.username:
            return source.username.lstrip("@")

        if source.url:
            match = TWITTER_URL_PATTERN.search(source.url)
            return match.group(1) if match else None

        return None

    # ── API plumbing ────────────────────────────────────────────

    def _headers(self, credentials: Credentials) -> dict[str, str]:
        token = self._token(
            credentials,
            self._settings.twitter_bearer_token,
            "Twitter API bearer token",
        )
        return {"Authorization": f"Bearer {token}"}

    async def _lookup_user(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> dict[str, Any]:
        username = self.extract_username(source)
        if not username:
            raise self._invalid("Could not resolve Twitter username", source)

        response = await client.get(
            USER_BY_USERNAME.format(username=username),
            params={"user.fields": "description,public_metrics,profile_image_url"},
            headers=self._headers(credentials),
        )
        data = response.json()
        user = data.get("data")
        if not user:
            raise self._upstream(
                "Twitter user not found",
                source,
                code=ErrorCode.INVALID_SOURCE,
                rate_limit=parse_rate_limit_headers(response.headers),
            )
        return user

    # ── Hooks ───────────────────────────────────────────────────

    async def _verify_remote(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo | None:
        user = await self._lookup_user(client, source, credentials)
        return self._user_info(user)

    async def _fetch_items(
        self,
        client: HTTPClient,
        source: ContentSource,
        options: FetchOptions,
        credentials: Credentials,
    ) -> tuple[list[ContentItem], RateLimitInfo | None]:
        user = await self._lookup_user(client, source, credentials)

        params = {
            "max_results": max(options.limit, MIN_RESULTS_PER_REQUEST),
            "tweet.fields": "created_at,public_metrics,attachments",
            "expansions": "attachments.media_keys",
            "media.fields": "url,preview_image_url,type",
        }
        if options.since is not None:
            since = options.since.astimezone(timezone.utc)
            params["start_time"] = since.strftime("%Y-%m-%dT%H:%M:%SZ")

        response = await client.get(
            USER_TWEETS.format(user_id=user["id"]),
            params=params,
            headers=self._headers(credentials),
        )
        data = response.json()

        media_by_key = {
            media["media_key"]: media
            for media in data.get("includes", {}).get("media", [])
            if "media_key" in media
        }

        items = []
        for tweet in data.get("data") or []:
            item = self._transform(tweet, user, source, media_by_key)
            if item is not None:
                items.append(item)

        return items[: options.limit], parse_rate_limit_headers(response.headers)

    async def _describe(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo:
        user = await self._lookup_user(client, source, credentials)
        return self._user_info(user)

    # ── Normalization ───────────────────────────────────────────

    @staticmethod
    def _user_info(user: dict[str, Any]) -> SourceInfo:
        return SourceInfo(
            name=user.get("name") or user.get("username", ""),
            description=user.get("description") or None,
            follower_count=to_int(user.get("public_metrics", {}).get("followers_count")),
            url=f"https://twitter.com/{user.get('username', '')}",
            thumbnail_url=user.get("profile_image_url"),
        )

    def _transform(
        self,
        tweet: dict[str, Any],
        user: dict[str, Any],
        source: ContentSource,
        media_by_key: dict[str, dict[str, Any]],
    ) -> ContentItem | None:
        """Transform a timeline tweet into a ContentItem."""
        try:
            text = tweet.get("text", "")
            username = user.get("username", "")

            thumbnail = None
            for key in tweet.get("attachments", {}).get("media_keys", []):
                media = media_by_key.get(key)
                if media:
                    thumbnail = media.get("preview_image_url") or media.get("url")
                    break

            metrics = None
            public_metrics = tweet.get("public_metrics")
            if public_metrics:
                metrics = ContentMetrics(
                    views=to_int(public_metrics.get("impression_count")),
                    likes=to_int(public_metrics.get("like_count")),
                    comments=to_int(public_metrics.get("reply_count")),
                    shares=to_int(public_metrics.get("retweet_count")),
                )

            return ContentItem(
                id=f"twitter_{tweet['id']}",
                source_id=source.id,
                platform=Platform.TWITTER,
                external_id=tweet["id"],
                title=truncate_title(text) or "Tweet",
                description=text or None,
                url=f"https://twitter.com/{username}/status/{tweet['id']}",
                thumbnail_url=thumbnail,
                published_at=parse_iso_datetime(tweet.get("created_at")),
                author=ContentAuthor(
                    name=user.get("name") or username,
                    url=f"https://twitter.com/{username}",
                    avatar=user.get("profile_image_url"),
                ),
                content_type="text",
                metrics=metrics,
            )

        except Exception as e:
            logger.debug(f"Failed to transform tweet: {e}")
            return None
