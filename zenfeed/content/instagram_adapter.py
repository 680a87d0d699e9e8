"""
Instagram Graph API adapter.

The Graph API only exposes media of the account that granted the access
token, so an Instagram source always reads the linked account's media.
The `username` (or profile URL) identifies that account and is checked
against the token owner during validation.
"""

import json
import logging
import re
from typing import Any

from zenfeed.content.base_adapter import (
    BaseAdapter,
    Credentials,
    parse_iso_datetime,
    to_int,
    truncate_title,
)
from zenfeed.content.errors import ErrorCode, UpstreamError
from zenfeed.content.http_client import HTTPClient, HTTPClientError
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

INSTAGRAM_API_BASE = "https://graph.instagram.com"
MEDIA_FIELDS = (
    "id,caption,media_type,media_url,thumbnail_url,permalink,timestamp,like_count,comments_count"
)

INSTAGRAM_URL_PATTERN = re.compile(r"instagram\.com/([a-zA-Z0-9_.-]+)", re.IGNORECASE)
USERNAME_PATTERN = re.compile(r"^@?[a-zA-Z0-9_.-]+$")


def _is_oauth_error(body: str | None) -> bool:
    if not body:
        return False
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    error = payload.get("error") if isinstance(payload, dict) else None
    return isinstance(error, dict) and error.get("type") == "OAuthException"


class InstagramAdapter(BaseAdapter):
    """
    Instagram adapter reading the linked account's recent media.

    Rate Limits:
        - 200 calls per hour per user token
        - At most 25 media objects per page
    """

    max_limit = 25

    @property
    def platform(self) -> Platform:
        return Platform.INSTAGRAM

    def _check_fields(self, source: ContentSource) -> None:
        if not source.username and not source.url:
            raise self._invalid("Instagram source requires a username or profile URL", source)
        if source.username and not USERNAME_PATTERN.match(source.username):
            raise self._invalid("Please enter a valid Instagram username", source)
        if source.url and not INSTAGRAM_URL_PATTERN.search(source.url):
            raise self._invalid("Please enter a valid Instagram profile URL", source)

    @staticmethod
    def extract_username(source: ContentSource) -> str | None:
        if source.username:
            return source.username.lstrip("@")
        if source.url:
            match = INSTAGRAM_URL_PATTERN.search(source.url)
            return match.group(1) if match else None
        return None

    def _params(self, credentials: Credentials, **params: Any) -> dict[str, Any]:
        token = self._token(
            credentials,
            self._settings.instagram_access_token,
            "Instagram access token",
        )
        return {**params, "access_token": token}

    def _classify_http_error(self, exc: HTTPClientError, source: ContentSource) -> UpstreamError:
        # Expired or revoked tokens come back as 400 OAuthException
        if exc.status_code == 400 and _is_oauth_error(exc.response_body):
            return self._upstream(
                "Instagram access token is invalid or expired",
                source,
                code=ErrorCode.AUTH_ERROR,
                status_code=exc.status_code,
            )
        return super()._classify_http_error(exc, source)

    async def _account(
        self,
        client: HTTPClient,
        credentials: Credentials,
    ) -> dict[str, Any]:
        response = await client.get(
            f"{INSTAGRAM_API_BASE}/me",
            params=self._params(credentials, fields="id,username,account_type,media_count"),
        )
        return response.json()

    async def _verify_remote(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo | None:
        account = await self._account(client, credentials)
        username = self.extract_username(source)
        owner = account.get("username", "")
        if username and owner and username.lower() != owner.lower():
            raise self._invalid(
                f"Instagram only exposes media of the connected account (@{owner})",
                source,
            )
        return self._account_info(account)

    async def _fetch_items(
        self,
        client: HTTPClient,
        source: ContentSource,
        options: FetchOptions,
        credentials: Credentials,
    ) -> tuple[list[ContentItem], RateLimitInfo | None]:
        response = await client.get(
            f"{INSTAGRAM_API_BASE}/me/media",
            params=self._params(credentials, fields=MEDIA_FIELDS, limit=options.limit),
        )
        data = response.json()

        items = []
        for media in data.get("data") or []:
            item = self._transform(media, source)
            if item is not None:
                items.append(item)
        return items, None

    async def _describe(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo:
        account = await self._account(client, credentials)
        return self._account_info(account)

    @staticmethod
    def _account_info(account: dict[str, Any]) -> SourceInfo:
        username = account.get("username", "")
        return SourceInfo(
            name=username or "Instagram User",
            description=(
                f"{account.get('account_type', 'PERSONAL')} account "
                f"with {account.get('media_count', 0)} posts"
            ),
            follower_count=to_int(account.get("followers_count")),
            url=f"https://www.instagram.com/{username}" if username else None,
        )

    def _transform(self, media: dict[str, Any], source: ContentSource) -> ContentItem | None:
        """Transform a Graph API media object into a ContentItem."""
        try:
            caption = media.get("caption") or ""
            is_video = media.get("media_type") == "VIDEO"
            username = self.extract_username(source)

            return ContentItem(
                id=f"instagram_{media['id']}",
                source_id=source.id,
                platform=Platform.INSTAGRAM,
                external_id=media["id"],
                title=truncate_title(caption) if caption else "Instagram Post",
                description=caption or None,
                url=media["permalink"],
                thumbnail_url=media.get("thumbnail_url") if is_video else media.get("media_url"),
                published_at=parse_iso_datetime(media.get("timestamp")),
                author=ContentAuthor(
                    name=username or "Instagram User",
                    url=source.url or (f"https://www.instagram.com/{username}" if username else None),
                ),
                content_type="video" if is_video else "image",
                metrics=ContentMetrics(
                    likes=to_int(media.get("like_count")) or 0,
                    comments=to_int(media.get("comments_count")) or 0,
                ),
            )

        except Exception as e:
            logger.debug(f"Failed to transform Instagram media: {e}")
            return None
