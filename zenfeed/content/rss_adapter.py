"""
RSS/Atom feed adapters.

Handles:
- RSS 2.0, RSS 1.0 and Atom parsing (feedparser)
- HTML summary cleanup (BeautifulSoup)
- Newest-first ordering of entries
- Newsletter feeds, including bare Substack slugs

FeedAdapter carries the shared fetch/parse logic; subclasses only decide
which feed URL a source maps to.
"""

import calendar
import logging
import re
from abc import abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import feedparser

from zenfeed.content.base_adapter import (
    BaseAdapter,
    Credentials,
    clean_text,
    html_to_text,
    is_http_url,
    stable_hash,
)
from zenfeed.content.errors import ErrorCode
from zenfeed.content.http_client import HTTPClient
from zenfeed.content.schemas import (
    ContentAuthor,
    ContentItem,
    ContentSource,
    FetchOptions,
    Platform,
    RateLimitInfo,
    SourceInfo,
)

logger = logging.getLogger(__name__)

SUBSTACK_SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,62}$", re.IGNORECASE)


def entry_timestamp(entry: dict[str, Any]) -> datetime:
    """Parse the publication time of a feed entry, defaulting to now."""
    for field in ["published", "updated", "created"]:
        # feedparser normalizes dates to UTC struct_time
        parsed = entry.get(f"{field}_parsed")
        if parsed:
            try:
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (OverflowError, ValueError):
                pass

        raw = entry.get(field)
        if raw:
            try:
                parsed_dt = parsedate_to_datetime(raw)
                if parsed_dt.tzinfo is None:
                    parsed_dt = parsed_dt.replace(tzinfo=timezone.utc)
                return parsed_dt
            except (TypeError, ValueError):
                pass

    return datetime.now(timezone.utc)


def entry_id(entry: dict[str, Any]) -> str:
    """Extract a stable unique ID from a feed entry."""
    for field in ["id", "guid", "link"]:
        if entry.get(field):
            return stable_hash(str(entry[field]))

    return stable_hash(entry.get("title", ""))


def entry_thumbnail(entry: dict[str, Any]) -> str | None:
    """First image from media:thumbnail, media:content or an image enclosure."""
    for key in ("media_thumbnail", "media_content"):
        for media in entry.get(key) or []:
            url = media.get("url")
            if url and media.get("medium", "image") == "image":
                return url

    for link in entry.get("links") or []:
        if link.get("rel") == "enclosure" and str(link.get("type", "")).startswith("image/"):
            return link.get("href")

    return None


class FeedAdapter(BaseAdapter):
    """
    Base class for adapters whose upstream is a syndication feed.

    Feeds carry no engagement counters, so items never have metrics. Entries
    are sorted newest first before the limit is applied.
    """

    max_limit = 50
    content_type = "article"

    @abstractmethod
    def feed_url(self, source: ContentSource) -> str:
        """Resolve the feed URL for a source. Raise ValidationError if impossible."""
        ...

    async def _load_feed(
        self,
        client: HTTPClient,
        source: ContentSource,
    ) -> feedparser.FeedParserDict:
        url = self.feed_url(source)
        response = await client.get(url)

        feed = feedparser.parse(response.text)
        if feed.get("bozo") and not feed.get("entries") and not feed.get("feed", {}).get("title"):
            reason = feed.get("bozo_exception")
            raise self._upstream(
                f"Failed to parse {self.platform.value} feed: {reason or 'not a valid feed'}",
                source,
                code=ErrorCode.PARSE_ERROR,
            )
        return feed

    async def _verify_remote(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo | None:
        feed = await self._load_feed(client, source)
        return self._feed_info(feed, source)

    async def _fetch_items(
        self,
        client: HTTPClient,
        source: ContentSource,
        options: FetchOptions,
        credentials: Credentials,
    ) -> tuple[list[ContentItem], RateLimitInfo | None]:
        feed = await self._load_feed(client, source)
        feed_title = clean_text(feed.get("feed", {}).get("title", "")) or source.name

        items = []
        for entry in feed.get("entries", []):
            item = self._transform(entry, source, feed_title)
            if item is not None:
                items.append(item)

        items.sort(key=lambda item: item.published_at, reverse=True)
        logger.debug(f"Parsed {len(items)} entries from {self.feed_url(source)}")
        return items[: options.limit], None

    async def _describe(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo:
        feed = await self._load_feed(client, source)
        return self._feed_info(feed, source)

    def _feed_info(self, feed: feedparser.FeedParserDict, source: ContentSource) -> SourceInfo:
        meta = feed.get("feed", {})
        image = meta.get("image") or {}
        return SourceInfo(
            name=clean_text(meta.get("title", "")) or source.name or "RSS Feed",
            description=html_to_text(meta.get("subtitle") or meta.get("description")) or None,
            url=meta.get("link") or self.feed_url(source),
            thumbnail_url=image.get("href") or image.get("url"),
        )

    def _transform(
        self,
        entry: dict[str, Any],
        source: ContentSource,
        feed_title: str,
    ) -> ContentItem | None:
        """Transform a feedparser entry into a ContentItem."""
        try:
            title = clean_text(entry.get("title", ""))
            link = entry.get("link", "")
            if not title or not link:
                return None

            content = entry.get("summary", "")
            if not content and entry.get("content"):
                content = entry["content"][0].get("value", "")
            description = html_to_text(content) or None

            external_id = entry_id(entry)
            tags = [t.get("term", "") for t in entry.get("tags", []) if t.get("term")]

            return ContentItem(
                id=f"{self.platform.value}_{external_id}",
                source_id=source.id,
                platform=self.platform,
                external_id=external_id,
                title=title,
                description=description,
                url=link,
                thumbnail_url=entry_thumbnail(entry),
                published_at=entry_timestamp(entry),
                author=ContentAuthor(
                    name=entry.get("author") or feed_title,
                    url=source.url,
                ),
                content_type=self.content_type,
                tags=tags,
            )

        except Exception as e:
            logger.debug(f"Failed to transform {self.platform.value} entry: {e}")
            return None


class RSSAdapter(FeedAdapter):
    """Any RSS or Atom feed, identified by its URL."""

    @property
    def platform(self) -> Platform:
        return Platform.RSS

    def _check_fields(self, source: ContentSource) -> None:
        if not source.url:
            raise self._invalid("RSS source requires a URL", source)
        if not is_http_url(source.url):
            raise self._invalid("Invalid URL format", source)

    def feed_url(self, source: ContentSource) -> str:
        self._check_fields(source)
        return source.url


class NewsletterAdapter(FeedAdapter):
    """
    Newsletter publications delivered as feeds.

    A `url` is used as the feed URL. A bare `username` is treated as a
    Substack publication slug ("semianalysis" -> semianalysis.substack.com).
    """

    @property
    def platform(self) -> Platform:
        return Platform.NEWSLETTER

    def _check_fields(self, source: ContentSource) -> None:
        if source.url:
            if not is_http_url(source.url):
                raise self._invalid("Invalid URL format", source)
            return
        if not source.username:
            raise self._invalid("Newsletter source requires a feed URL or Substack name", source)
        if not SUBSTACK_SLUG_PATTERN.match(source.username.lstrip("@")):
            raise self._invalid("Please enter a valid Substack publication name", source)

    def feed_url(self, source: ContentSource) -> str:
        self._check_fields(source)
        if source.url:
            return source.url
        return f"https://{source.username.lstrip('@').lower()}.substack.com/feed"
