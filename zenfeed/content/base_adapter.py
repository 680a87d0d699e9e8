"""
Base adapter interface and shared functionality for platform adapters.

Every platform adapter exposes the same three capabilities:
- validate(): local field checks, then an optional remote resolution
- fetch(): fetch and normalize items into ContentItem instances
- describe(): best-effort metadata for previewing a source

Subclasses implement the protected hooks (_check_fields, _fetch_items,
_describe, _verify_remote). The base class handles:
- Timeouts around every upstream call
- Limit clamping, `since` filtering and metrics stripping
- Converting every failure into a result object (callers never catch)
- Logging
"""

import asyncio
import hashlib
import html
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from zenfeed.config.settings import Settings, get_settings
from zenfeed.content.errors import (
    ConfigurationError,
    ContentAggregationError,
    ErrorCode,
    UpstreamError,
    ValidationError,
)
from zenfeed.content.http_client import (
    HTTPClient,
    HTTPClientError,
    HTTPTimeoutError,
    HTTPTransportError,
    RateLimitError,
    RetryConfig,
)
from zenfeed.content.schemas import (
    ContentItem,
    ContentSource,
    FetchOptions,
    FetchResult,
    InfoResult,
    Platform,
    RateLimitInfo,
    SourceInfo,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# Platform value -> already-resolved access token, owned by the caller
Credentials = Mapping[str, str]

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_URL_LENGTH = 2048


class BaseAdapter(ABC):
    """
    Abstract base class for platform adapters.

    Subclasses must implement:
        - platform: Platform enum value
        - max_limit: Most items the platform returns for one fetch
        - _fetch_items(): Call the platform API and normalize its items
        - _describe(): Fetch display metadata for a source

    Adapters keep no mutable state between calls. Each public call opens
    its own HTTP client, and credentials are passed in per call.
    """

    max_limit: int = 50

    def __init__(
        self,
        settings: Settings | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self._settings = settings or get_settings()
        self._retry_config = retry_config or RetryConfig(
            max_retries=self._settings.max_http_retries,
            max_backoff_seconds=self._settings.max_backoff_seconds,
        )

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Return the platform this adapter handles."""
        ...

    @property
    def name(self) -> str:
        """Human-readable adapter name."""
        return f"{self.platform.value}_adapter"

    # ── Hooks ───────────────────────────────────────────────────

    def _check_fields(self, source: ContentSource) -> None:
        """
        Platform-specific local checks. Raise ValidationError on bad input.

        Must not perform I/O.
        """

    async def _verify_remote(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo | None:
        """
        Confirm the source resolves upstream. Raise on failure.

        Returning a SourceInfo lets validate() skip a separate describe call.
        """
        return None

    @abstractmethod
    async def _fetch_items(
        self,
        client: HTTPClient,
        source: ContentSource,
        options: FetchOptions,
        credentials: Credentials,
    ) -> tuple[list[ContentItem], RateLimitInfo | None]:
        """
        Fetch items from the platform API.

        `options.limit` is already clamped to max_limit. Implementations
        should request no more than that from the platform.

        Returns:
            (items, rate-limit metadata or None)
        """
        ...

    @abstractmethod
    async def _describe(
        self,
        client: HTTPClient,
        source: ContentSource,
        credentials: Credentials,
    ) -> SourceInfo:
        """Fetch display metadata for the source."""
        ...

    # ── Public contract ─────────────────────────────────────────

    def check_source(self, source: ContentSource) -> None:
        """
        Run local checks shared by all platforms, then the platform's own.

        Raises:
            ValidationError: If the descriptor is unusable
        """
        if len(source.name) > MAX_NAME_LENGTH:
            raise self._invalid(
                f"Source name must be at most {MAX_NAME_LENGTH} characters", source
            )
        if source.description and len(source.description) > MAX_DESCRIPTION_LENGTH:
            raise self._invalid(
                f"Source description must be at most {MAX_DESCRIPTION_LENGTH} characters",
                source,
            )
        if source.url and len(source.url) > MAX_URL_LENGTH:
            raise self._invalid(
                f"Source URL must be at most {MAX_URL_LENGTH} characters", source
            )

        self._check_fields(source)

    async def validate(
        self,
        source: ContentSource,
        credentials: Credentials | None = None,
        check_remote: bool = True,
    ) -> ValidationResult:
        """
        Validate a source descriptor.

        Args:
            source: Source to validate
            credentials: Per-user access tokens keyed by platform
            check_remote: Also confirm the source resolves upstream

        Returns:
            ValidationResult; never raises for expected bad input
        """
        try:
            self.check_source(source)
            if not check_remote:
                return ValidationResult(valid=True)

            async with self._client(self._settings.validation_timeout_seconds) as client:
                async with asyncio.timeout(self._settings.validation_timeout_seconds):
                    info = await self._verify_remote(client, source, credentials or {})
            return ValidationResult(valid=True, source_info=info)

        except TimeoutError:
            return ValidationResult(
                valid=False,
                error=f"Validation timeout - {self.platform.value} source took too long to respond",
                error_code=ErrorCode.TIMEOUT,
            )
        except ContentAggregationError as e:
            return ValidationResult.from_error(e)
        except HTTPClientError as e:
            return ValidationResult.from_error(self._classify_http_error(e, source))
        except Exception as e:
            logger.error(f"Unexpected error validating {source.id} in {self.name}: {e}", exc_info=True)
            return ValidationResult(
                valid=False,
                error=f"Validation failed: {e}",
                error_code=ErrorCode.INTERNAL,
            )

    async def fetch(
        self,
        source: ContentSource,
        options: FetchOptions | None = None,
        credentials: Credentials | None = None,
    ) -> FetchResult:
        """
        Fetch and normalize items for one source.

        The limit is clamped to [1, max_limit]; items older than
        `options.since` are dropped; metrics are stripped unless
        `options.include_metrics` is set.

        Returns:
            FetchResult; failures are reported in it, never raised
        """
        options = (options or FetchOptions()).clamped(self.max_limit)
        timeout = self._settings.fetch_timeout_seconds

        try:
            self.check_source(source)
            async with self._client(timeout) as client:
                async with asyncio.timeout(timeout):
                    items, rate_limit = await self._fetch_items(
                        client, source, options, credentials or {}
                    )

        except TimeoutError:
            logger.warning(f"{self.name} fetch timed out for source {source.id}")
            return FetchResult(
                source_id=source.id,
                success=False,
                error=f"Request timeout - {self.platform.value} source took longer than {timeout:g}s",
                error_code=ErrorCode.TIMEOUT,
            )
        except ContentAggregationError as e:
            logger.warning(f"{self.name} fetch failed for source {source.id}: {e.message}")
            return FetchResult.from_error(source.id, e)
        except HTTPClientError as e:
            error = self._classify_http_error(e, source)
            logger.warning(f"{self.name} fetch failed for source {source.id}: {error.message}")
            return FetchResult.from_error(source.id, error)
        except Exception as e:
            logger.error(f"Error in {self.name} fetch for source {source.id}: {e}", exc_info=True)
            return FetchResult(
                source_id=source.id,
                success=False,
                error=f"Failed to fetch {self.platform.value} content: {e}",
                error_code=ErrorCode.INTERNAL,
            )

        if options.since is not None:
            since = options.since
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            items = [item for item in items if item.published_at >= since]

        items = items[: options.limit]
        if not options.include_metrics:
            items = [item.without_metrics() for item in items]

        logger.info(f"{self.name} fetched {len(items)} items for source {source.id}")
        return FetchResult(
            source_id=source.id,
            success=True,
            items=items,
            rate_limit=rate_limit,
        )

    async def describe(
        self,
        source: ContentSource,
        credentials: Credentials | None = None,
    ) -> InfoResult:
        """Best-effort metadata lookup. Failure here is informational only."""
        timeout = self._settings.info_timeout_seconds
        try:
            self.check_source(source)
            async with self._client(timeout) as client:
                async with asyncio.timeout(timeout):
                    info = await self._describe(client, source, credentials or {})
            return InfoResult(success=True, info=info)

        except TimeoutError:
            return InfoResult(
                success=False,
                error=f"Timed out fetching {self.platform.value} source info",
                error_code=ErrorCode.TIMEOUT,
            )
        except ContentAggregationError as e:
            return InfoResult(success=False, error=e.message, error_code=e.code)
        except HTTPClientError as e:
            error = self._classify_http_error(e, source)
            return InfoResult(success=False, error=error.message, error_code=error.code)
        except Exception as e:
            logger.debug(f"Failed to describe {source.id} in {self.name}: {e}")
            return InfoResult(
                success=False,
                error=f"Failed to get {self.platform.value} source info",
                error_code=ErrorCode.INTERNAL,
            )

    # ── Helpers for subclasses ──────────────────────────────────

    def _client(self, timeout: float) -> HTTPClient:
        return HTTPClient(
            retry_config=self._retry_config,
            timeout=timeout,
            user_agent=self._settings.user_agent,
        )

    def _token(self, credentials: Credentials, fallback: str | None, label: str) -> str:
        """
        Pick the per-user token for this platform, else the app-level one.

        Raises:
            ConfigurationError: If neither is available
        """
        token = credentials.get(self.platform.value) or fallback
        if not token:
            raise ConfigurationError(
                f"{label} not configured",
                platform=self.platform.value,
            )
        return token

    def _invalid(self, message: str, source: ContentSource | None = None) -> ValidationError:
        return ValidationError(
            message,
            platform=self.platform.value,
            source_id=source.id if source else None,
        )

    def _upstream(
        self,
        message: str,
        source: ContentSource,
        code: ErrorCode = ErrorCode.API_ERROR,
        **kwargs,
    ) -> UpstreamError:
        return UpstreamError(
            message,
            platform=self.platform.value,
            source_id=source.id,
            code=code,
            **kwargs,
        )

    def _classify_http_error(
        self,
        exc: HTTPClientError,
        source: ContentSource,
    ) -> UpstreamError:
        """
        Map an HTTP client failure to an UpstreamError category.

        Override to recognise platform-specific quota or auth responses.
        """
        label = self.platform.value.capitalize()
        rate_limit = exc.rate_limit

        if isinstance(exc, RateLimitError):
            return self._upstream(
                f"{label} API rate limit exceeded",
                source,
                code=ErrorCode.RATE_LIMIT,
                rate_limit=rate_limit,
                retry_after=rate_limit.retry_after_seconds if rate_limit else None,
                status_code=exc.status_code,
            )
        if isinstance(exc, HTTPTimeoutError):
            return self._upstream(
                f"Request timeout - {label} took too long to respond",
                source,
                code=ErrorCode.TIMEOUT,
            )
        if isinstance(exc, HTTPTransportError):
            return self._upstream(
                f"Network error contacting {label}: {exc}",
                source,
                code=ErrorCode.NETWORK_ERROR,
            )
        if exc.status_code in (401, 403):
            return self._upstream(
                f"{label} API authorization failed (HTTP {exc.status_code})",
                source,
                code=ErrorCode.AUTH_ERROR,
                status_code=exc.status_code,
            )
        if exc.status_code == 404:
            return self._upstream(
                f"{label} source not found",
                source,
                code=ErrorCode.INVALID_SOURCE,
                status_code=exc.status_code,
            )
        return self._upstream(
            f"{label} API error: {exc.status_code}",
            source,
            code=ErrorCode.API_ERROR,
            rate_limit=rate_limit,
            status_code=exc.status_code,
        )


# Common normalization utilities used across adapters

def clean_text(text: str) -> str:
    """
    Clean text content by removing excessive whitespace and control characters.

    Args:
        text: Raw text content

    Returns:
        Cleaned text
    """
    text = " ".join(text.split())
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text.strip()


def html_to_text(html_content: str | None) -> str:
    """
    Extract clean text from an HTML fragment.

    Args:
        html_content: Raw HTML string

    Returns:
        Clean text content
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")
    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    text = html.unescape(text)
    return clean_text(text)


def truncate_title(text: str, length: int = 100) -> str:
    """Shorten free text (captions, tweets) into a title."""
    text = clean_text(text)
    if len(text) > length:
        return f"{text[:length]}..."
    return text


def stable_hash(value: str) -> str:
    """
    Generate a stable, deterministic hash from a string.

    SHA256 truncated to 16 hex characters; unlike hash() it is stable
    across process restarts.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def parse_iso_datetime(value: str | None) -> datetime:
    """Parse an ISO 8601 timestamp ("Z" suffix allowed), defaulting to now."""
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except ValueError:
            logger.debug(f"Unparseable timestamp {value!r}, using now")
    return datetime.now(timezone.utc)


def is_http_url(value: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def to_int(value: object) -> int | None:
    """Parse counters that platforms send as strings ("1234")."""
    if value is None:
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None
