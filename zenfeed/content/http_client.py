"""
Shared HTTP plumbing for the platform adapters.

Adapters call ``HTTPClient.get`` and deal only with parsed payloads and the
typed errors below. Retries are off unless MAX_HTTP_RETRIES is set: a batch
fetch is bounded by per-source timeouts, and a retry loop inside one source
would eat that budget. Quota headers from the final response are exposed
through ``HTTPClientError.rate_limit`` so callers can report when to retry.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping

import httpx

from zenfeed.content.schemas import RateLimitInfo

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass
class APIKeyRotator:
    """
    Hand out API keys round-robin.

    YouTube quota is per key, so YOUTUBE_API_KEY may hold several
    comma-separated keys and each request draws the next one.
    """

    keys: list[str]
    _current_index: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_env_var(cls, value: str | None) -> "APIKeyRotator | None":
        """Build a rotator from ``"k1,k2"``; None when no usable key is present."""
        keys = [k.strip() for k in (value or "").split(",") if k.strip()]
        return cls(keys=keys) if keys else None

    async def get_key(self) -> str:
        async with self._lock:
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)
        return key

    @property
    def key_count(self) -> int:
        return len(self.keys)


@dataclass
class RetryConfig:
    """
    Retry policy for ``HTTPClient``.

    Delay for attempt n is ``min(max_backoff_seconds, base_delay * 2**n)``
    plus up to ``jitter_factor`` of that as random jitter.
    """

    max_retries: int = 0
    max_backoff_seconds: float = 10.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay * (1 + self.jitter_factor * random.random())

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUSES

    def is_retryable_exception(self, exc: Exception) -> bool:
        return isinstance(exc, (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError))


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.headers: Mapping[str, str] = headers or {}

    @property
    def rate_limit(self) -> RateLimitInfo | None:
        return parse_rate_limit_headers(self.headers)


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""

    pass


class HTTPTimeoutError(HTTPClientError):
    """Raised when the upstream did not answer within the client timeout."""

    pass


class HTTPTransportError(HTTPClientError):
    """Raised on connection-level failures (DNS, refused, reset, bad URL)."""

    pass


def _int_header(headers: Mapping[str, str], *names: str) -> int | None:
    for name in names:
        value = headers.get(name)
        if value is None:
            continue
        try:
            return int(float(value))
        except ValueError:
            continue
    return None


def parse_rate_limit_headers(headers: Mapping[str, str] | None) -> RateLimitInfo | None:
    """
    Extract quota metadata from common rate-limit header conventions.

    Understands the Twitter style (x-rate-limit-*), the IETF draft
    style (ratelimit-*, x-ratelimit-*) and Retry-After in seconds or
    HTTP-date form.

    Returns:
        RateLimitInfo, or None when the response carries no quota headers
    """
    if not headers:
        return None

    lowered = {k.lower(): v for k, v in headers.items()}

    remaining = _int_header(
        lowered, "x-rate-limit-remaining", "x-ratelimit-remaining", "ratelimit-remaining"
    )
    limit = _int_header(lowered, "x-rate-limit-limit", "x-ratelimit-limit", "ratelimit-limit")

    reset: datetime | None = None
    reset_epoch = _int_header(lowered, "x-rate-limit-reset", "x-ratelimit-reset")
    if reset_epoch is not None:
        reset = datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
    else:
        reset_delta = _int_header(lowered, "ratelimit-reset")
        if reset_delta is not None:
            reset = datetime.now(timezone.utc) + timedelta(seconds=reset_delta)

    retry_after: float | None = None
    raw_retry_after = lowered.get("retry-after")
    if raw_retry_after:
        try:
            retry_after = float(raw_retry_after)
        except ValueError:
            try:
                when = parsedate_to_datetime(raw_retry_after)
                retry_after = max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
            except (TypeError, ValueError):
                retry_after = None

    if remaining is None and limit is None and reset is None and retry_after is None:
        return None

    return RateLimitInfo(
        remaining=remaining,
        limit=limit,
        reset=reset,
        retry_after_seconds=retry_after,
    )


class HTTPClient:
    """
    Async GET client shared by the platform adapters.

    One instance lives for the duration of a single adapter call. Non-2xx
    responses and transport failures surface as HTTPClientError subclasses,
    so adapters only ever classify one exception family.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2)) as client:
            response = await client.get(
                "https://www.googleapis.com/youtube/v3/channels",
                params={"part": "snippet", "id": channel_id},
                api_key_rotator=rotator,
                api_key_param="key",
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        user_agent: str | None = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.user_agent = user_agent
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent} if self.user_agent else None,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def attempts(self) -> int:
        return self.retry_config.max_retries + 1

    async def _backoff(self, attempt: int, url: str, reason: str) -> None:
        delay = self.retry_config.calculate_backoff(attempt)
        logger.warning(
            "Retrying %s after %s (attempt %d/%d, sleeping %.2fs)",
            url,
            reason,
            attempt + 1,
            self.attempts,
            delay,
        )
        await asyncio.sleep(delay)

    @staticmethod
    def _status_error(response: httpx.Response, attempts: int) -> HTTPClientError:
        status_code = response.status_code
        error_cls = RateLimitError if status_code == 429 else HTTPClientError
        message = f"{response.request.method} {response.request.url.path} returned {status_code}"
        if attempts > 1:
            message += f" after {attempts} attempts"
        return error_cls(
            message,
            status_code=status_code,
            response_body=response.text,
            headers=response.headers,
        )

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_param: str | None = None,
    ) -> httpx.Response:
        """
        GET ``url``, retrying transient failures per the retry config.

        When ``api_key_rotator`` is given, every attempt draws the next key
        and sends it as the ``api_key_param`` query parameter, so a retry
        after a quota error lands on a different key.

        Raises:
            RateLimitError: 429 on the final attempt
            HTTPTimeoutError: the final attempt timed out
            HTTPTransportError: connection failure or malformed URL
            HTTPClientError: any other non-2xx response
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        for attempt in range(self.attempts):
            query = dict(params or {})
            if api_key_rotator and api_key_param:
                query[api_key_param] = await api_key_rotator.get_key()

            is_last = attempt == self.attempts - 1
            try:
                response = await self._client.get(url, params=query or None, headers=headers)
            except httpx.InvalidURL as e:
                raise HTTPTransportError(f"Invalid URL {url}: {e}") from e
            except httpx.TransportError as e:
                if not is_last and self.retry_config.is_retryable_exception(e):
                    await self._backoff(attempt, url, type(e).__name__)
                    continue
                if isinstance(e, httpx.TimeoutException):
                    raise HTTPTimeoutError(f"Request to {url} timed out") from e
                raise HTTPTransportError(f"Request to {url} failed: {type(e).__name__}: {e}") from e

            if response.status_code < 400:
                return response

            if not is_last and self.retry_config.is_retryable_status(response.status_code):
                await self._backoff(attempt, url, f"status {response.status_code}")
                continue

            raise self._status_error(response, attempt + 1)

        raise HTTPClientError(f"Request to {url} failed after {self.attempts} attempts")
