"""
Content aggregation service - fans a request out to platform adapters.

Orchestrates adapters for single-source fetches, batch aggregation and
priority-weighted aggregation, and reports partial failures per source.

Features:
- Bounded concurrent fetches (asyncio.Semaphore)
- Structural request checks before any fetch
- Per-source error reporting; one failing source never fails the batch
- Metrics collection
"""

import asyncio
import math
import time
from collections.abc import Iterable, Mapping, Sequence
from datetime import timedelta
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from zenfeed.config.settings import Settings, get_settings
from zenfeed.content.base_adapter import Credentials
from zenfeed.content.errors import ErrorCode, MalformedRequestError
from zenfeed.content.registry import AdapterRegistry
from zenfeed.content.schemas import (
    AggregationResult,
    ContentItem,
    ContentSource,
    FetchOptions,
    FetchResult,
    InfoResult,
    Priority,
    SourceError,
    ValidationResult,
)
from zenfeed.observability.metrics import MetricsCollector, get_metrics
from zenfeed.sources.protocols import CredentialLookup, SourceStore, resolve_credentials

logger = structlog.get_logger(__name__)

# Percentage of the batch limit given to each priority group
PRIORITY_SHARES = {
    Priority.HIGH: 50,
    Priority.MEDIUM: 30,
    Priority.LOW: 20,
}
PRIORITY_BONUS = timedelta(days=1)


def coerce_sources(raw: Any) -> list[ContentSource]:
    """
    Check the shape of a batch request and build ContentSource values.

    Every element must carry a non-empty `id` and `type`. The type itself
    is not checked here: unsupported types are reported per source.

    Raises:
        MalformedRequestError: If the request is not a list of descriptors
    """
    if not isinstance(raw, (list, tuple)):
        raise MalformedRequestError("Sources array is required")

    sources = []
    for index, entry in enumerate(raw):
        if isinstance(entry, ContentSource):
            sources.append(entry)
            continue

        if not isinstance(entry, Mapping):
            raise MalformedRequestError(f"Source at index {index} is not an object")

        source_id = entry.get("id")
        source_type = entry.get("type")
        if not isinstance(source_id, str) or not source_id.strip() or not isinstance(
            source_type, str
        ) or not source_type.strip():
            raise MalformedRequestError("Each source must have type and id fields")

        try:
            sources.append(ContentSource.model_validate(dict(entry)))
        except PydanticValidationError as e:
            raise MalformedRequestError(
                f"Invalid source {source_id}: {e.errors()[0].get('msg', 'invalid field')}",
                source_id=source_id,
            ) from e

    return sources


class ContentAggregationService:
    """
    Service that aggregates content from heterogeneous sources.

    Stateless between calls: every call resolves adapters from the registry,
    fetches, merges and returns. Credentials are read-only per-call inputs.

    Usage:
        service = ContentAggregationService()
        result = await service.aggregate_all_content(sources, FetchOptions(limit=20))
    """

    def __init__(
        self,
        registry: AdapterRegistry | None = None,
        settings: Settings | None = None,
        source_store: SourceStore | None = None,
        credential_lookup: CredentialLookup | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize aggregation service.

        Args:
            registry: Adapter registry (or the default built-in adapters)
            settings: Settings (or from environment)
            source_store: Collaborator for aggregate_user_feed
            credential_lookup: Collaborator for aggregate_user_feed
            metrics: Metrics collector (or the global one)
        """
        self._settings = settings or get_settings()
        self._registry = registry or AdapterRegistry.default(self._settings)
        self._source_store = source_store
        self._credential_lookup = credential_lookup
        self._metrics = metrics or get_metrics()

        logger.info(
            "Aggregation service initialized",
            platforms=self._registry.platforms,
            max_concurrent_fetches=self._settings.max_concurrent_fetches,
        )

    # ── Platform discovery ──────────────────────────────────────

    def get_available_platforms(self) -> list[str]:
        """Supported source types, in a stable order."""
        return self._registry.platforms

    def is_platform_supported(self, source_type: str | None) -> bool:
        return self._registry.is_supported(source_type)

    # ── Single-source operations ────────────────────────────────

    async def validate_source(
        self,
        source: ContentSource,
        credentials: Credentials | None = None,
        check_remote: bool = True,
    ) -> ValidationResult:
        """Validate a descriptor; unknown types fail closed."""
        adapter = self._registry.get(source.type)
        result = await adapter.validate(source, credentials, check_remote=check_remote)

        self._metrics.record_validation(source.platform, result.valid)
        logger.info(
            "Source validated",
            source_id=source.id,
            type=source.type,
            valid=result.valid,
            error_code=result.error_code,
        )
        return result

    async def get_source_info(
        self,
        source: ContentSource,
        credentials: Credentials | None = None,
    ) -> InfoResult:
        """Best-effort metadata; failure here is informational only."""
        adapter = self._registry.get(source.type)
        return await adapter.describe(source, credentials)

    async def fetch_content_from_source(
        self,
        source: ContentSource,
        options: FetchOptions | None = None,
        credentials: Credentials | None = None,
    ) -> FetchResult:
        """
        Fetch one source.

        The limit is clamped to [1, single_limit_cap] here and to the
        platform maximum by the adapter.
        """
        options = (options or FetchOptions()).clamped(self._settings.single_limit_cap)
        return await self._fetch_one(source, options, credentials or {})

    # ── Batch operations ────────────────────────────────────────

    async def aggregate_all_content(
        self,
        sources: Sequence[ContentSource | Mapping[str, Any]],
        options: FetchOptions | None = None,
        credentials: Credentials | None = None,
    ) -> AggregationResult:
        """
        Fetch every source and merge the results.

        Every source is fetched with the batch limit. Items are concatenated
        in source order, so each successful source contributes up to `limit`
        items. With `options.order == "recent"` the combined list is sorted
        newest first and truncated to the batch limit instead.

        Raises:
            MalformedRequestError: If the request is structurally invalid.
                Nothing is fetched in that case.
        """
        start_time = time.monotonic()
        source_list = coerce_sources(sources)
        options = (options or FetchOptions()).clamped(self._settings.batch_limit_cap)

        results = await self._run_batch(
            [(source, options) for source in source_list],
            credentials or {},
        )
        aggregation = self._merge(source_list, results)

        # Source order keeps every source's items; each is already capped at the limit
        if options.order == "recent":
            recent = sorted(aggregation.items, key=lambda item: item.published_at, reverse=True)
            aggregation.items = recent[: options.limit]

        self._log_aggregation("batch", aggregation, start_time)
        return aggregation

    async def aggregate_with_priority(
        self,
        sources: Sequence[ContentSource | Mapping[str, Any]],
        options: FetchOptions | None = None,
        credentials: Credentials | None = None,
    ) -> AggregationResult:
        """
        Fetch every source with a priority-dependent share of the limit.

        High, medium and low priority sources get 50%, 30% and 20% of the
        batch limit respectively (rounded up). Items are then ranked by
        publication time plus a one-day bonus per priority weight, so a
        high priority item outranks a low priority one published up to two
        days later.

        Raises:
            MalformedRequestError: If the request is structurally invalid
        """
        start_time = time.monotonic()
        source_list = coerce_sources(sources)
        options = (options or FetchOptions()).clamped(self._settings.batch_limit_cap)

        group_options = {
            priority: options.model_copy(
                update={"limit": max(1, math.ceil(options.limit * percent / 100))}
            )
            for priority, percent in PRIORITY_SHARES.items()
        }

        results = await self._run_batch(
            [(source, group_options[source.priority]) for source in source_list],
            credentials or {},
        )
        aggregation = self._merge(source_list, results)

        weights = {source.id: source.priority.weight for source in source_list}

        def score(item: ContentItem):
            return item.published_at + PRIORITY_BONUS * weights.get(
                item.source_id, Priority.MEDIUM.weight
            )

        ranked = sorted(aggregation.items, key=score, reverse=True)
        aggregation.items = ranked[: options.limit]

        self._log_aggregation("priority", aggregation, start_time)
        return aggregation

    async def aggregate_user_feed(
        self,
        user_id: str,
        options: FetchOptions | None = None,
        prioritize: bool = False,
    ) -> AggregationResult:
        """
        Aggregate a user's active sources with their linked-account tokens.

        Args:
            user_id: Owner of the sources
            options: Fetch options
            prioritize: Use priority-weighted aggregation

        Raises:
            RuntimeError: If the service was built without collaborators
        """
        if self._source_store is None or self._credential_lookup is None:
            raise RuntimeError("aggregate_user_feed requires a SourceStore and CredentialLookup")

        sources = [s for s in await self._source_store.list_sources(user_id) if s.active]
        credentials = await resolve_credentials(
            self._credential_lookup,
            user_id,
            (s.platform for s in sources if s.platform is not None),
        )

        logger.info(
            "Aggregating user feed",
            user_id=user_id,
            sources=len(sources),
            linked_platforms=sorted(credentials),
        )

        if prioritize:
            return await self.aggregate_with_priority(sources, options, credentials)
        return await self.aggregate_all_content(sources, options, credentials)

    # ── Internals ───────────────────────────────────────────────

    async def _fetch_one(
        self,
        source: ContentSource,
        options: FetchOptions,
        credentials: Credentials,
    ) -> FetchResult:
        adapter = self._registry.get(source.type)
        start_time = time.monotonic()

        self._metrics.fetches_in_flight.inc()
        try:
            result = await adapter.fetch(source, options, credentials)
        except Exception as e:
            # Adapters report failures in the result; this is a bug guard
            logger.error(
                "Adapter raised during fetch",
                source_id=source.id,
                type=source.type,
                error=str(e),
                exc_info=True,
            )
            result = FetchResult(
                source_id=source.id,
                success=False,
                error=f"Failed to fetch {source.type} content: {e}",
                error_code=ErrorCode.INTERNAL,
            )
        finally:
            self._metrics.fetches_in_flight.dec()

        self._metrics.record_fetch(
            source.platform,
            success=result.success,
            items=len(result.items),
            latency=time.monotonic() - start_time,
        )
        return result

    async def _run_batch(
        self,
        jobs: Iterable[tuple[ContentSource, FetchOptions]],
        credentials: Credentials,
    ) -> list[FetchResult]:
        """
        Fetch sources concurrently, at most max_concurrent_fetches at a time.

        Results are returned in job order. Inactive sources are not fetched.
        Cancelling the caller cancels every in-flight fetch.
        """
        semaphore = asyncio.Semaphore(self._settings.max_concurrent_fetches)

        async def run(source: ContentSource, options: FetchOptions) -> FetchResult:
            if not source.active:
                return FetchResult(
                    source_id=source.id,
                    success=False,
                    error="Source is inactive",
                    error_code=ErrorCode.INACTIVE,
                )
            async with semaphore:
                return await self._fetch_one(source, options, credentials)

        return await asyncio.gather(*(run(source, options) for source, options in jobs))

    def _merge(
        self,
        sources: list[ContentSource],
        results: list[FetchResult],
    ) -> AggregationResult:
        """Concatenate items in source order and collect one error per failed source."""
        items: list[ContentItem] = []
        errors: list[SourceError] = []
        successful = 0

        for source, result in zip(sources, results):
            if result.success:
                items.extend(result.items)
                successful += 1
                continue

            code = result.error_code or ErrorCode.INTERNAL
            errors.append(
                SourceError(
                    source_id=source.id,
                    message=result.error or "Unknown error",
                    code=code,
                )
            )
            self._metrics.record_error(source.platform, code.value)

        return AggregationResult(
            items=items,
            errors=errors,
            total_sources=len(sources),
            successful_sources=successful,
        )

    def _log_aggregation(
        self,
        operation: str,
        aggregation: AggregationResult,
        start_time: float,
    ) -> None:
        elapsed = time.monotonic() - start_time
        self._metrics.record_aggregation(operation, aggregation.total_sources, elapsed)

        logger.info(
            "Aggregation completed",
            operation=operation,
            total_sources=aggregation.total_sources,
            successful_sources=aggregation.successful_sources,
            failed_sources=aggregation.failed_sources,
            items=len(aggregation.items),
            elapsed_seconds=round(elapsed, 2),
        )
        for error in aggregation.errors:
            logger.warning(
                "Source failed",
                source_id=error.source_id,
                code=error.code.value,
                message=error.message,
            )
