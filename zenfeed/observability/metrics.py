"""
Prometheus metrics for the content aggregation service.

Defines and exposes metrics for:
- Source fetches by platform and outcome
- Errors by platform and error code
- Items returned per platform
- Fetch and aggregation latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from zenfeed.config.settings import get_settings
from zenfeed.content.schemas import Platform

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)

# Label for source types outside the Platform enum; caller-supplied strings
# never become label values
UNSUPPORTED_LABEL = "unsupported"


def _label(platform: Platform | str | None) -> str:
    parsed = platform if isinstance(platform, Platform) else Platform.parse(platform)
    return parsed.value if parsed else UNSUPPORTED_LABEL


class MetricsCollector:
    """
    Prometheus metrics collector for ZenFeed aggregation.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_fetch("youtube", success=True, items=10, latency=0.4)
        metrics.record_error("twitter", "rate_limit")
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize Prometheus metrics.

        Args:
            registry: Registry to register metrics with (default: global REGISTRY).
                Tests pass a fresh CollectorRegistry to avoid duplicate names.
        """
        registry = registry or REGISTRY
        self._registry = registry

        self.source_fetches = Counter(
            "zenfeed_source_fetches_total",
            "Total source fetches",
            ["platform", "status"],  # status: success, error
            registry=registry,
        )

        self.source_errors = Counter(
            "zenfeed_source_errors_total",
            "Total per-source errors",
            ["platform", "code"],
            registry=registry,
        )

        self.items_fetched = Counter(
            "zenfeed_items_fetched_total",
            "Total normalized items returned by adapters",
            ["platform"],
            registry=registry,
        )

        self.fetch_latency = Histogram(
            "zenfeed_fetch_latency_seconds",
            "Time to fetch one source",
            ["platform"],
            buckets=LATENCY_BUCKETS,
            registry=registry,
        )

        self.aggregation_latency = Histogram(
            "zenfeed_aggregation_latency_seconds",
            "Time to complete one aggregation pass",
            ["operation"],  # batch, priority, user_feed
            buckets=LATENCY_BUCKETS,
            registry=registry,
        )

        self.aggregation_sources = Histogram(
            "zenfeed_aggregation_sources",
            "Number of sources per aggregation pass",
            buckets=(1, 2, 5, 10, 20, 50, 100),
            registry=registry,
        )

        self.validations = Counter(
            "zenfeed_source_validations_total",
            "Total source validations",
            ["platform", "valid"],
            registry=registry,
        )

        self.fetches_in_flight = Gauge(
            "zenfeed_fetches_in_flight",
            "Number of source fetches currently running",
            registry=registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=self._registry)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_fetch(
        self,
        platform: Platform | str | None,
        success: bool,
        items: int = 0,
        latency: float | None = None,
    ) -> None:
        """
        Record one source fetch.

        Args:
            platform: Source platform
            success: Whether the fetch succeeded
            items: Number of items returned
            latency: Optional fetch latency in seconds
        """
        platform_str = _label(platform)
        self.source_fetches.labels(
            platform=platform_str,
            status="success" if success else "error",
        ).inc()

        if items:
            self.items_fetched.labels(platform=platform_str).inc(items)

        if latency is not None:
            self.fetch_latency.labels(platform=platform_str).observe(latency)

    def record_error(self, platform: Platform | str | None, code: str) -> None:
        """
        Record a per-source error.

        Args:
            platform: Source platform (or the raw unsupported type)
            code: ErrorCode value
        """
        self.source_errors.labels(platform=_label(platform), code=code).inc()

    def record_validation(self, platform: Platform | str | None, valid: bool) -> None:
        self.validations.labels(
            platform=_label(platform),
            valid="true" if valid else "false",
        ).inc()

    def record_aggregation(self, operation: str, sources: int, latency: float) -> None:
        """
        Record one aggregation pass.

        Args:
            operation: batch, priority or user_feed
            sources: Number of sources in the request
            latency: Wall time in seconds
        """
        self.aggregation_latency.labels(operation=operation).observe(latency)
        if sources > 0:
            self.aggregation_sources.observe(sources)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
