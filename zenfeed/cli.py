"""
Command-line interface for ZenFeed.

Provides commands to run the API server and to exercise the aggregation
service against live sources.

Usage:
    zenfeed platforms                         # List supported source types
    zenfeed validate rss --url https://...    # Validate a source
    zenfeed fetch youtube --username @mkbhd   # Fetch one source
    zenfeed aggregate sources.json            # Fetch and merge many sources
    zenfeed serve                             # Run the API server
"""

import asyncio
import json
import os
import sys

import click

from zenfeed.config.settings import get_settings
from zenfeed.content.errors import MalformedRequestError
from zenfeed.content.schemas import ContentSource, FetchOptions
from zenfeed.observability.logging import setup_logging
from zenfeed.observability.metrics import get_metrics


def _service():
    from zenfeed.services.aggregation_service import ContentAggregationService

    return ContentAggregationService()


def _echo_json(model) -> None:
    click.echo(model.model_dump_json(by_alias=True, indent=2, exclude_none=True))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """ZenFeed - Multi-platform content aggregation."""
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
def platforms() -> None:
    """List supported source types."""
    for platform in _service().get_available_platforms():
        click.echo(platform)


@main.command()
@click.argument("source_type")
@click.option("--url", default=None, help="Source URL")
@click.option("--username", default=None, help="Username, handle or slug")
@click.option("--name", default="", help="Display name")
@click.option("--local", is_flag=True, help="Only run local format checks")
def validate(source_type: str, url: str | None, username: str | None, name: str, local: bool) -> None:
    """Validate a source descriptor."""

    async def run():
        source = ContentSource(id="cli", type=source_type, name=name, url=url, username=username)
        return await _service().validate_source(source, check_remote=not local)

    result = asyncio.run(run())

    if result.valid:
        click.echo(click.style("✓ valid", fg="green"))
        if result.source_info:
            _echo_json(result.source_info)
        sys.exit(0)

    click.echo(click.style(f"✗ {result.error} ({result.error_code.value})", fg="red"))
    sys.exit(1)


@main.command()
@click.argument("source_type")
@click.option("--url", default=None, help="Source URL")
@click.option("--username", default=None, help="Username, handle or slug")
@click.option("--limit", default=10, help="Maximum items (clamped to 1..50)")
@click.option("--metrics", "include_metrics", is_flag=True, help="Include engagement metrics")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
def fetch(
    source_type: str,
    url: str | None,
    username: str | None,
    limit: int,
    include_metrics: bool,
    as_json: bool,
) -> None:
    """Fetch content from one source."""

    async def run():
        source = ContentSource(id="cli", type=source_type, url=url, username=username)
        return await _service().fetch_content_from_source(
            source,
            FetchOptions(limit=limit, include_metrics=include_metrics),
        )

    result = asyncio.run(run())

    if as_json:
        _echo_json(result)
    elif result.success:
        for item in result.items:
            published = item.published_at.strftime("%Y-%m-%d %H:%M")
            click.echo(f"{published}  {item.title}")
            click.echo(click.style(f"                  {item.url}", fg="blue"))
        click.echo(f"\n{len(result.items)} items")
    else:
        click.echo(click.style(f"✗ {result.error} ({result.error_code.value})", fg="red"))

    sys.exit(0 if result.success else 1)


@main.command()
@click.argument("sources_file", type=click.File("r"))
@click.option("--limit", default=10, help="Maximum items overall (clamped to 1..100)")
@click.option("--order", type=click.Choice(["source", "recent"]), default="source")
@click.option("--prioritize", is_flag=True, help="Use priority-weighted aggregation")
def aggregate(sources_file, limit: int, order: str, prioritize: bool) -> None:
    """Fetch and merge content from a JSON list of sources."""
    try:
        raw_sources = json.load(sources_file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="SOURCES_FILE")

    async def run():
        service = _service()
        options = FetchOptions(limit=limit, order=order)
        if prioritize:
            return await service.aggregate_with_priority(raw_sources, options)
        return await service.aggregate_all_content(raw_sources, options)

    try:
        result = asyncio.run(run())
    except MalformedRequestError as e:
        raise click.UsageError(e.message)

    _echo_json(result)

    click.echo("-" * 40, err=True)
    click.echo(
        f"{result.successful_sources}/{result.total_sources} sources succeeded, "
        f"{len(result.items)} items",
        err=True,
    )
    for error in result.errors:
        click.echo(
            click.style(f"  ✗ {error.source_id}: {error.message} ({error.code.value})", fg="red"),
            err=True,
        )


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the content API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    if settings.metrics_enabled:
        get_metrics().start_server(port=metrics_port)
        click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "zenfeed.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
