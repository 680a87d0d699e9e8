"""
FastAPI application factory.

Exposes the content-sources endpoints used by the dashboard and the health
check. Middleware order matters: the request-context middleware is
registered last so it is outermost, which lets the timeout middleware log
the request id of a request it aborts.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zenfeed import __version__
from zenfeed.api.dependencies import reset_dependencies
from zenfeed.api.middleware.timeout import TimeoutMiddleware
from zenfeed.api.routes import content, health
from zenfeed.config.settings import Settings, get_settings
from zenfeed.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)

API_DESCRIPTION = """
Aggregates content from YouTube, Instagram, Twitter, RSS feeds, newsletters
and news categories into one normalized feed.

## Partial failures

A batch fetch never fails because one source failed. Failed sources are
listed in `errors` with a categorized `code`.
"""

OPENAPI_TAGS = [
    {"name": "health", "description": "Service health checks"},
    {"name": "content-sources", "description": "Fetch, validate and list content sources"},
]

REQUEST_ID_HEADERS = ("X-Request-ID", "X-Correlation-ID")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        "ZenFeed API starting up",
        environment=settings.environment,
        youtube=settings.youtube_configured,
        twitter=settings.twitter_configured,
        instagram=settings.instagram_configured,
    )

    yield

    logger.info("ZenFeed API shutting down")
    reset_dependencies()


def _request_id(request: Request) -> str:
    for header in REQUEST_ID_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return str(uuid.uuid4())


def _cors_origins(settings: Settings) -> list[str]:
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Build the application from current settings."""
    settings = get_settings()

    app = FastAPI(
        title="ZenFeed Content API",
        description=API_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    if settings.request_timeout_seconds > 0:
        app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = _request_id(request)
        request.state.request_id = request_id
        bind_context(request_id=request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=elapsed_ms,
            )
            return response
        finally:
            clear_context()

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "errorType": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(content.router, tags=["content-sources"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "ZenFeed Content API",
            "version": __version__,
            "docs": "/docs",
        }

    return app
