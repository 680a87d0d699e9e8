"""
Request timeout middleware.

A batch fetch fans out to several upstream platforms; if they are all slow
the request would otherwise hold a worker for the sum of adapter timeouts.
Requests exceeding the budget get a 504 with the budget echoed back.
"""

import asyncio
from collections.abc import Iterable

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

DEFAULT_EXEMPT_PATHS = ("/health", "/content-sources/platforms")


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that run longer than ``timeout_seconds``."""

    def __init__(
        self,
        app,
        timeout_seconds: float = 60.0,
        exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS,
    ):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds
        self.exempt_paths = tuple(exempt_paths)

    def is_exempt(self, path: str) -> bool:
        return path.startswith(self.exempt_paths)

    async def dispatch(self, request: Request, call_next):
        if self.is_exempt(request.url.path):
            return await call_next(request)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            request_id = getattr(request.state, "request_id", None)
            logger.warning(
                "Request exceeded time budget",
                path=request.url.path,
                method=request.method,
                request_id=request_id,
                timeout_seconds=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={
                    "detail": "Request timed out",
                    "path": request.url.path,
                    "timeoutSeconds": self.timeout_seconds,
                },
            )
