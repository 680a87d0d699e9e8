"""Tests for request timeout middleware."""

import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient

from zenfeed.api.middleware.timeout import TimeoutMiddleware


def _create_test_app(timeout: float = 1.0) -> FastAPI:
    """Create a minimal FastAPI app with timeout middleware for testing."""
    app = FastAPI()
    app.add_middleware(TimeoutMiddleware, timeout_seconds=timeout)

    @app.get("/fast")
    async def fast():
        return {"status": "ok"}

    @app.post("/content-sources/fetch")
    async def slow_fetch():
        await asyncio.sleep(10)
        return {"items": []}

    @app.get("/health")
    async def health():
        await asyncio.sleep(0.3)
        return {"status": "healthy"}

    return app


class TestTimeoutMiddleware:
    """Tests for TimeoutMiddleware behavior."""

    def test_fast_request_succeeds(self):
        """Normal requests within timeout should succeed."""
        client = TestClient(_create_test_app(timeout=5.0))
        response = client.get("/fast")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_slow_request_returns_504(self):
        """Requests exceeding timeout should return 504."""
        client = TestClient(_create_test_app(timeout=0.1))
        response = client.post("/content-sources/fetch")
        assert response.status_code == 504
        data = response.json()
        assert data["detail"] == "Request timed out"
        assert data["timeoutSeconds"] == 0.1
        assert data["path"] == "/content-sources/fetch"

    def test_health_excluded_from_timeout(self):
        """Health endpoint should bypass timeout enforcement."""
        client = TestClient(_create_test_app(timeout=0.1))
        response = client.get("/health")
        assert response.status_code == 200

    def test_custom_exempt_paths(self):
        app = FastAPI()
        app.add_middleware(TimeoutMiddleware, timeout_seconds=0.1, exempt_paths=("/content-sources",))

        @app.post("/content-sources/fetch")
        async def slow_fetch():
            await asyncio.sleep(0.3)
            return {"items": []}

        response = TestClient(app).post("/content-sources/fetch")
        assert response.status_code == 200

    def test_is_exempt(self):
        middleware = TimeoutMiddleware(FastAPI(), timeout_seconds=1.0)
        assert middleware.is_exempt("/health")
        assert middleware.is_exempt("/content-sources/platforms")
        assert not middleware.is_exempt("/content-sources/fetch")
