"""Tests for the health endpoint."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from zenfeed import __version__
from zenfeed.api.app import create_app
from zenfeed.api.dependencies import get_aggregation_service


def _get_health(service, settings):
    app = create_app()
    app.dependency_overrides[get_aggregation_service] = lambda: service

    with patch("zenfeed.api.routes.health.get_settings", return_value=settings):
        with TestClient(app) as client:
            return client.get("/health")


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_healthy_with_credentials(self, service, test_settings):
        resp = _get_health(service, test_settings)

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["environment"] == "development"
        assert data["platforms"] == ["twitter", "rss"]
        assert data["credentialsConfigured"] == {
            "youtube": True,
            "twitter": True,
            "instagram": True,
        }

    def test_degraded_without_credentials(self, service, bare_settings):
        resp = _get_health(service, bare_settings)

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "degraded"
        assert not any(data["credentialsConfigured"].values())

    def test_partial_credentials_still_healthy(self, service, bare_settings):
        settings = bare_settings.model_copy(update={"twitter_bearer_token": "tw"})

        resp = _get_health(service, settings)

        assert resp.json()["status"] == "healthy"
        assert resp.json()["credentialsConfigured"]["twitter"] is True
