"""Tests for the request-context and CORS middleware stack."""

import uuid

import pytest
from fastapi.testclient import TestClient

from zenfeed.api.app import create_app
from zenfeed.api.dependencies import get_aggregation_service


@pytest.fixture
def api(service):
    app = create_app()
    app.dependency_overrides[get_aggregation_service] = lambda: service
    with TestClient(app) as client:
        yield client


class TestRequestContext:
    def test_generated_request_id_is_uuid4(self, api):
        resp = api.get("/content-sources/platforms")

        assert resp.status_code == 200
        assert uuid.UUID(resp.headers["X-Request-ID"]).version == 4

    def test_each_request_gets_its_own_id(self, api):
        first = api.get("/content-sources/platforms").headers["X-Request-ID"]
        second = api.get("/content-sources/platforms").headers["X-Request-ID"]

        assert first != second

    @pytest.mark.parametrize(
        "headers, expected",
        [
            ({"X-Request-ID": "dash-42"}, "dash-42"),
            ({"X-Correlation-ID": "corr-7"}, "corr-7"),
            ({"X-Request-ID": "dash-42", "X-Correlation-ID": "corr-7"}, "dash-42"),
        ],
    )
    def test_caller_supplied_id_is_echoed(self, api, headers, expected):
        resp = api.get("/content-sources/platforms", headers=headers)

        assert resp.headers["X-Request-ID"] == expected

    def test_id_present_on_rejected_batch(self, api):
        resp = api.post(
            "/content-sources/fetch",
            json={"sources": "not-a-list"},
            headers={"X-Request-ID": "bad-batch"},
        )

        assert resp.status_code in (400, 422)
        assert resp.headers["X-Request-ID"] == "bad-batch"


class TestCORS:
    def test_dashboard_origin_allowed(self, api):
        resp = api.options(
            "/content-sources/fetch",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_unknown_origin_not_echoed(self, api):
        resp = api.options(
            "/content-sources/fetch",
            headers={
                "Origin": "https://evil.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert resp.headers.get("access-control-allow-origin") != "https://evil.example.com"
