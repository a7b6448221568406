"""End-to-end tests for the FastAPI application routes.

These tests use the FastAPI TestClient to hit every endpoint and
verify the contract without any real Cloudflare calls.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from config.metric_families import REQUESTS_TOTAL, MetricSchema
from services.analytics_collector import ScrapeResult
from services.identity_registry import LocationRegistry


@pytest.fixture
def client():
    """Create a TestClient with the collector service fully mocked."""
    schema = MetricSchema("cloudflare")
    mock_service = MagicMock()
    mock_service.collect.return_value = ScrapeResult(
        started_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        records=[schema.record(REQUESTS_TOTAL, ("z1", "example.com"), 1000)],
    )
    mock_service.summary.return_value = {
        "zones": [{"zone_id": "z1", "name": "example.com", "tier": "free"}],
        "known_locations": 1,
        "last_scrape": None,
    }
    registry = LocationRegistry(load_builtins=False)
    registry.learn("AMS", "Amsterdam, Netherlands", "Europe")
    mock_service.registry = registry

    from fastapi_app import routes
    from fastapi_app.app import app

    routes.install(mock_service)
    yield TestClient(app)
    routes.shutdown()


class TestHealthEndpoints:
    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "cloudflare-exporter"

    def test_favicon(self, client):
        resp = client.get("/favicon.ico")
        assert resp.status_code == 204


class TestMetricsEndpoint:
    def test_metrics_exposition(self, client):
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert 'cloudflare_requests_total{resource_id="z1",resource_name="example.com"} 1000.0' in resp.text

    def test_metrics_unavailable_when_startup_fails(self):
        from fastapi_app import routes
        from fastapi_app.app import app
        from services.analytics_collector import NoMonitoredZonesError

        routes.shutdown()
        with patch(
            "services.analytics_collector.AnalyticsCollectorService.from_environment",
            side_effect=NoMonitoredZonesError("no zones found"),
        ):
            resp = TestClient(app).get("/metrics")
        assert resp.status_code == 503
        assert "no zones" in resp.json()["error"]


class TestIntrospectionEndpoints:
    def test_status(self, client):
        resp = client.get("/status")
        assert resp.status_code == 200
        assert resp.json()["zones"][0]["zone_id"] == "z1"

    def test_locations(self, client):
        resp = client.get("/locations")
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 1
        assert data["locations"][0]["code"] == "AMS"


class TestLazyServiceBuild:
    def test_concurrent_first_requests_build_one_service(self):
        import threading
        import time
        from concurrent.futures import ThreadPoolExecutor

        from fastapi_app import routes

        routes.shutdown()
        built = []
        start = threading.Event()

        def build():
            time.sleep(0.05)
            service = MagicMock()
            built.append(service)
            return service

        def first_request():
            start.wait()
            return routes._get_service()

        with patch(
            "services.analytics_collector.AnalyticsCollectorService.from_environment",
            side_effect=build,
        ):
            with ThreadPoolExecutor(max_workers=8) as pool:
                futures = [pool.submit(first_request) for _ in range(8)]
                start.set()
                services = [f.result() for f in futures]

        assert len(built) == 1
        assert all(s is built[0] for s in services)
        routes.shutdown()
