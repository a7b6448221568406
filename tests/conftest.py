"""Shared pytest fixtures used across all test modules."""

import os
from unittest.mock import MagicMock

import pytest

# Ensure required env vars are set for test imports
os.environ.setdefault("CLOUDFLARE_API_TOKEN", "test-token")
os.environ.setdefault("CLOUDFLARE_API_URL", "https://api.cloudflare.test/client/v4")
os.environ.setdefault("CLOUDFLARE_ZONE_NAMES", "")
os.environ.setdefault("STATUS_FEED_URL", "https://status.cloudflare.test/api/v2/summary.json")
os.environ.setdefault("METRICS_NAMESPACE", "cloudflare")
os.environ.setdefault("DEBUG_MODE", "True")
os.environ.setdefault("MAX_WORKERS", "2")
os.environ.setdefault("SCRAPE_TIMEOUT_SECONDS", "10")


def make_response(payload, status_code: int = 200) -> MagicMock:
    """A stand-in for ``httpx.Response`` returning ``payload`` from ``json()``."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def schema():
    from config.metric_families import MetricSchema

    return MetricSchema("cloudflare")


@pytest.fixture
def registry():
    from services.identity_registry import LocationRegistry

    return LocationRegistry()


@pytest.fixture
def status_document():
    """A trimmed status summary with one region, two PoPs and a service."""
    return {
        "status": {"indicator": "none", "description": "All Systems Operational"},
        "components": [
            {"id": "g-eu", "name": "Europe", "status": "operational", "group": True},
            {
                "id": "g-cf",
                "name": "Cloudflare Sites and Services",
                "status": "operational",
                "group": True,
            },
            {
                "id": "c-ams",
                "name": "Amsterdam, Netherlands - (AMS)",
                "status": "operational",
                "group": False,
                "group_id": "g-eu",
            },
            {
                "id": "c-zzz",
                "name": "Atlantis, Ocean - (ZZZ)",
                "status": "partial_outage",
                "group": False,
                "group_id": "g-eu",
            },
            {
                "id": "c-api",
                "name": "API",
                "status": "degraded_performance",
                "group": False,
                "group_id": "g-cf",
            },
        ],
    }
