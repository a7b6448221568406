"""API routes for the Cloudflare exporter.

Endpoints
─────────
GET /metrics    – Run a collection pass and return the Prometheus exposition.
GET /status     – Monitored zones, their tier policies and the last scrape outcome.
GET /locations  – Every location code the registry currently knows.

Counter names on /metrics
─────────────────────────
The exposition format gives every counter sample a ``_total`` suffix, so the
request-count families appear as (``cloudflare_pop_`` prefix for Enterprise
per-location series):

    requests_total             → cloudflare_requests_total (unchanged)
    requests_cached            → cloudflare_requests_cached_total
    requests_uncached          → cloudflare_requests_uncached_total
    requests_encrypted         → cloudflare_requests_encrypted_total
    requests_unencrypted       → cloudflare_requests_unencrypted_total
    requests_by_status         → cloudflare_requests_by_status_total
    requests_by_content_type   → cloudflare_requests_by_content_type_total
    requests_by_country        → cloudflare_requests_by_country_total
    requests_by_ip_class       → cloudflare_requests_by_ip_class_total

Gauge families keep their names.
"""

from __future__ import annotations

import threading
from typing import Any

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from helpers.constants import APP_LOGGER

router = APIRouter()

# Lazy singletons for the heavy service and its registry
_service: Any = None
_registry: Any = None
_build_lock = threading.Lock()


def install(service) -> None:
    """Use an already-built collector service (set up by ``main``)."""
    global _service, _registry
    from services.exposition import build_registry

    _registry = build_registry(service)
    _service = service


def _get_service():
    if _service is None:
        with _build_lock:
            if _service is None:
                from services.analytics_collector import AnalyticsCollectorService

                install(AnalyticsCollectorService.from_environment())
    return _service


def shutdown() -> None:
    global _service, _registry
    if _service is not None:
        _service.close()
    _service = None
    _registry = None


def _unavailable(exc: Exception) -> JSONResponse:
    APP_LOGGER.error(msg=f"Exporter unavailable: {exc}")
    return JSONResponse(content={"error": str(exc)}, status_code=503)


# ── Prometheus scrape ─────────────────────────────────────────────────────

@router.get("/metrics")
def metrics() -> Response:
    """Collect every monitored zone and render the text exposition format.

    Counter families carry a ``_total`` suffix; see the module docstring.
    """
    try:
        _get_service()
    except Exception as exc:
        return _unavailable(exc)
    return Response(content=generate_latest(_registry), media_type=CONTENT_TYPE_LATEST)


# ── Introspection ─────────────────────────────────────────────────────────

@router.get("/status")
def get_status() -> JSONResponse:
    """Return the monitored zones and the outcome of the most recent scrape."""
    try:
        service = _get_service()
    except Exception as exc:
        return _unavailable(exc)
    return JSONResponse(content=service.summary(), status_code=200)


@router.get("/locations")
def get_locations() -> JSONResponse:
    """Return the location registry contents, sorted by display name."""
    try:
        service = _get_service()
    except Exception as exc:
        return _unavailable(exc)
    return JSONResponse(content=service.registry.as_dict(), status_code=200)


@router.get("/favicon.ico")
def favicon() -> Response:
    return Response(status_code=204)
