"""Cloudflare client API wrapper – zones, dashboard and DNS analytics.

Responses are decoded here, once, into typed records so that the mapper
never indexes into raw JSON or positional arrays:

* dashboard totals  → :class:`DashboardTotals`
* by-colocation     → one :class:`LocationTotals` per colo
* DNS report rows   → :class:`DnsRow` / :class:`DnsRowWithLocation` /
  :class:`DnsRowWithLocationAndQueryType`, chosen by dimension-vector length
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from config.tiers import DNS_METRICS
from config.zones import MonitoredZone
from helpers.constants import APP_LOGGER
from helpers.utils import isoformat_z

ZONES_PAGE_SIZE = 50


class CloudflareAPIError(Exception):
    """Transport, HTTP status, envelope or decoding failure from the API."""


@dataclass(frozen=True)
class AnalyticsQuery:
    """One analytics request for one zone. Built per scrape, consumed once."""

    resource_id: str
    since: datetime
    until: datetime
    metrics: tuple[str, ...] = ()
    dimensions: tuple[str, ...] = ()
    continuous: bool = True

    def as_params(self) -> dict[str, str]:
        params = {"since": isoformat_z(self.since), "until": isoformat_z(self.until)}
        if self.metrics:
            params["metrics"] = ",".join(self.metrics)
        if self.dimensions:
            params["dimensions"] = ",".join(self.dimensions)
        else:
            params["continuous"] = "true" if self.continuous else "false"
        return params


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Decoded dashboard shape
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _breakdown(value: Any) -> dict[str, float]:
    """Keep only the numeric entries of a category map."""
    if not isinstance(value, dict):
        return {}
    out: dict[str, float] = {}
    for key, raw in value.items():
        number = _number(raw)
        if number is not None:
            out[str(key)] = number
    return out


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


@dataclass
class TrafficTotals:
    """Requests or bandwidth section of a dashboard response."""

    all: float | None = None
    cached: float | None = None
    uncached: float | None = None
    encrypted: float | None = None
    unencrypted: float | None = None
    by_status: dict[str, float] = field(default_factory=dict)
    by_content_type: dict[str, float] = field(default_factory=dict)
    by_country: dict[str, float] = field(default_factory=dict)
    by_ip_class: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> TrafficTotals:
        ssl = _section(payload, "ssl")
        return cls(
            all=_number(payload.get("all")),
            cached=_number(payload.get("cached")),
            uncached=_number(payload.get("uncached")),
            encrypted=_number(ssl.get("encrypted")),
            unencrypted=_number(ssl.get("unencrypted")),
            by_status=_breakdown(payload.get("http_status")),
            by_content_type=_breakdown(payload.get("content_type")),
            by_country=_breakdown(payload.get("country")),
            by_ip_class=_breakdown(payload.get("ip_class")),
        )


@dataclass
class ThreatTotals:
    all: float | None = None
    by_type: dict[str, float] = field(default_factory=dict)
    by_country: dict[str, float] = field(default_factory=dict)


@dataclass
class PageviewTotals:
    all: float | None = None
    by_search_engine: dict[str, float] = field(default_factory=dict)


@dataclass
class DashboardTotals:
    """Totals/aggregate shape of the dashboard analytics response."""

    requests: TrafficTotals = field(default_factory=TrafficTotals)
    bandwidth: TrafficTotals = field(default_factory=TrafficTotals)
    threats: ThreatTotals = field(default_factory=ThreatTotals)
    pageviews: PageviewTotals = field(default_factory=PageviewTotals)
    unique_ip_addresses: float | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> DashboardTotals:
        threats = _section(payload, "threats")
        pageviews = _section(payload, "pageviews")
        return cls(
            requests=TrafficTotals.from_api(_section(payload, "requests")),
            bandwidth=TrafficTotals.from_api(_section(payload, "bandwidth")),
            threats=ThreatTotals(
                all=_number(threats.get("all")),
                by_type=_breakdown(threats.get("type")),
                by_country=_breakdown(threats.get("country")),
            ),
            pageviews=PageviewTotals(
                all=_number(pageviews.get("all")),
                by_search_engine=_breakdown(pageviews.get("search_engine")),
            ),
            unique_ip_addresses=_number(_section(payload, "uniques").get("all")),
        )


@dataclass
class LocationTotals:
    """Dashboard totals for a single colocation (Enterprise only)."""

    colo_id: str
    totals: DashboardTotals


@dataclass
class DashboardResponse:
    """Either one global entry or one entry per location."""

    totals: DashboardTotals | None = None
    by_location: list[LocationTotals] = field(default_factory=list)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Decoded DNS shape
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class DnsRow:
    """DNS report row without location or query type (5 dimensions)."""

    query_name: str
    response_code: str
    origin: str
    tcp: str
    ip_version: str
    query_count: float
    uncached_count: float
    stale_count: float


@dataclass(frozen=True)
class DnsRowWithLocation(DnsRow):
    """Row with a raw colo code in position 5 (6 dimensions)."""

    colo_code: str = ""


@dataclass(frozen=True)
class DnsRowWithLocationAndQueryType(DnsRowWithLocation):
    """Row with colo code and query type in positions 5 and 6 (7 dimensions)."""

    query_type: str = ""


@dataclass
class DnsResponse:
    rows: list[DnsRow] = field(default_factory=list)
    dropped: int = 0


def _latest(value: Any) -> float | None:
    """Metric cell: a scalar (report) or a time series whose last point wins (bytime)."""
    if isinstance(value, list):
        return _number(value[-1]) if value else None
    return _number(value)


def decode_dns_row(dimensions: list[Any], metrics: list[Any]) -> DnsRow | None:
    """Decode the positional ``[queryName, responseCode, origin, tcp, ipVersion,
    coloName?, queryType?]`` contract. Returns None for malformed rows."""
    if not isinstance(dimensions, list) or not isinstance(metrics, list):
        return None
    if len(dimensions) < 5 or len(metrics) < len(DNS_METRICS):
        return None
    counts = [_latest(m) for m in metrics[: len(DNS_METRICS)]]
    if any(c is None for c in counts):
        return None
    dims = ["" if d is None else str(d) for d in dimensions]
    base = dict(
        query_name=dims[0],
        response_code=dims[1],
        origin=dims[2],
        tcp=dims[3],
        ip_version=dims[4],
        query_count=counts[0],
        uncached_count=counts[1],
        stale_count=counts[2],
    )
    if len(dims) >= 7:
        return DnsRowWithLocationAndQueryType(**base, colo_code=dims[5], query_type=dims[6])
    if len(dims) == 6:
        return DnsRowWithLocation(**base, colo_code=dims[5])
    return DnsRow(**base)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Client
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class CloudflareAPI:
    """Object to wrap Cloudflare client API interactions."""

    def __init__(
        self,
        api_url: str,
        api_token: str = "",
        api_key: str = "",
        api_email: str = "",
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_token and not (api_key and api_email):
            raise CloudflareAPIError(
                "Missing credentials: set CLOUDFLARE_API_TOKEN or "
                "CLOUDFLARE_API_KEY + CLOUDFLARE_API_EMAIL"
            )
        headers = {"User-Agent": "cloudflare-exporter", "Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        else:
            headers["X-Auth-Key"] = api_key
            headers["X-Auth-Email"] = api_email
        self.api_url = api_url.rstrip("/")
        self.client = http_client or httpx.Client(
            base_url=self.api_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        )

    def close(self) -> None:
        self.client.close()

    # ── zones ─────────────────────────────────────────────────────────────

    def list_zones(self, names: list[str] | None = None) -> list[MonitoredZone]:
        """Return the zones visible to the credentials, optionally filtered by name."""
        payloads: list[dict[str, Any]] = []
        if names:
            for name in names:
                found = self._get_envelope("/zones", {"name": name}).get("result") or []
                if not found:
                    APP_LOGGER.warning(msg=f"Zone not found: {name}", zone_name=name)
                payloads.extend(found)
        else:
            page = 1
            while True:
                envelope = self._get_envelope(
                    "/zones", {"page": str(page), "per_page": str(ZONES_PAGE_SIZE)}
                )
                payloads.extend(envelope.get("result") or [])
                info = envelope.get("result_info") or {}
                if page >= int(info.get("total_pages") or 1):
                    break
                page += 1

        zones = []
        for payload in payloads:
            try:
                zones.append(MonitoredZone.from_api(payload))
            except (KeyError, TypeError, ValueError) as exc:
                APP_LOGGER.warning(msg=f"Skipping undecodable zone entry: {exc}")
        return zones

    # ── analytics ─────────────────────────────────────────────────────────

    def get_dashboard(self, query: AnalyticsQuery) -> DashboardResponse:
        """Global dashboard totals for a zone."""
        result = self._get_result(
            f"/zones/{query.resource_id}/analytics/dashboard", query.as_params()
        )
        if not isinstance(result, dict):
            raise CloudflareAPIError("dashboard analytics: unexpected result shape")
        return DashboardResponse(totals=DashboardTotals.from_api(_section(result, "totals")))

    def get_dashboard_by_location(self, query: AnalyticsQuery) -> DashboardResponse:
        """Dashboard analytics broken out by colocation; the latest point per colo is kept."""
        result = self._get_result(
            f"/zones/{query.resource_id}/analytics/colos", query.as_params()
        )
        if not isinstance(result, list):
            raise CloudflareAPIError("colocation analytics: unexpected result shape")

        entries = []
        for entry in result:
            if not isinstance(entry, dict):
                continue
            series = entry.get("timeseries")
            if isinstance(series, list) and series and isinstance(series[-1], dict):
                latest = series[-1]
            else:
                latest = _section(entry, "totals")
            entries.append(
                LocationTotals(
                    colo_id=str(entry.get("colo_id") or ""),
                    totals=DashboardTotals.from_api(latest),
                )
            )
        return DashboardResponse(by_location=entries)

    def get_dns_report(self, query: AnalyticsQuery) -> DnsResponse:
        """DNS analytics report rows for the query's metrics and dimensions."""
        result = self._get_result(
            f"/zones/{query.resource_id}/dns_analytics/report", query.as_params()
        )
        if not isinstance(result, dict):
            raise CloudflareAPIError("dns analytics: unexpected result shape")

        response = DnsResponse()
        for raw in result.get("data") or []:
            row = None
            if isinstance(raw, dict):
                row = decode_dns_row(raw.get("dimensions"), raw.get("metrics"))
            if row is None:
                response.dropped += 1
                continue
            response.rows.append(row)
        if response.dropped:
            APP_LOGGER.debug(
                msg="Dropped malformed DNS rows",
                zone_id=query.resource_id,
                dropped=response.dropped,
            )
        return response

    # ── internals ─────────────────────────────────────────────────────────

    def _get_result(self, path: str, params: dict[str, str]) -> Any:
        return self._get_envelope(path, params).get("result")

    def _get_envelope(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        APP_LOGGER.debug(msg=f"GET {path}", params=params)
        try:
            response = self.client.get(path, params=params)
            response.raise_for_status()
            envelope = response.json()
        except httpx.HTTPError as exc:
            raise CloudflareAPIError(f"GET {path} failed: {exc}") from exc
        except ValueError as exc:
            raise CloudflareAPIError(f"GET {path} returned invalid JSON: {exc}") from exc

        if not isinstance(envelope, dict):
            raise CloudflareAPIError(f"GET {path} returned an unexpected payload")
        if envelope.get("success") is False:
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in envelope.get("errors") or []
            )
            raise CloudflareAPIError(f"GET {path} unsuccessful: {messages or 'unknown error'}")
        return envelope
