"""Core collection orchestrator.

This module ties together:
  • Tier policies          – which queries / dimensions each zone is entitled to
  • Cloudflare analytics   – dashboard and DNS queries per zone
  • Location registry      – refreshed from the status feed once per scrape
  • Response mapping       – decoded responses → metric records

It is invoked by the Prometheus collector on every ``/metrics`` scrape. A
failed query only removes that query's families for that zone; every other
zone and query kind is still collected.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from config.metric_families import (
    BUILD_INFO,
    COMPONENT_PROCESSING_TIME,
    PROCESSING_TIME,
    MetricRecord,
    MetricSchema,
)
from config.tiers import DNS_METRICS
from config.zones import MonitoredZone
from helpers.constants import (
    APP_LOGGER,
    CLOUDFLARE_API_EMAIL,
    CLOUDFLARE_API_KEY,
    CLOUDFLARE_API_TOKEN,
    CLOUDFLARE_API_URL,
    CLOUDFLARE_ZONE_NAMES,
    DASHBOARD_ANALYTICS_ENABLED,
    DNS_ANALYTICS_ENABLED,
    DNS_LOOKBACK_SECONDS,
    EXPORTER_VERSION,
    MAX_WORKERS,
    METRICS_NAMESPACE,
    REQUEST_TIMEOUT_SECONDS,
    SCRAPE_TIMEOUT_SECONDS,
    STATUS_BRAND_NAME,
    STATUS_FEED_URL,
    STATUS_METRICS_ENABLED,
)
from helpers.utils import now_utc, window_bounds
from services.identity_registry import LocationRegistry
from services.response_mapper import ResponseMapper
from services.status_feed import StatusFeedService
from wrappers.cloudflare_api import AnalyticsQuery, CloudflareAPI, CloudflareAPIError
from wrappers.status_page import StatusPageClient


class NoMonitoredZonesError(Exception):
    """Nothing to collect: no zone matched the credentials / name filter."""


class QueryKind(str, Enum):
    DASHBOARD = "dashboard_analytics"
    DNS = "dns_analytics"


@dataclass(frozen=True)
class CollectionDiagnostic:
    """A query that failed during a scrape."""

    resource_id: str
    resource_name: str
    query_kind: str
    error: str

    def as_dict(self) -> dict[str, str]:
        return {
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "query_kind": self.query_kind,
            "error": self.error,
        }


@dataclass
class ScrapeResult:
    """Everything one scrape produced."""

    started_at: datetime
    records: list[MetricRecord] = field(default_factory=list)
    diagnostics: list[CollectionDiagnostic] = field(default_factory=list)
    duration_seconds: float = 0.0
    status_feed_ok: bool | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "record_count": len(self.records),
            "status_feed_ok": self.status_feed_ok,
            "diagnostics": [d.as_dict() for d in self.diagnostics],
        }


class AnalyticsCollectorService:
    """Runs one collection pass over every monitored zone."""

    def __init__(
        self,
        api: CloudflareAPI,
        zones: list[MonitoredZone],
        registry: LocationRegistry | None = None,
        status_feed: StatusFeedService | None = None,
        schema: MetricSchema | None = None,
        max_workers: int = MAX_WORKERS,
        scrape_timeout: float = SCRAPE_TIMEOUT_SECONDS,
        dashboard_enabled: bool = DASHBOARD_ANALYTICS_ENABLED,
        dns_enabled: bool = DNS_ANALYTICS_ENABLED,
        status_metrics_enabled: bool = STATUS_METRICS_ENABLED,
        dns_lookback: timedelta = timedelta(seconds=DNS_LOOKBACK_SECONDS),
    ) -> None:
        if not zones:
            raise NoMonitoredZonesError("no zones to monitor")
        self.api = api
        self.zones = list(zones)
        self.schema = schema or MetricSchema(METRICS_NAMESPACE)
        self.registry = registry if registry is not None else LocationRegistry()
        self.status_feed = status_feed
        self.mapper = ResponseMapper(self.registry, self.schema)
        self.max_workers = max(1, max_workers)
        self.scrape_timeout = scrape_timeout
        self.dashboard_enabled = dashboard_enabled
        self.dns_enabled = dns_enabled
        self.status_metrics_enabled = status_metrics_enabled
        self.dns_lookback = dns_lookback
        self.last_result: ScrapeResult | None = None

        for zone in self.zones:
            APP_LOGGER.debug(
                msg=f"Zone {zone.name} ({zone.zone_id}) configured",
                **zone.policy.as_dict(),
            )
        APP_LOGGER.info(
            msg="AnalyticsCollectorService initialised.",
            zones=[z.name for z in self.zones],
        )

    @classmethod
    def from_environment(cls) -> AnalyticsCollectorService:
        """Build the service from ``helpers.constants``; discovers zones.

        Raises :class:`NoMonitoredZonesError` when discovery finds nothing.
        """
        api = CloudflareAPI(
            api_url=CLOUDFLARE_API_URL,
            api_token=CLOUDFLARE_API_TOKEN,
            api_key=CLOUDFLARE_API_KEY,
            api_email=CLOUDFLARE_API_EMAIL,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        zones = api.list_zones(CLOUDFLARE_ZONE_NAMES or None)
        if not zones:
            api.close()
            raise NoMonitoredZonesError(
                "no zones found"
                + (f" matching {CLOUDFLARE_ZONE_NAMES}" if CLOUDFLARE_ZONE_NAMES else "")
            )

        schema = MetricSchema(METRICS_NAMESPACE)
        registry = LocationRegistry()
        status_feed = StatusFeedService(
            client=StatusPageClient(STATUS_FEED_URL, timeout=REQUEST_TIMEOUT_SECONDS),
            registry=registry,
            schema=schema,
            brand_name=STATUS_BRAND_NAME,
        )
        # Learn feed locations before the first scrape
        status_feed.refresh_from_status_feed()
        return cls(
            api=api,
            zones=zones,
            registry=registry,
            status_feed=status_feed,
            schema=schema,
        )

    # ── public entry point ────────────────────────────────────────────────

    def collect(self, zones: list[MonitoredZone] | None = None) -> ScrapeResult:
        """Execute a full scrape and return the merged record set."""
        zones = self.zones if zones is None else zones
        start = time.monotonic()
        result = ScrapeResult(started_at=now_utc())

        # Registry refresh happens before any location-aware mapping
        if self.status_feed is not None:
            if self.status_metrics_enabled:
                status_records = self.status_feed.collect()
                result.status_feed_ok = bool(status_records)
                result.records.extend(status_records)
            else:
                result.status_feed_ok = self.status_feed.refresh_from_status_feed()

        scrape_time = now_utc()
        tasks = [
            (zone, kind, query)
            for zone in zones
            for kind, query in self.build_queries(zone, scrape_time).items()
        ]
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, max(1, len(tasks))),
            thread_name_prefix="zone-collector",
        )
        try:
            futures = {
                executor.submit(self._collect_query, zone, kind, query): (zone, kind)
                for zone, kind, query in tasks
            }
            done, _ = wait(futures, timeout=self.scrape_timeout)
        finally:
            # Queries still in flight are abandoned, not waited on
            executor.shutdown(wait=False, cancel_futures=True)

        for future, (zone, kind) in futures.items():
            if future in done:
                records, diagnostic = future.result()
                result.records.extend(records)
                if diagnostic is not None:
                    result.diagnostics.append(diagnostic)
                continue
            APP_LOGGER.error(
                msg=f"Timed out waiting for {kind.value} for zone {zone.name}",
                zone_id=zone.zone_id,
                query_kind=kind.value,
                timeout_seconds=self.scrape_timeout,
            )
            result.diagnostics.append(
                CollectionDiagnostic(zone.zone_id, zone.name, kind.value, "timed out")
            )

        result.duration_seconds = time.monotonic() - start
        result.records.append(self.schema.record(PROCESSING_TIME, (), result.duration_seconds))
        result.records.append(self.schema.record(BUILD_INFO, (EXPORTER_VERSION,), 1))

        if result.diagnostics:
            APP_LOGGER.warning(
                msg=f"{len(result.diagnostics)} query failure(s) in this scrape",
                diagnostics=[d.as_dict() for d in result.diagnostics],
            )
        APP_LOGGER.info(
            msg="Scrape complete.",
            zones=len(zones),
            records=len(result.records),
            duration_seconds=round(result.duration_seconds, 3),
        )
        self.last_result = result
        return result

    def build_queries(
        self, zone: MonitoredZone, now: datetime | None = None
    ) -> dict[QueryKind, AnalyticsQuery]:
        """Queries the zone's tier entitles it to, keyed by kind."""
        policy = zone.policy
        queries: dict[QueryKind, AnalyticsQuery] = {}
        if self.dashboard_enabled:
            since, until = window_bounds(policy.lookback_window, now)
            queries[QueryKind.DASHBOARD] = AnalyticsQuery(
                resource_id=zone.zone_id, since=since, until=until, continuous=True
            )
        if self.dns_enabled:
            since, until = window_bounds(self.dns_lookback, now)
            queries[QueryKind.DNS] = AnalyticsQuery(
                resource_id=zone.zone_id,
                since=since,
                until=until,
                metrics=DNS_METRICS,
                dimensions=tuple(d.value for d in policy.dns_dimensions),
            )
        return queries

    def summary(self) -> dict[str, Any]:
        """JSON-serialisable view of the configuration and the last scrape."""
        return {
            "zones": [
                {**zone.as_dict(), "policy": zone.policy.as_dict()} for zone in self.zones
            ],
            "known_locations": len(self.registry),
            "last_scrape": self.last_result.as_dict() if self.last_result else None,
        }

    def close(self) -> None:
        self.api.close()
        if self.status_feed is not None:
            self.status_feed.client.close()

    # ── helpers ────────────────────────────────────────────────────────────

    def _collect_query(
        self, zone: MonitoredZone, kind: QueryKind, query: AnalyticsQuery
    ) -> tuple[list[MetricRecord], CollectionDiagnostic | None]:
        """Run one query for one zone; a failure only loses this kind's records."""
        policy = zone.policy
        start = time.monotonic()
        try:
            if kind is QueryKind.DASHBOARD:
                if policy.dashboard_by_location:
                    response = self.api.get_dashboard_by_location(query)
                else:
                    response = self.api.get_dashboard(query)
                mapped = self.mapper.map_dashboard(zone, policy, response)
            else:
                mapped = self.mapper.map_dns(zone, policy, self.api.get_dns_report(query))
        except CloudflareAPIError as exc:
            APP_LOGGER.error(
                msg=f"Failed to get {kind.value} for zone {zone.name}",
                zone_id=zone.zone_id,
                query_kind=kind.value,
                error=str(exc),
            )
            return [], CollectionDiagnostic(zone.zone_id, zone.name, kind.value, str(exc))
        except Exception as exc:
            APP_LOGGER.error(
                msg=f"Unexpected error mapping {kind.value} for zone {zone.name}",
                zone_id=zone.zone_id,
                query_kind=kind.value,
                error=repr(exc),
            )
            return [], CollectionDiagnostic(zone.zone_id, zone.name, kind.value, repr(exc))

        records = list(mapped)
        records.append(
            self.schema.record(
                COMPONENT_PROCESSING_TIME,
                (zone.zone_id, zone.name, kind.value),
                time.monotonic() - start,
            )
        )
        APP_LOGGER.debug(
            msg=f"  {zone.name}: {kind.value} → {len(mapped)} records",
            zone_id=zone.zone_id,
        )
        return records, None
