"""Map decoded analytics responses onto canonical metric records.

Two shapes are handled:

* dashboard totals – scalar totals become one record each; every entry of
  a category map becomes one record with the category key as an extra
  label. Enterprise zones get one set per colocation, with the resolved
  location labels after the zone labels.
* DNS report rows – three gauges per row. Location and query-type labels
  are always present; rows that do not carry them get the placeholder.

Records that collide on name and label tuple (two site codes resolving to
the same metro) are merged by summing their values.
"""

from __future__ import annotations

from typing import Iterable

from config.metric_families import (
    BANDWIDTH_BY_CONTENT_TYPE,
    BANDWIDTH_BY_COUNTRY,
    BANDWIDTH_CACHED,
    BANDWIDTH_ENCRYPTED,
    BANDWIDTH_TOTAL,
    BANDWIDTH_UNCACHED,
    BANDWIDTH_UNENCRYPTED,
    DNS_QUERIES,
    DNS_STALE_QUERIES,
    DNS_UNCACHED_QUERIES,
    PAGEVIEWS_BY_SEARCH_ENGINE,
    PAGEVIEWS_TOTAL,
    PLACEHOLDER,
    REQUESTS_BY_CONTENT_TYPE,
    REQUESTS_BY_COUNTRY,
    REQUESTS_BY_IP_CLASS,
    REQUESTS_BY_STATUS,
    REQUESTS_CACHED,
    REQUESTS_ENCRYPTED,
    REQUESTS_TOTAL,
    REQUESTS_UNCACHED,
    REQUESTS_UNENCRYPTED,
    THREATS_BY_COUNTRY,
    THREATS_BY_TYPE,
    THREATS_TOTAL,
    UNIQUE_IP_ADDRESSES_TOTAL,
    MetricFamily,
    MetricRecord,
    MetricSchema,
)
from config.tiers import MetricNamespace, TierPolicy
from config.zones import MonitoredZone
from services.identity_registry import LocationRegistry
from wrappers.cloudflare_api import (
    DashboardResponse,
    DashboardTotals,
    DnsResponse,
    DnsRow,
    DnsRowWithLocation,
    DnsRowWithLocationAndQueryType,
)


def merge_records(records: Iterable[MetricRecord]) -> list[MetricRecord]:
    """Collapse records sharing name + label tuple into one, summing values."""
    merged: dict[tuple, MetricRecord] = {}
    for record in records:
        existing = merged.get(record.identity)
        if existing is None:
            merged[record.identity] = record
        else:
            merged[record.identity] = MetricRecord(
                name=existing.name,
                kind=existing.kind,
                labels=existing.labels,
                value=existing.value + record.value,
                documentation=existing.documentation,
            )
    return list(merged.values())


class ResponseMapper:
    """Converts one zone's analytics responses into metric records."""

    def __init__(self, registry: LocationRegistry, schema: MetricSchema) -> None:
        self.registry = registry
        self.schema = schema

    # ── dashboard ─────────────────────────────────────────────────────────

    def map_dashboard(
        self, zone: MonitoredZone, policy: TierPolicy, response: DashboardResponse
    ) -> list[MetricRecord]:
        scope = policy.dashboard_namespace
        zone_labels = (zone.zone_id, zone.name)
        records: list[MetricRecord] = []

        if policy.dashboard_by_location:
            for entry in response.by_location:
                location = self.registry.resolve(entry.colo_id)
                labels = zone_labels + (
                    location.code,
                    location.display_name,
                    location.region,
                )
                records.extend(self._map_totals(entry.totals, labels, scope))
        elif response.totals is not None:
            records.extend(self._map_totals(response.totals, zone_labels, scope))

        return merge_records(records)

    def _map_totals(
        self, totals: DashboardTotals, labels: tuple[str, ...], scope: MetricNamespace
    ) -> list[MetricRecord]:
        out: list[MetricRecord] = []

        def scalar(family: MetricFamily, value: float | None) -> None:
            if value is not None:
                out.append(self.schema.record(family, labels, value, scope))

        def breakdown(family: MetricFamily, values: dict[str, float]) -> None:
            for key, value in values.items():
                out.append(self.schema.record(family, labels + (key,), value, scope))

        requests = totals.requests
        scalar(REQUESTS_TOTAL, requests.all)
        scalar(REQUESTS_CACHED, requests.cached)
        scalar(REQUESTS_UNCACHED, requests.uncached)
        scalar(REQUESTS_ENCRYPTED, requests.encrypted)
        scalar(REQUESTS_UNENCRYPTED, requests.unencrypted)
        breakdown(REQUESTS_BY_STATUS, requests.by_status)
        breakdown(REQUESTS_BY_CONTENT_TYPE, requests.by_content_type)
        breakdown(REQUESTS_BY_COUNTRY, requests.by_country)
        breakdown(REQUESTS_BY_IP_CLASS, requests.by_ip_class)

        bandwidth = totals.bandwidth
        scalar(BANDWIDTH_TOTAL, bandwidth.all)
        scalar(BANDWIDTH_CACHED, bandwidth.cached)
        scalar(BANDWIDTH_UNCACHED, bandwidth.uncached)
        scalar(BANDWIDTH_ENCRYPTED, bandwidth.encrypted)
        scalar(BANDWIDTH_UNENCRYPTED, bandwidth.unencrypted)
        breakdown(BANDWIDTH_BY_CONTENT_TYPE, bandwidth.by_content_type)
        breakdown(BANDWIDTH_BY_COUNTRY, bandwidth.by_country)

        scalar(THREATS_TOTAL, totals.threats.all)
        breakdown(THREATS_BY_TYPE, totals.threats.by_type)
        breakdown(THREATS_BY_COUNTRY, totals.threats.by_country)

        scalar(PAGEVIEWS_TOTAL, totals.pageviews.all)
        breakdown(PAGEVIEWS_BY_SEARCH_ENGINE, totals.pageviews.by_search_engine)

        scalar(UNIQUE_IP_ADDRESSES_TOTAL, totals.unique_ip_addresses)
        return out

    # ── DNS ───────────────────────────────────────────────────────────────

    def map_dns(
        self, zone: MonitoredZone, policy: TierPolicy, response: DnsResponse
    ) -> list[MetricRecord]:
        scope = policy.dns_namespace
        records: list[MetricRecord] = []
        for row in response.rows:
            labels = (zone.zone_id, zone.name) + self._dns_labels(row)
            records.append(self.schema.record(DNS_QUERIES, labels, row.query_count, scope))
            records.append(
                self.schema.record(DNS_UNCACHED_QUERIES, labels, row.uncached_count, scope)
            )
            records.append(self.schema.record(DNS_STALE_QUERIES, labels, row.stale_count, scope))
        return merge_records(records)

    def _dns_labels(self, row: DnsRow) -> tuple[str, ...]:
        base = (row.query_name, row.response_code, row.origin, row.tcp, row.ip_version)
        location = (PLACEHOLDER, PLACEHOLDER, PLACEHOLDER)
        query_type = PLACEHOLDER

        if isinstance(row, DnsRowWithLocation):
            resolved = self.registry.resolve(row.colo_code)
            location = (resolved.code, resolved.display_name, resolved.region)
        if isinstance(row, DnsRowWithLocationAndQueryType):
            query_type = row.query_type or PLACEHOLDER

        return base + location + (query_type,)
