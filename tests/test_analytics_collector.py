"""Integration-style tests for the AnalyticsCollectorService."""

import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from config.tiers import FULL_DNS_DIMENSIONS, ServiceTier
from config.zones import MonitoredZone
from services.analytics_collector import (
    AnalyticsCollectorService,
    NoMonitoredZonesError,
    QueryKind,
)
from wrappers.cloudflare_api import (
    CloudflareAPIError,
    DashboardResponse,
    DashboardTotals,
    DnsResponse,
    LocationTotals,
    TrafficTotals,
    decode_dns_row,
)

FREE_ZONE = MonitoredZone("z1", "example.com", ServiceTier.FREE)
ENTERPRISE_ZONE = MonitoredZone("z3", "big.example", ServiceTier.ENTERPRISE, plan_price=5000)


def _dns_response():
    return DnsResponse(rows=[decode_dns_row(["example.com", "NOERROR", "0", "0", "4"], [4, 1, 0])])


class TestAnalyticsCollectorService:
    """Tests for the core collection orchestrator."""

    def _make_service(self, zones=None, status_feed=None, **kwargs) -> AnalyticsCollectorService:
        """Create a service with the Cloudflare API mocked."""
        api = MagicMock()
        api.get_dashboard.return_value = DashboardResponse(
            totals=DashboardTotals(requests=TrafficTotals(all=1000))
        )
        api.get_dashboard_by_location.return_value = DashboardResponse(
            by_location=[LocationTotals("AMS", DashboardTotals(requests=TrafficTotals(all=5)))]
        )
        api.get_dns_report.return_value = _dns_response()
        return AnalyticsCollectorService(
            api=api,
            zones=zones or [FREE_ZONE],
            status_feed=status_feed,
            **kwargs,
        )

    def test_zero_zones_is_fatal(self):
        with pytest.raises(NoMonitoredZonesError):
            AnalyticsCollectorService(api=MagicMock(), zones=[])

    def test_collect_free_zone(self):
        svc = self._make_service()
        result = svc.collect()

        names = {r.name for r in result.records}
        assert "cloudflare_requests_total" in names
        assert "cloudflare_dns_record_queries_total" in names
        assert "cloudflare_exporter_processing_time_seconds" in names
        assert "cloudflare_exporter_build_info" in names
        assert result.diagnostics == []
        assert svc.last_result is result
        svc.api.get_dashboard_by_location.assert_not_called()

    def test_enterprise_uses_by_location_query(self):
        svc = self._make_service(zones=[ENTERPRISE_ZONE])
        result = svc.collect()

        svc.api.get_dashboard.assert_not_called()
        pop = [r for r in result.records if r.name == "cloudflare_pop_requests_total"]
        assert len(pop) == 1
        assert pop[0].label("location_code") == "AMS"

    def test_dashboard_failure_still_emits_dns(self):
        svc = self._make_service()
        svc.api.get_dashboard.side_effect = CloudflareAPIError("HTTP 500")
        result = svc.collect()

        names = {r.name for r in result.records}
        assert "cloudflare_requests_total" not in names
        assert "cloudflare_dns_record_queries_total" in names
        assert len(result.diagnostics) == 1
        diag = result.diagnostics[0]
        assert diag.resource_id == "z1"
        assert diag.query_kind == QueryKind.DASHBOARD.value
        assert "HTTP 500" in diag.error

    def test_one_zone_failure_does_not_affect_others(self):
        svc = self._make_service(zones=[FREE_ZONE, ENTERPRISE_ZONE])

        def dns(query):
            if query.resource_id == "z3":
                raise RuntimeError("boom")
            return _dns_response()

        svc.api.get_dns_report.side_effect = dns
        result = svc.collect()

        dns_zones = {
            r.label("resource_id")
            for r in result.records
            if r.name.endswith("dns_record_queries_total")
        }
        assert dns_zones == {"z1"}
        assert [(d.resource_id, d.query_kind) for d in result.diagnostics] == [
            ("z3", "dns_analytics")
        ]

    def test_component_processing_time_per_query(self):
        svc = self._make_service()
        result = svc.collect()
        components = {
            r.label("component")
            for r in result.records
            if r.name == "cloudflare_exporter_component_processing_time_seconds"
        }
        assert components == {"dashboard_analytics", "dns_analytics"}

    def test_disabled_query_kinds(self):
        svc = self._make_service(dashboard_enabled=False)
        svc.collect()
        svc.api.get_dashboard.assert_not_called()
        svc.api.get_dns_report.assert_called_once()

    def test_status_feed_refreshed_before_mapping(self):
        status_feed = MagicMock()
        order = []
        status_feed.collect.side_effect = lambda: order.append("status") or []
        svc = self._make_service(status_feed=status_feed)
        svc.api.get_dashboard.side_effect = lambda q: order.append("dashboard") or DashboardResponse()

        result = svc.collect()

        assert order[0] == "status"
        assert result.status_feed_ok is False

    def test_status_metrics_disabled_only_refreshes_registry(self):
        status_feed = MagicMock()
        status_feed.refresh_from_status_feed.return_value = True
        svc = self._make_service(status_feed=status_feed, status_metrics_enabled=False)
        result = svc.collect()
        status_feed.collect.assert_not_called()
        assert result.status_feed_ok is True

    def test_scrape_timeout_reports_the_hung_query_kind(self):
        svc = self._make_service(scrape_timeout=0.2, max_workers=2)

        def slow(query):
            time.sleep(1)
            return DashboardResponse()

        svc.api.get_dashboard.side_effect = slow
        result = svc.collect()
        assert [(d.resource_id, d.query_kind) for d in result.diagnostics] == [
            ("z1", "dashboard_analytics")
        ]
        names = {r.name for r in result.records}
        assert "cloudflare_dns_record_queries_total" in names

    def test_hung_dns_query_keeps_dashboard_records(self):
        svc = self._make_service(scrape_timeout=0.3, max_workers=2)

        def slow(query):
            time.sleep(1.0)
            return _dns_response()

        svc.api.get_dns_report.side_effect = slow
        result = svc.collect()

        names = {r.name for r in result.records}
        assert "cloudflare_requests_total" in names
        assert "cloudflare_dns_record_queries_total" not in names
        assert [(d.resource_id, d.query_kind, d.error) for d in result.diagnostics] == [
            ("z1", "dns_analytics", "timed out")
        ]


class TestBuildQueries:
    def test_windows_and_dimensions(self):
        svc = AnalyticsCollectorService(api=MagicMock(), zones=[ENTERPRISE_ZONE])
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        queries = svc.build_queries(ENTERPRISE_ZONE, now)

        dashboard = queries[QueryKind.DASHBOARD]
        assert dashboard.until == now
        assert dashboard.since == now - timedelta(minutes=30)
        assert dashboard.continuous is True

        dns = queries[QueryKind.DNS]
        assert dns.since == now - timedelta(seconds=60)
        assert dns.metrics == ("queryCount", "uncachedCount", "staleCount")
        assert dns.dimensions == tuple(d.value for d in FULL_DNS_DIMENSIONS)


class TestFromEnvironment:
    @patch("services.analytics_collector.StatusPageClient")
    @patch("services.analytics_collector.CloudflareAPI")
    def test_no_zones_found(self, mock_api_cls, _mock_status_cls):
        mock_api_cls.return_value.list_zones.return_value = []
        with pytest.raises(NoMonitoredZonesError):
            AnalyticsCollectorService.from_environment()
        mock_api_cls.return_value.close.assert_called_once()

    @patch("services.analytics_collector.StatusPageClient")
    @patch("services.analytics_collector.CloudflareAPI")
    def test_builds_with_discovered_zones(self, mock_api_cls, mock_status_cls):
        mock_api_cls.return_value.list_zones.return_value = [FREE_ZONE]
        mock_status_cls.return_value.get_summary.return_value = {"components": []}
        svc = AnalyticsCollectorService.from_environment()
        assert svc.zones == [FREE_ZONE]
        assert svc.status_feed is not None
