"""Tests for tier derivation and the per-tier polling policies."""

from datetime import timedelta

import pytest

from config.tiers import (
    BASE_DNS_DIMENSIONS,
    FULL_DNS_DIMENSIONS,
    LOCATION_DNS_DIMENSIONS,
    DashboardBreakdown,
    DnsDimension,
    MetricNamespace,
    ServiceTier,
    resolve_policy,
)
from config.zones import MonitoredZone


class TestServiceTierFromPlan:
    @pytest.mark.parametrize(
        "price, expected",
        [
            (0, ServiceTier.FREE),
            (20, ServiceTier.PRO),
            (200, ServiceTier.BUSINESS),
            (200.01, ServiceTier.ENTERPRISE),
            (5000, ServiceTier.ENTERPRISE),
            (50, ServiceTier.FREE),
        ],
    )
    def test_price_boundaries(self, price, expected):
        assert ServiceTier.from_plan(price=price) is expected

    def test_legacy_id_used_when_price_missing(self):
        assert ServiceTier.from_plan(price=None, legacy_id="enterprise") is ServiceTier.ENTERPRISE
        assert ServiceTier.from_plan(legacy_id="Business") is ServiceTier.BUSINESS
        assert ServiceTier.from_plan(legacy_id="pro") is ServiceTier.PRO
        assert ServiceTier.from_plan(legacy_id="free") is ServiceTier.FREE

    def test_ordering(self):
        assert ServiceTier.FREE < ServiceTier.PRO < ServiceTier.BUSINESS < ServiceTier.ENTERPRISE


class TestResolvePolicy:
    def test_enterprise(self):
        policy = resolve_policy(ServiceTier.ENTERPRISE)
        assert policy.lookback_window == timedelta(minutes=30)
        assert policy.dashboard_breakdown is DashboardBreakdown.BY_LOCATION
        assert policy.dashboard_by_location
        assert policy.dashboard_namespace is MetricNamespace.PER_LOCATION
        assert policy.dns_dimensions == FULL_DNS_DIMENSIONS
        assert policy.dns_namespace is MetricNamespace.PER_LOCATION

    def test_business(self):
        policy = resolve_policy(ServiceTier.BUSINESS)
        assert policy.lookback_window == timedelta(hours=6)
        assert not policy.dashboard_by_location
        assert policy.dashboard_namespace is MetricNamespace.BASE
        assert policy.dns_dimensions == FULL_DNS_DIMENSIONS
        assert policy.dns_namespace is MetricNamespace.PER_LOCATION

    def test_pro(self):
        policy = resolve_policy(ServiceTier.PRO)
        assert policy.lookback_window == timedelta(hours=24)
        assert policy.dns_dimensions == LOCATION_DNS_DIMENSIONS
        assert policy.dns_namespace is MetricNamespace.PER_LOCATION

    def test_free(self):
        policy = resolve_policy(ServiceTier.FREE)
        assert policy.lookback_window == timedelta(days=7)
        assert policy.dns_dimensions == BASE_DNS_DIMENSIONS
        assert policy.dns_namespace is MetricNamespace.BASE

    def test_dns_dimension_order_is_positional_contract(self):
        assert [d.value for d in FULL_DNS_DIMENSIONS] == [
            "queryName",
            "responseCode",
            "origin",
            "tcp",
            "ipVersion",
            "coloName",
            "queryType",
        ]
        assert FULL_DNS_DIMENSIONS[-1] is DnsDimension.QUERY_TYPE

    def test_as_dict(self):
        data = resolve_policy(ServiceTier.PRO).as_dict()
        assert data["tier"] == "pro"
        assert data["lookback_seconds"] == 86400
        assert data["dns_namespace"] == "per-location"


class TestMonitoredZone:
    def test_from_api_reads_plan(self):
        zone = MonitoredZone.from_api(
            {"id": "z1", "name": "example.com", "plan": {"price": 200, "legacy_id": "business"}}
        )
        assert zone.zone_id == "z1"
        assert zone.name == "example.com"
        assert zone.tier is ServiceTier.BUSINESS
        assert zone.policy.tier is ServiceTier.BUSINESS

    def test_from_api_without_plan_is_free(self):
        zone = MonitoredZone.from_api({"id": "z2", "name": "example.org"})
        assert zone.tier is ServiceTier.FREE
        assert zone.as_dict()["plan_price"] == 0.0
