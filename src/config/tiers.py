"""Service tiers and the polling policy each tier is entitled to.

The analytics API grants finer resolution and more breakdown dimensions to
higher plans. ``resolve_policy`` is the single place that turns a tier into
the query window, DNS dimension list and metric namespace used for a zone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, IntEnum


class ServiceTier(IntEnum):
    """Subscription level of a zone, ordered Free < Pro < Business < Enterprise."""

    FREE = 0
    PRO = 1
    BUSINESS = 2
    ENTERPRISE = 3

    @classmethod
    def from_plan(cls, price: float | None = None, legacy_id: str | None = None) -> ServiceTier:
        """Derive the tier from a plan's monthly price and/or legacy plan id.

        Boundaries are exact: a plan priced at 200 is Business, anything
        above 200 is Enterprise, 20 is Pro, everything else Free.
        """
        plan_id = (legacy_id or "").strip().lower()
        price = price or 0
        if price > 200 or plan_id == "enterprise":
            return cls.ENTERPRISE
        if price == 200 or plan_id == "business":
            return cls.BUSINESS
        if price == 20 or plan_id == "pro":
            return cls.PRO
        return cls.FREE

    @property
    def label(self) -> str:
        return self.name.lower()


class MetricNamespace(str, Enum):
    """Which metric-name prefix a family is published under."""

    BASE = "base"
    PER_LOCATION = "per-location"


class DashboardBreakdown(str, Enum):
    """Shape of the dashboard analytics query."""

    GLOBAL = "global"
    BY_LOCATION = "by-location"


class DnsDimension(str, Enum):
    """DNS analytics breakdown dimensions, valued by their API names."""

    QUERY_NAME = "queryName"
    RESPONSE_CODE = "responseCode"
    ORIGIN = "origin"
    TCP = "tcp"
    IP_VERSION = "ipVersion"
    COLO = "coloName"
    QUERY_TYPE = "queryType"


# Positional decoding of DNS rows depends on this order.
BASE_DNS_DIMENSIONS: tuple[DnsDimension, ...] = (
    DnsDimension.QUERY_NAME,
    DnsDimension.RESPONSE_CODE,
    DnsDimension.ORIGIN,
    DnsDimension.TCP,
    DnsDimension.IP_VERSION,
)
LOCATION_DNS_DIMENSIONS = BASE_DNS_DIMENSIONS + (DnsDimension.COLO,)
FULL_DNS_DIMENSIONS = LOCATION_DNS_DIMENSIONS + (DnsDimension.QUERY_TYPE,)

DNS_METRICS: tuple[str, ...] = ("queryCount", "uncachedCount", "staleCount")


@dataclass(frozen=True)
class TierPolicy:
    """Polling policy derived from a :class:`ServiceTier`."""

    tier: ServiceTier
    lookback_window: timedelta
    dashboard_breakdown: DashboardBreakdown
    dashboard_namespace: MetricNamespace
    dns_dimensions: tuple[DnsDimension, ...]
    dns_namespace: MetricNamespace

    @property
    def dashboard_by_location(self) -> bool:
        return self.dashboard_breakdown is DashboardBreakdown.BY_LOCATION

    def as_dict(self) -> dict[str, object]:
        return {
            "tier": self.tier.label,
            "lookback_seconds": int(self.lookback_window.total_seconds()),
            "dashboard_breakdown": self.dashboard_breakdown.value,
            "dashboard_namespace": self.dashboard_namespace.value,
            "dns_dimensions": [d.value for d in self.dns_dimensions],
            "dns_namespace": self.dns_namespace.value,
        }


_POLICIES: dict[ServiceTier, TierPolicy] = {
    # 1 minute resolution, minimum 30 minutes
    ServiceTier.ENTERPRISE: TierPolicy(
        tier=ServiceTier.ENTERPRISE,
        lookback_window=timedelta(minutes=30),
        dashboard_breakdown=DashboardBreakdown.BY_LOCATION,
        dashboard_namespace=MetricNamespace.PER_LOCATION,
        dns_dimensions=FULL_DNS_DIMENSIONS,
        dns_namespace=MetricNamespace.PER_LOCATION,
    ),
    # 15 minute resolution, minimum 6 hours
    ServiceTier.BUSINESS: TierPolicy(
        tier=ServiceTier.BUSINESS,
        lookback_window=timedelta(hours=6),
        dashboard_breakdown=DashboardBreakdown.GLOBAL,
        dashboard_namespace=MetricNamespace.BASE,
        dns_dimensions=FULL_DNS_DIMENSIONS,
        dns_namespace=MetricNamespace.PER_LOCATION,
    ),
    # 15 minute resolution, minimum 24 hours
    ServiceTier.PRO: TierPolicy(
        tier=ServiceTier.PRO,
        lookback_window=timedelta(hours=24),
        dashboard_breakdown=DashboardBreakdown.GLOBAL,
        dashboard_namespace=MetricNamespace.BASE,
        dns_dimensions=LOCATION_DNS_DIMENSIONS,
        dns_namespace=MetricNamespace.PER_LOCATION,
    ),
    ServiceTier.FREE: TierPolicy(
        tier=ServiceTier.FREE,
        lookback_window=timedelta(days=7),
        dashboard_breakdown=DashboardBreakdown.GLOBAL,
        dashboard_namespace=MetricNamespace.BASE,
        dns_dimensions=BASE_DNS_DIMENSIONS,
        dns_namespace=MetricNamespace.BASE,
    ),
}


def resolve_policy(tier: ServiceTier) -> TierPolicy:
    """Return the polling policy for ``tier``."""
    return _POLICIES[tier]
