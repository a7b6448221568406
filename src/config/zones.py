"""Monitored zone definition."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from config.tiers import ServiceTier, TierPolicy, resolve_policy


@dataclass(frozen=True)
class MonitoredZone:
    """A zone polled for analytics. Immutable for the life of a scrape."""

    zone_id: str
    name: str
    tier: ServiceTier

    # Raw plan fields kept for the status endpoint
    plan_price: float = 0.0
    plan_id: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> MonitoredZone:
        """Build a zone from a ``/zones`` result entry."""
        plan = payload.get("plan") or {}
        price = plan.get("price") or 0
        legacy_id = plan.get("legacy_id") or ""
        return cls(
            zone_id=str(payload["id"]),
            name=str(payload.get("name", "")),
            tier=ServiceTier.from_plan(price=price, legacy_id=legacy_id),
            plan_price=float(price),
            plan_id=str(legacy_id),
        )

    @property
    def policy(self) -> TierPolicy:
        return resolve_policy(self.tier)

    def as_dict(self) -> dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "name": self.name,
            "tier": self.tier.label,
            "plan_price": self.plan_price,
            "plan_id": self.plan_id,
        }
