"""Status feed parsing: location discovery and status-derived metric records.

A summary document carries an overall ``status`` block and a flat list of
``components``. Group components are regions; leaf components named
``"<label> - (<code>)"`` are points of presence inside their group's
region; every other leaf component is a named service.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from config.metric_families import (
    POP_STATUS,
    REGION_STATUS,
    SERVICE_STATUS,
    UP,
    MetricRecord,
    MetricSchema,
)
from helpers.constants import APP_LOGGER
from services.identity_registry import UNKNOWN, LocationRegistry
from wrappers.status_page import StatusFeedError, StatusPageClient

LOCATION_NAME_PATTERN = re.compile(r"^(.*) - \((.*)\)$")
HEALTHY_STATUSES = ("operational", "none")


def status_value(status: str) -> float:
    """1 for an operational component / a ``none`` indicator, else 0."""
    return 1.0 if (status or "").strip().lower() in HEALTHY_STATUSES else 0.0


@dataclass(frozen=True)
class LocationStatus:
    code: str
    name: str
    region: str
    status: str


@dataclass(frozen=True)
class ComponentStatus:
    name: str
    status: str


@dataclass
class StatusSummary:
    indicator: str = ""
    description: str = ""
    locations: list[LocationStatus] = field(default_factory=list)
    regions: list[ComponentStatus] = field(default_factory=list)
    services: list[ComponentStatus] = field(default_factory=list)

    def location_triples(self) -> list[tuple[str, str, str]]:
        return [(loc.code, loc.name, loc.region) for loc in self.locations]


def parse_summary(document: dict[str, Any], brand_name: str = "Cloudflare") -> StatusSummary:
    """Split a summary document into locations, regions and services.

    Regions whose name contains ``brand_name`` still supply region names to
    their children but are not reported as regions themselves.
    """
    status = document.get("status") if isinstance(document.get("status"), dict) else {}
    components = [c for c in document.get("components") or [] if isinstance(c, dict)]

    summary = StatusSummary(
        indicator=str(status.get("indicator") or ""),
        description=str(status.get("description") or ""),
    )

    group_names: dict[str, str] = {}
    for component in components:
        if component.get("group"):
            name = str(component.get("name") or "")
            group_names[str(component.get("id") or "")] = name
            if brand_name and brand_name in name:
                continue
            summary.regions.append(ComponentStatus(name, str(component.get("status") or "")))

    for component in components:
        if component.get("group"):
            continue
        name = str(component.get("name") or "")
        state = str(component.get("status") or "")
        match = LOCATION_NAME_PATTERN.match(name)
        if match and match.group(2):
            region = group_names.get(str(component.get("group_id") or "")) or UNKNOWN
            summary.locations.append(
                LocationStatus(
                    code=match.group(2).strip(),
                    name=match.group(1).strip(),
                    region=region,
                    status=state,
                )
            )
        else:
            summary.services.append(ComponentStatus(name, state))
    return summary


def summary_records(summary: StatusSummary, schema: MetricSchema) -> list[MetricRecord]:
    """Status-derived records: pop, region, service and the overall ``up`` gauge."""
    records: dict[tuple, MetricRecord] = {}

    def add(record: MetricRecord) -> None:
        # Feeds occasionally list a component twice; first one wins.
        records.setdefault(record.identity, record)

    for loc in summary.locations:
        add(
            schema.record(
                POP_STATUS,
                (loc.status, loc.code, loc.name, loc.region),
                status_value(loc.status),
            )
        )
    for region in summary.regions:
        add(schema.record(REGION_STATUS, (region.status, region.name), status_value(region.status)))
    for service in summary.services:
        add(
            schema.record(
                SERVICE_STATUS, (service.status, service.name), status_value(service.status)
            )
        )
    add(
        schema.record(
            UP, (summary.indicator, summary.description), status_value(summary.indicator)
        )
    )
    return list(records.values())


class StatusFeedService:
    """Refreshes the location registry and produces status records.

    A failed fetch or parse leaves the registry at its last-known-good state.
    """

    def __init__(
        self,
        client: StatusPageClient,
        registry: LocationRegistry,
        schema: MetricSchema,
        brand_name: str = "Cloudflare",
    ) -> None:
        self.client = client
        self.registry = registry
        self.schema = schema
        self.brand_name = brand_name
        self.last_summary: StatusSummary | None = None

    def refresh(self) -> StatusSummary | None:
        """Fetch the feed and learn any new locations. Returns None on failure."""
        try:
            document = self.client.get_summary()
            summary = parse_summary(document, brand_name=self.brand_name)
        except StatusFeedError as exc:
            APP_LOGGER.warning(
                msg="Status feed unavailable; keeping known locations",
                error=str(exc),
                known_locations=len(self.registry),
            )
            return None
        except (AttributeError, TypeError, ValueError) as exc:
            APP_LOGGER.warning(
                msg="Status feed could not be parsed; keeping known locations",
                error=str(exc),
            )
            return None

        learned = self.registry.learn_many(summary.location_triples())
        APP_LOGGER.debug(
            msg="Status feed refreshed",
            locations=len(summary.locations),
            regions=len(summary.regions),
            services=len(summary.services),
            learned=learned,
        )
        self.last_summary = summary
        return summary

    def refresh_from_status_feed(self) -> bool:
        """Registry-only refresh. Returns True when the feed was read."""
        return self.refresh() is not None

    def collect(self) -> list[MetricRecord]:
        """Refresh the registry and return status records (empty on failure)."""
        summary = self.refresh()
        if summary is None:
            return []
        return summary_records(summary, self.schema)
