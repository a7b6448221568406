"""Prometheus exposition of a scrape's metric records.

The collector runs a full collection pass on every registry ``collect()``
call, so ``/metrics`` always reflects live API data. Records are grouped
by name into one metric family each; a record whose label keys disagree
with the first record of its family is dropped and logged.
"""

from __future__ import annotations

from typing import Any, Iterable

from prometheus_client import CollectorRegistry
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.registry import Collector

from config.metric_families import MetricKind, MetricRecord
from helpers.constants import APP_LOGGER
from services.analytics_collector import AnalyticsCollectorService


def build_families(records: Iterable[MetricRecord]) -> list[Any]:
    """Group records into Counter/Gauge metric families, preserving first-seen order."""
    families: dict[str, Any] = {}
    keys_by_name: dict[str, tuple[str, ...]] = {}

    for record in records:
        family = families.get(record.name)
        if family is None:
            factory = (
                CounterMetricFamily if record.kind is MetricKind.COUNTER else GaugeMetricFamily
            )
            family = factory(record.name, record.documentation, labels=list(record.label_keys))
            families[record.name] = family
            keys_by_name[record.name] = record.label_keys
        elif keys_by_name[record.name] != record.label_keys:
            APP_LOGGER.error(
                msg=f"Dropping sample with inconsistent labels for {record.name}",
                expected=list(keys_by_name[record.name]),
                got=list(record.label_keys),
            )
            continue
        family.add_metric(list(record.label_values), record.value)

    return list(families.values())


class ExporterCollector(Collector):
    """Custom collector backed by :class:`AnalyticsCollectorService`."""

    def __init__(self, service: AnalyticsCollectorService) -> None:
        self.service = service

    def describe(self) -> Iterable[Any]:
        # Family names depend on live data; skip registration-time collection
        return iter(())

    def collect(self) -> Iterable[Any]:
        result = self.service.collect()
        yield from build_families(result.records)


def build_registry(service: AnalyticsCollectorService) -> CollectorRegistry:
    """Dedicated registry holding only the exporter's collector."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(ExporterCollector(service))
    return registry
