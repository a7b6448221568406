"""Registry of every metric family the exporter publishes.

Each family has a label-key schema that is fixed for its full name: the
mapper never drops a key, it substitutes a placeholder value instead.
Families published under the per-location namespace carry the resolved
location labels; the DNS families always carry them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from config.tiers import MetricNamespace

PLACEHOLDER = "N/A"

RESOURCE_LABELS: tuple[str, ...] = ("resource_id", "resource_name")
LOCATION_LABELS: tuple[str, ...] = ("location_code", "location_name", "location_region")
DNS_ROW_LABELS: tuple[str, ...] = (
    "query_name",
    "response_code",
    "origin",
    "tcp",
    "ip_version",
)


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


class FamilyGroup(str, Enum):
    DASHBOARD = "dashboard"
    DNS = "dns"
    STATUS = "status"
    EXPORTER = "exporter"


@dataclass(frozen=True)
class MetricFamily:
    """Static description of one metric family (name suffix, kind, labels)."""

    suffix: str
    documentation: str
    kind: MetricKind
    group: FamilyGroup
    # Category label appended after resource/location labels
    extra_labels: tuple[str, ...] = ()

    def label_keys(self, per_location: bool = False) -> tuple[str, ...]:
        if self.group is FamilyGroup.DNS:
            return RESOURCE_LABELS + DNS_ROW_LABELS + LOCATION_LABELS + ("query_type",)
        if self.group is FamilyGroup.DASHBOARD:
            location = LOCATION_LABELS if per_location else ()
            return RESOURCE_LABELS + location + self.extra_labels
        return self.extra_labels


@dataclass(frozen=True)
class MetricRecord:
    """One sample: a family name, its kind, an ordered label tuple and a value."""

    name: str
    kind: MetricKind
    labels: tuple[tuple[str, str], ...]
    value: float
    documentation: str = ""

    @property
    def label_keys(self) -> tuple[str, ...]:
        return tuple(k for k, _ in self.labels)

    @property
    def label_values(self) -> tuple[str, ...]:
        return tuple(v for _, v in self.labels)

    @property
    def identity(self) -> tuple[str, tuple[tuple[str, str], ...]]:
        return self.name, self.labels

    def label(self, key: str) -> str | None:
        return dict(self.labels).get(key)


def _dashboard(suffix: str, doc: str, kind: MetricKind, *extra: str) -> MetricFamily:
    return MetricFamily(suffix, doc, kind, FamilyGroup.DASHBOARD, tuple(extra))


C, G = MetricKind.COUNTER, MetricKind.GAUGE

# ─── Dashboard analytics ─────────────────────────────────────────────────────
# Request counts are counters; the other totals move with the sliding window.

REQUESTS_TOTAL = _dashboard("requests_total", "Total number of requests served", C)
REQUESTS_CACHED = _dashboard("requests_cached", "Total number of cached requests served", C)
REQUESTS_UNCACHED = _dashboard(
    "requests_uncached", "Total number of requests served from the origin", C
)
REQUESTS_ENCRYPTED = _dashboard(
    "requests_encrypted", "The number of requests served over HTTPS", C
)
REQUESTS_UNENCRYPTED = _dashboard(
    "requests_unencrypted", "The number of requests served over HTTP", C
)
REQUESTS_BY_STATUS = _dashboard(
    "requests_by_status",
    "The total number of requests broken out by status code",
    C,
    "status_code",
)
REQUESTS_BY_CONTENT_TYPE = _dashboard(
    "requests_by_content_type",
    "The total number of requests broken out by content type",
    C,
    "content_type",
)
REQUESTS_BY_COUNTRY = _dashboard(
    "requests_by_country",
    "The total number of requests broken out by country",
    C,
    "country_code",
)
REQUESTS_BY_IP_CLASS = _dashboard(
    "requests_by_ip_class",
    "The total number of requests broken out by IP class",
    C,
    "ip_class",
)

BANDWIDTH_TOTAL = _dashboard(
    "bandwidth_total_bytes", "The total number of bytes served within the time frame", G
)
BANDWIDTH_CACHED = _dashboard(
    "bandwidth_cached_bytes", "The total number of bytes that were cached (and served)", G
)
BANDWIDTH_UNCACHED = _dashboard(
    "bandwidth_uncached_bytes",
    "The total number of bytes that were fetched and served from the origin server",
    G,
)
BANDWIDTH_ENCRYPTED = _dashboard(
    "bandwidth_encrypted_bytes", "The total number of bytes served over HTTPS", G
)
BANDWIDTH_UNENCRYPTED = _dashboard(
    "bandwidth_unencrypted_bytes", "The total number of bytes served over HTTP", G
)
BANDWIDTH_BY_CONTENT_TYPE = _dashboard(
    "bandwidth_by_content_type_bytes",
    "The total number of bytes served broken out by content type",
    G,
    "content_type",
)
BANDWIDTH_BY_COUNTRY = _dashboard(
    "bandwidth_by_country_bytes",
    "The total number of bytes served broken out by country",
    G,
    "country_code",
)

THREATS_TOTAL = _dashboard(
    "threats_total", "The total number of identifiable threats received", G
)
THREATS_BY_TYPE = _dashboard(
    "threats_by_type",
    "The total number of identifiable threats received broken out by type",
    G,
    "type",
)
THREATS_BY_COUNTRY = _dashboard(
    "threats_by_country",
    "The total number of identifiable threats received broken out by country",
    G,
    "country_code",
)

PAGEVIEWS_TOTAL = _dashboard("pageviews_total", "The total number of pageviews served", G)
PAGEVIEWS_BY_SEARCH_ENGINE = _dashboard(
    "pageviews_by_search_engine",
    "The total number of pageviews served broken out by search engine",
    G,
    "search_engine",
)

UNIQUE_IP_ADDRESSES_TOTAL = _dashboard(
    "unique_ip_addresses_total", "Total number of unique IP addresses", G
)

# ─── DNS analytics ──────────────────────────────────────────────────────────

DNS_QUERIES = MetricFamily(
    "dns_record_queries_total", "Total number of DNS queries", G, FamilyGroup.DNS
)
DNS_UNCACHED_QUERIES = MetricFamily(
    "dns_record_uncached_queries_total",
    "Total number of uncached DNS queries",
    G,
    FamilyGroup.DNS,
)
DNS_STALE_QUERIES = MetricFamily(
    "dns_record_stale_queries_total",
    "Total number of stale DNS queries",
    G,
    FamilyGroup.DNS,
)

# ─── Status feed ────────────────────────────────────────────────────────────

POP_STATUS = MetricFamily(
    "pop_status",
    "Point of presence (PoP) status",
    G,
    FamilyGroup.STATUS,
    ("status",) + LOCATION_LABELS,
)
REGION_STATUS = MetricFamily(
    "region_status", "Region status", G, FamilyGroup.STATUS, ("status", "region_name")
)
SERVICE_STATUS = MetricFamily(
    "service_status", "Service status", G, FamilyGroup.STATUS, ("status", "service_name")
)
UP = MetricFamily(
    "up", "Overall platform status", G, FamilyGroup.STATUS, ("indicator", "description")
)

# ─── Exporter self-metrics ──────────────────────────────────────────────────

COMPONENT_PROCESSING_TIME = MetricFamily(
    "exporter_component_processing_time_seconds",
    "Component processing time in seconds",
    G,
    FamilyGroup.EXPORTER,
    RESOURCE_LABELS + ("component",),
)
PROCESSING_TIME = MetricFamily(
    "exporter_processing_time_seconds",
    "Scrape processing time in seconds",
    G,
    FamilyGroup.EXPORTER,
)
BUILD_INFO = MetricFamily(
    "exporter_build_info", "Exporter build information", G, FamilyGroup.EXPORTER, ("version",)
)

DNS_FAMILIES: tuple[MetricFamily, ...] = (DNS_QUERIES, DNS_UNCACHED_QUERIES, DNS_STALE_QUERIES)


class MetricSchema:
    """Binds families to a namespace and builds schema-checked records."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    def prefix(self, scope: MetricNamespace = MetricNamespace.BASE) -> str:
        if scope is MetricNamespace.PER_LOCATION:
            return f"{self.namespace}_pop"
        return self.namespace

    def name(self, family: MetricFamily, scope: MetricNamespace = MetricNamespace.BASE) -> str:
        return f"{self.prefix(scope)}_{family.suffix}"

    def record(
        self,
        family: MetricFamily,
        values: tuple[str, ...],
        value: float,
        scope: MetricNamespace = MetricNamespace.BASE,
    ) -> MetricRecord:
        """Build a record, enforcing the family's label-key schema.

        Empty label values degrade to the placeholder so a key is never
        absent from the exposition.
        """
        keys = family.label_keys(per_location=scope is MetricNamespace.PER_LOCATION)
        if len(keys) != len(values):
            raise ValueError(
                f"{family.suffix}: expected {len(keys)} label values, got {len(values)}"
            )
        labels = tuple(
            (key, str(val) if val not in (None, "") else PLACEHOLDER)
            for key, val in zip(keys, values)
        )
        return MetricRecord(
            name=self.name(family, scope),
            kind=family.kind,
            labels=labels,
            value=float(value),
            documentation=family.documentation,
        )
