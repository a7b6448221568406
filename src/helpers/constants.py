"""Manage all constants / shared resources read from the environment."""

import os

from helpers.logger import JSONLogger
from helpers.utils import parse_bool, parse_csv

# Debug Mode / Level for the Logger
DEBUG_MODE = parse_bool(os.environ.get("DEBUG_MODE"), default=False)
APP_LOGGER = JSONLogger(debug=DEBUG_MODE)

EXPORTER_VERSION = "1.0.0"

# ── Cloudflare API credentials ────────────────────────────────────────────
# A token wins over the legacy key + email pair when both are set.
CLOUDFLARE_API_TOKEN = os.environ.get("CLOUDFLARE_API_TOKEN", default="")
CLOUDFLARE_API_KEY = os.environ.get("CLOUDFLARE_API_KEY", default="")
CLOUDFLARE_API_EMAIL = os.environ.get("CLOUDFLARE_API_EMAIL", default="")
CLOUDFLARE_API_URL = os.environ.get(
    "CLOUDFLARE_API_URL", default="https://api.cloudflare.com/client/v4"
).rstrip("/")

# Zones to monitor; empty means every zone visible to the credentials
CLOUDFLARE_ZONE_NAMES = parse_csv(os.environ.get("CLOUDFLARE_ZONE_NAMES"))

# ── Status feed ───────────────────────────────────────────────────────────
STATUS_FEED_URL = os.environ.get(
    "STATUS_FEED_URL",
    default="https://www.cloudflarestatus.com/api/v2/summary.json",
)
# Region groups containing the brand name duplicate the platform-wide indicator
STATUS_BRAND_NAME = os.environ.get("STATUS_BRAND_NAME", default="Cloudflare")

# ── Metric surface ────────────────────────────────────────────────────────
METRICS_NAMESPACE = os.environ.get("METRICS_NAMESPACE", default="cloudflare")

DASHBOARD_ANALYTICS_ENABLED = parse_bool(
    os.environ.get("DASHBOARD_ANALYTICS_ENABLED"), default=True
)
DNS_ANALYTICS_ENABLED = parse_bool(os.environ.get("DNS_ANALYTICS_ENABLED"), default=True)
STATUS_METRICS_ENABLED = parse_bool(
    os.environ.get("STATUS_METRICS_ENABLED"), default=True
)

# ── Collection tuning ─────────────────────────────────────────────────────
DNS_LOOKBACK_SECONDS = int(os.environ.get("DNS_LOOKBACK_SECONDS", default=60))
MAX_WORKERS = max(1, int(os.environ.get("MAX_WORKERS", default=4)))
REQUEST_TIMEOUT_SECONDS = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", default=30))
SCRAPE_TIMEOUT_SECONDS = float(os.environ.get("SCRAPE_TIMEOUT_SECONDS", default=55))

# ── HTTP listener ─────────────────────────────────────────────────────────
LISTEN_HOST = os.environ.get("LISTEN_HOST", default="0.0.0.0")
LISTEN_PORT = int(os.environ.get("LISTEN_PORT", default=9199))

APP_CONFIG = {
    "api_url": CLOUDFLARE_API_URL,
    "auth": "token" if CLOUDFLARE_API_TOKEN else "key",
    "zone_names": CLOUDFLARE_ZONE_NAMES,
    "status_feed_url": STATUS_FEED_URL,
    "namespace": METRICS_NAMESPACE,
    "dashboard_analytics": DASHBOARD_ANALYTICS_ENABLED,
    "dns_analytics": DNS_ANALYTICS_ENABLED,
    "status_metrics": STATUS_METRICS_ENABLED,
    "max_workers": MAX_WORKERS,
    "request_timeout_seconds": REQUEST_TIMEOUT_SECONDS,
    "scrape_timeout_seconds": SCRAPE_TIMEOUT_SECONDS,
}
APP_LOGGER.debug(msg="Exporter configuration loaded", **APP_CONFIG)
