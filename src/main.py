"""Entry point: discover zones, wire the collector and serve ``/metrics``."""

import sys

import uvicorn

from fastapi_app import routes
from fastapi_app.app import app
from helpers.constants import APP_LOGGER, LISTEN_HOST, LISTEN_PORT
from services.analytics_collector import AnalyticsCollectorService, NoMonitoredZonesError
from wrappers.cloudflare_api import CloudflareAPIError


def main() -> None:
    try:
        service = AnalyticsCollectorService.from_environment()
    except (NoMonitoredZonesError, CloudflareAPIError) as exc:
        APP_LOGGER.critical(msg=f"Cannot start exporter: {exc}")
        sys.exit(1)

    routes.install(service)
    APP_LOGGER.info(
        msg=f"Serving metrics on {LISTEN_HOST}:{LISTEN_PORT}",
        zones=[zone.name for zone in service.zones],
    )
    uvicorn.run(app, host=LISTEN_HOST, port=LISTEN_PORT, log_level="info")


if __name__ == "__main__":
    main()
