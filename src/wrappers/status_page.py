"""Fetch the public status summary document."""

from typing import Any

import httpx

from helpers.constants import APP_LOGGER


class StatusFeedError(Exception):
    """The status summary could not be fetched or decoded."""


class StatusPageClient:
    """Object to wrap status page summary requests."""

    def __init__(
        self, url: str, timeout: float = 30.0, http_client: httpx.Client | None = None
    ) -> None:
        self.url = url
        self.client = http_client or httpx.Client(
            headers={"User-Agent": "cloudflare-exporter"},
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        )

    def get_summary(self) -> dict[str, Any]:
        """Return the decoded summary document."""
        APP_LOGGER.debug(msg=f"GET {self.url}")
        try:
            response = self.client.get(self.url)
            response.raise_for_status()
            summary = response.json()
        except httpx.HTTPError as exc:
            raise StatusFeedError(f"failed to get status summary: {exc}") from exc
        except ValueError as exc:
            raise StatusFeedError(f"status summary is not valid JSON: {exc}") from exc
        if not isinstance(summary, dict):
            raise StatusFeedError("status summary has an unexpected shape")
        return summary

    def close(self) -> None:
        self.client.close()
