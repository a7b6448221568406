"""Utility functions for time windows and environment parsing."""

from datetime import datetime, timedelta, timezone

TRUE_VALUES = ("true", "1", "yes")


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def window_bounds(lookback: timedelta, until: datetime | None = None) -> tuple[datetime, datetime]:
    """Return ``(since, until)`` for a lookback window ending at ``until`` (default now)."""
    end = until or now_utc()
    return end - lookback, end


def isoformat_z(moment: datetime) -> str:
    """RFC 3339 timestamp in UTC with second precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_bool(raw: str | None, default: bool = False) -> bool:
    """Interpret an environment string as a boolean."""
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in TRUE_VALUES


def parse_csv(raw: str | None) -> list[str]:
    """Split a comma-separated environment value, dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]
