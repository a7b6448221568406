#!/usr/bin/env python3
"""Regenerate the built-in colo table from the live status feed.

Usage:
    pip install -e .
    export STATUS_FEED_URL=https://www.cloudflarestatus.com/api/v2/summary.json  # optional
    python3 scripts/generate_colos.py > src/config/colos.py

Entries already in the table are kept as they are (hand-added codes such as
SFO survive a regeneration). Site variants like ``SJC-PIG`` are skipped when
their primary code is known, so they keep resolving through it.
"""

import json
import sys

from config.colos import RAW_COLOS
from helpers.constants import REQUEST_TIMEOUT_SECONDS, STATUS_BRAND_NAME, STATUS_FEED_URL
from services.identity_registry import SITE_SEPARATOR
from services.status_feed import parse_summary
from wrappers.status_page import StatusFeedError, StatusPageClient

HEADER = '''"""Built-in point-of-presence (colo) table.

Loaded once at startup so location codes resolve even when the status feed
is unreachable. Regenerate with ``scripts/generate_colos.py``; SFO is absent
from the feed and was added by hand. Site variants such as ``SJC-PIG`` are
not listed: they resolve through their primary code.
"""

RAW_COLOS: list[tuple[str, str, str]] = [
    # code, display name, region
'''


def merge_table(
    existing: list[tuple[str, str, str]], discovered: list[tuple[str, str, str]]
) -> list[tuple[str, str, str]]:
    """Existing entries win; discovered site variants of known codes are dropped."""
    table = {code: (code, name, region) for code, name, region in existing}
    for code, name, region in discovered:
        if not code or code in table:
            continue
        primary = code.split(SITE_SEPARATOR, 1)[0]
        if primary != code and primary in table:
            continue
        table[code] = (code, name, region)
    return sorted(table.values())


def render(table: list[tuple[str, str, str]]) -> str:
    lines = [HEADER.rstrip("\n")]
    for code, name, region in table:
        values = ", ".join(json.dumps(v, ensure_ascii=False) for v in (code, name, region))
        lines.append(f"    ({values}),")
    lines.append("]")
    return "\n".join(lines) + "\n"


def main():
    client = StatusPageClient(STATUS_FEED_URL, timeout=REQUEST_TIMEOUT_SECONDS)
    try:
        summary = parse_summary(client.get_summary(), brand_name=STATUS_BRAND_NAME)
    except StatusFeedError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        client.close()

    table = merge_table(RAW_COLOS, summary.location_triples())
    print(
        f"Feed listed {len(summary.locations)} locations; "
        f"table now has {len(table)} (was {len(RAW_COLOS)})",
        file=sys.stderr,
    )
    sys.stdout.write(render(table))


if __name__ == "__main__":
    main()
