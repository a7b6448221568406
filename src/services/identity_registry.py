"""Location-code registry: built-in table plus codes learned from the status feed.

Concurrency
───────────
Entries are only ever inserted, never updated in place. Readers work on an
immutable snapshot (a dict swapped atomically on every insert), so a lookup
never waits on a refresh. Writers serialise on a ``threading.Lock``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from config.colos import RAW_COLOS
from helpers.constants import APP_LOGGER

UNKNOWN = "Unknown"
SITE_SEPARATOR = "-"


class Provenance(str, Enum):
    BUILT_IN = "built-in"
    LEARNED = "learned"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class LocationCode:
    """A point-of-presence code with its display name and region."""

    code: str
    display_name: str
    region: str
    provenance: Provenance

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.display_name,
            "region": self.region,
            "provenance": self.provenance.value,
        }


class LocationRegistry:
    """Resolves raw colo codes to :class:`LocationCode` entries.

    ``resolve`` never fails: an exact match wins, then the code with any
    site suffix (``SJC-PIG`` -> ``SJC``) removed, then a fallback entry that
    carries the primary code and is returned but never stored.
    """

    def __init__(self, load_builtins: bool = True) -> None:
        self._write_lock = threading.Lock()
        self._by_code: dict[str, LocationCode] = {}
        self._listing: tuple[LocationCode, ...] = ()
        if load_builtins:
            self.bulk_load_builtins()

    # ── Reads ─────────────────────────────────────────────────────────────

    def resolve(self, code: str) -> LocationCode:
        """Return the entry for ``code``, degrading to a fallback entry."""
        snapshot = self._by_code
        raw = (code or "").strip()
        entry = snapshot.get(raw)
        if entry is not None:
            return entry

        primary = raw.split(SITE_SEPARATOR, 1)[0]
        if primary and primary != raw:
            entry = snapshot.get(primary)
            if entry is not None:
                return entry

        return LocationCode(
            code=primary or UNKNOWN,
            display_name=UNKNOWN,
            region=UNKNOWN,
            provenance=Provenance.FALLBACK,
        )

    def get(self, code: str) -> LocationCode | None:
        """Exact lookup without suffix stripping or fallback."""
        return self._by_code.get(code)

    def entries(self) -> list[LocationCode]:
        """All known entries, sorted by display name."""
        return list(self._listing)

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def __len__(self) -> int:
        return len(self._by_code)

    # ── Writes ────────────────────────────────────────────────────────────

    def bulk_load_builtins(self, table: Iterable[tuple[str, str, str]] = RAW_COLOS) -> int:
        """Insert the embedded table as ``built-in`` entries. Returns the number added."""
        entries = [
            LocationCode(code=c, display_name=n, region=r, provenance=Provenance.BUILT_IN)
            for c, n, r in table
        ]
        added = self._insert(entries)
        APP_LOGGER.debug(msg="Built-in locations loaded", count=added)
        return added

    def learn(self, code: str, display_name: str, region: str) -> bool:
        """Insert a code discovered externally. Existing codes are left untouched.

        Returns True when a new entry was added.
        """
        if not code:
            return False
        entry = LocationCode(
            code=code,
            display_name=display_name,
            region=region or UNKNOWN,
            provenance=Provenance.LEARNED,
        )
        added = self._insert([entry]) == 1
        if added:
            APP_LOGGER.info(
                msg="Learned new location", code=code, name=display_name, region=region
            )
        return added

    def learn_many(self, triples: Iterable[tuple[str, str, str]]) -> int:
        """Learn a batch of ``(code, name, region)`` triples in one snapshot swap."""
        entries = [
            LocationCode(
                code=c, display_name=n, region=r or UNKNOWN, provenance=Provenance.LEARNED
            )
            for c, n, r in triples
            if c
        ]
        added = self._insert(entries)
        if added:
            APP_LOGGER.info(msg="Learned new locations", count=added)
        return added

    def _insert(self, entries: list[LocationCode]) -> int:
        with self._write_lock:
            fresh = {}
            for entry in entries:
                if entry.code in self._by_code or entry.code in fresh:
                    continue
                fresh[entry.code] = entry
            if not fresh:
                return 0
            by_code = dict(self._by_code)
            by_code.update(fresh)
            listing = tuple(sorted(by_code.values(), key=lambda e: (e.display_name, e.code)))
            self._listing = listing
            self._by_code = by_code
            return len(fresh)

    def as_dict(self) -> dict[str, Any]:
        listing = self.entries()
        counts: dict[str, int] = {}
        for entry in listing:
            counts[entry.provenance.value] = counts.get(entry.provenance.value, 0) + 1
        return {
            "count": len(listing),
            "by_provenance": counts,
            "locations": [e.as_dict() for e in listing],
        }
