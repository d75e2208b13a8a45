"""
In-memory gazetteer index.

Holds every resident PlaceRecord keyed by id, together with the normalized
search keys the matcher scans. The index is append-only: records are never
replaced or removed for the lifetime of the owning engine.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from gazetteer_search.models import PlaceRecord

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """
    Fold a name or query into its comparison form:
      1. NFKD decomposition with combining marks removed ("São" -> "sao")
      2. casefold
      3. collapse and trim whitespace
    """
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE_RE.sub(" ", stripped.casefold()).strip()


@dataclass(frozen=True)
class IndexEntry:
    record: PlaceRecord
    # Normalized names, aligned with record.names
    keys: tuple[str, ...]


class GazetteerIndex:
    """Append-only store of resident place records."""

    def __init__(self) -> None:
        self._entries: dict[str, IndexEntry] = {}
        self._by_country: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._entries

    def __iter__(self) -> Iterator[PlaceRecord]:
        return (entry.record for entry in self._entries.values())

    def get(self, record_id: str) -> Optional[PlaceRecord]:
        entry = self._entries.get(record_id)
        return entry.record if entry else None

    def add(self, record: PlaceRecord) -> bool:
        """Add a record. Returns False if its id is already resident."""
        if record.id in self._entries:
            return False
        keys = tuple(normalize_name(name) for name in record.names)
        self._entries[record.id] = IndexEntry(record=record, keys=keys)
        self._by_country[record.country_code] = self._by_country.get(record.country_code, 0) + 1
        return True

    def merge(self, records: Iterable[PlaceRecord]) -> int:
        """Add every record whose id is not yet resident; returns the count added."""
        added = 0
        for record in records:
            if self.add(record):
                added += 1
        logger.debug("Merged %d records (index size %d)", added, len(self._entries))
        return added

    def entries(self) -> Iterator[IndexEntry]:
        return iter(self._entries.values())

    def country_codes(self) -> list[str]:
        """Countries with at least one resident record."""
        return sorted(self._by_country)

    def count_for_country(self, country_code: str) -> int:
        return self._by_country.get(country_code.upper(), 0)
