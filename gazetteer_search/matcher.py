"""
Fuzzy place-name matcher.

A pure, synchronous ranking over whatever the index holds at call time:
substring candidates are scored by match quality, then nudged by feature class
and population so that equal text matches favour significant places.

Scoring (all components additive):
  exact match       EXACT_MATCH_SCORE
  prefix match      PREFIX_MATCH_SCORE * (0.5 + 0.5 * len(query) / len(name))
  substring match   SUBSTRING_MATCH_SCORE - offset * SUBSTRING_OFFSET_PENALTY,
                    floored at SUBSTRING_MIN_SCORE
  feature class     FEATURE_CLASS_WEIGHT (country > capital > ... > landmark)
  population        POPULATION_WEIGHT * log(1 + population)

The gaps are chosen so each term only reorders results the previous terms
left tied: a full prefix never reaches an exact match plus the largest class
weight, and the population term stays below one class step.
"""

from __future__ import annotations

import logging
import math
import unicodedata
from dataclasses import dataclass
from typing import Callable, Optional

from gazetteer_search.index import GazetteerIndex, normalize_name
from gazetteer_search.models import FeatureClass, PlaceRecord, SearchResult

logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 1000.0
PREFIX_MATCH_SCORE = 500.0
SUBSTRING_MATCH_SCORE = 200.0
SUBSTRING_OFFSET_PENALTY = 10.0
SUBSTRING_MIN_SCORE = 50.0
POPULATION_WEIGHT = 0.01

FEATURE_CLASS_WEIGHT: dict[FeatureClass, float] = {
    FeatureClass.COUNTRY: 25.0,
    FeatureClass.CAPITAL: 20.0,
    FeatureClass.CITY: 15.0,
    FeatureClass.TOWN: 10.0,
    FeatureClass.VILLAGE: 5.0,
    FeatureClass.LANDMARK: 0.0,
}

CYRILLIC = frozenset({"CYRILLIC"})
LATIN = frozenset({"LATIN"})

# Locale language -> Unicode scripts its place names are written in; anything
# else is Latin. Japanese names mix kanji and kana.
LOCALE_SCRIPTS: dict[str, frozenset[str]] = {
    "bg": CYRILLIC,
    "ru": CYRILLIC,
    "uk": CYRILLIC,
    "sr": CYRILLIC,
    "mk": CYRILLIC,
    "be": CYRILLIC,
    "kk": CYRILLIC,
    "el": frozenset({"GREEK"}),
    "ar": frozenset({"ARABIC"}),
    "he": frozenset({"HEBREW"}),
    "ka": frozenset({"GEORGIAN"}),
    "hy": frozenset({"ARMENIAN"}),
    "zh": frozenset({"CJK"}),
    "ja": frozenset({"CJK", "HIRAGANA", "KATAKANA"}),
    "ko": frozenset({"HANGUL"}),
}

CountryNameResolver = Callable[[str], str]


def text_score(query: str, key: str) -> float:
    """Score one normalized name against a normalized query; 0 means no match."""
    if not key:
        return 0.0
    if key == query:
        return EXACT_MATCH_SCORE
    offset = key.find(query)
    if offset < 0:
        return 0.0
    if offset == 0:
        return PREFIX_MATCH_SCORE * (0.5 + 0.5 * len(query) / len(key))
    return max(SUBSTRING_MATCH_SCORE - offset * SUBSTRING_OFFSET_PENALTY, SUBSTRING_MIN_SCORE)


def name_script(text: str) -> Optional[str]:
    """Unicode script of the first letter in text, e.g. "LATIN" or "CYRILLIC"."""
    for ch in text:
        if ch.isalpha():
            try:
                return unicodedata.name(ch).split(" ", 1)[0]
            except ValueError:
                continue
    return None


def locale_scripts(locale: str) -> frozenset[str]:
    language = locale.replace("_", "-").split("-", 1)[0].lower()
    return LOCALE_SCRIPTS.get(language, LATIN)


def display_name_index(record: PlaceRecord, locale: Optional[str]) -> int:
    """
    Position in record.names of the name to show for a locale:
    the primary name if it is already in one of the locale's scripts, else the
    first alternate in one, else (Latin locales) the ASCII name, else primary.
    """
    if not locale:
        return 0
    scripts = locale_scripts(locale)
    if name_script(record.primary_name) in scripts:
        return 0
    first_alt = 2 if record.ascii_name else 1
    for offset, alt in enumerate(record.alternate_names):
        if name_script(alt) in scripts:
            return first_alt + offset
    if "LATIN" in scripts and record.ascii_name:
        return 1
    return 0


def id_sort_key(record_id: str) -> tuple[int, int, str]:
    """Numeric ids order numerically, and before any non-numeric ids."""
    if record_id.isascii() and record_id.isdigit():
        return (0, int(record_id), "")
    return (1, 0, record_id)



@dataclass(frozen=True)
class _Candidate:
    score: float
    record: PlaceRecord
    name: str

    @property
    def rank_key(self) -> tuple:
        return (-self.score, id_sort_key(self.record.id))


class FuzzyMatcher:
    """Ranks resident records against a free-text query."""

    def __init__(
        self,
        index: GazetteerIndex,
        country_name: Optional[CountryNameResolver] = None,
    ) -> None:
        self.index = index
        self.country_name = country_name or (lambda code: code)

    def search(
        self,
        query: str,
        limit: int = 8,
        locale: Optional[str] = None,
    ) -> list[SearchResult]:
        normalized = normalize_name(query) if query else ""
        if not normalized or limit <= 0:
            return []

        best: dict[tuple[str, str], _Candidate] = {}
        for entry in self.index.entries():
            text = max((text_score(normalized, key) for key in entry.keys), default=0.0)
            if text <= 0.0:
                continue

            record = entry.record
            score = (
                text
                + FEATURE_CLASS_WEIGHT[record.feature_class]
                + POPULATION_WEIGHT * math.log1p(record.population)
            )
            name_idx = display_name_index(record, locale)
            candidate = _Candidate(score=score, record=record, name=record.names[name_idx])

            # Same display name in the same country: keep the best-ranked record
            dedupe_key = (entry.keys[name_idx], record.country_code)
            current = best.get(dedupe_key)
            if current is None or candidate.rank_key < current.rank_key:
                best[dedupe_key] = candidate

        ranked = sorted(best.values(), key=lambda c: c.rank_key)[:limit]
        return [self._to_result(c) for c in ranked]

    def _to_result(self, candidate: _Candidate) -> SearchResult:
        record = candidate.record
        return SearchResult(
            id=record.id,
            name=candidate.name,
            lat=record.lat,
            lng=record.lng,
            recommended_zoom=record.recommended_zoom,
            type=record.feature_class,
            country=self.country_name(record.country_code),
            country_code=record.country_code,
            score=round(candidate.score, 4),
        )
