"""Country display names for search results, backed by pycountry."""

from __future__ import annotations

from functools import lru_cache

import pycountry


@lru_cache(maxsize=None)
def country_display_name(code: str) -> str:
    """
    Common English name for an ISO-3166 alpha-2 code
    ("BG" -> "Bulgaria", "TW" -> "Taiwan"). Unknown codes are returned as-is.
    """
    country = pycountry.countries.get(alpha_2=code.upper())
    if country is None:
        return code
    return getattr(country, "common_name", None) or country.name
