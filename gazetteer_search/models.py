"""
Pydantic models for place records, bounding boxes and search results.
Pure data objects with no IO coupling.

The compact-keyed JSON written by the gazetteer build scripts is described by
``WirePlaceRecord`` (schema version 1) and converted into ``PlaceRecord`` at the
loader boundary.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

WIRE_SCHEMA_VERSION = 1

MAX_ALTERNATE_NAMES = 5
COORDINATE_PRECISION = 5

_COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")


# ── Enums ──────────────────────────────────────────────────────────────

class FeatureClass(str, Enum):
    COUNTRY = "country"
    CAPITAL = "capital"
    CITY = "city"
    TOWN = "town"
    VILLAGE = "village"
    LANDMARK = "landmark"


RECOMMENDED_ZOOM: dict[FeatureClass, int] = {
    FeatureClass.COUNTRY: 5,
    FeatureClass.CAPITAL: 10,
    FeatureClass.CITY: 11,
    FeatureClass.TOWN: 13,
    FeatureClass.VILLAGE: 14,
    FeatureClass.LANDMARK: 15,
}

CITY_POPULATION = 10_000
TOWN_POPULATION = 1_000


def classify_feature(feature_code: Optional[str], population: int) -> FeatureClass:
    """
    Derive the coarse feature class from a GeoNames feature code and population.
    Records without a feature code are treated as populated places.
    """
    code = (feature_code or "").upper()
    if code.startswith("PCL"):
        return FeatureClass.COUNTRY
    if code == "PPLC":
        return FeatureClass.CAPITAL
    if code and not (code.startswith("PPL") or code.startswith("ADM")):
        return FeatureClass.LANDMARK
    if code == "PPLA" or population > CITY_POPULATION:
        return FeatureClass.CITY
    if code in ("PPLA2", "PPLA3") or population > TOWN_POPULATION:
        return FeatureClass.TOWN
    return FeatureClass.VILLAGE


def normalize_country_code(value: Any) -> Optional[str]:
    if value is None:
        return None
    code = str(value).strip().upper()
    if not code:
        return None
    if not _COUNTRY_CODE_RE.match(code):
        raise ValueError(f"invalid country code: {value!r}")
    return code


# ── Domain models ──────────────────────────────────────────────────────

class PlaceRecord(BaseModel):
    """A resident gazetteer entry."""
    id: str
    primary_name: str
    ascii_name: Optional[str] = None
    alternate_names: tuple[str, ...] = ()
    country_code: str
    population: int = Field(0, ge=0)
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    feature_class: FeatureClass
    recommended_zoom: int

    model_config = {"frozen": True}

    @property
    def names(self) -> tuple[str, ...]:
        """Every searchable name, primary first."""
        out = [self.primary_name]
        if self.ascii_name:
            out.append(self.ascii_name)
        out.extend(self.alternate_names)
        return tuple(out)


class CountryBoundingBox(BaseModel):
    """Bounding box of one country's dataset, with its chunk count."""
    country_code: str
    min_lat: float = Field(..., ge=-90.0, le=90.0)
    min_lng: float = Field(..., ge=-180.0, le=180.0)
    max_lat: float = Field(..., ge=-90.0, le=90.0)
    max_lng: float = Field(..., ge=-180.0, le=180.0)
    chunk_count: int = Field(1, ge=1)

    model_config = {"frozen": True}

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lng > self.max_lng

    @classmethod
    def from_wire(cls, code: str, value: Any) -> "CountryBoundingBox":
        """
        Build from a bbox table entry: ``[minLat, minLng, maxLat, maxLng]``
        with an optional trailing chunk count.
        """
        if not isinstance(value, (list, tuple)) or len(value) not in (4, 5):
            raise ValueError(f"bbox for {code!r} must have 4 or 5 elements")
        numbers = [float(v) for v in value[:4]]
        if not all(math.isfinite(v) for v in numbers):
            raise ValueError(f"bbox for {code!r} has non-finite bounds")
        min_lat, min_lng, max_lat, max_lng = numbers
        if min_lat > max_lat:
            raise ValueError(f"bbox for {code!r} has min_lat > max_lat")
        chunk_count = int(value[4]) if len(value) == 5 and value[4] is not None else 1
        return cls(
            country_code=normalize_country_code(code),
            min_lat=min_lat,
            min_lng=min_lng,
            max_lat=max_lat,
            max_lng=max_lng,
            chunk_count=chunk_count,
        )


class SearchResult(BaseModel):
    """One ranked match handed to the selection UI."""
    id: str
    name: str
    lat: float
    lng: float
    recommended_zoom: int
    type: FeatureClass
    country: str
    country_code: str
    score: float

    model_config = {"frozen": True}


# ── Wire schema (version 1) ───────────────────────────────────────────

class WirePlaceRecord(BaseModel):
    """
    A record as stored in major.json and the per-country files:
    ``{id, n, a?, alt?, c?, p, lat, lng, fc?}``.
    """
    id: str
    n: str
    a: Optional[str] = None
    alt: list[str] = Field(default_factory=list)
    c: Optional[str] = None
    p: int = 0
    lat: float
    lng: float
    fc: Optional[str] = None

    model_config = {"extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Ids arrive as GeoNames numeric strings or plain integers."""
        if isinstance(v, bool):
            raise ValueError("id must be a string or integer")
        if isinstance(v, int):
            return str(v)
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        if isinstance(v, str) and v.strip():
            return v.strip()
        raise ValueError(f"invalid id: {v!r}")

    @field_validator("n")
    @classmethod
    def require_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("empty name")
        return v

    @field_validator("a", mode="before")
    @classmethod
    def blank_ascii_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("alt", mode="before")
    @classmethod
    def clean_alternates(cls, v):
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            raise ValueError("alt must be an array")
        return [s.strip() for s in v if isinstance(s, str) and s.strip()]

    @field_validator("c", mode="before")
    @classmethod
    def coerce_country(cls, v):
        return normalize_country_code(v)

    @field_validator("p", mode="before")
    @classmethod
    def coerce_population(cls, v):
        if v is None or v == "":
            return 0
        try:
            number = float(v)
        except (TypeError, ValueError):
            return 0
        if not math.isfinite(number) or number < 0:
            return 0
        return int(number)

    @field_validator("lat", "lng")
    @classmethod
    def require_finite(cls, v: float, info) -> float:
        if not math.isfinite(v):
            raise ValueError(f"{info.field_name} is not finite")
        bound = 90.0 if info.field_name == "lat" else 180.0
        if abs(v) > bound:
            raise ValueError(f"{info.field_name} out of range: {v}")
        return v

    @field_validator("fc", mode="before")
    @classmethod
    def coerce_feature_code(cls, v):
        if v is None:
            return None
        code = str(v).strip().upper()
        return code or None

    def to_place(self, default_country: Optional[str] = None) -> PlaceRecord:
        """Convert into a resident record; raises ValueError without a country."""
        country = self.c or default_country
        if not country:
            raise ValueError(f"record {self.id} has no country code")

        ascii_name = self.a if self.a and self.a != self.n else None
        seen = {self.n, ascii_name}
        alternates: list[str] = []
        for name in self.alt:
            if name in seen:
                continue
            seen.add(name)
            alternates.append(name)
            if len(alternates) == MAX_ALTERNATE_NAMES:
                break

        feature_class = classify_feature(self.fc, self.p)
        return PlaceRecord(
            id=self.id,
            primary_name=self.n,
            ascii_name=ascii_name,
            alternate_names=tuple(alternates),
            country_code=country,
            population=self.p,
            lat=round(self.lat, COORDINATE_PRECISION),
            lng=round(self.lng, COORDINATE_PRECISION),
            feature_class=feature_class,
            recommended_zoom=RECOMMENDED_ZOOM[feature_class],
        )
