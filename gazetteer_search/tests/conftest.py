"""
Shared fixtures: a small in-memory gazetteer laid out like the published
data directory, and a source that serves it while counting fetches.
"""

from __future__ import annotations

import asyncio
import copy
from collections import Counter
from typing import Any, Optional

import pytest

from gazetteer_search.config import (
    DataSourceConfig,
    LoaderConfig,
    SearchConfig,
    Settings,
    ViewportConfig,
)
from gazetteer_search.exceptions import DatasetFetchError

MAJOR = [
    {"id": 2988507, "n": "Paris", "c": "FR", "p": 2138551, "lat": 48.85341, "lng": 2.3488, "fc": "PPLC"},
    {"id": "4717560", "n": "Paris", "c": "US", "p": 24171, "lat": 33.66094, "lng": -95.55551, "fc": "PPLA2"},
    {"id": "3393471", "n": "Parintins", "c": "BR", "p": 102033, "lat": -2.62833, "lng": -56.73583, "fc": "PPL"},
    {"id": "2969679", "n": "Villeparisis", "c": "FR", "p": 26000, "lat": 48.94208, "lng": 2.61463, "fc": "PPL"},
    {"id": "3169070", "n": "Rome", "a": "Rome", "c": "IT", "p": 2318895, "lat": 41.89193, "lng": 12.51133, "fc": "PPLC"},
    {"id": "2198148", "n": "Suva", "c": "FJ", "p": 77366, "lat": -18.14161, "lng": 178.44149, "fc": "PPLC"},
    {"id": "732800", "n": "Bulgaria", "c": "BG", "p": 7000039, "lat": 43.0, "lng": 25.0, "fc": "PCLI"},
    # Malformed: dropped during parse
    {"id": "1", "n": "Nowhere", "c": "FR", "p": 0, "lat": None, "lng": 2.0, "fc": "PPL"},
    {"id": "2", "n": "Infinity", "c": "FR", "p": 0, "lat": float("inf"), "lng": 2.0, "fc": "PPL"},
]

BBOXES = {
    "BG": [41.2, 22.3, 44.3, 28.7, 2],
    "IT": [36, 6, 47, 19],
    "FJ": [-20, 176, -15, -178],
    "FR": [41.3, -5.2, 51.1, 9.6],
    "XX": [1, 2],
}

BG_1 = [
    {"id": "727011", "n": "Sofia", "alt": ["София", "Sofiya", "Serdica"], "p": 1152556,
     "lat": 42.69751, "lng": 23.32415, "fc": "PPLC"},
    {"id": "728193", "n": "Plovdiv", "alt": ["Пловдив"], "p": 340494,
     "lat": 42.15, "lng": 24.75, "fc": "PPLA"},
]

BG_2 = [
    {"id": "726050", "n": "Varna", "alt": ["Варна"], "p": 312770,
     "lat": 43.21667, "lng": 27.91667, "fc": "PPLA"},
    {"id": "729000", "n": "Novo Selo", "p": 900, "lat": 43.1, "lng": 25.6},
    {"id": "729001", "n": "Novo Selo", "p": 1500, "lat": 42.2, "lng": 24.1},
    {"id": "729002", "n": "Broken", "p": 10, "lng": 24.1},
]

IT = [
    {"id": "3169070", "n": "Roma", "alt": ["Rome"], "p": 2318895, "lat": 41.89193, "lng": 12.51133, "fc": "PPLC"},
    {"id": "3173435", "n": "Milano", "alt": ["Milan", "Милано"], "p": 1236837,
     "lat": 45.46427, "lng": 9.18951, "fc": "PPLA"},
    {"id": "3171000", "n": "Parigi", "p": 120, "lat": 44.9, "lng": 8.1},
]

FJ = [
    {"id": "2202064", "n": "Labasa", "p": 27949, "lat": -16.41667, "lng": 179.38333, "fc": "PPL"},
    {"id": "2199295", "n": "Taveuni", "p": 900, "lat": -16.85, "lng": -179.95, "fc": "PPL"},
]

DATASETS: dict[str, Any] = {
    "cities/major.json": MAJOR,
    "villages/_bboxes.json": BBOXES,
    "villages/bg-1.json": BG_1,
    "villages/bg-2.json": BG_2,
    "villages/it.json": IT,
    "villages/fj.json": FJ,
}


class FakeSource:
    """DatasetSource over a dict, counting calls and failing on demand."""

    def __init__(self, files: dict[str, Any], failures: Optional[dict[str, int]] = None):
        self.files = files
        self.failures = dict(failures or {})
        self.calls: Counter[str] = Counter()
        self.closed = False

    async def get_json(self, path: str) -> Any:
        self.calls[path] += 1
        # Yield so concurrent callers genuinely interleave
        await asyncio.sleep(0)
        if self.failures.get(path, 0) > 0:
            self.failures[path] -= 1
            raise DatasetFetchError(f"Simulated failure for {path}", path=path)
        if path not in self.files:
            raise DatasetFetchError(f"Missing dataset file: {path}", path=path)
        return copy.deepcopy(self.files[path])

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        source=DataSourceConfig(
            base_url="",
            data_dir="data",
            major_path="cities/major.json",
            bbox_path="villages/_bboxes.json",
            country_dir="villages",
            request_timeout=5.0,
        ),
        loader=LoaderConfig(max_concurrent_fetches=4),
        viewport=ViewportConfig(min_load_zoom=6.0),
        search=SearchConfig(default_limit=8, locale="en", debounce_ms=10),
        log_level="DEBUG",
        env="test",
    )


@pytest.fixture
def datasets() -> dict[str, Any]:
    return copy.deepcopy(DATASETS)


@pytest.fixture
def make_source(datasets):
    def _make(failures: Optional[dict[str, int]] = None, drop: tuple[str, ...] = ()) -> FakeSource:
        files = {k: v for k, v in datasets.items() if k not in drop}
        return FakeSource(files, failures)
    return _make


@pytest.fixture
def source(make_source) -> FakeSource:
    return make_source()
