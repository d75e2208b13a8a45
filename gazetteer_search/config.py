"""
Central configuration loaded from environment variables with sensible defaults.
Paths mirror the layout the gazetteer build scripts publish.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class DataSourceConfig:
    # When set, datasets are fetched over HTTP; otherwise read from data_dir
    base_url: str = os.getenv("GAZETTEER_BASE_URL", "")
    data_dir: str = os.getenv("GAZETTEER_DATA_DIR", "data")
    major_path: str = os.getenv("GAZETTEER_MAJOR_PATH", "cities/major.json")
    bbox_path: str = os.getenv("GAZETTEER_BBOX_PATH", "villages/_bboxes.json")
    country_dir: str = os.getenv("GAZETTEER_COUNTRY_DIR", "villages")
    request_timeout: float = float(os.getenv("GAZETTEER_TIMEOUT", "30"))


@dataclass(frozen=True)
class LoaderConfig:
    # Upper bound on chunk files fetched in parallel across all countries
    max_concurrent_fetches: int = int(os.getenv("GAZETTEER_MAX_FETCHES", "4"))


@dataclass(frozen=True)
class ViewportConfig:
    # Below this zoom only the baseline dataset is relevant
    min_load_zoom: float = float(os.getenv("GAZETTEER_MIN_LOAD_ZOOM", "6"))


@dataclass(frozen=True)
class SearchConfig:
    default_limit: int = int(os.getenv("SEARCH_DEFAULT_LIMIT", "8"))
    locale: str = os.getenv("SEARCH_LOCALE", "en")
    debounce_ms: int = int(os.getenv("SEARCH_DEBOUNCE_MS", "150"))


@dataclass(frozen=True)
class Settings:
    source: DataSourceConfig = field(default_factory=DataSourceConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)
    viewport: ViewportConfig = field(default_factory=ViewportConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
