"""
Dataset sources: where the gazetteer JSON files come from.

Any class implementing the DatasetSource Protocol can back a DatasetLoader,
without needing to inherit from a base class (structural typing). Sources
raise DatasetFetchError / DatasetFormatError; they never retry, the loader
owns retry policy.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx

from gazetteer_search.config import Settings, get_settings
from gazetteer_search.exceptions import DatasetFetchError, DatasetFormatError

logger = logging.getLogger(__name__)


class DatasetSource(Protocol):
    """Protocol for gazetteer file sources."""

    async def get_json(self, path: str) -> Any:
        """
        Fetch and decode one dataset file.

        Args:
            path: File path relative to the source root, e.g. "villages/bg-1.json".

        Returns:
            The decoded JSON document.
        """
        ...

    async def aclose(self) -> None:
        ...


class HttpDatasetSource:
    """Fetch datasets over HTTP from a static file host."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def get_json(self, path: str) -> Any:
        try:
            resp = await self._client.get(f"{self.base_url}/{path.lstrip('/')}")
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DatasetFetchError(
                f"HTTP {e.response.status_code} fetching {path}", path=path
            ) from e
        except httpx.RequestError as e:
            raise DatasetFetchError(f"Request error fetching {path}: {e}", path=path) from e

        try:
            return resp.json()
        except ValueError as e:
            raise DatasetFormatError(f"Invalid JSON in {path}: {e}", path=path) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LocalDatasetSource:
    """Read datasets from a directory on disk (e.g. a checkout of public/data)."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _read(self, path: str) -> Any:
        file_path = self.root / path
        try:
            with file_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise DatasetFetchError(f"Missing dataset file: {file_path}", path=path) from e
        except OSError as e:
            raise DatasetFetchError(f"Cannot read {file_path}: {e}", path=path) from e
        except json.JSONDecodeError as e:
            raise DatasetFormatError(f"Invalid JSON in {file_path}: {e}", path=path) from e

    async def get_json(self, path: str) -> Any:
        return await asyncio.to_thread(self._read, path)

    async def aclose(self) -> None:
        return None


def source_from_settings(settings: Optional[Settings] = None) -> DatasetSource:
    """Factory: HTTP source when a base URL is configured, local directory otherwise."""
    cfg = (settings or get_settings()).source
    if cfg.base_url:
        logger.info("Using HTTP dataset source at %s", cfg.base_url)
        return HttpDatasetSource(cfg.base_url, timeout=cfg.request_timeout)
    logger.info("Using local dataset source at %s", cfg.data_dir)
    return LocalDatasetSource(cfg.data_dir)
