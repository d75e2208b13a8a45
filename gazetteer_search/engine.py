"""
SearchEngine: the one object the map UI talks to.

Owns the index, loader, viewport trigger and matcher for a single session.
Lifecycle: uninitialized -> initializing -> ready. Nothing here raises to the
caller; degraded data (a missing baseline, a failed country) shows up as fewer
results, never as an exception.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from gazetteer_search.config import Settings, get_settings
from gazetteer_search.index import GazetteerIndex
from gazetteer_search.loader import DatasetLoader, LoadStatus
from gazetteer_search.matcher import CountryNameResolver, FuzzyMatcher
from gazetteer_search.models import SearchResult
from gazetteer_search.sources import DatasetSource, source_from_settings
from gazetteer_search.viewport import ViewportLoadTrigger

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class SearchEngine:
    """Facade over the gazetteer index, loader, viewport trigger and matcher."""

    def __init__(
        self,
        source: Optional[DatasetSource] = None,
        settings: Optional[Settings] = None,
        country_name: Optional[CountryNameResolver] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.source = source or source_from_settings(self.settings)
        self.index = GazetteerIndex()
        self.loader = DatasetLoader(self.source, self.index, self.settings)
        self.trigger = ViewportLoadTrigger(self.loader, settings=self.settings)
        self.matcher = FuzzyMatcher(self.index, country_name=country_name)
        self._state = EngineState.UNINITIALIZED
        self._init_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "SearchEngine":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── State ──────────────────────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    @property
    def loaded_countries(self) -> frozenset[str]:
        return self.loader.loaded_countries

    def country_status(self, code: str) -> LoadStatus:
        return self.loader.country_status(code)

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """
        Load the baseline dataset and the bounding-box table.
        Concurrent callers share one initialization; once ready this returns
        immediately.
        """
        if self._state is EngineState.READY:
            return
        if self._init_task is None:
            self._state = EngineState.INITIALIZING
            self._init_task = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_task)

    async def _initialize(self) -> None:
        start = time.monotonic()
        try:
            _, boxes = await asyncio.gather(
                self.loader.load_major(),
                self.loader.load_bounding_boxes(),
            )
            self.trigger.set_bounding_boxes(boxes.values())
        except Exception as e:
            logger.error("Initialization degraded: %s", e, exc_info=True)
        self._state = EngineState.READY
        logger.info("Search engine ready in %.2fs: %d records, %d bounding boxes",
                    time.monotonic() - start, len(self.index),
                    len(self.loader.bounding_boxes))

    async def aclose(self) -> None:
        await self.trigger.wait_idle()
        await self.source.aclose()

    # ── Queries ────────────────────────────────────────────────────────

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        locale: Optional[str] = None,
    ) -> list[SearchResult]:
        """Ranked matches over the resident records; [] before the engine is ready."""
        if not self.is_ready:
            return []
        cfg = self.settings.search
        try:
            return self.matcher.search(
                query,
                limit=cfg.default_limit if limit is None else limit,
                locale=locale or cfg.locale,
            )
        except Exception as e:
            logger.error("Search failed for %r: %s", query, e, exc_info=True)
            return []

    def notify_viewport(self, lat: float, lng: float, zoom: float) -> list[str]:
        """
        Tell the engine where the map is looking. Before the engine is ready this
        is a no-op; the next move event retries naturally.
        """
        if not self.is_ready:
            logger.debug("Viewport event before ready, ignored")
            return []
        return self.trigger.notify_viewport(lat, lng, zoom)

    async def load_country(self, code: str) -> None:
        """Make one country resident regardless of the viewport."""
        await self.initialize()
        await self.loader.load_country(code)

    async def reload_country(self, code: str) -> None:
        """Explicitly retry a country whose automatic retry was used up."""
        await self.initialize()
        await self.loader.load_country(code, force=True)
