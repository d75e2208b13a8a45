"""
Viewport-driven prefetch: decide which countries the map is looking at and
ask the loader to make them resident.

The trigger is a plain synchronous scan of the bounding-box table, cheap
enough to run on every map "move end" event. It does no debouncing of its own;
loads are scheduled as fire-and-forget asyncio tasks.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Iterable, Optional, Protocol

from gazetteer_search.config import Settings, get_settings
from gazetteer_search.models import CountryBoundingBox

logger = logging.getLogger(__name__)


class CountryLoader(Protocol):
    def needs_load(self, code: str) -> bool:
        ...

    async def load_country(self, code: str, force: bool = False) -> None:
        ...


def wrap_longitude(lng: float) -> float:
    """Map any longitude into [-180, 180); panned maps report values past ±180."""
    if -180.0 <= lng < 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def bbox_contains(box: CountryBoundingBox, lat: float, lng: float) -> bool:
    """
    Rectangle test on latitude and longitude.
    Boxes with min_lng > max_lng cross the antimeridian and cover
    [min_lng, 180] ∪ [-180, max_lng].
    """
    if not (box.min_lat <= lat <= box.max_lat):
        return False
    lng = wrap_longitude(lng)
    if box.crosses_antimeridian:
        return lng >= box.min_lng or lng <= box.max_lng
    # -180 and 180 are the same meridian
    if lng == -180.0 and box.max_lng == 180.0:
        return True
    return box.min_lng <= lng <= box.max_lng


class ViewportLoadTrigger:
    """Turns viewport centres into load_country calls."""

    def __init__(
        self,
        loader: CountryLoader,
        bounding_boxes: Optional[Iterable[CountryBoundingBox]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.loader = loader
        self.min_load_zoom = (settings or get_settings()).viewport.min_load_zoom
        self._boxes: list[CountryBoundingBox] = list(bounding_boxes or [])
        self._tasks: set[asyncio.Task] = set()

    def set_bounding_boxes(self, bounding_boxes: Iterable[CountryBoundingBox]) -> None:
        self._boxes = list(bounding_boxes)
        logger.debug("Viewport trigger armed with %d bounding boxes", len(self._boxes))

    @property
    def pending_tasks(self) -> frozenset[asyncio.Task]:
        return frozenset(self._tasks)

    def countries_at(self, lat: float, lng: float, zoom: float) -> list[str]:
        """Codes of every country whose box contains the point, in table order."""
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in (lat, lng, zoom)):
            return []
        if zoom < self.min_load_zoom:
            return []
        return [box.country_code for box in self._boxes if bbox_contains(box, lat, lng)]

    def notify_viewport(self, lat: float, lng: float, zoom: float) -> list[str]:
        """
        Schedule loads for the countries under the viewport centre.
        Returns the codes a load was scheduled for. Never raises, never blocks.
        """
        try:
            codes = [c for c in self.countries_at(lat, lng, zoom) if self.loader.needs_load(c)]
        except Exception as e:
            logger.error("Viewport check failed for (%s, %s, %s): %s", lat, lng, zoom, e,
                         exc_info=True)
            return []
        if not codes:
            return []

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, viewport (%s, %s) ignored", lat, lng)
            return []

        for code in codes:
            task = loop.create_task(self.loader.load_country(code))
            self._tasks.add(task)
            task.add_done_callback(self._on_load_done)
        logger.debug("Viewport (%.4f, %.4f, z%.1f) scheduled loads: %s", lat, lng, zoom, codes)
        return codes

    def _on_load_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background country load failed: %s", exc)

    async def wait_idle(self) -> None:
        """Await every load scheduled so far (used by the CLI and tests)."""
        while self._tasks:
            batch = list(self._tasks)
            await asyncio.gather(*batch, return_exceptions=True)
            self._tasks.difference_update(batch)
