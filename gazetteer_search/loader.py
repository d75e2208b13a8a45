"""
Dataset loader: fetches the baseline ("major places") file, the country
bounding-box table and per-country files, and merges them into the index.

Guarantees:
  - Every load is coalesced: concurrent callers await one shared task, so a
    file is fetched at most once per attempt.
  - A country's chunks are fetched concurrently, then merged in a single
    synchronous commit once every chunk's outcome is known. Searches never
    observe a country halfway through a commit.
  - A country is marked loaded only when all of its chunks merged. Chunks that
    succeeded are remembered and never re-fetched.
  - Failures are logged and contained; nothing raises to the caller.

Retry policy for countries with failed chunks: the failure grants one
automatic retry (the next plain load_country call). If that retry fails too,
plain calls are no-ops until the caller re-triggers with force=True, so
continuous panning cannot turn into a retry storm.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from gazetteer_search.config import Settings, get_settings
from gazetteer_search.exceptions import DatasetError, DatasetFormatError
from gazetteer_search.index import GazetteerIndex
from gazetteer_search.models import CountryBoundingBox, PlaceRecord, WirePlaceRecord
from gazetteer_search.sources import DatasetSource

logger = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    PARTIAL = "partial"


# ── Parsing ────────────────────────────────────────────────────────────

def parse_place_records(
    payload: Any,
    path: str,
    default_country: Optional[str] = None,
) -> list[PlaceRecord]:
    """
    Validate a decoded dataset file into PlaceRecords.
    Raises DatasetFormatError if the payload is not a JSON array.
    Skips invalid entries, logging a per-file summary.
    """
    if not isinstance(payload, list):
        raise DatasetFormatError(
            f"{path}: expected a JSON array, got {type(payload).__name__}", path=path
        )

    records: list[PlaceRecord] = []
    dropped = 0
    for raw in payload:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        try:
            records.append(WirePlaceRecord.model_validate(raw).to_place(default_country))
        except (ValidationError, ValueError) as e:
            dropped += 1
            logger.debug("Dropping record %s from %s: %s", raw.get("id", "unknown"), path, e)

    if dropped:
        logger.warning("Dropped %d malformed records from %s (%d kept)",
                       dropped, path, len(records))
    return records


def parse_bounding_boxes(payload: Any, path: str) -> dict[str, CountryBoundingBox]:
    """
    Validate the bbox table. Raises DatasetFormatError if it is not a JSON
    object; bad entries are skipped with a warning.
    """
    if not isinstance(payload, dict):
        raise DatasetFormatError(
            f"{path}: expected a JSON object, got {type(payload).__name__}", path=path
        )

    boxes: dict[str, CountryBoundingBox] = {}
    for code, value in payload.items():
        try:
            box = CountryBoundingBox.from_wire(code, value)
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning("Skipping bounding box %r in %s: %s", code, path, e)
            continue
        boxes[box.country_code] = box
    return boxes


def country_chunk_paths(country_dir: str, code: str, chunk_count: int = 1) -> list[str]:
    """File paths for a country: "{code}.json" or "{code}-1.json" ... "{code}-N.json"."""
    prefix = f"{country_dir.rstrip('/')}/{code.lower()}" if country_dir else code.lower()
    if chunk_count <= 1:
        return [f"{prefix}.json"]
    return [f"{prefix}-{i}.json" for i in range(1, chunk_count + 1)]


# ── Loader ─────────────────────────────────────────────────────────────

class DatasetLoader:
    """Grows a GazetteerIndex from a DatasetSource, one country at a time."""

    def __init__(
        self,
        source: DatasetSource,
        index: GazetteerIndex,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.source = source
        self.index = index
        self._paths = settings.source
        self._semaphore = asyncio.Semaphore(max(1, settings.loader.max_concurrent_fetches))

        self._major_task: Optional[asyncio.Task] = None
        self._bbox_task: Optional[asyncio.Task] = None
        self._bboxes: dict[str, CountryBoundingBox] = {}

        self._loaded: set[str] = set()
        self._inflight: dict[str, asyncio.Task] = {}
        self._done_chunks: dict[str, set[str]] = {}
        self._failed_chunks: dict[str, set[str]] = {}
        self._auto_retries: dict[str, int] = {}

    # ── Status ─────────────────────────────────────────────────────────

    @property
    def bounding_boxes(self) -> dict[str, CountryBoundingBox]:
        return dict(self._bboxes)

    @property
    def loaded_countries(self) -> frozenset[str]:
        return frozenset(self._loaded)

    def is_country_loaded(self, code: str) -> bool:
        return code.strip().upper() in self._loaded

    def country_status(self, code: str) -> LoadStatus:
        code = code.strip().upper()
        if code in self._loaded:
            return LoadStatus.LOADED
        if code in self._inflight:
            return LoadStatus.LOADING
        if code in self._failed_chunks:
            return LoadStatus.PARTIAL
        return LoadStatus.NOT_LOADED

    def needs_load(self, code: str) -> bool:
        """True if a plain load_country call would start a fetch right now."""
        code = code.strip().upper()
        if code in self._loaded or code in self._inflight:
            return False
        return self._may_attempt(code, force=False)

    def _may_attempt(self, code: str, force: bool) -> bool:
        if force or code not in self._failed_chunks:
            return True
        return self._auto_retries.get(code, 0) > 0

    # ── Baseline + bbox table ──────────────────────────────────────────

    async def load_major(self) -> None:
        """Load the baseline dataset once. Never raises."""
        if self._major_task is None:
            self._major_task = asyncio.ensure_future(self._load_major())
        await asyncio.shield(self._major_task)

    async def _load_major(self) -> None:
        path = self._paths.major_path
        start = time.monotonic()
        try:
            payload = await self._fetch(path)
            records = parse_place_records(payload, path)
        except DatasetError as e:
            logger.error("Baseline dataset unavailable, continuing without it: %s", e,
                         extra={"dataset_path": path})
            return
        except Exception as e:
            logger.error("Baseline dataset load failed: %s", e, exc_info=True)
            return

        added = self.index.merge(records)
        logger.info("Loaded baseline dataset: %d records from %s in %.2fs",
                    added, path, time.monotonic() - start)

    async def load_bounding_boxes(self) -> dict[str, CountryBoundingBox]:
        """Load the country bounding-box table once. Never raises; {} on failure."""
        if self._bbox_task is None:
            self._bbox_task = asyncio.ensure_future(self._load_bounding_boxes())
        await asyncio.shield(self._bbox_task)
        return self.bounding_boxes

    async def _load_bounding_boxes(self) -> None:
        path = self._paths.bbox_path
        try:
            payload = await self._fetch(path)
            self._bboxes = parse_bounding_boxes(payload, path)
        except DatasetError as e:
            logger.error("Bounding-box table unavailable, viewport loading disabled: %s", e)
            return
        except Exception as e:
            logger.error("Bounding-box table load failed: %s", e, exc_info=True)
            return

        chunked = sum(1 for b in self._bboxes.values() if b.chunk_count > 1)
        logger.info("Loaded %d country bounding boxes (%d chunked)", len(self._bboxes), chunked)

    # ── Countries ──────────────────────────────────────────────────────

    async def load_country(self, code: str, force: bool = False) -> None:
        """
        Ensure a country's dataset is resident.
        Idempotent; concurrent callers share one in-flight load. Never raises.
        """
        code = code.strip().upper()
        if code in self._loaded:
            return

        task = self._inflight.get(code)
        if task is None:
            if not self._may_attempt(code, force):
                logger.debug("Skipping %s: automatic retry already used", code)
                return
            automatic_retry = code in self._failed_chunks and not force
            task = asyncio.ensure_future(self._load_country(code, automatic_retry))
            self._inflight[code] = task
            task.add_done_callback(lambda _t, c=code: self._inflight.pop(c, None))

        await asyncio.shield(task)

    async def _load_country(self, code: str, automatic_retry: bool) -> None:
        if automatic_retry:
            self._auto_retries[code] = 0
            logger.info("Retrying failed chunks for %s", code)

        # Chunk counts come from the bbox table; wait for a load already under way
        if self._bbox_task is not None:
            await asyncio.shield(self._bbox_task)

        box = self._bboxes.get(code)
        chunk_count = box.chunk_count if box else 1
        done = self._done_chunks.setdefault(code, set())
        pending = [
            p for p in country_chunk_paths(self._paths.country_dir, code, chunk_count)
            if p not in done
        ]

        start = time.monotonic()
        outcomes = await asyncio.gather(
            *(self._fetch_chunk(path, code) for path in pending),
            return_exceptions=True,
        )

        # Commit: no awaits past this point
        added = 0
        failed: set[str] = set()
        for path, outcome in zip(pending, outcomes):
            if isinstance(outcome, BaseException):
                failed.add(path)
                logger.warning("Chunk %s for %s failed: %s", path, code, outcome,
                               extra={"dataset_path": path})
                continue
            added += self.index.merge(outcome)
            done.add(path)

        if failed:
            self._failed_chunks[code] = failed
            if not automatic_retry:
                self._auto_retries[code] = 1
            logger.error("Country %s partially loaded: %d of %d chunk(s) failed, %d records added",
                         code, len(failed), chunk_count, added)
            return

        self._failed_chunks.pop(code, None)
        self._auto_retries.pop(code, None)
        self._loaded.add(code)
        logger.info("Loaded country %s: %d records added from %d chunk(s) in %.2fs",
                    code, added, len(pending), time.monotonic() - start)

    async def _fetch_chunk(self, path: str, code: str) -> list[PlaceRecord]:
        payload = await self._fetch(path)
        return parse_place_records(payload, path, default_country=code)

    async def _fetch(self, path: str) -> Any:
        async with self._semaphore:
            logger.debug("Fetching %s", path)
            return await self.source.get_json(path)
