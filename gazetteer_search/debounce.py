"""
Keystroke debouncing in front of SearchEngine.search.

Each submitted query starts a new batch; the batch's asyncio task is its
cancellation token. Submitting again cancels the waiting batch, so only the
last query typed within the delay window is actually searched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from gazetteer_search.engine import SearchEngine
from gazetteer_search.models import SearchResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, list[SearchResult]], None]


class QueryDebouncer:
    def __init__(
        self,
        engine: SearchEngine,
        delay: Optional[float] = None,
        limit: Optional[int] = None,
        locale: Optional[str] = None,
    ) -> None:
        self.engine = engine
        self.delay = engine.settings.search.debounce_ms / 1000.0 if delay is None else delay
        self.limit = limit
        self.locale = locale
        self._pending: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def submit(self, query: str, callback: ResultCallback) -> asyncio.Task:
        """Replace any waiting batch with this query. Must run inside the event loop."""
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._run(query, callback))
        return self._pending

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> None:
        """Wait for the waiting batch, if any, to deliver its results."""
        task = self._pending
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self, query: str, callback: ResultCallback) -> None:
        await asyncio.sleep(self.delay)
        results = self.engine.search(query, limit=self.limit, locale=self.locale)
        try:
            callback(query, results)
        except Exception as e:
            logger.error("Search result callback failed for %r: %s", query, e, exc_info=True)
