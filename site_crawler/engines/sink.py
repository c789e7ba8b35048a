from __future__ import annotations

import asyncio
import logging
from typing import List

from .tracker import TaskTracker
from ..extractors.base import Item
from ..storage.base import Storage

logger = logging.getLogger(__name__)


class ResultSink:
    """
    Hands finished items to the storage collaborator, one at a time or in
    batches. Storage failures are logged and counted, never retried.
    Storage calls run in a worker thread so a slow backend never stalls
    the event loop.
    """
    def __init__(self, storage: Storage, tracker: TaskTracker, batch_size: int = 1) -> None:
        self.storage = storage
        self.tracker = tracker
        self.batch_size = max(batch_size, 1)
        self._buffer: List[Item] = []
        self._lock = asyncio.Lock()

    async def submit(self, item: Item) -> None:
        if self.batch_size == 1:
            await self._save([item])
            return
        async with self._lock:
            self._buffer.append(item)
            if len(self._buffer) < self.batch_size:
                return
            batch, self._buffer = self._buffer, []
        await self._save(batch)

    async def flush(self) -> None:
        async with self._lock:
            batch, self._buffer = self._buffer, []
        if batch:
            await self._save(batch)

    async def _save(self, items: List[Item]) -> None:
        try:
            if len(items) == 1:
                await asyncio.to_thread(self.storage.save, items[0])
            else:
                await asyncio.to_thread(self.storage.save_batch, items)
        except Exception as exc:  # any backend failure is reported the same way
            logger.error("Storage failed for %d item(s) (first: %s): %r", len(items), items[0].url, exc)
            await self.tracker.record_storage_error(len(items))
        else:
            logger.debug("Saved %d item(s)", len(items))
