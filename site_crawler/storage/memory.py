from __future__ import annotations

import threading
from typing import Dict, Iterable, List

from ..errors import StorageError
from ..extractors.base import Item


class MemoryStorage:
    """Thread-safe in-process storage; handy for embedding and tests."""

    def __init__(self) -> None:
        self._items: Dict[str, Item] = {}
        self._lock = threading.Lock()
        self._closed = False

    def save(self, item: Item) -> None:
        self.save_batch([item])

    def save_batch(self, items: Iterable[Item]) -> None:
        batch = list(items)
        with self._lock:
            if self._closed:
                raise StorageError("storage is closed")
            for item in batch:
                self._items[item.url] = item

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def items(self) -> List[Item]:
        with self._lock:
            return list(self._items.values())

    def get(self, url: str) -> Item | None:
        with self._lock:
            return self._items.get(url)

    def __len__(self) -> int:
        return len(self._items)
