from __future__ import annotations

import json
import threading
from typing import Dict, Iterable, Any
from pathlib import Path

from ..errors import StorageError
from ..extractors.base import Item


class JSONFileStorage:
    """
    Keeps records keyed by URL and writes them as a JSON array on ``close``.
    Saving the same URL again replaces the earlier record.
    """
    def __init__(self, path: str) -> None:
        self.path = path
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def save(self, item: Item) -> None:
        self.save_batch([item])

    def save_batch(self, items: Iterable[Item]) -> None:
        # Serialize first so a bad item leaves the stored batch untouched.
        records = [item.to_dict() for item in items]
        with self._lock:
            for record in records:
                self._records[record["url"]] = record

    def close(self) -> None:
        with self._lock:
            records = list(self._records.values())
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise StorageError(f"cannot write {self.path}: {exc}") from exc
