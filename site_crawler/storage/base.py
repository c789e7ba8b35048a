from __future__ import annotations

from typing import Iterable, Protocol

from ..extractors.base import Item


class Storage(Protocol):
    """
    Persistence collaborator. Saves are upserts keyed by ``item.url``: a later
    save for the same URL supersedes the earlier record.
    Implementations raise :class:`site_crawler.errors.StorageError` on failure.
    """
    def save(self, item: Item) -> None:
        ...

    def save_batch(self, items: Iterable[Item]) -> None:
        ...

    def close(self) -> None:
        ...
