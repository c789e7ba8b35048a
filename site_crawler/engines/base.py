from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import CrawlTask


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle of a
    single task and report through the task record they were given.
    """
    @abstractmethod
    async def crawl(self) -> CrawlTask:  # pragma: no cover - interface
        ...

    @abstractmethod
    def stop(self) -> None:  # pragma: no cover - interface
        ...
