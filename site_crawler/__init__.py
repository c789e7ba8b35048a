"""Polite, rule-driven site crawler with selector-based extraction."""

from .config import CrawlConfig
from .engines import SiteCrawlEngine
from .errors import CrawlerError, StorageError, ValidationError
from .extractors import Item, ItemStatus
from .models import CrawlRules, CrawlTask, TaskStatus
from .version import __version__

__all__ = [
    "CrawlConfig",
    "CrawlRules",
    "CrawlTask",
    "CrawlerError",
    "Item",
    "ItemStatus",
    "SiteCrawlEngine",
    "StorageError",
    "TaskStatus",
    "ValidationError",
    "__version__",
]
