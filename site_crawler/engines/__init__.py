from .base import CrawlEngine
from .site_engine import SiteCrawlEngine

__all__ = ["CrawlEngine", "SiteCrawlEngine"]
