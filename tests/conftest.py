"""Shared fixtures: a scripted in-process fetcher and small HTML builders."""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from site_crawler.config import CrawlConfig
from site_crawler.utils.http import FetchSuccess, Outcome, PermanentFailure
from site_crawler.utils.parsing import domain_of

Script = Union[str, Outcome, Sequence[Union[str, Outcome]]]


def page(title: str, links: Sequence[str] = (), body: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><head><title>{title}</title></head><body><p>{body or title}</p>{anchors}</body></html>"


class ScriptedFetcher:
    """
    Fake fetcher. Each URL maps to an HTML string, an outcome, or a list of
    those consumed one per attempt (the last one repeats). Unknown URLs 404.
    Records every call and the peak number of in-flight requests per domain.
    """

    def __init__(self, scripts: Dict[str, Script], latency: float = 0.0) -> None:
        self.scripts = {url: list(s) if isinstance(s, (list, tuple)) else [s] for url, s in scripts.items()}
        self.latency = latency
        self.calls: List[Tuple[str, float]] = []
        self.active: Dict[str, int] = defaultdict(int)
        self.peak: Dict[str, int] = defaultdict(int)

    @property
    def urls(self) -> List[str]:
        return [url for url, _ in self.calls]

    def times_for(self, domain: str) -> List[float]:
        return [t for url, t in self.calls if domain_of(url) == domain]

    async def fetch(self, url: str, *, timeout: float, user_agent: Optional[str] = None,
                    proxy: Optional[str] = None) -> Outcome:
        domain = domain_of(url)
        self.calls.append((url, time.monotonic()))
        self.active[domain] += 1
        self.peak[domain] = max(self.peak[domain], self.active[domain])
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            script = self.scripts.get(url)
            if not script:
                return PermanentFailure("client error", 404)
            step = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(step, str):
                return FetchSuccess(200, "text/html", step, url)
            return step
        finally:
            self.active[domain] -= 1


@pytest.fixture
def config() -> CrawlConfig:
    return CrawlConfig(
        concurrency=4,
        delay_ms=0,
        retries=3,
        retry_backoff=0.01,
        max_depth=5,
        max_pages=0,
        content_types=["text/html"],
    )
