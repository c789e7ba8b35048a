from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .base import CrawlEngine
from .frontier import Frontier
from .limiter import DomainLimiter
from .retry import RetryController
from .sink import ResultSink
from .tracker import TaskTracker
from ..config import CrawlConfig
from ..extractors.base import Extractor
from ..extractors.selectors import SelectorExtractor
from ..models import CrawlRules, CrawlTask, FrontierEntry
from ..storage.base import Storage
from ..storage.memory import MemoryStorage
from ..utils.http import FetchSuccess, Fetcher, HttpFetcher
from ..utils.parsing import domain_of

logger = logging.getLogger(__name__)


class SiteCrawlEngine(CrawlEngine):
    """
    Crawls one task with a fixed pool of worker coroutines.
    - Frontier owns queueing, dedup and the page budget.
    - DomainLimiter owns politeness.
    - Fetcher owns HTTP; the extractor owns parsing.
    - TaskTracker is the only writer of task status and counters.
    """
    def __init__(
        self,
        task: CrawlTask,
        config: CrawlConfig | None = None,
        storage: Storage | None = None,
        fetcher: Fetcher | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        self.task = task
        self.config = config or CrawlConfig()
        self.storage = storage if storage is not None else MemoryStorage()
        self.extractor = extractor or SelectorExtractor()
        self.tracker = TaskTracker(task)
        self._fetcher = fetcher
        self._frontier: Optional[Frontier] = None
        self._handle: Optional[asyncio.Task] = None

    # ---- Public API -----------------------------------------------------------

    def start(self) -> "asyncio.Task[CrawlTask]":
        """
        Validate the task and launch the run in the background. Raises
        ValidationError before any network activity; otherwise returns a
        handle that resolves to the finished task record.
        """
        if self._handle is not None:
            return self._handle
        rules = self.tracker.start(self.config)
        self._handle = asyncio.get_running_loop().create_task(self._run(rules), name=f"crawl-{self.task.id}")
        return self._handle

    async def crawl(self) -> CrawlTask:
        return await self.start()

    def stop(self) -> None:
        """Cooperative stop: no new dispatch after this returns; in-flight fetches finish."""
        self.tracker.request_stop()
        if self._frontier is not None:
            self._frontier.mark_closed()

    # ---- Run ------------------------------------------------------------------

    async def _run(self, rules: CrawlRules) -> CrawlTask:
        fetcher = self._fetcher
        owned_fetcher: Optional[HttpFetcher] = None
        try:
            limiter = DomainLimiter(rules.per_domain_concurrency, rules.delay_ms)
            frontier = Frontier(rules, limiter)
            retry = RetryController(self.config.retries, self.config.retry_backoff)
            sink = ResultSink(self.storage, self.tracker, self.config.batch_size)
            if fetcher is None:
                fetcher = owned_fetcher = HttpFetcher(content_types=rules.content_types)
            self._frontier = frontier
            if self.tracker.stop_requested:
                frontier.mark_closed()

            admitted = 0
            for url in self.task.start_urls:
                if await frontier.enqueue(url, 0):
                    admitted += 1
            await self.tracker.record_admitted(admitted)
        except Exception as exc:
            logger.exception("Task %s setup failed", self.task.id)
            self.tracker.fail(f"setup failed: {exc}")
            if owned_fetcher is not None:
                await owned_fetcher.close()
            return self.task

        closer = asyncio.create_task(self._close_on_stop(frontier))
        try:
            workers = [
                asyncio.create_task(self._worker(n, frontier, fetcher, retry, sink, rules))
                for n in range(rules.concurrency)
            ]
            await asyncio.gather(*workers)
            await sink.flush()
        finally:
            closer.cancel()
            if owned_fetcher is not None:
                await owned_fetcher.close()

        self.tracker.finish()
        return self.task

    async def _close_on_stop(self, frontier: Frontier) -> None:
        await self.tracker.wait_stopped()
        await frontier.close()

    async def _worker(
        self,
        worker_id: int,
        frontier: Frontier,
        fetcher: Fetcher,
        retry: RetryController,
        sink: ResultSink,
        rules: CrawlRules,
    ) -> None:
        while not self.tracker.stop_requested:
            entry = await frontier.dequeue()
            if entry is None:
                return
            try:
                await self._process(entry, frontier, fetcher, retry, sink, rules)
            except Exception as exc:  # broad catch to keep the crawl moving
                logger.exception("Worker %d failed on %s", worker_id, entry.url)
                await self.tracker.record_failure(entry.url, f"internal error: {exc!r}")
            finally:
                await frontier.done(entry)

    async def _process(
        self,
        entry: FrontierEntry,
        frontier: Frontier,
        fetcher: Fetcher,
        retry: RetryController,
        sink: ResultSink,
        rules: CrawlRules,
    ) -> None:
        logger.debug("GET %s (depth=%d, attempt=%d)", entry.url, entry.depth, entry.retry_count + 1)
        try:
            outcome = await fetcher.fetch(
                entry.url,
                timeout=self.config.request_timeout,
                user_agent=self.config.user_agent,
                proxy=self.config.proxy_url or None,
            )
        finally:
            await frontier.release(entry)

        if isinstance(outcome, FetchSuccess):
            # Redirects are followed by the fetcher; the landing host must obey the same domain rules.
            final_domain = domain_of(outcome.url) if outcome.url else entry.domain
            if final_domain != entry.domain and not frontier.is_allowed_domain(final_domain):
                await self.tracker.record_failure(entry.url, f"redirected to disallowed domain {final_domain}")
                return
            await self._handle_page(entry, outcome, frontier, sink, rules)
            return

        if retry.should_retry(entry, outcome):
            if not self.tracker.stop_requested:
                if await frontier.requeue(await retry.schedule(entry)):
                    return
            await self.tracker.record_failure(entry.url, "stopped before retry")
            return

        reason = outcome.reason if outcome.status_code is None else f"{outcome.reason} ({outcome.status_code})"
        await self.tracker.record_failure(entry.url, reason)

    async def _handle_page(
        self,
        entry: FrontierEntry,
        page: FetchSuccess,
        frontier: Frontier,
        sink: ResultSink,
        rules: CrawlRules,
    ) -> None:
        # Relative links resolve against the page actually served; the item stays keyed by the admitted URL.
        result = self.extractor.extract(self.task.selectors, page.body, page.url or entry.url, datetime.now())
        result.item.url = entry.url
        result.item.set_metadata("depth", entry.depth)
        result.item.set_metadata("status_code", page.status_code)
        if page.url and page.url != entry.url:
            result.item.set_metadata("final_url", page.url)

        if entry.depth < rules.max_depth:
            admitted = 0
            for link in result.links:
                if await frontier.enqueue(link, entry.depth + 1):
                    admitted += 1
            if admitted:
                await self.tracker.record_admitted(admitted)
                logger.debug("%s: %d new link(s) admitted", entry.url, admitted)

        await self.tracker.record_success(items=1)
        await sink.submit(result.item)
