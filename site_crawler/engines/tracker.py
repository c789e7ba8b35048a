from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..config import CrawlConfig
from ..errors import ValidationError
from ..models import CrawlRules, CrawlTask, TaskStatus
from ..utils.parsing import is_http_url

logger = logging.getLogger(__name__)


class TaskTracker:
    """
    Owns one task run: its state machine, its counters and the cooperative
    stop flag. Nothing else writes ``task.status`` or ``task.counters``.

        pending -> running -> completed | failed | stopped
    """
    def __init__(self, task: CrawlTask) -> None:
        self.task = task
        self.rules: Optional[CrawlRules] = None
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()

    # ---- Lifecycle ----------------------------------------------------------

    def validate(self, config: CrawlConfig) -> CrawlRules:
        task = self.task
        if not task.base_url or not task.base_url.strip():
            raise ValidationError("task base_url cannot be empty")
        if not task.start_urls:
            raise ValidationError("task start_urls cannot be empty; provide at least one URL")
        bad = [u for u in task.start_urls if not is_http_url(u)]
        if bad:
            raise ValidationError(f"start_urls must be absolute http(s) URLs: {bad}")
        rules = task.rules.resolve(config, task.base_url)
        rules.validate()
        return rules

    def start(self, config: CrawlConfig) -> CrawlRules:
        """Validate and move pending -> running. Raises ValidationError."""
        if self.task.status is not TaskStatus.PENDING:
            raise ValidationError(f"task {self.task.id} is {self.task.status.value}, expected pending")
        try:
            rules = self.validate(config)
        except ValidationError as exc:
            self.task.error_message = str(exc)
            logger.error("Task %s rejected: %s", self.task.id, exc)
            raise
        self.rules = rules
        self.task.error_message = ""
        self.task.start_time = datetime.now()
        self.task.status = TaskStatus.RUNNING
        logger.info("Task %s (%s) running: %d seed(s), depth<=%s, pages<=%s, concurrency=%s, delay=%sms",
                    self.task.id, self.task.name or self.task.base_url, len(self.task.start_urls),
                    rules.max_depth, rules.max_pages or "unlimited", rules.concurrency, rules.delay_ms)
        return rules

    def request_stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Stop requested for task %s", self.task.id)
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    async def wait_stopped(self) -> None:
        await self._stop.wait()

    def finish(self) -> None:
        """running -> completed, or stopped when a stop was requested."""
        if self.task.status is not TaskStatus.RUNNING:
            return
        self.task.status = TaskStatus.STOPPED if self.stop_requested else TaskStatus.COMPLETED
        self.task.end_time = datetime.now()
        c = self.task.counters
        logger.info("Task %s %s in %.1fs: total=%d processed=%d success=%d failed=%d items=%d",
                    self.task.id, self.task.status.value, self.task.duration,
                    c.total_urls, c.processed_urls, c.success_urls, c.failed_urls, c.items_count)

    def fail(self, message: str) -> None:
        """running -> failed, for unrecoverable setup errors only."""
        if self.task.status.is_terminal:
            return
        self.task.status = TaskStatus.FAILED
        self.task.error_message = message
        self.task.end_time = datetime.now()
        logger.error("Task %s failed: %s", self.task.id, message)

    # ---- Counters -------------------------------------------------------------

    async def record_admitted(self, count: int = 1) -> None:
        async with self._lock:
            self.task.counters.total_urls += count

    async def record_success(self, items: int = 1) -> None:
        async with self._lock:
            c = self.task.counters
            c.processed_urls += 1
            c.success_urls += 1
            c.items_count += items

    async def record_failure(self, url: str, reason: str) -> None:
        async with self._lock:
            c = self.task.counters
            c.processed_urls += 1
            c.failed_urls += 1
        logger.warning("Giving up on %s: %s", url, reason)

    async def record_storage_error(self, count: int = 1) -> None:
        async with self._lock:
            self.task.counters.storage_errors += count
