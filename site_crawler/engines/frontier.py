from __future__ import annotations

import asyncio
import logging
import re
from collections import OrderedDict, deque
from typing import Deque, List, Optional, Set

from .limiter import DomainLimiter
from ..models import CrawlRules, FrontierEntry
from ..utils.parsing import domain_of, is_http_url, normalize_url

logger = logging.getLogger(__name__)


def domain_matches(domain: str, candidates: Set[str]) -> bool:
    """True if ``domain`` equals one of ``candidates`` or is a subdomain of one."""
    host = domain.split(":", 1)[0]
    for candidate in candidates:
        if domain == candidate or host == candidate or host.endswith("." + candidate):
            return True
    return False


class Frontier:
    """
    Pending work for one task run, partitioned by domain.

    ``enqueue`` is the single dedup authority: a normalized URL is admitted at
    most once per run. ``dequeue`` hands out entries whose domain the limiter
    currently allows; throttled domains are skipped so other domains keep
    flowing. Entries are "outstanding" from dispatch until ``done``; the
    frontier is drained when nothing is queued and nothing is outstanding.
    """
    def __init__(self, rules: CrawlRules, limiter: DomainLimiter) -> None:
        self.rules = rules
        self._limiter = limiter
        self._patterns = [re.compile(p) for p in rules.url_patterns or []]
        self._queues: "OrderedDict[str, Deque[FrontierEntry]]" = OrderedDict()
        self._visited: Set[str] = set()
        self._outstanding = 0
        self._dispatched = 0
        self._closed = False
        self._cond = asyncio.Condition()

    # ---- Introspection --------------------------------------------------------

    @property
    def pending(self) -> int:
        return sum(len(q) for q in self._queues.values())

    @property
    def outstanding(self) -> int:
        return self._outstanding

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    @property
    def dispatched(self) -> int:
        return self._dispatched

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- Admission ------------------------------------------------------------

    def is_allowed_domain(self, domain: str) -> bool:
        if domain_matches(domain, self.rules.forbidden_domains or set()):
            return False
        allowed = self.rules.allowed_domains or set()
        return not allowed or domain_matches(domain, allowed)

    def _matches_patterns(self, url: str) -> bool:
        return not self._patterns or any(p.search(url) for p in self._patterns)

    def _budget_exhausted(self) -> bool:
        return bool(self.rules.max_pages) and self._dispatched >= self.rules.max_pages

    async def enqueue(self, url: str, depth: int) -> bool:
        """
        Admit ``url`` at ``depth``. Returns False when the URL is rejected by
        the rules or was already admitted in this run.
        """
        if not is_http_url(url):
            return False
        url = normalize_url(url)
        if depth > self.rules.max_depth:
            return False
        domain = domain_of(url)
        if not self.is_allowed_domain(domain):
            logger.debug("Rejected %s: domain %s not allowed", url, domain)
            return False
        # Seeds are explicit operator input; patterns only filter discovered links.
        if depth > 0 and not self._matches_patterns(url):
            return False

        async with self._cond:
            if self._closed or url in self._visited or self._budget_exhausted():
                return False
            self._visited.add(url)
            self._queues.setdefault(domain, deque()).append(FrontierEntry(url=url, depth=depth, domain=domain))
            self._cond.notify_all()
        return True

    async def requeue(self, entry: FrontierEntry) -> bool:
        """
        Reinsert an already admitted entry for another attempt. Returns False
        when the frontier is closed and the attempt will never happen.
        """
        async with self._cond:
            if self._closed:
                return False
            self._queues.setdefault(entry.domain, deque()).append(entry)
            self._cond.notify_all()
        return True

    # ---- Dispatch -------------------------------------------------------------

    def _drop_unbudgeted(self) -> None:
        # Fresh URLs beyond the page budget are never dispatched; retries of
        # URLs that already consumed budget still are.
        for domain, queue in self._queues.items():
            kept = [e for e in queue if e.retry_count > 0]
            if len(kept) != len(queue):
                logger.debug("Page budget reached; dropping %d queued URLs for %s", len(queue) - len(kept), domain)
                self._queues[domain] = deque(kept)

    async def dequeue(self) -> Optional[FrontierEntry]:
        """
        Wait for a dispatchable entry. Returns None once the frontier is
        drained or closed.
        """
        async with self._cond:
            while True:
                if self._closed:
                    return None
                if self._budget_exhausted():
                    self._drop_unbudgeted()
                for domain in [d for d, q in self._queues.items() if not q]:
                    del self._queues[domain]
                if not self._queues and self._outstanding == 0:
                    # Wake any sibling workers so they observe the drained state too.
                    self._cond.notify_all()
                    return None

                wait_for: Optional[float] = None
                for domain in list(self._queues):
                    acquisition = await self._limiter.try_acquire(domain)
                    if self._closed:
                        if acquisition.granted:
                            await self._limiter.release(domain)
                        return None
                    if acquisition.granted:
                        entry = self._queues[domain].popleft()
                        # Rotate so the next dequeue starts from another domain.
                        self._queues.move_to_end(domain)
                        self._outstanding += 1
                        if entry.retry_count == 0:
                            self._dispatched += 1
                        return entry
                    if acquisition.retry_after is not None:
                        wait_for = acquisition.retry_after if wait_for is None else min(wait_for, acquisition.retry_after)

                try:
                    await asyncio.wait_for(self._cond.wait(), timeout=wait_for)
                except asyncio.TimeoutError:
                    pass

    async def release(self, entry: FrontierEntry) -> None:
        """Give back the domain slot held by a dispatched entry."""
        await self._limiter.release(entry.domain)
        async with self._cond:
            self._cond.notify_all()

    async def done(self, entry: FrontierEntry) -> None:
        """Mark a dispatched entry as finished (fetched, abandoned or requeued)."""
        async with self._cond:
            self._outstanding -= 1
            self._cond.notify_all()

    def mark_closed(self) -> None:
        """Stop handing out work immediately; waiters notice on their next wake-up."""
        self._closed = True

    async def close(self) -> None:
        """Stop handing out work and wake every waiting worker."""
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    def queued_urls(self) -> List[str]:
        return [e.url for q in self._queues.values() for e in q]
