"""Tests for frontier admission, dedup, dispatch order and drain detection."""

from __future__ import annotations

import asyncio

import pytest

from site_crawler.config import CrawlConfig
from site_crawler.engines.frontier import Frontier, domain_matches
from site_crawler.engines.limiter import DomainLimiter
from site_crawler.models import CrawlRules


def make_frontier(delay_ms: int = 0, parallelism: int = 10, **rules) -> Frontier:
    resolved = CrawlRules(**rules).resolve(CrawlConfig(max_pages=0, delay_ms=delay_ms))
    return Frontier(resolved, DomainLimiter(parallelism, delay_ms))


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------

class TestEnqueue:
    async def test_normalizes_and_dedups(self) -> None:
        frontier = make_frontier()
        assert await frontier.enqueue("HTTPS://A.example/page#intro", 0)
        assert not await frontier.enqueue("https://a.example/page", 1)
        assert not await frontier.enqueue("https://a.example/page#other", 2)
        assert frontier.queued_urls() == ["https://a.example/page"]
        assert frontier.visited_count == 1

    async def test_rejects_non_http_urls(self) -> None:
        frontier = make_frontier()
        assert not await frontier.enqueue("mailto:someone@a.example", 0)
        assert not await frontier.enqueue("javascript:void(0)", 0)
        assert frontier.pending == 0

    async def test_rejects_beyond_max_depth(self) -> None:
        frontier = make_frontier(max_depth=1)
        assert await frontier.enqueue("https://a.example/one", 1)
        assert not await frontier.enqueue("https://a.example/two", 2)

    async def test_forbidden_beats_allowed(self) -> None:
        frontier = make_frontier(allowed_domains={"a.example"}, forbidden_domains={"admin.a.example"})
        assert await frontier.enqueue("https://www.a.example/", 0)
        assert not await frontier.enqueue("https://admin.a.example/", 0)
        assert not await frontier.enqueue("https://b.example/", 0)

    async def test_patterns_skip_seeds(self) -> None:
        frontier = make_frontier(url_patterns=[r"/article/\d+"])
        assert await frontier.enqueue("https://a.example/", 0)
        assert await frontier.enqueue("https://a.example/article/7", 1)
        assert not await frontier.enqueue("https://a.example/contact", 1)

    async def test_rejected_urls_are_not_marked_visited(self) -> None:
        frontier = make_frontier(max_depth=0)
        assert not await frontier.enqueue("https://a.example/x", 1)
        assert await frontier.enqueue("https://a.example/x", 0)


def test_domain_matches_subdomains_and_ports() -> None:
    assert domain_matches("news.a.example", {"a.example"})
    assert domain_matches("a.example:8080", {"a.example"})
    assert not domain_matches("nota.example", {"a.example"})


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDequeue:
    async def test_returns_none_when_drained(self) -> None:
        frontier = make_frontier()
        assert await frontier.dequeue() is None

    async def test_discovery_order_within_domain(self) -> None:
        frontier = make_frontier()
        for path in ("first", "second", "third"):
            await frontier.enqueue(f"https://a.example/{path}", 0)

        urls = []
        for _ in range(3):
            entry = await frontier.dequeue()
            urls.append(entry.url)
            await frontier.release(entry)
            await frontier.done(entry)
        assert urls == ["https://a.example/first", "https://a.example/second", "https://a.example/third"]

    async def test_waits_while_work_is_outstanding(self) -> None:
        frontier = make_frontier()
        await frontier.enqueue("https://a.example/", 0)
        entry = await frontier.dequeue()

        waiter = asyncio.create_task(frontier.dequeue())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        # The outstanding page discovers a new link; the waiter picks it up.
        await frontier.enqueue("https://a.example/next", 1)
        follow_up = await asyncio.wait_for(waiter, timeout=1)
        assert follow_up.url == "https://a.example/next"
        await frontier.release(entry)
        await frontier.done(entry)

    async def test_done_on_last_entry_wakes_waiters_with_none(self) -> None:
        frontier = make_frontier()
        await frontier.enqueue("https://a.example/", 0)
        entry = await frontier.dequeue()

        waiter = asyncio.create_task(frontier.dequeue())
        await asyncio.sleep(0.01)
        await frontier.release(entry)
        await frontier.done(entry)

        assert await asyncio.wait_for(waiter, timeout=1) is None

    async def test_throttled_domain_is_skipped(self) -> None:
        frontier = make_frontier(delay_ms=10_000)
        await frontier.enqueue("https://a.example/1", 0)
        await frontier.enqueue("https://a.example/2", 0)
        await frontier.enqueue("https://b.example/1", 0)

        first = await frontier.dequeue()
        second = await asyncio.wait_for(frontier.dequeue(), timeout=1)
        assert {first.domain, second.domain} == {"a.example", "b.example"}

        # a.example is inside its delay window, so the next dequeue blocks.
        blocked = asyncio.create_task(frontier.dequeue())
        await asyncio.sleep(0.02)
        assert not blocked.done()
        await frontier.close()
        assert await asyncio.wait_for(blocked, timeout=1) is None

    async def test_requeue_bypasses_dedup(self) -> None:
        frontier = make_frontier()
        await frontier.enqueue("https://a.example/", 0)
        entry = await frontier.dequeue()
        await frontier.release(entry)

        await frontier.requeue(entry.next_attempt())
        await frontier.done(entry)

        retried = await frontier.dequeue()
        assert retried.url == entry.url
        assert retried.retry_count == 1
        assert frontier.dispatched == 1

    async def test_page_budget_stops_fresh_dispatch(self) -> None:
        frontier = make_frontier(max_pages=2)
        for i in range(4):
            await frontier.enqueue(f"https://a.example/{i}", 0)

        entries = [await frontier.dequeue(), await frontier.dequeue()]
        for entry in entries:
            await frontier.release(entry)
            await frontier.done(entry)

        assert await frontier.dequeue() is None
        assert not await frontier.enqueue("https://a.example/late", 0)

    async def test_closed_frontier_hands_out_nothing(self) -> None:
        frontier = make_frontier()
        await frontier.enqueue("https://a.example/", 0)
        entry = await frontier.dequeue()
        await frontier.enqueue("https://a.example/queued", 1)
        frontier.mark_closed()
        assert not await frontier.requeue(entry.next_attempt())
        assert await frontier.dequeue() is None
        assert not await frontier.enqueue("https://a.example/other", 0)


@pytest.mark.parametrize("max_depth", [0, 3])
async def test_depth_never_exceeds_rules(max_depth: int) -> None:
    frontier = make_frontier(max_depth=max_depth)
    for depth in range(6):
        await frontier.enqueue(f"https://a.example/{depth}", depth)
    assert frontier.pending == max_depth + 1
