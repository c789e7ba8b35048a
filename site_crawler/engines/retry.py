from __future__ import annotations

import asyncio
import logging

from ..models import FrontierEntry
from ..utils.http import Outcome, TransientFailure

logger = logging.getLogger(__name__)


class RetryController:
    """
    Bounded retries with a fixed backoff (no exponential growth).
    Only transient failures are retried; anything else is abandoned at once.
    """
    def __init__(self, max_retries: int, backoff: float = 2.0) -> None:
        self.max_retries = max_retries
        self.backoff = backoff

    def should_retry(self, entry: FrontierEntry, outcome: Outcome) -> bool:
        return isinstance(outcome, TransientFailure) and entry.retry_count < self.max_retries

    async def schedule(self, entry: FrontierEntry) -> FrontierEntry:
        """Wait out the backoff and return the entry for its next attempt."""
        retried = entry.next_attempt()
        logger.info("Retrying %s (attempt %d/%d) in %.1fs",
                    entry.url, retried.retry_count, self.max_retries, self.backoff)
        await asyncio.sleep(self.backoff)
        return retried
