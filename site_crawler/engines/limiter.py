from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainState:
    domain: str
    active: int = 0
    last_dispatch: Optional[float] = None


@dataclass(frozen=True)
class Acquisition:
    granted: bool
    # Seconds until the delay window opens; None when the domain is at its
    # parallelism cap and only a release can make it eligible again.
    retry_after: Optional[float] = None


class DomainLimiter:
    """
    Per-domain politeness: at most ``parallelism`` requests in flight and at
    least ``delay_ms`` between two dispatches to the same domain.
    The dispatch timestamp is recorded at grant time, not on completion.
    """
    def __init__(self, parallelism: int, delay_ms: int, clock: Callable[[], float] = time.monotonic) -> None:
        if parallelism <= 0:
            raise ValueError("parallelism must be > 0")
        self.parallelism = parallelism
        self.delay = max(delay_ms, 0) / 1000.0
        self._clock = clock
        self._domains: Dict[str, DomainState] = {}
        self._lock = asyncio.Lock()

    async def try_acquire(self, domain: str) -> Acquisition:
        async with self._lock:
            state = self._domains.setdefault(domain, DomainState(domain))
            if state.active >= self.parallelism:
                return Acquisition(granted=False)
            now = self._clock()
            if state.last_dispatch is not None:
                elapsed = now - state.last_dispatch
                if elapsed < self.delay:
                    return Acquisition(granted=False, retry_after=self.delay - elapsed)
            state.active += 1
            state.last_dispatch = now
            return Acquisition(granted=True)

    async def release(self, domain: str) -> None:
        async with self._lock:
            state = self._domains.get(domain)
            if state is None or state.active == 0:
                logger.warning("release() without a matching grant for %s", domain)
                return
            state.active -= 1

    def snapshot(self, domain: str) -> DomainState:
        state = self._domains.get(domain) or DomainState(domain)
        return DomainState(state.domain, state.active, state.last_dispatch)
