from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Union
from aiohttp import ClientSession, ClientTimeout
import aiohttp
import logging

logger = logging.getLogger(__name__)


# ---- Outcomes ---------------------------------------------------------------

@dataclass(frozen=True)
class FetchSuccess:
    status_code: int
    content_type: str
    body: str
    url: str = ""


@dataclass(frozen=True)
class TransientFailure:
    """Timeout, connection error, 5xx or 429: worth another attempt."""
    reason: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class PermanentFailure:
    """Any other 4xx, a disallowed content type or an unusable URL."""
    reason: str
    status_code: Optional[int] = None


Outcome = Union[FetchSuccess, TransientFailure, PermanentFailure]


def classify_status(status: int) -> Optional[Outcome]:
    """Failure outcome for a non-2xx status, or None when the status is a success."""
    if 200 <= status < 300:
        return None
    if status == 429:
        return TransientFailure("rate limited", status)
    if status >= 500:
        return TransientFailure("server error", status)
    if 400 <= status < 500:
        return PermanentFailure("client error", status)
    return PermanentFailure("unexpected status", status)


class Fetcher(Protocol):
    async def fetch(
        self,
        url: str,
        *,
        timeout: float,
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
    ) -> Outcome:
        ...


# ---- aiohttp implementation -------------------------------------------------

class HttpFetcher:
    """
    GET a URL and classify the result. Never raises for network or HTTP
    errors and never touches crawl state; the returned outcome drives
    everything downstream.
    """
    def __init__(self, session: Optional[ClientSession] = None, content_types: Iterable[str] = ()) -> None:
        self._session = session
        self._owns_session = session is None
        self.content_types = {c.lower() for c in content_types}

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            self._session = create_session()
        return self._session

    def _allowed_type(self, content_type: str) -> bool:
        return not self.content_types or content_type.lower() in self.content_types

    async def fetch(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
    ) -> Outcome:
        headers = {}
        if user_agent:
            headers["User-Agent"] = user_agent

        try:
            async with self.session.get(
                url,
                headers=headers,
                timeout=ClientTimeout(total=timeout),
                proxy=proxy or None,
                allow_redirects=True,
            ) as resp:
                failure = classify_status(resp.status)
                if failure is not None:
                    logger.debug("GET %s -> %s (%s)", url, resp.status, failure.reason)
                    return failure
                content_type = resp.content_type or ""
                if not self._allowed_type(content_type):
                    return PermanentFailure(f"content type {content_type!r} not allowed", resp.status)
                body = await resp.text(errors="replace")
                return FetchSuccess(resp.status, content_type, body, str(resp.url))
        except asyncio.TimeoutError:
            return TransientFailure("timeout")
        except aiohttp.InvalidURL as exc:
            return PermanentFailure(f"invalid url: {exc}")
        except aiohttp.ClientError as exc:  # connection resets, DNS, payload errors
            logger.debug("GET %s failed: %r", url, exc)
            return TransientFailure(f"connection error: {exc.__class__.__name__}")

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


def create_session() -> ClientSession:
    """
    Create a shared aiohttp ClientSession.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by the domain limiter
    return aiohttp.ClientSession(connector=connector)
