"""Retrying HTTP fetch primitive and the feed payload cache.

``RetryingFetcher.fetch_with_retry`` is the canonical GET used by every
source adapter:

  - status < 400  → returned immediately
  - status 4xx    → returned immediately, never retried (permanent)
  - status 5xx, timeouts, transport errors → retried with exponential
    backoff ``min(initial_delay * multiplier**attempt, max_delay)``

After ``max_retries + 1`` attempts a ``FetchError`` is raised.  No
sleep follows the final attempt.

``fetch_rss_with_cache`` layers a time-keyed cache (exact URL → raw
text) on top for feed-style sources polled more often than they change.
Entries expire by age only and are never evicted otherwise; the set of
feed URLs is small and fixed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import FetchError

logger = logging.getLogger(__name__)

# Government and exchange sites reject the default httpx User-Agent.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    backoff_multiplier: float = 2.0
    timeout: float = 15.0  # seconds, per attempt

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt ``attempt + 1`` (attempt is 0-based)."""
        return min(self.initial_delay * self.backoff_multiplier ** attempt, self.max_delay)


DEFAULT_RETRY_OPTIONS = RetryOptions()


@dataclass
class CacheEntry:
    data: str
    fetched_at: float  # epoch seconds


class RssCache:
    """URL-keyed payload cache with caller-supplied TTL."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def get(self, url: str, ttl_s: float) -> str | None:
        """Return the cached payload if younger than *ttl_s*.  Never mutates the entry."""
        entry = self._entries.get(url)
        if entry is None:
            return None
        age = self._clock() - entry.fetched_at
        if age < ttl_s:
            logger.debug("Cache hit for %s (age: %.0fs)", url, age)
            return entry.data
        return None

    def put(self, url: str, data: str, fetched_at: float) -> None:
        self._entries[url] = CacheEntry(data=data, fetched_at=fetched_at)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("RSS cache cleared")

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "size": len(self._entries),
            "entries": [
                {"url": url, "age_s": round(now - e.fetched_at)}
                for url, e in self._entries.items()
            ],
        }

    def __len__(self) -> int:
        return len(self._entries)


class RetryingFetcher:
    """Async GET with timeout + exponential backoff, plus the RSS cache.

    The ``httpx.AsyncClient`` is created lazily unless one is injected;
    ``sleep`` and ``clock`` are injectable so tests run without waiting.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        default_options: RetryOptions = DEFAULT_RETRY_OPTIONS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.user_agent = user_agent
        self.default_options = default_options
        self._sleep = sleep
        self._clock = clock
        self.cache = RssCache(clock=clock)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def fetch_with_retry(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        options: RetryOptions | None = None,
    ) -> httpx.Response:
        """GET *url*; see the module docstring for the retry policy."""
        opts = options or self.default_options
        # Per-request so an injected client sends the configured identity too;
        # an explicit caller header still wins.
        headers = {"User-Agent": self.user_agent, **(headers or {})}
        total = opts.max_retries + 1
        last_error = "Unknown error"
        last_status: int | None = None

        for attempt in range(total):
            try:
                r = await self.client.get(url, headers=headers, params=params, timeout=opts.timeout)
                if r.status_code < 400:
                    return r
                if r.status_code < 500:
                    logger.warning("Client error %d for %s – not retrying", r.status_code, url)
                    return r
                last_status = r.status_code
                last_error = f"Server error: {r.status_code} {r.reason_phrase}"
                logger.warning(
                    "Server error %d for %s, attempt %d/%d",
                    r.status_code, url, attempt + 1, total,
                )
            except httpx.TimeoutException as exc:
                last_error = f"Timeout: {type(exc).__name__}"
                logger.warning("Timeout for %s, attempt %d/%d", url, attempt + 1, total)
            except httpx.TransportError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "Network error for %s, attempt %d/%d: %s",
                    url, attempt + 1, total, exc,
                )

            if attempt < opts.max_retries:
                delay = opts.delay_for(attempt)
                logger.debug("Retrying %s in %.1fs", url, delay)
                await self._sleep(delay)

        raise FetchError(
            f"Failed to fetch {url} after {total} attempts: {last_error}",
            url=url,
            status_code=last_status,
            attempts=total,
        )

    async def fetch_rss_with_cache(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        ttl_s: float = 300.0,
        options: RetryOptions | None = None,
    ) -> str:
        """Return the feed body for *url*, from cache when younger than *ttl_s*.

        A non-success response is raised as ``FetchError``; only
        successful payloads are cached.
        """
        now = self._clock()
        cached = self.cache.get(url, ttl_s)
        if cached is not None:
            return cached

        logger.debug("Cache miss for %s, fetching", url)
        r = await self.fetch_with_retry(url, headers=headers, options=options)
        if not r.is_success:
            raise FetchError(
                f"Failed to fetch RSS from {url}: {r.status_code} {r.reason_phrase}",
                url=url,
                status_code=r.status_code,
                attempts=1,
            )
        text = r.text
        self.cache.put(url, text, fetched_at=now)
        return text

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
