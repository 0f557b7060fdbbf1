"""Source adapter contract.

Every external source is one ``SourceAdapter`` instance exposing
``async fetch(ctx) -> list[NewsItem]``.  The adapter:

  - retrieves raw data through ``ctx.fetcher`` (cached for feeds)
  - parses its wire format into ``NewsItem`` tagged with its fixed
    ``source_id`` / ``source_priority``
  - applies the ``hours_ago`` window and the ``max_results`` cap
  - turns parse/selector misses into ``[]`` plus a note in
    ``ctx.parse_errors``; only ``FetchError`` escapes, which is what
    the circuit breaker counts

All per-call state arrives through ``FetchContext``; adapters hold
configuration only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..common_types import NewsItem
from ..fetcher import DEFAULT_RETRY_OPTIONS, RetryingFetcher, RetryOptions
from ..normalize import apply_window

if TYPE_CHECKING:
    from ..watchlist import WatchlistResolver

logger = logging.getLogger(__name__)

# The User-Agent comes from the fetcher.
BROWSER_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def slow_endpoint_options(base: RetryOptions = DEFAULT_RETRY_OPTIONS) -> RetryOptions:
    """*base* with twice the per-attempt timeout (HTML scrapes, exchange API)."""
    return replace(base, timeout=base.timeout * 2)


@dataclass
class FetchContext:
    """Everything one adapter call needs, passed explicitly per call."""

    fetcher: RetryingFetcher
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resolver: WatchlistResolver | None = None
    parse_errors: list[str] = field(default_factory=list)

    def note_parse_error(self, source_id: str, message: str) -> None:
        logger.warning("[%s] %s", source_id, message)
        self.parse_errors.append(f"{source_id}: {message}")


class SourceAdapter:
    """Base class for one external source."""

    source_id: str = ""
    source_name: str = ""
    source_priority: int = 0

    def __init__(self, *, max_results: int = 20, hours_ago: float = 24.0) -> None:
        self.max_results = max_results
        self.hours_ago = hours_ago

    async def fetch(self, ctx: FetchContext) -> list[NewsItem]:
        raise NotImplementedError

    def make_item(
        self,
        *,
        title: str,
        link: str,
        pub_date: datetime | None,
        ctx: FetchContext,
        source: str | None = None,
        symbol: str | None = None,
    ) -> NewsItem:
        """Build a ``NewsItem`` with this adapter's provenance.

        A missing publish date falls back to the fetch time.
        """
        return NewsItem(
            title=title or "Untitled",
            link=link,
            pub_date=pub_date or ctx.now,
            source=source or self.source_name,
            source_id=self.source_id,
            source_priority=self.source_priority,
            symbol=symbol,
        )

    def window(self, items: list[NewsItem], ctx: FetchContext) -> list[NewsItem]:
        return apply_window(items, now=ctx.now, hours_ago=self.hours_ago, max_results=self.max_results)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source_id={self.source_id!r})"
