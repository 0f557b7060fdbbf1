"""RSS/Atom feed adapters (PIB, RBI, Indian market media, Google News).

One ``RssFeedAdapter`` may poll several feeds; their items are merged in
feed order and deduplicated by link.  Feed bodies go through the
fetcher's URL cache, so a feed shared by two sources is downloaded once
per TTL.

Multi-feed policy: a feed that fails at fetch level is logged and
skipped; the adapter raises only when *every* feed failed, so a
partially reachable source still counts as healthy.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import quote_plus

import feedparser

from ..common_types import PRIORITY_AGGREGATOR, NewsItem
from ..errors import FetchError, ParseError
from ..fetcher import RetryOptions
from ..normalize import dedupe_by_link, parse_pub_date
from .base import BROWSER_HEADERS, FetchContext, SourceAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedSpec:
    url: str
    label: str  # human-readable source name stamped on items


class RssFeedAdapter(SourceAdapter):
    """Generic feed adapter; one instance per configured source."""

    def __init__(
        self,
        *,
        source_id: str,
        source_name: str,
        source_priority: int,
        feeds: list[FeedSpec],
        max_results: int = 20,
        hours_ago: float = 24.0,
        cache_ttl_s: float = 600.0,
        retry_options: RetryOptions | None = None,
        split_publisher: bool = False,
    ) -> None:
        super().__init__(max_results=max_results, hours_ago=hours_ago)
        if not feeds:
            raise ValueError("RssFeedAdapter needs at least one feed")
        self.source_id = source_id
        self.source_name = source_name
        self.source_priority = source_priority
        self.feeds = list(feeds)
        self.cache_ttl_s = cache_ttl_s
        # None: the fetcher's configured default budget.
        self.retry_options = retry_options
        # Google News titles read "Headline - Publisher".
        self.split_publisher = split_publisher

    async def fetch(self, ctx: FetchContext) -> list[NewsItem]:
        results = await asyncio.gather(
            *(self._fetch_feed(ctx, feed) for feed in self.feeds),
            return_exceptions=True,
        )

        merged: list[NewsItem] = []
        failures: list[FetchError] = []
        for feed, res in zip(self.feeds, results):
            if isinstance(res, FetchError):
                logger.warning("[%s] %s fetch failed: %s", self.source_id, feed.label, res)
                failures.append(res)
                continue
            if isinstance(res, BaseException):
                raise res
            merged.extend(res)

        if failures and len(failures) == len(self.feeds):
            raise failures[0]

        deduped = dedupe_by_link(merged)
        if len(self.feeds) > 1:
            logger.info(
                "[%s] Combined %d unique articles from %d total",
                self.source_id, len(deduped), len(merged),
            )
        else:
            logger.info(
                "[%s] Fetched %d articles (last %gh)", self.source_id, len(deduped), self.hours_ago,
            )
        return deduped

    async def _fetch_feed(self, ctx: FetchContext, feed: FeedSpec) -> list[NewsItem]:
        xml = await ctx.fetcher.fetch_rss_with_cache(
            feed.url,
            headers=BROWSER_HEADERS,
            ttl_s=self.cache_ttl_s,
            options=self.retry_options,
        )
        try:
            items = self.parse(xml, feed, ctx)
        except ParseError as exc:
            ctx.note_parse_error(self.source_id, f"{feed.label}: {exc}")
            return []
        return self.window(items, ctx)

    def parse(self, xml: str, feed: FeedSpec, ctx: FetchContext) -> list[NewsItem]:
        """Parse one feed body.  Raises ``ParseError`` when it is not a feed."""
        parsed = feedparser.parse(xml)
        entries = parsed.get("entries") or []
        if not entries:
            if parsed.get("bozo") or not parsed.get("version"):
                reason = parsed.get("bozo_exception") or "not an RSS/Atom document"
                raise ParseError(f"Malformed feed: {reason}", source_id=self.source_id)
            logger.info("[%s] No items found in %s", self.source_id, feed.label)
            return []

        items: list[NewsItem] = []
        for entry in entries:
            link = (entry.get("link") or "").strip()
            if not link:
                continue
            title = (entry.get("title") or "").strip()
            source = feed.label
            if self.split_publisher and " - " in title:
                title, publisher = title.rsplit(" - ", 1)
                source = publisher.strip() or source
            pub_date = parse_pub_date(entry.get("published") or entry.get("updated"))
            items.append(self.make_item(title=title, link=link, pub_date=pub_date, ctx=ctx, source=source))
        return items


GOOGLE_NEWS_SEARCH_URL = "https://news.google.com/rss/search"


class GoogleNewsSearchAdapter(RssFeedAdapter):
    """Keyword search feed, e.g. "Copper" or "OPEC" within the last N hours."""

    def __init__(self, keyword: str, *, max_results: int = 5, hours_ago: int = 2) -> None:
        if not keyword.strip():
            raise ValueError("keyword is required")
        self.keyword = keyword.strip()
        super().__init__(
            source_id="google-news-search",
            source_name="Google News",
            source_priority=PRIORITY_AGGREGATOR,
            feeds=[FeedSpec(url=self.build_url(self.keyword, hours_ago), label="Google News")],
            max_results=max_results,
            hours_ago=hours_ago,
            cache_ttl_s=300.0,
            retry_options=None,
            split_publisher=True,
        )

    @staticmethod
    def build_url(keyword: str, hours_ago: int) -> str:
        query = quote_plus(f"{keyword} when:{hours_ago}h")
        return f"{GOOGLE_NEWS_SEARCH_URL}?q={query}&hl=en-US&gl=US&ceid=US:en"
