"""HTML "What's New" scrapers for government department sites.

The pages have no feed, so rows are located with an ordered list of CSS
selectors; the first selector that yields at least one usable row wins.
When nothing matches (page redesign), a generic link scan looks for PDF
or keyword links.  Selector misses degrade the source to zero items and
are never reported to the circuit breaker.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from ..common_types import NewsItem
from ..fetcher import RetryOptions
from ..normalize import absolute_url, parse_pub_date
from .base import BROWSER_HEADERS, FetchContext, SourceAdapter, slow_endpoint_options

logger = logging.getLogger(__name__)

SCRAPE_RETRY_OPTIONS = slow_endpoint_options()

# Minimum anchor text length for the generic link scan.
_MIN_FALLBACK_TEXT = 10


@dataclass(frozen=True)
class ScrapeLayout:
    """Where to find rows, titles and dates on one site."""

    row_selectors: Sequence[str]
    title_selectors: Sequence[str] = ("a", ".title", "td")
    date_selectors: Sequence[str] = (".date", "td:nth-of-type(2)")
    # Generic link scan: href substrings and (lower-cased) text keywords.
    fallback_href_keywords: Sequence[str] = (".pdf",)
    fallback_text_keywords: Sequence[str] = field(default_factory=tuple)


class HtmlScrapeAdapter(SourceAdapter):
    def __init__(
        self,
        *,
        source_id: str,
        source_name: str,
        source_priority: int,
        url: str,
        base_url: str,
        layout: ScrapeLayout,
        max_results: int = 20,
        hours_ago: float = 48.0,
        retry_options: RetryOptions = SCRAPE_RETRY_OPTIONS,
    ) -> None:
        super().__init__(max_results=max_results, hours_ago=hours_ago)
        self.source_id = source_id
        self.source_name = source_name
        self.source_priority = source_priority
        self.url = url
        self.base_url = base_url
        self.layout = layout
        self.retry_options = retry_options

    async def fetch(self, ctx: FetchContext) -> list[NewsItem]:
        r = await ctx.fetcher.fetch_with_retry(self.url, headers=BROWSER_HEADERS, options=self.retry_options)
        if not r.is_success:
            ctx.note_parse_error(self.source_id, f"Failed to fetch: {r.status_code} {r.reason_phrase}")
            return []

        items = self.parse(r.text, ctx)
        if not items:
            ctx.note_parse_error(self.source_id, "No items matched any selector")
            return []
        items = self.window(items, ctx)
        logger.info("[%s] Fetched %d items from %s", self.source_id, len(items), self.url)
        return items

    def parse(self, html: str, ctx: FetchContext) -> list[NewsItem]:
        soup = BeautifulSoup(html, "html.parser")
        for selector in self.layout.row_selectors:
            rows = soup.select(selector)
            if not rows:
                continue
            items = [it for it in (self._parse_row(row, ctx) for row in rows) if it is not None]
            if items:
                logger.debug("[%s] selector %r matched %d rows", self.source_id, selector, len(items))
                return items
        return self._fallback_links(soup, ctx)

    def _parse_row(self, row: Tag, ctx: FetchContext) -> NewsItem | None:
        title = _first_text(row, self.layout.title_selectors)
        anchor = row.find("a", href=True)
        href = anchor["href"] if anchor is not None else ""
        if not title or not href:
            return None
        date_text = _first_text(row, self.layout.date_selectors)
        return self.make_item(
            title=title,
            link=absolute_url(str(href), self.base_url),
            pub_date=parse_pub_date(date_text),
            ctx=ctx,
        )

    def _fallback_links(self, soup: BeautifulSoup, ctx: FetchContext) -> list[NewsItem]:
        items: list[NewsItem] = []
        for anchor in soup.find_all("a", href=True):
            href = str(anchor["href"])
            text = anchor.get_text(" ", strip=True)
            if len(text) <= _MIN_FALLBACK_TEXT:
                continue
            lowered = text.lower()
            if not (
                any(k in href for k in self.layout.fallback_href_keywords)
                or any(k in lowered for k in self.layout.fallback_text_keywords)
            ):
                continue
            items.append(self.make_item(
                title=text,
                link=absolute_url(href, self.base_url),
                pub_date=None,
                ctx=ctx,
            ))
        if items:
            logger.info("[%s] Selectors missed; generic link scan found %d items", self.source_id, len(items))
        return items


def _first_text(row: Tag, selectors: Sequence[str]) -> str:
    for selector in selectors:
        el = row.select_one(selector)
        if el is not None:
            text = el.get_text(" ", strip=True)
            if text:
                return text
    return ""


DIPAM_LAYOUT = ScrapeLayout(
    row_selectors=(
        ".view-content .views-row",
        ".item-list ul li",
        "table.views-table tbody tr",
        ".whatsnew-item",
    ),
    title_selectors=("a", ".views-field-title", "td"),
    date_selectors=(".views-field-field-event-date", ".date", "td:nth-of-type(2)"),
    fallback_href_keywords=("upload", ".pdf"),
    fallback_text_keywords=("disinvest",),
)

DPIIT_LAYOUT = ScrapeLayout(
    row_selectors=(
        ".view-content .views-row",
        ".content-list li",
        ".whats-new-item",
        "table tbody tr",
        ".announcement-item",
    ),
    title_selectors=("a", ".title", "td"),
    date_selectors=(".date", ".field-content", "td:nth-of-type(2)"),
    fallback_href_keywords=(".pdf", "notification", "policy"),
    fallback_text_keywords=("fdi", "import"),
)
