"""BSE corporate announcements adapters.

Polls ``AnnSubCategoryGetData/w`` – the exchange's own announcement
feed, typically ahead of the media by several minutes.

The endpoint validates that requests originate from the announcements
page (``Referer``/``Origin``); without them it answers with an HTML
error page instead of JSON, which is treated as a parse miss.

Response shape::

    {"Table": [{"SCRIP_CD", "NSURL", "NEWSSUB", "NEWS_DT", "SLONGNAME",
                "ATTACHMENTNAME", "CATEGORYNAME", ...}],
     "Table1": [{"ROWCNT": n}]}
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from ..common_types import NewsItem
from ..errors import FetchError, ParseError
from ..fetcher import RetryOptions
from ..normalize import parse_pub_date
from .base import FetchContext, SourceAdapter, slow_endpoint_options

if TYPE_CHECKING:
    from ..watchlist import WatchlistResolver

logger = logging.getLogger(__name__)

BSE_API_BASE = "https://api.bseindia.com/BseIndiaAPI/api"
BSE_ANNOUNCEMENTS_ENDPOINT = f"{BSE_API_BASE}/AnnSubCategoryGetData/w"
BSE_SITE = "https://www.bseindia.com"

# BSE publishes naive exchange-local timestamps.
IST = ZoneInfo("Asia/Kolkata")

BSE_HEADERS: dict[str, str] = {
    "Referer": f"{BSE_SITE}/corporates/ann.html",
    "Origin": BSE_SITE,
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

BSE_RETRY_OPTIONS = slow_endpoint_options()


def _bse_date(dt: datetime) -> str:
    """YYYYMMDD in exchange-local time."""
    return dt.astimezone(IST).strftime("%Y%m%d")


class BseAnnouncementsAdapter(SourceAdapter):
    """All equity announcements in the last ``hours_ago`` hours."""

    source_id = "bse-api"
    source_name = "BSE Corporate Announcements"
    source_priority = 0

    def __init__(
        self,
        *,
        max_results: int = 50,
        hours_ago: float = 4.0,
        retry_options: RetryOptions = BSE_RETRY_OPTIONS,
    ) -> None:
        super().__init__(max_results=max_results, hours_ago=hours_ago)
        self.retry_options = retry_options

    def build_params(self, ctx: FetchContext, *, hours_ago: float, scrip_code: str = "") -> dict[str, str]:
        from_date = ctx.now - timedelta(hours=hours_ago)
        return {
            "pageno": "1",
            "strCat": "-1",
            "subcategory": "-1",
            "strPrevDate": _bse_date(from_date),
            "strToDate": _bse_date(ctx.now),
            "strSearch": "P",
            "strscrip": scrip_code,
            "strType": "C",  # C = equity, D = debt, M = MF/ETF
        }

    async def fetch(self, ctx: FetchContext) -> list[NewsItem]:
        items = await self._query(ctx, hours_ago=self.hours_ago)
        items = self.window(items, ctx)
        logger.info("[%s] Fetched %d announcements (last %gh)", self.source_id, len(items), self.hours_ago)
        return items

    async def fetch_for_scrip(
        self,
        ctx: FetchContext,
        scrip_code: str,
        *,
        hours_ago: float = 24.0,
        note_as: str | None = None,
    ) -> list[NewsItem]:
        """Announcements for one company by BSE scrip code (e.g. "500325").

        Parse misses are noted under *note_as* (default: this adapter's id).
        """
        items = await self._query(ctx, hours_ago=hours_ago, scrip_code=scrip_code, note_as=note_as)
        return sorted(items, key=lambda it: it.pub_date, reverse=True)

    async def _query(
        self, ctx: FetchContext, *, hours_ago: float, scrip_code: str = "", note_as: str | None = None,
    ) -> list[NewsItem]:
        note_id = note_as or self.source_id
        r = await ctx.fetcher.fetch_with_retry(
            BSE_ANNOUNCEMENTS_ENDPOINT,
            headers=BSE_HEADERS,
            params=self.build_params(ctx, hours_ago=hours_ago, scrip_code=scrip_code),
            options=self.retry_options,
        )
        label = f"scrip {scrip_code}" if scrip_code else "all scrips"
        if not r.is_success:
            ctx.note_parse_error(note_id, f"Failed to fetch {label}: {r.status_code} {r.reason_phrase}")
            return []
        try:
            rows = self.parse_table(r.text)
        except ParseError as exc:
            ctx.note_parse_error(note_id, f"{label}: {exc}")
            return []
        return [self._to_item(row, ctx) for row in rows]

    def parse_table(self, text: str) -> list[dict[str, Any]]:
        if text.lstrip().startswith("<"):
            raise ParseError("Received HTML instead of JSON - possible auth/redirect issue", source_id=self.source_id)
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError) as exc:
            raise ParseError(f"Invalid JSON: {exc}", source_id=self.source_id) from None
        table = data.get("Table") if isinstance(data, dict) else None
        if not isinstance(table, list):
            raise ParseError("No announcements table in response", source_id=self.source_id)
        return [row for row in table if isinstance(row, dict)]

    def _to_item(self, ann: dict[str, Any], ctx: FetchContext) -> NewsItem:
        scrip = str(ann.get("SCRIP_CD") or "").strip()
        nsurl = str(ann.get("NSURL") or "").strip()
        if nsurl and not nsurl.startswith("http"):
            nsurl = f"{BSE_SITE}{nsurl}"
        link = nsurl or f"{BSE_SITE}/corporates/ann.html?scrip={scrip}"
        company = str(ann.get("SLONGNAME") or "").strip()
        subject = str(ann.get("NEWSSUB") or "").strip()
        category = str(ann.get("CATEGORYNAME") or "").strip() or "Announcement"
        return self.make_item(
            title=f"{company}: {subject}" if company else subject,
            link=link,
            pub_date=parse_pub_date(str(ann.get("NEWS_DT") or ""), default_tz=IST),
            ctx=ctx,
            source=f"BSE ({category})",
        )


@dataclass(frozen=True)
class CompanyAnnouncements:
    """One monitored company's recent activity (newest first)."""

    nse_symbol: str
    company_name: str
    count: int
    latest_title: str
    latest_date: datetime


@dataclass(frozen=True)
class AnnouncementSummary:
    total_announcements: int
    companies_with_announcements: int
    total_monitored: int
    announcements: list[CompanyAnnouncements] = field(default_factory=list)  # busiest first


class WatchlistAnnouncementsAdapter(SourceAdapter):
    """BSE announcements for the monitored symbols (watchlist ∪ holdings).

    Needs ``ctx.resolver`` for the symbol list and NSE → BSE mapping.
    Per-company failures are skipped; the adapter raises only when every
    company fetch failed.
    """

    source_id = "bse-watchlist"
    source_name = "BSE Watchlist Announcements"
    source_priority = 0

    def __init__(self, bse: BseAnnouncementsAdapter | None = None, *, hours_ago: float = 24.0, max_results: int = 100) -> None:
        super().__init__(max_results=max_results, hours_ago=hours_ago)
        self.bse = bse or BseAnnouncementsAdapter()

    def _monitored(self, resolver: WatchlistResolver) -> list[tuple[str, str]]:
        """``(nse_symbol, bse_code)`` for every monitored symbol that has a mapping."""
        monitored: list[tuple[str, str]] = []
        for symbol in resolver.monitored_symbols():
            code = resolver.bse_code_for(symbol)
            if code:
                monitored.append((symbol, code))
            else:
                logger.debug("[%s] No BSE mapping for %s", self.source_id, symbol)
        return monitored

    def _tag(self, item: NewsItem, symbol: str) -> NewsItem:
        return NewsItem(
            title=f"[{symbol}] {item.title}",
            link=item.link,
            pub_date=item.pub_date,
            source=f"{item.source} [{symbol}]",
            source_id=self.source_id,
            source_priority=self.source_priority,
            symbol=symbol,
        )

    async def _fetch_company(self, ctx: FetchContext, code: str, hours_ago: float) -> list[NewsItem]:
        return await self.bse.fetch_for_scrip(ctx, code, hours_ago=hours_ago, note_as=self.source_id)

    async def fetch(self, ctx: FetchContext) -> list[NewsItem]:
        resolver = ctx.resolver
        if resolver is None:
            ctx.note_parse_error(self.source_id, "No watchlist resolver configured")
            return []

        monitored = self._monitored(resolver)
        if not monitored:
            logger.info("[%s] No BSE mappings found for monitored symbols", self.source_id)
            return []

        results = await asyncio.gather(
            *(self._fetch_company(ctx, code, self.hours_ago) for _, code in monitored),
            return_exceptions=True,
        )

        items: list[NewsItem] = []
        failures: list[FetchError] = []
        for (symbol, code), res in zip(monitored, results):
            if isinstance(res, FetchError):
                logger.warning("[%s] Error fetching for %s (BSE: %s): %s", self.source_id, symbol, code, res)
                failures.append(res)
                continue
            if isinstance(res, BaseException):
                raise res
            items.extend(self._tag(it, symbol) for it in res)

        if failures and len(failures) == len(monitored):
            raise failures[0]

        items = self.window(items, ctx)
        logger.info(
            "[%s] Fetched %d announcements for %d companies",
            self.source_id, len(items), len(monitored),
        )
        return items

    async def fetch_for_symbol(self, ctx: FetchContext, nse_symbol: str, *, hours_ago: float | None = None) -> list[NewsItem]:
        """Announcements for one NSE symbol, newest first.

        An unmapped symbol or a failed fetch is logged and yields ``[]``.
        """
        symbol = nse_symbol.strip().upper()
        hours = self.hours_ago if hours_ago is None else hours_ago
        resolver = ctx.resolver
        code = resolver.bse_code_for(symbol) if resolver is not None else None
        if not code:
            logger.warning("[%s] No BSE mapping found for %s", self.source_id, symbol)
            return []
        try:
            items = await self._fetch_company(ctx, code, hours)
        except FetchError as exc:
            logger.error("[%s] Error fetching for %s (BSE: %s): %s", self.source_id, symbol, code, exc)
            return []
        logger.info("[%s] Found %d announcements for %s", self.source_id, len(items), symbol)
        return [self._tag(it, symbol) for it in items]

    async def announcement_summary(self, ctx: FetchContext, *, hours_ago: float | None = None) -> AnnouncementSummary:
        """Per-company announcement counts across the monitored set.

        Companies that failed to fetch or had nothing in the window are
        left out of ``announcements`` but still count as monitored.
        """
        resolver = ctx.resolver
        monitored = self._monitored(resolver) if resolver is not None else []
        hours = self.hours_ago if hours_ago is None else hours_ago

        results = await asyncio.gather(
            *(self._fetch_company(ctx, code, hours) for _, code in monitored),
            return_exceptions=True,
        )

        companies: list[CompanyAnnouncements] = []
        for (symbol, code), res in zip(monitored, results):
            if isinstance(res, FetchError):
                logger.warning("[%s] Error fetching for %s (BSE: %s): %s", self.source_id, symbol, code, res)
                continue
            if isinstance(res, BaseException):
                raise res
            if not res:
                continue
            companies.append(CompanyAnnouncements(
                nse_symbol=symbol,
                company_name=(resolver.company_name_for(code) if resolver is not None else None) or symbol,
                count=len(res),
                latest_title=res[0].title,
                latest_date=res[0].pub_date,
            ))

        companies.sort(key=lambda c: c.count, reverse=True)
        summary = AnnouncementSummary(
            total_announcements=sum(c.count for c in companies),
            companies_with_announcements=len(companies),
            total_monitored=len(monitored),
            announcements=companies,
        )
        logger.info(
            "[%s] Summary: %d announcements for %d/%d companies",
            self.source_id, summary.total_announcements,
            summary.companies_with_announcements, summary.total_monitored,
        )
        return summary
