"""Tests for the BSE announcements and watchlist adapters."""

from __future__ import annotations

import json
import unittest
from datetime import datetime, timezone

import httpx

from catalyst_ingest.errors import FetchError
from catalyst_ingest.fetcher import RetryingFetcher, RetryOptions
from catalyst_ingest.sources.base import FetchContext
from catalyst_ingest.sources.bse import (
    BSE_ANNOUNCEMENTS_ENDPOINT,
    BseAnnouncementsAdapter,
    WatchlistAnnouncementsAdapter,
)

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)  # 17:30 IST
NO_RETRY = RetryOptions(max_retries=0)


def _ann(scrip: str, company: str, subject: str, news_dt: str, **extra) -> dict:
    row = {
        "SCRIP_CD": scrip,
        "SLONGNAME": company,
        "NEWSSUB": subject,
        "NEWS_DT": news_dt,
        "CATEGORYNAME": "Board Meeting",
        "NSURL": "",
    }
    row.update(extra)
    return row


TABLE = {
    "Table": [
        _ann("500325", "Reliance Industries Ltd", "Outcome of Board Meeting", "2026-01-05T15:30:00",
             NSURL="/xml-data/corpfiling/AttachLive/abc.pdf"),
        _ann("532540", "Tata Consultancy Services Ltd", "Order win", "2026-01-05T16:45:00",
             CATEGORYNAME="Company Update"),
        # 07:30 IST = 02:00 UTC, outside the 4h window.
        _ann("500180", "HDFC Bank Ltd", "Early morning filing", "2026-01-05T07:30:00"),
    ],
    "Table1": [{"ROWCNT": 3}],
}


async def _no_sleep(_delay: float) -> None:
    return None


def _ctx(handler, resolver=None) -> FetchContext:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FetchContext(fetcher=RetryingFetcher(client, sleep=_no_sleep), now=NOW, resolver=resolver)


def _json(payload) -> httpx.Response:
    return httpx.Response(200, text=json.dumps(payload))


class TestBseAnnouncementsAdapter(unittest.IsolatedAsyncioTestCase):

    async def test_announcements_parsed_in_ist(self):
        seen = {}

        def handler(request):
            seen["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
            seen["params"] = dict(request.url.params)
            seen["referer"] = request.headers.get("referer")
            return _json(TABLE)

        ctx = _ctx(handler)
        items = await BseAnnouncementsAdapter(hours_ago=4, retry_options=NO_RETRY).fetch(ctx)

        self.assertEqual(seen["url"], BSE_ANNOUNCEMENTS_ENDPOINT)
        self.assertEqual(seen["params"]["strPrevDate"], "20260105")
        self.assertEqual(seen["params"]["strToDate"], "20260105")
        self.assertEqual(seen["params"]["strType"], "C")
        self.assertEqual(seen["params"]["strscrip"], "")
        self.assertEqual(seen["referer"], "https://www.bseindia.com/corporates/ann.html")

        self.assertEqual([it.title for it in items], [
            "Tata Consultancy Services Ltd: Order win",
            "Reliance Industries Ltd: Outcome of Board Meeting",
        ])
        tcs, reliance = items
        self.assertEqual(tcs.pub_date, datetime(2026, 1, 5, 11, 15, tzinfo=timezone.utc))
        self.assertEqual(tcs.source, "BSE (Company Update)")
        self.assertEqual(tcs.link, "https://www.bseindia.com/corporates/ann.html?scrip=532540")
        self.assertEqual(
            reliance.link, "https://www.bseindia.com/xml-data/corpfiling/AttachLive/abc.pdf",
        )
        self.assertEqual(reliance.source_id, "bse-api")
        self.assertEqual(reliance.source_priority, 0)

    async def test_html_instead_of_json_is_parse_miss(self):
        ctx = _ctx(lambda request: httpx.Response(200, text="<!DOCTYPE html><html>Access denied</html>"))
        items = await BseAnnouncementsAdapter(retry_options=NO_RETRY).fetch(ctx)
        self.assertEqual(items, [])
        self.assertEqual(len(ctx.parse_errors), 1)
        self.assertIn("HTML instead of JSON", ctx.parse_errors[0])

    async def test_invalid_json_is_parse_miss(self):
        ctx = _ctx(lambda request: httpx.Response(200, text="{not json"))
        self.assertEqual(await BseAnnouncementsAdapter(retry_options=NO_RETRY).fetch(ctx), [])
        self.assertIn("Invalid JSON", ctx.parse_errors[0])

    async def test_missing_table_is_parse_miss(self):
        ctx = _ctx(lambda request: _json({"Table1": []}))
        self.assertEqual(await BseAnnouncementsAdapter(retry_options=NO_RETRY).fetch(ctx), [])
        self.assertEqual(len(ctx.parse_errors), 1)

    async def test_client_error_degrades(self):
        ctx = _ctx(lambda request: httpx.Response(401))
        self.assertEqual(await BseAnnouncementsAdapter(retry_options=NO_RETRY).fetch(ctx), [])
        self.assertIn("401", ctx.parse_errors[0])

    async def test_server_error_raises(self):
        ctx = _ctx(lambda request: httpx.Response(503))
        with self.assertRaises(FetchError):
            await BseAnnouncementsAdapter(retry_options=NO_RETRY).fetch(ctx)

    async def test_fetch_for_scrip_sends_scrip_code(self):
        seen = {}

        def handler(request):
            seen["strscrip"] = request.url.params.get("strscrip")
            seen["strPrevDate"] = request.url.params.get("strPrevDate")
            return _json(TABLE)

        ctx = _ctx(handler)
        items = await BseAnnouncementsAdapter(retry_options=NO_RETRY).fetch_for_scrip(ctx, "500325", hours_ago=24)
        self.assertEqual(seen, {"strscrip": "500325", "strPrevDate": "20260104"})
        # No window applied, newest first.
        self.assertEqual(len(items), 3)
        self.assertEqual(items[0].title, "Tata Consultancy Services Ltd: Order win")


class FakeResolver:
    def __init__(self, symbols, codes):
        self.symbols = symbols
        self.codes = codes

    def monitored_symbols(self):
        return list(self.symbols)

    def bse_code_for(self, nse_symbol):
        return self.codes.get(nse_symbol)

    def symbol_for(self, bse_scrip_code):
        return next((s for s, c in self.codes.items() if c == bse_scrip_code), None)

    def company_name_for(self, bse_scrip_code):
        return None

    def upsert_mapping(self, mapping):
        self.codes[mapping.nse_symbol] = mapping.bse_scrip_code


class TestWatchlistAnnouncementsAdapter(unittest.IsolatedAsyncioTestCase):

    def _adapter(self) -> WatchlistAnnouncementsAdapter:
        return WatchlistAnnouncementsAdapter(BseAnnouncementsAdapter(retry_options=NO_RETRY), hours_ago=24)

    async def test_items_tagged_with_symbol(self):
        def handler(request):
            scrip = request.url.params.get("strscrip")
            rows = [r for r in TABLE["Table"] if r["SCRIP_CD"] == scrip]
            return _json({"Table": rows})

        resolver = FakeResolver(["RELIANCE", "TCS", "UNMAPPED"], {"RELIANCE": "500325", "TCS": "532540"})
        ctx = _ctx(handler, resolver)
        items = await self._adapter().fetch(ctx)

        self.assertEqual(len(items), 2)
        by_symbol = {it.symbol: it for it in items}
        rel = by_symbol["RELIANCE"]
        self.assertEqual(rel.title, "[RELIANCE] Reliance Industries Ltd: Outcome of Board Meeting")
        self.assertEqual(rel.source, "BSE (Board Meeting) [RELIANCE]")
        self.assertEqual(rel.source_id, "bse-watchlist")
        self.assertEqual(by_symbol["TCS"].title, "[TCS] Tata Consultancy Services Ltd: Order win")

    async def test_one_company_failing_is_skipped(self):
        def handler(request):
            if request.url.params.get("strscrip") == "532540":
                return httpx.Response(500)
            return _json({"Table": [TABLE["Table"][0]]})

        resolver = FakeResolver(["RELIANCE", "TCS"], {"RELIANCE": "500325", "TCS": "532540"})
        items = await self._adapter().fetch(_ctx(handler, resolver))
        self.assertEqual([it.symbol for it in items], ["RELIANCE"])

    async def test_all_companies_failing_raises(self):
        resolver = FakeResolver(["RELIANCE", "TCS"], {"RELIANCE": "500325", "TCS": "532540"})
        ctx = _ctx(lambda request: httpx.Response(500), resolver)
        with self.assertRaises(FetchError):
            await self._adapter().fetch(ctx)

    async def test_no_mappings_returns_empty_without_requests(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _json(TABLE)

        resolver = FakeResolver(["UNMAPPED"], {})
        self.assertEqual(await self._adapter().fetch(_ctx(handler, resolver)), [])
        self.assertEqual(calls, [])

    async def test_missing_resolver_is_parse_note(self):
        ctx = _ctx(lambda request: _json(TABLE))
        self.assertEqual(await self._adapter().fetch(ctx), [])
        self.assertEqual(ctx.parse_errors, ["bse-watchlist: No watchlist resolver configured"])


    async def test_parse_misses_tagged_with_watchlist_id(self):
        resolver = FakeResolver(["RELIANCE"], {"RELIANCE": "500325"})
        ctx = _ctx(lambda request: httpx.Response(200, text="<html>Access denied</html>"), resolver)
        self.assertEqual(await self._adapter().fetch(ctx), [])
        self.assertEqual(len(ctx.parse_errors), 1)
        self.assertTrue(ctx.parse_errors[0].startswith("bse-watchlist: scrip 500325:"), ctx.parse_errors[0])


def _by_scrip(request) -> httpx.Response:
    scrip = request.url.params.get("strscrip")
    rows = [r for r in TABLE["Table"] if r["SCRIP_CD"] == scrip]
    if scrip == "532540":
        rows.append(_ann("532540", "Tata Consultancy Services Ltd", "Dividend record date", "2026-01-05T10:00:00"))
    return _json({"Table": rows})


class TestWatchlistPerSymbol(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.adapter = WatchlistAnnouncementsAdapter(BseAnnouncementsAdapter(retry_options=NO_RETRY), hours_ago=24)
        self.resolver = FakeResolver(
            ["RELIANCE", "TCS", "HDFCBANK", "WIPRO"],
            {"RELIANCE": "500325", "TCS": "532540", "HDFCBANK": "500180", "WIPRO": "507685"},
        )

    async def test_fetch_for_symbol_newest_first_and_tagged(self):
        items = await self.adapter.fetch_for_symbol(_ctx(_by_scrip, self.resolver), " tcs ")
        self.assertEqual([it.title for it in items], [
            "[TCS] Tata Consultancy Services Ltd: Order win",
            "[TCS] Tata Consultancy Services Ltd: Dividend record date",
        ])
        self.assertTrue(all(it.symbol == "TCS" and it.source_id == "bse-watchlist" for it in items))

    async def test_fetch_for_unmapped_symbol_is_empty(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _json(TABLE)

        with self.assertLogs("catalyst_ingest.sources.bse", level="WARNING"):
            items = await self.adapter.fetch_for_symbol(_ctx(handler, self.resolver), "ZOMATO")
        self.assertEqual(items, [])
        self.assertEqual(calls, [])

    async def test_fetch_for_symbol_failure_is_logged_not_raised(self):
        ctx = _ctx(lambda request: httpx.Response(503), self.resolver)
        with self.assertLogs("catalyst_ingest.sources.bse", level="ERROR"):
            self.assertEqual(await self.adapter.fetch_for_symbol(ctx, "RELIANCE"), [])

    async def test_announcement_summary_sorted_by_count(self):
        summary = await self.adapter.announcement_summary(_ctx(_by_scrip, self.resolver))
        self.assertEqual(summary.total_monitored, 4)
        self.assertEqual(summary.companies_with_announcements, 3)
        self.assertEqual(summary.total_announcements, 4)
        self.assertEqual([c.nse_symbol for c in summary.announcements], ["TCS", "RELIANCE", "HDFCBANK"])
        tcs = summary.announcements[0]
        self.assertEqual(tcs.count, 2)
        self.assertEqual(tcs.company_name, "TCS")
        self.assertEqual(tcs.latest_title, "Tata Consultancy Services Ltd: Order win")
        self.assertEqual(tcs.latest_date, datetime(2026, 1, 5, 11, 15, tzinfo=timezone.utc))

    async def test_announcement_summary_skips_failed_companies(self):
        def handler(request):
            if request.url.params.get("strscrip") == "532540":
                return httpx.Response(500)
            return _by_scrip(request)

        summary = await self.adapter.announcement_summary(_ctx(handler, self.resolver))
        self.assertEqual(summary.total_monitored, 4)
        self.assertEqual([c.nse_symbol for c in summary.announcements], ["RELIANCE", "HDFCBANK"])


if __name__ == "__main__":
    unittest.main()
