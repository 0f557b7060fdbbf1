"""Tests for the DIPAM/DPIIT HTML scrapers."""

from __future__ import annotations

import unittest
from datetime import datetime, timezone

import httpx

from catalyst_ingest.errors import FetchError
from catalyst_ingest.fetcher import RetryingFetcher, RetryOptions
from catalyst_ingest.sources.base import FetchContext
from catalyst_ingest.sources.scrape import DIPAM_LAYOUT, DPIIT_LAYOUT, HtmlScrapeAdapter

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
DIPAM_URL = "https://dipam.gov.in/whatsnewlist"

DIPAM_PAGE = """
<html><body><div class="view-content">
  <div class="views-row">
    <span class="views-field-title"><a href="/sites/default/files/ofs-xyz.pdf">Offer for Sale of XYZ Ltd shares</a></span>
    <span class="views-field-field-event-date">04-Jan-2026</span>
  </div>
  <div class="views-row">
    <span class="views-field-title"><a href="https://dipam.gov.in/strategic-sale">Strategic disinvestment of ABC Corp</a></span>
    <span class="views-field-field-event-date">05-Jan-2026</span>
  </div>
  <div class="views-row">
    <span class="views-field-title">Row without a link</span>
  </div>
  <div class="views-row">
    <span class="views-field-title"><a href="/archive/old.pdf">Very old notice</a></span>
    <span class="views-field-field-event-date">01-Dec-2025</span>
  </div>
</div></body></html>
"""

REDESIGNED_PAGE = """
<html><body><main>
  <p><a href="/uploads/notice-ofs.pdf">Notice regarding OFS of DEF Ltd</a></p>
  <p><a href="/about">About this department page</a></p>
  <p><a href="/x.pdf">Short</a></p>
  <p><a href="/news/1">Disinvestment update for PQR Ltd</a></p>
</main></body></html>
"""

DPIIT_TABLE_PAGE = """
<html><body><table><tbody>
  <tr><td><a href="/notification/fdi-2026.pdf">Press Note 1 (2026): FDI policy review</a></td><td>2026-01-05</td></tr>
</tbody></table></body></html>
"""

NO_RETRY = RetryOptions(max_retries=0)


async def _no_sleep(_delay: float) -> None:
    return None


def _ctx(response: httpx.Response) -> FetchContext:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
    return FetchContext(fetcher=RetryingFetcher(client, sleep=_no_sleep), now=NOW)


def _dipam() -> HtmlScrapeAdapter:
    return HtmlScrapeAdapter(
        source_id="dipam-scraper",
        source_name="DIPAM (Govt of India)",
        source_priority=0,
        url=DIPAM_URL,
        base_url="https://dipam.gov.in",
        layout=DIPAM_LAYOUT,
        hours_ago=48,
        retry_options=NO_RETRY,
    )


class TestHtmlScrapeAdapter(unittest.IsolatedAsyncioTestCase):

    async def test_rows_parsed_with_absolute_links(self):
        ctx = _ctx(httpx.Response(200, text=DIPAM_PAGE))
        items = await _dipam().fetch(ctx)

        self.assertEqual([it.title for it in items], [
            "Strategic disinvestment of ABC Corp",
            "Offer for Sale of XYZ Ltd shares",
        ])
        self.assertEqual(items[1].link, "https://dipam.gov.in/sites/default/files/ofs-xyz.pdf")
        self.assertEqual(items[0].pub_date, datetime(2026, 1, 5, tzinfo=timezone.utc))
        self.assertEqual(items[0].source, "DIPAM (Govt of India)")
        self.assertEqual(items[0].source_id, "dipam-scraper")
        self.assertEqual(ctx.parse_errors, [])

    async def test_generic_link_scan_when_selectors_miss(self):
        ctx = _ctx(httpx.Response(200, text=REDESIGNED_PAGE))
        items = await _dipam().fetch(ctx)

        links = sorted(it.link for it in items)
        self.assertEqual(links, [
            "https://dipam.gov.in/news/1",
            "https://dipam.gov.in/uploads/notice-ofs.pdf",
        ])
        # Undated links are stamped with the fetch time.
        self.assertTrue(all(it.pub_date == NOW for it in items))

    async def test_no_match_is_a_parse_note_not_an_error(self):
        ctx = _ctx(httpx.Response(200, text="<html><body><p>Maintenance</p></body></html>"))
        items = await _dipam().fetch(ctx)
        self.assertEqual(items, [])
        self.assertEqual(ctx.parse_errors, ["dipam-scraper: No items matched any selector"])

    async def test_client_error_degrades_to_empty(self):
        ctx = _ctx(httpx.Response(403))
        items = await _dipam().fetch(ctx)
        self.assertEqual(items, [])
        self.assertEqual(len(ctx.parse_errors), 1)
        self.assertIn("403", ctx.parse_errors[0])

    async def test_server_error_raises_fetch_error(self):
        ctx = _ctx(httpx.Response(502))
        with self.assertRaises(FetchError):
            await _dipam().fetch(ctx)

    async def test_table_layout(self):
        adapter = HtmlScrapeAdapter(
            source_id="dpiit-scraper",
            source_name="DPIIT (Govt of India)",
            source_priority=0,
            url="https://www.dpiit.gov.in/whats-new",
            base_url="https://www.dpiit.gov.in",
            layout=DPIIT_LAYOUT,
            retry_options=NO_RETRY,
        )
        ctx = _ctx(httpx.Response(200, text=DPIIT_TABLE_PAGE))
        items = await adapter.fetch(ctx)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].link, "https://www.dpiit.gov.in/notification/fdi-2026.pdf")
        self.assertEqual(items[0].title, "Press Note 1 (2026): FDI policy review")


if __name__ == "__main__":
    unittest.main()
