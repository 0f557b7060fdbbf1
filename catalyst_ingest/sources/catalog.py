"""Default source catalog.

Sources by lane:
  - FAST        exchange announcements and PSU/trade-policy pages
  - OFFICIAL    government press releases and RBI notices
  - MEDIA       verified financial media
  - AGGREGATOR  catch-all aggregator (off by default: overlaps MEDIA)
"""

from __future__ import annotations

from dataclasses import replace

from ..common_types import (
    PRIORITY_AGGREGATOR,
    PRIORITY_MEDIA,
    PRIORITY_OFFICIAL,
    SourceConfig,
    SourceLane,
    SourceType,
)
from ..fetcher import DEFAULT_RETRY_OPTIONS, RetryOptions
from .base import slow_endpoint_options
from .bse import BseAnnouncementsAdapter, WatchlistAnnouncementsAdapter
from .rss import FeedSpec, RssFeedAdapter
from .scrape import DIPAM_LAYOUT, DPIIT_LAYOUT, HtmlScrapeAdapter

PIB_RSS_URL = "https://pib.gov.in/RssMain.aspx?ModId=6&Lang=1&Regid=3&reg=3"
RBI_PRESS_RELEASES_URL = "https://rbi.org.in/pressreleases_rss.xml"
RBI_NOTIFICATIONS_URL = "https://rbi.org.in/notifications_rss.xml"
DIPAM_WHATS_NEW_URL = "https://dipam.gov.in/whatsnewlist"
DPIIT_WHATS_NEW_URL = "https://www.dpiit.gov.in/whats-new"

MARKET_MEDIA_FEEDS = [
    FeedSpec("https://economictimes.indiatimes.com/markets/rssfeeds/1977021501.cms", "Economic Times"),
    FeedSpec("https://www.livemint.com/rss/markets", "Livemint"),
    FeedSpec("https://www.moneycontrol.com/rss/marketreports.xml", "MoneyControl"),
]
GOOGLE_NEWS_INDIA_BUSINESS_URL = (
    "https://news.google.com/rss/headlines/section/topic/BUSINESS?hl=en-IN&gl=IN&ceid=IN:en"
)

# Media feeds refresh often and are not worth waiting long for.
MEDIA_MAX_RETRIES = 2


def build_default_sources(
    *,
    include_watchlist: bool = False,
    retry_options: RetryOptions = DEFAULT_RETRY_OPTIONS,
) -> list[SourceConfig]:
    """Return a fresh catalog; each call builds new adapter instances.

    *retry_options* is the base budget (normally ``Config.retry_options()``).
    Scrapes and the exchange API get a doubled per-attempt timeout; media
    feeds retry at most ``MEDIA_MAX_RETRIES`` times.
    """
    slow = slow_endpoint_options(retry_options)
    media = replace(retry_options, max_retries=min(retry_options.max_retries, MEDIA_MAX_RETRIES))
    sources = [
        # ── FAST ────────────────────────────────────────────────
        SourceConfig(
            id="bse-api",
            name="BSE Corporate Announcements",
            type=SourceType.API,
            lane=SourceLane.FAST,
            priority=PRIORITY_OFFICIAL,
            poll_interval_minutes=5,
            adapter=BseAnnouncementsAdapter(max_results=50, hours_ago=4, retry_options=slow),
            description="Exchange corporate announcements: board meetings, results, orders.",
            rate_limit_per_hour=12,
        ),
        SourceConfig(
            id="dipam-scraper",
            name="DIPAM (PSU Disinvestment)",
            type=SourceType.SCRAPE,
            lane=SourceLane.FAST,
            priority=PRIORITY_OFFICIAL,
            poll_interval_minutes=30,
            adapter=HtmlScrapeAdapter(
                source_id="dipam-scraper",
                source_name="DIPAM (Govt of India)",
                source_priority=PRIORITY_OFFICIAL,
                url=DIPAM_WHATS_NEW_URL,
                base_url="https://dipam.gov.in",
                layout=DIPAM_LAYOUT,
                max_results=20,
                hours_ago=48,
                retry_options=slow,
            ),
            description="PSU strategic sales, disinvestment, government shareholding changes.",
        ),
        SourceConfig(
            id="dpiit-scraper",
            name="DPIIT (FDI & Trade Policy)",
            type=SourceType.SCRAPE,
            lane=SourceLane.FAST,
            priority=PRIORITY_OFFICIAL,
            poll_interval_minutes=30,
            adapter=HtmlScrapeAdapter(
                source_id="dpiit-scraper",
                source_name="DPIIT (Govt of India)",
                source_priority=PRIORITY_OFFICIAL,
                url=DPIIT_WHATS_NEW_URL,
                base_url="https://www.dpiit.gov.in",
                layout=DPIIT_LAYOUT,
                max_results=20,
                hours_ago=48,
                retry_options=slow,
            ),
            description="FDI policy, import restrictions, manufacturing policy.",
        ),
        # ── OFFICIAL ────────────────────────────────────────────
        SourceConfig(
            id="pib-rss",
            name="PIB (Press Information Bureau)",
            type=SourceType.RSS,
            lane=SourceLane.OFFICIAL,
            priority=PRIORITY_OFFICIAL,
            poll_interval_minutes=15,
            adapter=RssFeedAdapter(
                source_id="pib-rss",
                source_name="PIB (Govt of India)",
                source_priority=PRIORITY_OFFICIAL,
                feeds=[FeedSpec(PIB_RSS_URL, "PIB (Govt of India)")],
                max_results=20,
                hours_ago=24,
                retry_options=retry_options,
            ),
            description="Cabinet decisions, PLI schemes, policy announcements.",
        ),
        SourceConfig(
            id="rbi-rss",
            name="RBI (Reserve Bank of India)",
            type=SourceType.RSS,
            lane=SourceLane.OFFICIAL,
            priority=PRIORITY_OFFICIAL,
            poll_interval_minutes=15,
            adapter=RssFeedAdapter(
                source_id="rbi-rss",
                source_name="RBI",
                source_priority=PRIORITY_OFFICIAL,
                feeds=[
                    FeedSpec(RBI_PRESS_RELEASES_URL, "RBI Press Release"),
                    FeedSpec(RBI_NOTIFICATIONS_URL, "RBI Notification"),
                ],
                max_results=10,
                hours_ago=24,
                retry_options=retry_options,
            ),
            description="Repo rate changes, banking penalties, regulatory actions.",
        ),
        # ── MEDIA ───────────────────────────────────────────────
        SourceConfig(
            id="india-market-news",
            name="Indian Market News (ET, Mint, MoneyControl)",
            type=SourceType.RSS,
            lane=SourceLane.MEDIA,
            priority=PRIORITY_MEDIA,
            poll_interval_minutes=30,
            adapter=RssFeedAdapter(
                source_id="india-market-news",
                source_name="Indian Market News",
                source_priority=PRIORITY_MEDIA,
                feeds=MARKET_MEDIA_FEEDS,
                max_results=20,
                hours_ago=4,
                cache_ttl_s=300.0,
                retry_options=media,
            ),
        ),
        # ── AGGREGATOR ──────────────────────────────────────────
        SourceConfig(
            id="google-news-india",
            name="Google News India Business",
            type=SourceType.RSS,
            lane=SourceLane.AGGREGATOR,
            priority=PRIORITY_AGGREGATOR,
            poll_interval_minutes=60,
            enabled=False,
            adapter=RssFeedAdapter(
                source_id="google-news-india",
                source_name="Google News",
                source_priority=PRIORITY_AGGREGATOR,
                feeds=[FeedSpec(GOOGLE_NEWS_INDIA_BUSINESS_URL, "Google News")],
                max_results=20,
                hours_ago=4,
                cache_ttl_s=300.0,
                retry_options=media,
                split_publisher=True,
            ),
            description="Catch-all for smaller outlets; overlaps the media feeds.",
        ),
    ]
    if include_watchlist:
        sources.append(SourceConfig(
            id="bse-watchlist",
            name="BSE Watchlist Announcements",
            type=SourceType.API,
            lane=SourceLane.FAST,
            priority=PRIORITY_OFFICIAL,
            poll_interval_minutes=15,
            adapter=WatchlistAnnouncementsAdapter(BseAnnouncementsAdapter(retry_options=slow), hours_ago=24),
            description="Per-company announcements for watchlist and holdings.",
        ))
    return sources
