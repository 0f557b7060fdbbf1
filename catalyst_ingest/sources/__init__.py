"""Source adapters: one class per wire format, one instance per source."""

from .base import FetchContext, SourceAdapter
from .bse import AnnouncementSummary, BseAnnouncementsAdapter, CompanyAnnouncements, WatchlistAnnouncementsAdapter
from .catalog import build_default_sources
from .rss import FeedSpec, GoogleNewsSearchAdapter, RssFeedAdapter
from .scrape import HtmlScrapeAdapter, ScrapeLayout

__all__ = [
    "AnnouncementSummary",
    "BseAnnouncementsAdapter",
    "CompanyAnnouncements",
    "FeedSpec",
    "FetchContext",
    "GoogleNewsSearchAdapter",
    "HtmlScrapeAdapter",
    "RssFeedAdapter",
    "ScrapeLayout",
    "SourceAdapter",
    "WatchlistAnnouncementsAdapter",
    "build_default_sources",
]
