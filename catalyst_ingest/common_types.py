"""Unified internal schema shared across sources, registry and validator.

Every adapter (PIB, RBI, BSE, DIPAM, …) normalises its raw payload into
a ``NewsItem`` before it leaves the adapter.  ``SourceFetchResult`` is
the record the registry returns for every source, successful or not.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sources.base import SourceAdapter


class SourceType(str, Enum):
    RSS = "RSS"
    API = "API"
    SCRAPE = "SCRAPE"
    SOCIAL = "SOCIAL"


class SourceLane(str, Enum):
    """Polling-frequency tier."""

    FAST = "FAST"
    OFFICIAL = "OFFICIAL"
    SOCIAL = "SOCIAL"
    MEDIA = "MEDIA"
    AGGREGATOR = "AGGREGATOR"


# Nominal lane cadence in minutes.  Individual sources may poll slower.
LANE_INTERVALS: dict[SourceLane, int] = {
    SourceLane.FAST: 1,
    SourceLane.OFFICIAL: 15,
    SourceLane.SOCIAL: 5,
    SourceLane.MEDIA: 30,
    SourceLane.AGGREGATOR: 60,
}

# Source priority: trust level used downstream to weight confidence.
PRIORITY_OFFICIAL = 0
PRIORITY_MEDIA = 1
PRIORITY_SOCIAL = 2
PRIORITY_AGGREGATOR = 3


class Sentiment(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class AssetType(str, Enum):
    COMMODITY = "COMMODITY"
    EQUITY = "EQUITY"
    ETF = "ETF"
    CURRENCY = "CURRENCY"
    GLOBAL = "GLOBAL"


# ── News ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NewsItem:
    """Provider-agnostic news record.  Immutable once produced."""

    title: str
    link: str  # dedup key, unique per event
    pub_date: datetime  # timezone-aware (UTC)
    source: str  # human-readable publisher label
    source_id: str
    source_priority: int  # 0=official … 3=aggregator
    symbol: str | None = None  # NSE symbol for company-targeted items

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "pub_date": self.pub_date.isoformat(),
            "source": self.source,
            "source_id": self.source_id,
            "source_priority": self.source_priority,
            "symbol": self.symbol,
        }


@dataclass
class SourceConfig:
    """Static configuration for one news source.

    Only ``enabled`` changes at runtime (via ``SourceRegistry.set_enabled``).
    """

    id: str
    name: str
    type: SourceType
    lane: SourceLane
    priority: int
    poll_interval_minutes: int
    adapter: SourceAdapter = field(repr=False)
    enabled: bool = True
    description: str = ""
    rate_limit_per_hour: int | None = None

    async def fetch(self, ctx: Any) -> list[NewsItem]:
        return await self.adapter.fetch(ctx)


@dataclass
class SourceFetchResult:
    """Outcome of one ``fetch_from_source`` call.  Never an exception."""

    source_id: str
    source: str  # human-readable name
    success: bool
    items_found: int
    new_items: list[NewsItem]
    fetched_at: datetime
    error: str | None = None
    elapsed_ms: float = 0.0
    # Parse misses the adapter swallowed; empty when parsing was clean.
    parse_errors: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """Fetched fine but the payload could not be (fully) parsed."""
        return self.success and bool(self.parse_errors)


@dataclass
class SourceStats:
    """Rolling fetch statistics for one source."""

    source_id: str
    total_fetches: int = 0
    successful_fetches: int = 0
    failed_fetches: int = 0
    total_items_fetched: int = 0
    last_fetch_at: datetime | None = None
    last_error: str | None = None
    average_fetch_time_ms: float | None = None


# ── Market validation ───────────────────────────────────────────


@dataclass
class CatalystAsset:
    id: str
    keyword: str
    ticker: str | None  # None for global keywords like "OPEC"
    asset_type: AssetType
    related_tickers: list[str] = field(default_factory=list)
    global_validation_ticker: str | None = None  # e.g. "HG=F" for Copper
    notes: str | None = None
    enabled: bool = True


@dataclass(frozen=True)
class Quote:
    """Latest quote snapshot from a ``QuoteProvider``."""

    ticker: str
    price: float
    change_percent: float
    volume: float
    average_volume_10d: float | None = None


@dataclass(frozen=True)
class MarketConfirmation:
    ticker: str
    current_price: float
    price_change_percent: float
    current_volume: float
    average_volume: float
    volume_ratio: float
    volume_spike: bool
    is_trending: bool
    price_confirms_sentiment: bool
