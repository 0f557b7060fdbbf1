"""Market validator – corroborate a catalyst against live price/volume.

Commodities are validated on GLOBAL futures (``HG=F``, ``CL=F``)
because domestic commodity quotes lag.  Equities use their own listing;
an ``.NS`` quote that comes back empty is retried on ``.BO`` and vice
versa.

"No ticker" and "no quote" are normal outcomes for obscure assets:
``validate_with_market`` returns ``None`` and never raises, so a
missing quote cannot abort the surrounding pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import yfinance as yf  # type: ignore[import-untyped]

from .common_types import AssetType, CatalystAsset, MarketConfirmation, Quote, Sentiment

logger = logging.getLogger(__name__)

GLOBAL_VALIDATION_TICKERS: dict[str, str] = {
    "Copper": "HG=F",
    "Crude Oil": "CL=F",
    "Natural Gas": "NG=F",
    "Gold": "GC=F",
    "Silver": "SI=F",
    "Uranium": "URA",  # Global X Uranium ETF
    "Coffee": "KC=F",
    "Wheat": "ZW=F",
    "Lithium": "LIT",  # Global X Lithium ETF
}

_ALT_SUFFIX = {".NS": ".BO", ".BO": ".NS"}

BASE_VOLUME_SPIKE_RATIO = 1.5
# Volume accumulates through the day; the spike bar scales with the
# fraction of the 16h window elapsed, floored at 10 %.
_SESSION_HOURS = 16.0
_MIN_SESSION_FRACTION = 0.1


# ── Providers ───────────────────────────────────────────────────


class QuoteProvider(Protocol):
    async def get_quote(self, ticker: str) -> Quote | None: ...


@dataclass(frozen=True)
class SymbolMatch:
    symbol: str
    name: str
    exchange: str = ""


class SymbolSearch(Protocol):
    async def search(self, query: str) -> list[SymbolMatch]: ...


class YFinanceQuoteProvider:
    """Quotes from Yahoo Finance via yfinance (blocking; run in a worker thread)."""

    async def get_quote(self, ticker: str) -> Quote | None:
        return await asyncio.to_thread(self._quote_sync, ticker)

    @staticmethod
    def _quote_sync(ticker: str) -> Quote | None:
        try:
            info = yf.Ticker(ticker).info or {}
        except Exception as exc:
            logger.warning("yfinance quote failed for %s: %s", ticker, exc)
            return None
        price = float(info.get("regularMarketPrice", 0) or info.get("currentPrice", 0) or 0)
        if not price:
            return None
        avg10 = info.get("averageDailyVolume10Day")
        return Quote(
            ticker=ticker,
            price=price,
            change_percent=float(info.get("regularMarketChangePercent", 0) or 0),
            volume=float(info.get("regularMarketVolume", 0) or info.get("volume", 0) or 0),
            average_volume_10d=float(avg10) if avg10 else None,
        )


class YFinanceSymbolSearch:
    async def search(self, query: str) -> list[SymbolMatch]:
        return await asyncio.to_thread(self._search_sync, query)

    @staticmethod
    def _search_sync(query: str) -> list[SymbolMatch]:
        try:
            quotes = yf.Search(query, max_results=5).quotes or []
        except Exception as exc:
            logger.warning("yfinance symbol search failed for %r: %s", query, exc)
            return []
        return [
            SymbolMatch(
                symbol=str(q.get("symbol", "")),
                name=str(q.get("longname") or q.get("shortname") or ""),
                exchange=str(q.get("exchange", "")),
            )
            for q in quotes
            if q.get("symbol")
        ]


# ── Validator ───────────────────────────────────────────────────


def get_validation_ticker(asset: CatalystAsset) -> str | None:
    """Override ticker → global futures keyword lookup → own EQUITY/ETF ticker."""
    if asset.global_validation_ticker:
        return asset.global_validation_ticker
    global_ticker = GLOBAL_VALIDATION_TICKERS.get(asset.keyword)
    if global_ticker:
        return global_ticker
    if asset.ticker and asset.asset_type in (AssetType.EQUITY, AssetType.ETF):
        return asset.ticker
    return None


def alternate_tickers(ticker: str) -> list[str]:
    """``[ticker]`` plus the other Indian exchange listing, if any."""
    for suffix, alt in _ALT_SUFFIX.items():
        if ticker.endswith(suffix):
            return [ticker, ticker[: -len(suffix)] + alt]
    return [ticker]


def volume_spike_threshold(hour_utc: int) -> float:
    fraction = max(_MIN_SESSION_FRACTION, min(1.0, hour_utc / _SESSION_HOURS))
    return BASE_VOLUME_SPIKE_RATIO * fraction


def price_confirms(sentiment: Sentiment, change_percent: float) -> bool:
    if sentiment is Sentiment.BULLISH:
        return change_percent > 0
    if sentiment is Sentiment.BEARISH:
        return change_percent < 0
    return abs(change_percent) < 1  # NEUTRAL: flat is fine


def should_act_on_signal(confirmation: MarketConfirmation) -> bool:
    """Any one strongly confirming indicator is enough."""
    if confirmation.price_confirms_sentiment and confirmation.volume_spike:
        return True
    if confirmation.price_confirms_sentiment and abs(confirmation.price_change_percent) > 1:
        return True
    # Volume waking up before price catches up.
    if confirmation.volume_spike and confirmation.volume_ratio > 2:
        return True
    return False


def format_market_summary(confirmation: MarketConfirmation) -> str:
    direction = "📈" if confirmation.price_change_percent >= 0 else "📉"
    spike = " 🔥" if confirmation.volume_spike else ""
    return (
        f"{confirmation.ticker}: {direction} {confirmation.price_change_percent:.2f}%, "
        f"Vol: {confirmation.volume_ratio:.1f}x avg{spike}"
    )


class MarketValidator:
    def __init__(
        self,
        quote_provider: QuoteProvider | None = None,
        symbol_search: SymbolSearch | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.quote_provider = quote_provider or YFinanceQuoteProvider()
        self.symbol_search = symbol_search
        self._clock = clock

    get_validation_ticker = staticmethod(get_validation_ticker)
    should_act_on_signal = staticmethod(should_act_on_signal)

    async def _first_quote(self, tickers: list[str]) -> Quote | None:
        for ticker in tickers:
            try:
                quote = await self.quote_provider.get_quote(ticker)
            except Exception as exc:
                logger.debug("Quote lookup failed for %s: %s", ticker, exc)
                continue
            if quote is not None and quote.price:
                return quote
        return None

    async def validate_with_market(
        self,
        asset: CatalystAsset,
        expected_sentiment: Sentiment,
    ) -> MarketConfirmation | None:
        ticker = get_validation_ticker(asset)
        if not ticker:
            logger.warning("No validation ticker for %r", asset.keyword)
            return None

        candidates = alternate_tickers(ticker)
        quote = await self._first_quote(candidates)
        if quote is None:
            logger.warning(
                "No quote data for %r (also tried: %s)",
                ticker, ", ".join(candidates[1:]) or "no alternatives",
            )
            await self.suggest_ticker_correction(ticker, asset.keyword)
            return None

        return self.confirm(quote, expected_sentiment)

    def confirm(self, quote: Quote, expected_sentiment: Sentiment) -> MarketConfirmation:
        """Price/volume corroboration for an already fetched quote."""
        current_volume = quote.volume
        average_volume = quote.average_volume_10d or current_volume
        volume_ratio = current_volume / average_volume if average_volume > 0 else 1.0
        hour_utc = self._clock().astimezone(timezone.utc).hour
        return MarketConfirmation(
            ticker=quote.ticker,
            current_price=quote.price,
            price_change_percent=quote.change_percent,
            current_volume=current_volume,
            average_volume=average_volume,
            volume_ratio=volume_ratio,
            volume_spike=volume_ratio > volume_spike_threshold(hour_utc),
            is_trending=quote.change_percent > 0,
            price_confirms_sentiment=price_confirms(expected_sentiment, quote.change_percent),
        )

    async def validate_multiple_tickers(
        self,
        tickers: list[str],
        expected_sentiment: Sentiment,
    ) -> dict[str, MarketConfirmation]:
        """Validate each ticker as an equity; keyed by the requested ticker."""
        results: dict[str, MarketConfirmation] = {}
        for ticker in tickers:
            asset = CatalystAsset(id="", keyword="", ticker=ticker, asset_type=AssetType.EQUITY)
            confirmation = await self.validate_with_market(asset, expected_sentiment)
            if confirmation is not None:
                results[ticker] = confirmation
        return results

    async def suggest_ticker_correction(self, failed_ticker: str, keyword: str) -> str | None:
        """Advisory only: log (and return) a likely replacement symbol."""
        if self.symbol_search is None:
            return None
        query = keyword.strip()
        if not query:
            base = failed_ticker.rsplit(".", 1)[0] if failed_ticker.endswith((".NS", ".BO")) else failed_ticker
            if len(base) <= 2:
                logger.warning("Cannot suggest correction: no company name or usable ticker base")
                return None
            query = base
        try:
            matches = await self.symbol_search.search(query)
        except Exception as exc:
            logger.warning("Symbol search failed: %s", exc)
            return None
        matches = [m for m in matches if m.symbol and m.symbol != failed_ticker]
        if not matches:
            logger.warning("No alternatives found for %r", query)
            return None
        best = matches[0]
        logger.warning("Suggestion: %r → %r (%s)", failed_ticker, best.symbol, best.name)
        return best.symbol
