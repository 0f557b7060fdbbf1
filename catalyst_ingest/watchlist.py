"""Watchlist resolution and the BSE ↔ NSE mapping store.

Company-targeted adapters need two things from the outside world: the
set of monitored NSE symbols (watchlist ∪ holdings) and a bidirectional
NSE-symbol ↔ BSE-scrip-code mapping.  ``WatchlistResolver`` is that
interface; ``SqliteMappingStore`` is a SQLite-backed implementation
using WAL mode + NORMAL synchronous.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS bse_nse_mapping (
  bse_scrip_code TEXT PRIMARY KEY,
  nse_symbol TEXT NOT NULL,
  company_name TEXT NOT NULL,
  isin TEXT,
  source TEXT NOT NULL DEFAULT 'manual',
  last_verified_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_mapping_nse ON bse_nse_mapping(nse_symbol);
"""


@dataclass(frozen=True)
class ScripMapping:
    bse_scrip_code: str
    nse_symbol: str
    company_name: str
    isin: str | None = None
    source: str = "manual"  # manual | api | scrape


# Large caps most portfolios hold; seeds an empty mapping table so the
# watchlist source has coverage before any manual import.
COMMON_MAPPINGS: tuple[ScripMapping, ...] = tuple(
    ScripMapping(code, symbol, name, source="api")
    for code, symbol, name in (
        ("500325", "RELIANCE", "Reliance Industries Ltd"),
        ("500180", "HDFCBANK", "HDFC Bank Ltd"),
        ("532540", "TCS", "Tata Consultancy Services Ltd"),
        ("532174", "ICICIBANK", "ICICI Bank Ltd"),
        ("500209", "INFY", "Infosys Ltd"),
        ("500247", "KOTAKBANK", "Kotak Mahindra Bank Ltd"),
        ("500510", "LT", "Larsen & Toubro Ltd"),
        ("500875", "ITC", "ITC Ltd"),
        ("532215", "AXISBANK", "Axis Bank Ltd"),
        ("500112", "SBIN", "State Bank of India"),
        ("500034", "BAJFINANCE", "Bajaj Finance Ltd"),
        ("532978", "BAJAJFINSV", "Bajaj Finserv Ltd"),
        ("532977", "BAJAJ-AUTO", "Bajaj Auto Ltd"),
        ("532281", "HCLTECH", "HCL Technologies Ltd"),
        ("500696", "HINDUNILVR", "Hindustan Unilever Ltd"),
        ("532454", "BHARTIARTL", "Bharti Airtel Ltd"),
        ("540719", "SBILIFE", "SBI Life Insurance Company Ltd"),
        ("540777", "HDFCLIFE", "HDFC Life Insurance Company Ltd"),
        ("533278", "COALINDIA", "Coal India Ltd"),
        ("500520", "M&M", "Mahindra & Mahindra Ltd"),
        ("500820", "ASIANPAINT", "Asian Paints Ltd"),
        ("532500", "MARUTI", "Maruti Suzuki India Ltd"),
        ("500114", "TITAN", "Titan Company Ltd"),
        ("532898", "POWERGRID", "Power Grid Corporation of India Ltd"),
        ("532555", "NTPC", "NTPC Ltd"),
        ("500312", "ONGC", "Oil & Natural Gas Corporation Ltd"),
        ("532187", "INDUSINDBK", "IndusInd Bank Ltd"),
        ("500124", "DRREDDY", "Dr. Reddy's Laboratories Ltd"),
        ("524715", "SUNPHARMA", "Sun Pharmaceutical Industries Ltd"),
        ("500087", "CIPLA", "Cipla Ltd"),
        ("532488", "DIVISLAB", "Divi's Laboratories Ltd"),
        ("508869", "APOLLOHOSP", "Apollo Hospitals Enterprise Ltd"),
        ("500440", "HINDALCO", "Hindalco Industries Ltd"),
        ("500470", "TATASTEEL", "Tata Steel Ltd"),
        ("500228", "JSWSTEEL", "JSW Steel Ltd"),
        ("532538", "ULTRACEMCO", "UltraTech Cement Ltd"),
        ("500570", "TATAMOTORS", "Tata Motors Ltd"),
        ("500790", "NESTLEIND", "Nestle India Ltd"),
        ("507685", "WIPRO", "Wipro Ltd"),
        ("532921", "ADANIPORTS", "Adani Ports and Special Economic Zone Ltd"),
    )
)


class WatchlistResolver(Protocol):
    def monitored_symbols(self) -> list[str]: ...

    def bse_code_for(self, nse_symbol: str) -> str | None: ...

    def symbol_for(self, bse_scrip_code: str) -> str | None: ...

    def company_name_for(self, bse_scrip_code: str) -> str | None: ...

    def upsert_mapping(self, mapping: ScripMapping) -> None: ...


class SqliteMappingStore:
    """``WatchlistResolver`` backed by SQLite plus static symbol lists."""

    def __init__(
        self,
        path: str,
        *,
        watchlist: Iterable[str] = (),
        holdings: Iterable[str] = (),
    ) -> None:
        self.conn = sqlite3.connect(path, isolation_level=None)
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA synchronous=NORMAL;")
        self.conn.execute("PRAGMA busy_timeout=5000;")
        self.conn.executescript(SCHEMA)
        self.watchlist = [s.strip().upper() for s in watchlist if s.strip()]
        self.holdings = [s.strip().upper() for s in holdings if s.strip()]

    # ── Monitored symbols ───────────────────────────────────────

    def monitored_symbols(self) -> list[str]:
        """Watchlist ∪ holdings, deduplicated, watchlist order first."""
        symbols = list(dict.fromkeys(self.watchlist + self.holdings))
        logger.debug(
            "Monitoring %d symbols (%d watchlist + %d holdings)",
            len(symbols), len(self.watchlist), len(self.holdings),
        )
        return symbols

    # ── Lookups ─────────────────────────────────────────────────

    def bse_code_for(self, nse_symbol: str) -> str | None:
        row = self.conn.execute(
            "SELECT bse_scrip_code FROM bse_nse_mapping WHERE nse_symbol=? LIMIT 1",
            (nse_symbol.strip().upper(),),
        ).fetchone()
        return row[0] if row else None

    def symbol_for(self, bse_scrip_code: str) -> str | None:
        row = self.conn.execute(
            "SELECT nse_symbol FROM bse_nse_mapping WHERE bse_scrip_code=?",
            (bse_scrip_code.strip(),),
        ).fetchone()
        return row[0] if row else None

    def company_name_for(self, bse_scrip_code: str) -> str | None:
        row = self.conn.execute(
            "SELECT company_name FROM bse_nse_mapping WHERE bse_scrip_code=?",
            (bse_scrip_code.strip(),),
        ).fetchone()
        return row[0] if row else None

    # ── Writes ──────────────────────────────────────────────────

    def upsert_mapping(self, mapping: ScripMapping) -> None:
        self.conn.execute(
            "INSERT INTO bse_nse_mapping(bse_scrip_code, nse_symbol, company_name, isin, source, last_verified_at) "
            "VALUES(?,?,?,?,?,?) "
            "ON CONFLICT(bse_scrip_code) DO UPDATE SET nse_symbol=excluded.nse_symbol, "
            "company_name=excluded.company_name, isin=excluded.isin, source=excluded.source, "
            "last_verified_at=excluded.last_verified_at",
            (
                mapping.bse_scrip_code.strip(),
                mapping.nse_symbol.strip().upper(),
                mapping.company_name,
                mapping.isin,
                mapping.source,
                time.time(),
            ),
        )
        logger.info("Added mapping: %s -> %s", mapping.bse_scrip_code, mapping.nse_symbol)

    def bulk_import(self, mappings: Iterable[ScripMapping]) -> int:
        """Upsert all *mappings* in one transaction; returns the count."""
        count = 0
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            for m in mappings:
                self.upsert_mapping(m)
                count += 1
            self.conn.execute("COMMIT")
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        return count

    def mapping_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM bse_nse_mapping").fetchone()[0]

    def load_common_mappings(self) -> int:
        """Upsert ``COMMON_MAPPINGS``; returns the number loaded."""
        count = self.bulk_import(COMMON_MAPPINGS)
        logger.info("Loaded %d common BSE-NSE mappings", count)
        return count

    def close(self) -> None:
        self.conn.close()
