"""Process configuration for the catalyst ingestion layer.

Covers the ambient knobs only (retry budget, breaker thresholds, HTTP
identity, mapping store path).  Per-source cadence, lane and priority
live in the static catalog (``catalyst_ingest.sources.catalog``) and are
not environment driven.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .circuit_breaker import CircuitBreaker
from .fetcher import DEFAULT_USER_AGENT, RetryOptions

DEFAULT_MAPPING_DB = os.path.join("~", ".cache", "catalyst_ingest", "mappings.db")


def _env_float(key: str, default: float) -> float:
    """Read an env var as float, returning *default* on parse failure."""
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_int(key: str, default: int) -> int:
    """Read an env var as int, returning *default* on parse failure."""
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_csv(key: str) -> tuple[str, ...]:
    raw = os.getenv(key, "")
    return tuple(s.strip().upper() for s in raw.split(",") if s.strip())


@dataclass(frozen=True)
class Config:
    """Central configuration – one instance per process.

    Environment variables are read at **instantiation** time (not module
    import time) so callers can set them programmatically before
    creating a ``Config``.
    """

    # ── HTTP retry budget ───────────────────────────────────────
    http_timeout_s: float = field(default_factory=lambda: _env_float("CATALYST_HTTP_TIMEOUT_S", 15.0))
    max_retries: int = field(default_factory=lambda: _env_int("CATALYST_MAX_RETRIES", 3))
    initial_delay_s: float = field(default_factory=lambda: _env_float("CATALYST_INITIAL_DELAY_S", 1.0))
    max_delay_s: float = field(default_factory=lambda: _env_float("CATALYST_MAX_DELAY_S", 10.0))
    backoff_multiplier: float = field(default_factory=lambda: _env_float("CATALYST_BACKOFF_MULTIPLIER", 2.0))

    # ── Circuit breaker ─────────────────────────────────────────
    breaker_failure_threshold: int = field(default_factory=lambda: _env_int("CATALYST_BREAKER_THRESHOLD", 3))
    breaker_reset_timeout_s: float = field(default_factory=lambda: _env_float("CATALYST_BREAKER_RESET_S", 300.0))

    # ── HTTP identity ───────────────────────────────────────────
    user_agent: str = field(default_factory=lambda: os.getenv("CATALYST_USER_AGENT", DEFAULT_USER_AGENT))

    # ── Watchlist / BSE-NSE mapping ─────────────────────────────
    mapping_db_path: str = field(
        default_factory=lambda: os.path.expanduser(os.getenv("CATALYST_MAPPING_DB", DEFAULT_MAPPING_DB))
    )
    watchlist_symbols: tuple[str, ...] = field(default_factory=lambda: _env_csv("CATALYST_WATCHLIST"))
    holding_symbols: tuple[str, ...] = field(default_factory=lambda: _env_csv("CATALYST_HOLDINGS"))
    enable_watchlist_source: bool = field(default_factory=lambda: os.getenv("ENABLE_BSE_WATCHLIST", "0") == "1")

    # ── Runner ──────────────────────────────────────────────────
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    seen_links_max: int = field(default_factory=lambda: _env_int("CATALYST_SEEN_LINKS_MAX", 5000))

    # ── Derived helpers ─────────────────────────────────────────

    def retry_options(self) -> RetryOptions:
        """Base retry budget; the source catalog derives per-source options from it."""
        return RetryOptions(
            max_retries=max(0, self.max_retries),
            initial_delay=self.initial_delay_s,
            max_delay=self.max_delay_s,
            backoff_multiplier=self.backoff_multiplier,
            timeout=self.http_timeout_s,
        )

    def make_breaker(self) -> CircuitBreaker:
        return CircuitBreaker(
            failure_threshold=max(1, self.breaker_failure_threshold),
            reset_timeout_s=self.breaker_reset_timeout_s,
        )
