"""Source registry: catalog, circuit-breaker gating and dispatch.

``fetch_from_source`` never raises: a breaker rejection, a terminal
fetch error or an adapter bug all come back as a ``SourceFetchResult``
with ``success=False``.  ``fetch_from_sources`` runs every requested
source concurrently and always returns one result per source, in input
order, so one failing source can neither block nor drop its siblings.

The breaker state and the fetcher (with its feed cache) are owned by the
registry instance; tests build isolated registries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone

from .circuit_breaker import CircuitBreaker
from .common_types import SourceConfig, SourceFetchResult, SourceLane, SourceStats
from .errors import ConfigError
from .fetcher import RetryingFetcher
from .sources.base import FetchContext
from .watchlist import WatchlistResolver

logger = logging.getLogger(__name__)

CIRCUIT_OPEN_ERROR = "Circuit breaker is OPEN"


class SourceRegistry:
    def __init__(
        self,
        sources: Iterable[SourceConfig],
        *,
        fetcher: RetryingFetcher | None = None,
        breaker: CircuitBreaker | None = None,
        resolver: WatchlistResolver | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sources: dict[str, SourceConfig] = {}
        for src in sources:
            if src.id in self._sources:
                raise ConfigError(f"Duplicate source id: {src.id}")
            if src.poll_interval_minutes <= 0:
                raise ConfigError(f"{src.id}: poll_interval_minutes must be positive")
            if not 0 <= src.priority <= 3:
                raise ConfigError(f"{src.id}: priority must be 0-3, got {src.priority}")
            self._sources[src.id] = src
        self.fetcher = fetcher or RetryingFetcher()
        self.breaker = breaker or CircuitBreaker()
        self.resolver = resolver
        self._clock = clock
        self._stats: dict[str, SourceStats] = {}

    # ── Catalog ─────────────────────────────────────────────────

    @property
    def sources(self) -> list[SourceConfig]:
        return list(self._sources.values())

    def get_enabled_sources(self) -> list[SourceConfig]:
        return [s for s in self._sources.values() if s.enabled]

    def get_sources_by_lane(self, lane: SourceLane) -> list[SourceConfig]:
        return [s for s in self._sources.values() if s.enabled and s.lane is lane]

    def get_source_by_id(self, source_id: str) -> SourceConfig | None:
        return self._sources.get(source_id)

    def set_enabled(self, source_id: str, enabled: bool) -> None:
        src = self._sources.get(source_id)
        if src is None:
            raise KeyError(source_id)
        src.enabled = enabled
        logger.info("%s %s", source_id, "enabled" if enabled else "disabled")

    def get_sources_for_interval(self, current_minute: int) -> list[SourceConfig]:
        """Enabled sources whose poll interval divides *current_minute* (0-59)."""
        return [
            s for s in self.get_enabled_sources()
            if current_minute % s.poll_interval_minutes == 0
        ]

    # ── Dispatch ────────────────────────────────────────────────

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    async def fetch_from_source(self, source: SourceConfig) -> SourceFetchResult:
        """Fetch one source behind its circuit breaker.  Never raises."""
        if not self.breaker.is_available(source.id):
            logger.warning("%s: %s, skipping", source.name, CIRCUIT_OPEN_ERROR)
            return SourceFetchResult(
                source_id=source.id,
                source=source.name,
                success=False,
                items_found=0,
                new_items=[],
                fetched_at=self._now(),
                error=CIRCUIT_OPEN_ERROR,
            )

        ctx = FetchContext(fetcher=self.fetcher, now=self._now(), resolver=self.resolver)
        t0 = time.perf_counter()
        try:
            items = await source.fetch(ctx)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - t0) * 1000
            self.breaker.record_failure(source.id)
            error = str(exc) or type(exc).__name__
            logger.error("%s: failed after %.0fms: %s", source.name, elapsed_ms, error)
            self._update_stats(source.id, success=False, items=0, elapsed_ms=elapsed_ms, error=error)
            return SourceFetchResult(
                source_id=source.id,
                source=source.name,
                success=False,
                items_found=0,
                new_items=[],
                fetched_at=self._now(),
                error=error,
                elapsed_ms=elapsed_ms,
                parse_errors=list(ctx.parse_errors),
            )

        elapsed_ms = (time.perf_counter() - t0) * 1000
        self.breaker.record_success(source.id)
        logger.info("%s: fetched %d items in %.0fms", source.name, len(items), elapsed_ms)
        self._update_stats(source.id, success=True, items=len(items), elapsed_ms=elapsed_ms)
        return SourceFetchResult(
            source_id=source.id,
            source=source.name,
            success=True,
            items_found=len(items),
            new_items=list(items),
            fetched_at=self._now(),
            elapsed_ms=elapsed_ms,
            parse_errors=list(ctx.parse_errors),
        )

    async def fetch_from_sources(self, sources: Iterable[SourceConfig]) -> list[SourceFetchResult]:
        """Fetch all *sources* concurrently; one result per source, input order."""
        return list(await asyncio.gather(*(self.fetch_from_source(s) for s in sources)))

    # ── Statistics ──────────────────────────────────────────────

    def _update_stats(
        self,
        source_id: str,
        *,
        success: bool,
        items: int,
        elapsed_ms: float,
        error: str | None = None,
    ) -> None:
        st = self._stats.get(source_id)
        if st is None:
            st = self._stats[source_id] = SourceStats(source_id=source_id)
        prev_total = st.total_fetches
        st.total_fetches += 1
        if success:
            st.successful_fetches += 1
            st.total_items_fetched += items
        else:
            st.failed_fetches += 1
            st.last_error = error
        st.last_fetch_at = self._now()
        # Running mean over attempted fetches (breaker skips excluded).
        avg = st.average_fetch_time_ms or 0.0
        st.average_fetch_time_ms = (avg * prev_total + elapsed_ms) / st.total_fetches

    def get_stats(self, source_id: str) -> SourceStats | None:
        st = self._stats.get(source_id)
        return replace(st) if st is not None else None

    def stats(self) -> dict[str, SourceStats]:
        return {sid: replace(st) for sid, st in self._stats.items()}

    async def aclose(self) -> None:
        await self.fetcher.aclose()
