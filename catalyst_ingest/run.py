"""Entry point: ``python -m catalyst_ingest.run [--once]``

Standalone polling loop over the default source catalog.  Each tick
dispatches the sources that are due, drops items whose link was already
emitted, and sleeps until the next due time.

Environment variables (see ``catalyst_ingest.config``):
    LOG_LEVEL=INFO              (default: INFO)
    ENABLE_BSE_WATCHLIST=0      (default: off)
    CATALYST_WATCHLIST=TCS,INFY (watchlist symbols, csv)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from collections import OrderedDict

import httpx

from .common_types import NewsItem, SourceFetchResult
from .config import Config
from .fetcher import RetryingFetcher
from .registry import SourceRegistry
from .scheduler import DueTimeScheduler
from .sources import build_default_sources
from .watchlist import SqliteMappingStore

logger = logging.getLogger(__name__)

_MIN_SLEEP_S = 0.2


class SeenLinks:
    """Bounded insertion-ordered set of emitted links (oldest evicted first)."""

    def __init__(self, maxlen: int) -> None:
        self.maxlen = max(1, maxlen)
        self._links: OrderedDict[str, None] = OrderedDict()

    def add(self, link: str) -> bool:
        """Record *link*; ``False`` if it was already seen."""
        if link in self._links:
            return False
        self._links[link] = None
        while len(self._links) > self.maxlen:
            self._links.popitem(last=False)
        return True

    def __len__(self) -> int:
        return len(self._links)


def collect_new_items(results: list[SourceFetchResult], seen: SeenLinks) -> list[NewsItem]:
    """New items across *results*, in result order, deduplicated by link."""
    fresh: list[NewsItem] = []
    for res in results:
        if not res.success:
            logger.warning("%s: %s", res.source, res.error)
            continue
        if res.degraded:
            logger.warning("%s: degraded (%s)", res.source, "; ".join(res.parse_errors))
        fresh.extend(item for item in res.new_items if seen.add(item.link))
    return fresh


def build_registry(cfg: Config, *, client: httpx.AsyncClient | None = None) -> SourceRegistry:
    """Registry over the default catalog, with retry budget and identity from *cfg*."""
    retry_options = cfg.retry_options()
    fetcher = RetryingFetcher(client, user_agent=cfg.user_agent, default_options=retry_options)
    resolver = None
    if cfg.enable_watchlist_source:
        if cfg.mapping_db_path != ":memory:":
            os.makedirs(os.path.dirname(cfg.mapping_db_path) or ".", exist_ok=True)
        resolver = SqliteMappingStore(
            cfg.mapping_db_path,
            watchlist=cfg.watchlist_symbols,
            holdings=cfg.holding_symbols,
        )
        if resolver.mapping_count() == 0:
            resolver.load_common_mappings()
    return SourceRegistry(
        build_default_sources(include_watchlist=cfg.enable_watchlist_source, retry_options=retry_options),
        fetcher=fetcher,
        breaker=cfg.make_breaker(),
        resolver=resolver,
    )


def _emit(items: list[NewsItem]) -> None:
    for item in items:
        logger.info("[%s] %s  %s", item.source, item.title, item.link)


async def run_once(registry: SourceRegistry, seen: SeenLinks) -> list[NewsItem]:
    """Fetch every enabled source once."""
    results = await registry.fetch_from_sources(registry.get_enabled_sources())
    items = collect_new_items(results, seen)
    _emit(items)
    return items


async def run_forever(registry: SourceRegistry, seen: SeenLinks) -> None:
    scheduler = DueTimeScheduler(registry.sources, start=time.time())
    logger.info(
        "catalyst ingest started (%d sources, %d enabled).",
        len(scheduler), len(registry.get_enabled_sources()),
    )
    while True:
        due = scheduler.pop_due(time.time())
        if due:
            try:
                results = await registry.fetch_from_sources(due)
                items = collect_new_items(results, seen)
                logger.info("Tick: %d source(s), %d new item(s).", len(due), len(items))
                _emit(items)
            except Exception:
                logger.exception("Tick error, will retry next tick.")
        next_at = scheduler.next_due_at()
        if next_at is None:
            logger.info("No sources scheduled, stopping.")
            return
        await asyncio.sleep(max(_MIN_SLEEP_S, next_at - time.time()))


async def _main(cfg: Config, once: bool) -> None:
    registry = build_registry(cfg)
    seen = SeenLinks(cfg.seen_links_max)
    try:
        if once:
            items = await run_once(registry, seen)
            logger.info("Done: %d new item(s).", len(items))
        else:
            await run_forever(registry, seen)
    finally:
        await registry.aclose()
        if isinstance(registry.resolver, SqliteMappingStore):
            registry.resolver.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Poll Indian market catalyst sources.")
    parser.add_argument("--once", action="store_true", help="fetch every enabled source once and exit")
    args = parser.parse_args(argv)

    cfg = Config()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        asyncio.run(_main(cfg, args.once))
    except KeyboardInterrupt:
        logger.info("catalyst ingest stopped.")


if __name__ == "__main__":
    main()
