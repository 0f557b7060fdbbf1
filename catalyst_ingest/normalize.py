"""Normalisation helpers shared by every source adapter.

  - ``parse_pub_date``  – tolerant date parsing (RFC-822 feed dates,
    "05-Jan-2026" page dates, BSE ISO timestamps)
  - ``apply_window``    – recency filter + newest-first cap
  - ``dedupe_by_link``  – merge feeds, first-seen order preserved
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone, tzinfo

from dateutil import parser as dtparser

from .common_types import NewsItem

logger = logging.getLogger(__name__)

# Shortest valid format: "YYYYMMDD" = 8 chars.  Shorter strings like
# "5" or "12" are ambiguously parsed by dateutil (e.g. "5" → the 5th of
# the current month).
_MIN_DATE_LEN = 8


def parse_pub_date(s: str | None, *, default_tz: tzinfo = timezone.utc) -> datetime | None:
    """Parse a date/time string to an aware UTC ``datetime``.

    Returns ``None`` for empty, too-short or unparseable strings so the
    caller decides on a fallback.  Naive values are interpreted in
    *default_tz* (UTC unless the source publishes local time).
    """
    if not s:
        return None
    s_stripped = s.strip()
    if len(s_stripped) < _MIN_DATE_LEN:
        logger.debug("Date string too short (%d chars): %r", len(s_stripped), s_stripped)
        return None
    try:
        dt = dtparser.parse(s_stripped, dayfirst=False)
    except (ValueError, OverflowError):
        logger.warning("Unparseable date %r", s_stripped[:80])
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz)
    return dt.astimezone(timezone.utc)


def absolute_url(href: str, base: str) -> str:
    """Resolve a scraped href against the site *base* (no trailing slash)."""
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return f"https:{href}"
    if not href.startswith("/"):
        href = "/" + href
    return f"{base.rstrip('/')}{href}"


def apply_window(
    items: Iterable[NewsItem],
    *,
    now: datetime,
    hours_ago: float,
    max_results: int,
) -> list[NewsItem]:
    """Drop items older than *hours_ago*, keep the *max_results* newest."""
    cutoff = now - timedelta(hours=hours_ago)
    recent = [it for it in items if it.pub_date >= cutoff]
    # Stable sort: equal timestamps keep feed order.
    recent.sort(key=lambda it: it.pub_date, reverse=True)
    return recent[: max(0, max_results)]


def dedupe_by_link(items: Iterable[NewsItem]) -> list[NewsItem]:
    """Drop repeated links, keeping the first occurrence in input order."""
    seen: set[str] = set()
    out: list[NewsItem] = []
    for it in items:
        if it.link in seen:
            continue
        seen.add(it.link)
        out.append(it)
    return out
