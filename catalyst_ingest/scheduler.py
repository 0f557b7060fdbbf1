"""Per-source due-time scheduler.

A min-heap of ``(due_at, seq, source_id)`` replaces the
"``minute % interval == 0``" check: a source's next slot is remembered
explicitly, so a coarse or paused tick loop runs an overdue source on
the next tick instead of silently skipping its slot.  Several missed
slots collapse into a single run.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Iterable

from .common_types import SourceConfig

logger = logging.getLogger(__name__)


class DueTimeScheduler:
    def __init__(self, sources: Iterable[SourceConfig] = (), *, start: float = 0.0) -> None:
        self._heap: list[tuple[float, int, str]] = []
        self._sources: dict[str, SourceConfig] = {}
        # Only the heap entry with the current seq is live for a source.
        self._live_seq: dict[str, int] = {}
        self._seq = itertools.count()
        for src in sources:
            self.add(src, first_due=start)

    def _push(self, due_at: float, source_id: str) -> None:
        seq = next(self._seq)
        self._live_seq[source_id] = seq
        heapq.heappush(self._heap, (due_at, seq, source_id))

    def _is_live(self, seq: int, source_id: str) -> bool:
        return source_id in self._sources and self._live_seq.get(source_id) == seq

    def add(self, source: SourceConfig, first_due: float = 0.0) -> None:
        """Schedule *source* (replacing any earlier schedule); ``first_due`` is epoch seconds."""
        self._sources[source.id] = source
        self._push(first_due, source.id)

    def remove(self, source_id: str) -> None:
        # Stale heap entries are discarded lazily.
        self._sources.pop(source_id, None)
        self._live_seq.pop(source_id, None)

    def next_due_at(self) -> float | None:
        while self._heap and not self._is_live(self._heap[0][1], self._heap[0][2]):
            heapq.heappop(self._heap)
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now: float) -> list[SourceConfig]:
        """Return enabled sources due at *now* and reschedule them.

        Disabled sources keep their cadence but are not returned.
        """
        due: list[SourceConfig] = []
        while self._heap and self._heap[0][0] <= now:
            due_at, seq, source_id = heapq.heappop(self._heap)
            if not self._is_live(seq, source_id):
                continue
            src = self._sources[source_id]
            interval_s = src.poll_interval_minutes * 60.0
            next_at = due_at + interval_s
            if next_at <= now:
                missed = int((now - due_at) // interval_s)
                logger.info("%s: %d slot(s) missed, running once and realigning", source_id, missed)
                next_at = now + interval_s
            self._push(next_at, source_id)
            if src.enabled:
                due.append(src)
        return due

    def __len__(self) -> int:
        return len(self._sources)
