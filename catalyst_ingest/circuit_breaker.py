"""Per-source circuit breaker.

A source that keeps failing is skipped for a cooldown window instead of
burning its whole retry budget on every tick:

    CLOSED ──(threshold failures)──▶ OPEN ──(reset timeout)──▶ HALF_OPEN
      ▲                                ▲                          │
      └──────────(success)─────────────┼──────────────────────────┤
                                       └────────(failure)─────────┘

State lives in a map owned by the ``CircuitBreaker`` instance, one
entry per source id, created lazily.  Nothing is persisted: a restart
always begins CLOSED.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitStatus(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitState:
    status: CircuitStatus = CircuitStatus.CLOSED
    failure_count: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


class CircuitBreaker:
    """Availability gate for every source id the registry dispatches."""

    def __init__(
        self,
        failure_threshold: int = 3,
        reset_timeout_s: float = 300.0,
        half_open_max_attempts: int = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.reset_timeout_s = reset_timeout_s
        # Stored for configuration parity; HALF_OPEN does not reserve
        # trial permits, every caller is let through while probing.
        self.half_open_max_attempts = half_open_max_attempts
        self._clock = clock
        self._states: dict[str, CircuitState] = {}

    def _state(self, source_id: str) -> CircuitState:
        state = self._states.get(source_id)
        if state is None:
            state = self._states[source_id] = CircuitState()
        return state

    def get_state(self, source_id: str) -> CircuitState:
        """Snapshot of the state for *source_id* (a copy)."""
        return replace(self._state(source_id))

    def is_available(self, source_id: str) -> bool:
        """True when a call to *source_id* may proceed.

        An OPEN circuit whose reset timeout has elapsed is advanced to
        HALF_OPEN here.
        """
        state = self._state(source_id)
        if state.status is CircuitStatus.CLOSED:
            return True
        if state.status is CircuitStatus.OPEN:
            if (
                state.last_failure_time is not None
                and self._clock() - state.last_failure_time >= self.reset_timeout_s
            ):
                state.status = CircuitStatus.HALF_OPEN
                logger.info("%s: OPEN → HALF_OPEN (timeout expired)", source_id)
                return True
            return False
        return True  # HALF_OPEN

    def record_success(self, source_id: str) -> None:
        state = self._state(source_id)
        state.last_success_time = self._clock()
        state.failure_count = 0
        if state.status is not CircuitStatus.CLOSED:
            logger.info("%s: %s → CLOSED (success)", source_id, state.status.value)
            state.status = CircuitStatus.CLOSED

    def record_failure(self, source_id: str) -> None:
        state = self._state(source_id)
        state.failure_count += 1
        state.last_failure_time = self._clock()

        if state.status is CircuitStatus.HALF_OPEN:
            state.status = CircuitStatus.OPEN
            logger.warning("%s: HALF_OPEN → OPEN (failure)", source_id)
            return

        if state.status is CircuitStatus.CLOSED and state.failure_count >= self.failure_threshold:
            state.status = CircuitStatus.OPEN
            logger.warning(
                "%s: CLOSED → OPEN (%d failures)", source_id, state.failure_count,
            )

    def reset(self, source_id: str) -> None:
        """Manual recovery: force CLOSED with a clean history."""
        self._states[source_id] = CircuitState()
        logger.info("%s: manually reset to CLOSED", source_id)

    def reset_all(self) -> None:
        self._states.clear()
        logger.info("All circuits reset")

    def stats(self) -> dict[str, dict[str, Any]]:
        """Status, failure count and seconds since last failure/success per source."""
        now = self._clock()
        out: dict[str, dict[str, Any]] = {}
        for source_id, state in self._states.items():
            out[source_id] = {
                "status": state.status.value,
                "failure_count": state.failure_count,
                "last_failure_ago_s": (
                    round(now - state.last_failure_time)
                    if state.last_failure_time is not None else None
                ),
                "last_success_ago_s": (
                    round(now - state.last_success_time)
                    if state.last_success_time is not None else None
                ),
            }
        return out
