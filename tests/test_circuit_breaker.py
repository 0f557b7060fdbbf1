"""Tests for the per-source circuit breaker state machine."""

from __future__ import annotations

import unittest

from catalyst_ingest.circuit_breaker import CircuitBreaker, CircuitStatus


class FakeClock:
    def __init__(self, t: float = 1_000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


class TestCircuitBreakerTransitions(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cb = CircuitBreaker(failure_threshold=3, reset_timeout_s=300.0, clock=self.clock)

    def test_unknown_source_is_closed_and_available(self):
        self.assertTrue(self.cb.is_available("pib-rss"))
        self.assertIs(self.cb.get_state("pib-rss").status, CircuitStatus.CLOSED)

    def test_opens_at_threshold(self):
        self.cb.record_failure("s")
        self.cb.record_failure("s")
        self.assertTrue(self.cb.is_available("s"))
        self.cb.record_failure("s")
        self.assertIs(self.cb.get_state("s").status, CircuitStatus.OPEN)
        self.assertFalse(self.cb.is_available("s"))

    def test_open_rejects_until_timeout_then_half_open(self):
        for _ in range(3):
            self.cb.record_failure("s")
        self.clock.t += 299
        self.assertFalse(self.cb.is_available("s"))
        self.clock.t += 1
        self.assertTrue(self.cb.is_available("s"))
        self.assertIs(self.cb.get_state("s").status, CircuitStatus.HALF_OPEN)

    def test_half_open_success_closes(self):
        for _ in range(3):
            self.cb.record_failure("s")
        self.clock.t += 300
        self.assertTrue(self.cb.is_available("s"))
        self.cb.record_success("s")
        state = self.cb.get_state("s")
        self.assertIs(state.status, CircuitStatus.CLOSED)
        self.assertEqual(state.failure_count, 0)

    def test_half_open_failure_reopens_and_restarts_timeout(self):
        for _ in range(3):
            self.cb.record_failure("s")
        self.clock.t += 300
        self.cb.is_available("s")
        self.cb.record_failure("s")
        self.assertIs(self.cb.get_state("s").status, CircuitStatus.OPEN)
        self.clock.t += 10
        self.assertFalse(self.cb.is_available("s"))

    def test_success_in_closed_resets_count(self):
        self.cb.record_failure("s")
        self.cb.record_failure("s")
        self.cb.record_success("s")
        self.cb.record_failure("s")
        self.assertIs(self.cb.get_state("s").status, CircuitStatus.CLOSED)
        self.assertEqual(self.cb.get_state("s").failure_count, 1)

    def test_sources_are_independent(self):
        for _ in range(3):
            self.cb.record_failure("a")
        self.assertFalse(self.cb.is_available("a"))
        self.assertTrue(self.cb.is_available("b"))

    def test_half_open_lets_every_caller_through(self):
        cb = CircuitBreaker(failure_threshold=1, half_open_max_attempts=1, clock=self.clock)
        cb.record_failure("s")
        self.clock.t += 300
        self.assertTrue(cb.is_available("s"))
        self.assertTrue(cb.is_available("s"))


class TestCircuitBreakerReset(unittest.TestCase):

    def test_reset_clears_history(self):
        clock = FakeClock()
        cb = CircuitBreaker(failure_threshold=1, clock=clock)
        cb.record_success("s")
        cb.record_failure("s")
        cb.reset("s")
        state = cb.get_state("s")
        self.assertIs(state.status, CircuitStatus.CLOSED)
        self.assertEqual(state.failure_count, 0)
        self.assertIsNone(state.last_failure_time)
        self.assertIsNone(state.last_success_time)

    def test_reset_all(self):
        cb = CircuitBreaker(failure_threshold=1)
        cb.record_failure("a")
        cb.record_failure("b")
        cb.reset_all()
        self.assertEqual(cb.stats(), {})
        self.assertTrue(cb.is_available("a"))

    def test_get_state_returns_copy(self):
        cb = CircuitBreaker()
        snapshot = cb.get_state("s")
        snapshot.failure_count = 99
        self.assertEqual(cb.get_state("s").failure_count, 0)

    def test_stats_reports_ages(self):
        clock = FakeClock(1_000.0)
        cb = CircuitBreaker(failure_threshold=5, clock=clock)
        cb.record_failure("s")
        clock.t += 42
        stats = cb.stats()["s"]
        self.assertEqual(stats["status"], "CLOSED")
        self.assertEqual(stats["failure_count"], 1)
        self.assertEqual(stats["last_failure_ago_s"], 42)
        self.assertIsNone(stats["last_success_ago_s"])

    def test_opening_is_logged(self):
        cb = CircuitBreaker(failure_threshold=1)
        with self.assertLogs("catalyst_ingest.circuit_breaker", level="WARNING") as cm:
            cb.record_failure("bse-api")
        self.assertTrue(any("CLOSED → OPEN" in line for line in cm.output))


if __name__ == "__main__":
    unittest.main()
