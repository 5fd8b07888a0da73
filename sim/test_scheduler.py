#!/usr/bin/env python3
"""
Tick dispatcher and timer state-machine tests.
"""

from __future__ import annotations

import unittest

from sim.scheduler import TickDispatcher, TimerState


class TimerTests(unittest.TestCase):
    def test_fires_after_delay_accumulated_over_ticks(self) -> None:
        clock = TickDispatcher()
        fired = []
        timer = clock.create_timer("t", lambda: fired.append(clock.now))
        self.assertIs(timer.state, TimerState.IDLE)
        timer.start(0.5)
        for _ in range(4):
            clock.advance(0.1)
        self.assertEqual(fired, [])
        clock.advance(0.1)
        self.assertEqual(len(fired), 1)
        self.assertAlmostEqual(fired[0], 0.5)
        self.assertIs(timer.state, TimerState.FIRED)

    def test_cancel_prevents_firing(self) -> None:
        clock = TickDispatcher()
        fired = []
        timer = clock.call_later(0.2, lambda: fired.append(1))
        timer.cancel()
        self.assertIs(timer.state, TimerState.CANCELLED)
        for _ in range(5):
            clock.advance(0.1)
        self.assertEqual(fired, [])

    def test_restart_replaces_countdown(self) -> None:
        clock = TickDispatcher()
        fired = []
        timer = clock.call_later(0.2, lambda: fired.append(clock.now))
        clock.advance(0.1)
        timer.start(0.3)
        clock.advance(0.1)
        clock.advance(0.1)
        self.assertEqual(fired, [])
        clock.advance(0.1)
        self.assertEqual(len(fired), 1)
        self.assertAlmostEqual(fired[0], 0.4)

    def test_self_restart_counts_from_next_tick(self) -> None:
        clock = TickDispatcher()
        fired = []

        def again():
            fired.append(round(clock.now, 6))
            timer.start(0.2)

        timer = clock.create_timer("loop", again)
        timer.start(0.2)
        for _ in range(6):
            clock.advance(0.1)
        self.assertEqual(fired, [0.2, 0.4, 0.6])

    def test_zero_delay_fires_on_next_advance(self) -> None:
        clock = TickDispatcher()
        fired = []
        clock.call_later(0.0, lambda: fired.append(1))
        self.assertEqual(fired, [])
        clock.advance(0.05)
        self.assertEqual(fired, [1])

    def test_one_shot_timer_drops_out_after_firing(self) -> None:
        clock = TickDispatcher()
        fired = []
        owned = clock.create_timer("owned", lambda: None)
        timer = clock.call_later(0.2, lambda: fired.append(1))
        self.assertEqual(len(clock), 2)
        for _ in range(3):
            clock.advance(0.1)
        self.assertEqual(fired, [1])
        self.assertIs(timer.state, TimerState.FIRED)
        self.assertEqual(len(clock), 1)
        owned.start(0.1)
        clock.advance(0.1)
        self.assertEqual(len(clock), 1)

    def test_removed_timer_is_not_pending(self) -> None:
        clock = TickDispatcher()
        timer = clock.call_later(1.0, lambda: None)
        self.assertEqual(clock.pending_count(), 1)
        clock.remove(timer)
        self.assertEqual(clock.pending_count(), 0)
        self.assertFalse(timer.pending)


if __name__ == "__main__":
    unittest.main()
