#!/usr/bin/env python3
"""
Phase controller decision-loop tests.
"""

from __future__ import annotations

import os
import random
import tempfile
import unittest

from ml.history import DecisionHistory
from ml.persistence import QTableStore
from sim.census import TrafficCensus
from sim.controller import PhaseController
from sim.scheduler import TickDispatcher
from sim.signals import SignalRegistry, TrafficLight, TrafficLightState


class _Waiter:
    def __init__(self, light_id: str) -> None:
        self.is_waiting = True
        self.waiting_light_id = light_id

    def destroy(self) -> None:
        pass


class PhaseControllerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = TickDispatcher()
        self.registry = SignalRegistry()
        self.census = TrafficCensus()

    def _controller(self, **kwargs) -> PhaseController:
        kwargs.setdefault("auto_control", False)
        kwargs.setdefault("load_on_start", False)
        kwargs.setdefault("rng", random.Random(0))
        return PhaseController("MAIN", self.clock, self.registry,
                               census=self.census, **kwargs)

    def test_reward_weights_waiting_vehicles(self) -> None:
        controller = self._controller(waiting_weight=2.0)
        for _ in range(3):
            self.census.register_vehicle(_Waiter("TL1"))
        self.census.register_waiting("TL1")
        self.assertEqual(controller.compute_reward(), -5.0)

    def test_reward_without_census_is_zero(self) -> None:
        controller = PhaseController("X", self.clock, self.registry,
                                     auto_control=False, load_on_start=False)
        self.assertEqual(controller.compute_reward(), 0.0)

    def test_first_step_skips_update(self) -> None:
        controller = self._controller(epsilon=0.0)
        controller.step()
        self.assertEqual(controller.q_table.values.sum(), 0.0)
        self.assertIsNone(controller.last_reward)

    def test_alpha_one_replaces_value(self) -> None:
        controller = self._controller(epsilon=0.0, alpha=1.0, gamma=0.0)
        for _ in range(2):
            self.census.register_vehicle(_Waiter(""))
        controller.step()
        first = controller.last_action
        controller.step()
        self.assertEqual(controller.q_table.values[0, first], -2.0)
        self.assertEqual(controller.last_reward, -2.0)

    def test_alpha_zero_keeps_value(self) -> None:
        controller = self._controller(epsilon=0.0, alpha=0.0)
        self.census.register_vehicle(_Waiter(""))
        controller.step()
        controller.step()
        self.assertEqual(controller.q_table.values.sum(), 0.0)

    def test_greedy_picks_argmax_and_first_on_ties(self) -> None:
        controller = self._controller(epsilon=0.0)
        self.assertEqual(controller.q_table.best_action(0), 0)
        controller.q_table.values[0] = [-1.0, 3.0, 3.0, -2.0]
        controller.step()
        self.assertEqual(controller.last_action, 1)
        self.assertEqual(controller.current_phase, 1)
        self.assertEqual(controller.current_duration_s, 8.0)

    def test_step_applies_phase_to_local_lights(self) -> None:
        controller = self._controller(epsilon=0.0)
        tl1 = TrafficLight("TL1", "MAIN", (True, False), self.clock, red_to_green_delay_s=0.0)
        tl2 = TrafficLight("TL2", "MAIN", (False, True), self.clock, red_to_green_delay_s=0.0)
        foreign = TrafficLight("TL4", "ROUND", (True, False), self.clock, red_to_green_delay_s=0.0)
        for tl in (tl1, tl2, foreign):
            self.registry.register_light(tl)
        controller.q_table.values[0] = [0.0, 0.0, 5.0, 0.0]
        duration = controller.step()
        self.assertEqual(duration, 12.0)
        self.assertIs(tl1.state, TrafficLightState.GREEN)
        self.assertIs(tl2.state, TrafficLightState.RED)
        self.assertIs(foreign.state, TrafficLightState.RED)

    def test_loop_waits_initial_delay_then_chosen_duration(self) -> None:
        controller = self._controller(auto_control=True, epsilon=0.0,
                                      duration_options=(2.0,), initial_delay_s=1.0)
        controller.start()
        self.assertTrue(controller.running)
        for _ in range(9):
            self.clock.advance(0.1)
        self.assertEqual(controller.decisions, 0)
        self.clock.advance(0.1)
        self.assertEqual(controller.decisions, 1)
        for _ in range(19):
            self.clock.advance(0.1)
        self.assertEqual(controller.decisions, 1)
        self.clock.advance(0.1)
        self.assertEqual(controller.decisions, 2)

    def test_manual_mode_does_not_loop(self) -> None:
        controller = self._controller(auto_control=False)
        controller.start()
        self.assertFalse(controller.running)

    def test_non_positive_duration_uses_fallback(self) -> None:
        controller = self._controller(epsilon=0.0, duration_options=(0.0,))
        with self.assertLogs("controller", level="WARNING"):
            self.assertEqual(controller.step(), 1.0)

    def test_degenerate_settings_are_normalised(self) -> None:
        controller = self._controller(num_phases=0, duration_options=())
        self.assertEqual(controller.num_phases, 1)
        self.assertEqual(controller.actions.duration_options, (10.0,))
        self.assertEqual(controller.q_table.shape, (1, 1))

    def test_history_records_each_decision(self) -> None:
        history = DecisionHistory()
        controller = self._controller(epsilon=0.0, history=history)
        controller.step()
        controller.step()
        df = history.to_dataframe()
        self.assertEqual(len(df), 2)
        self.assertEqual(list(df["controller_id"]), ["MAIN", "MAIN"])

    def test_inspector_view(self) -> None:
        controller = self._controller(epsilon=0.0)
        controller.step()
        view = controller.as_dict()
        self.assertEqual(view["controller_id"], "MAIN")
        self.assertEqual(len(view["q_values"]), 4)
        self.assertEqual(view["decisions"], 1)
        self.assertEqual(view["current_phase"], 0)


class PhaseControllerPersistenceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.store = QTableStore(self.tmp.name)
        self.clock = TickDispatcher()
        self.registry = SignalRegistry()

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_save_on_destroy_and_load_on_start(self) -> None:
        first = PhaseController("MAIN", self.clock, self.registry, store=self.store,
                                auto_control=False)
        first.q_table.values[0] = [1.0, 2.0, 3.0, 4.0]
        first.destroy()
        self.assertTrue(os.path.isfile(os.path.join(self.tmp.name, "qlearning_MAIN.json")))

        second = PhaseController("MAIN", self.clock, self.registry, store=self.store,
                                 auto_control=False)
        self.assertEqual(list(second.q_table.row(0)), [1.0, 2.0, 3.0, 4.0])

    def test_dimension_mismatch_leaves_fresh_table(self) -> None:
        first = PhaseController("MAIN", self.clock, self.registry, store=self.store,
                                num_phases=3, auto_control=False)
        first.q_table.values[0] = [1.0] * 6
        first.destroy()

        with self.assertLogs("qtable", level="WARNING"):
            second = PhaseController("MAIN", self.clock, self.registry, store=self.store,
                                     auto_control=False)
        self.assertEqual(second.q_table.shape, (1, 4))
        self.assertEqual(second.q_table.values.sum(), 0.0)

    def test_save_disabled(self) -> None:
        controller = PhaseController("MAIN", self.clock, self.registry, store=self.store,
                                     auto_control=False, save_on_shutdown=False)
        controller.destroy()
        self.assertFalse(self.store.exists("MAIN"))


if __name__ == "__main__":
    unittest.main()
