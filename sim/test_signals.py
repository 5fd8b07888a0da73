#!/usr/bin/env python3
"""
Traffic light transition and signal registry tests.
"""

from __future__ import annotations

import unittest

from sim.controller import PhaseController
from sim.scheduler import TickDispatcher
from sim.signals import SignalRegistry, TrafficLight, TrafficLightState

RED = TrafficLightState.RED
YELLOW = TrafficLightState.YELLOW
GREEN = TrafficLightState.GREEN


def _run(clock: TickDispatcher, seconds: float, dt: float = 0.1) -> None:
    for _ in range(int(round(seconds / dt))):
        clock.advance(dt)


class TrafficLightTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = TickDispatcher()
        self.light = TrafficLight("TL1", "MAIN", (True, False), self.clock,
                                  yellow_before_red_s=0.5, red_to_green_delay_s=1.5)

    def _make_green(self) -> None:
        self.light.set_phase(0)
        _run(self.clock, 1.5)
        self.assertIs(self.light.state, GREEN)

    def test_initial_state_is_red(self) -> None:
        self.assertIs(self.light.state, RED)
        self.assertFalse(self.light.in_transition)

    def test_red_to_green_waits_for_clearance(self) -> None:
        self.light.set_phase(0)
        self.assertIs(self.light.state, RED)
        _run(self.clock, 1.4)
        self.assertIs(self.light.state, RED)
        self.clock.advance(0.1)
        self.assertIs(self.light.state, GREEN)

    def test_green_to_red_goes_through_yellow(self) -> None:
        self._make_green()
        self.light.set_phase(1)
        self.assertIs(self.light.state, YELLOW)
        _run(self.clock, 0.4)
        self.assertIs(self.light.state, YELLOW)
        self.clock.advance(0.1)
        self.assertIs(self.light.state, RED)

    def test_same_state_request_is_noop(self) -> None:
        self.light.set_phase(1)
        self.assertIs(self.light.state, RED)
        self.assertFalse(self.light.in_transition)

    def test_newest_request_supersedes_pending_green(self) -> None:
        self.light.set_phase(0)
        _run(self.clock, 1.0)
        self.light.set_phase(1)
        _run(self.clock, 2.0)
        self.assertIs(self.light.state, RED)
        self.assertFalse(self.light.in_transition)

    def test_green_request_during_yellow_returns_to_green(self) -> None:
        self._make_green()
        self.light.set_phase(1)
        self.assertIs(self.light.state, YELLOW)
        self.light.set_phase(0)
        self.assertIs(self.light.state, GREEN)
        _run(self.clock, 1.0)
        self.assertIs(self.light.state, GREEN)

    def test_out_of_range_phase_targets_red(self) -> None:
        self.assertIs(self.light.target_for_phase(5), RED)
        self.assertIs(self.light.target_for_phase(-1), RED)
        self.assertIs(self.light.target_for_phase(0), GREEN)

    def test_destroy_cancels_transition(self) -> None:
        self.light.set_phase(0)
        self.light.destroy()
        _run(self.clock, 3.0)
        self.assertIs(self.light.state, RED)

    def test_destroy_leaves_registry_and_controller(self) -> None:
        registry = SignalRegistry()
        controller = PhaseController("MAIN", self.clock, registry,
                                     auto_control=False, load_on_start=False)
        light = TrafficLight("TL2", "MAIN", (False, True), self.clock, registry=registry)
        self.assertIs(registry.light("TL2"), light)
        self.assertEqual(controller.lights(), [light])

        light.destroy()
        self.assertIsNone(registry.light("TL2"))
        self.assertEqual(controller.lights(), [])
        self.assertIs(registry.light_state("TL2"), GREEN)
        self.assertEqual(self.clock.pending_count(), 0)

    def test_destroy_of_manually_registered_light_unregisters(self) -> None:
        registry = SignalRegistry()
        registry.register_light(self.light)
        self.light.destroy()
        self.assertEqual(registry.lights(), [])


class SignalRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = TickDispatcher()
        self.registry = SignalRegistry()

    def test_unknown_light_reads_green(self) -> None:
        self.assertIs(self.registry.light_state("TL99"), GREEN)
        self.assertIs(self.registry.light_state(""), GREEN)
        self.assertIs(self.registry.light_state(None), GREEN)

    def test_registered_light_reads_its_state(self) -> None:
        light = TrafficLight("TL1", "MAIN", (True, False), self.clock)
        self.registry.register_light(light)
        self.assertIs(self.registry.light_state("TL1"), RED)
        self.assertEqual(self.registry.states(), {"TL1": RED})

    def test_reregistering_light_replaces_it(self) -> None:
        first = TrafficLight("TL1", "MAIN", (True, False), self.clock)
        second = TrafficLight("TL1", "MAIN", (False, True), self.clock)
        self.registry.register_light(first)
        self.registry.register_light(second)
        self.assertIs(self.registry.light("TL1"), second)
        self.registry.unregister_light(first)
        self.assertIs(self.registry.light("TL1"), second)
        first.destroy()
        self.assertIs(self.registry.light("TL1"), second)

    def test_late_light_attaches_to_controller(self) -> None:
        controller = PhaseController("MAIN", self.clock, self.registry,
                                     auto_control=False, load_on_start=False)
        light = TrafficLight("TL1", "MAIN", (True, False), self.clock)
        self.registry.register_light(light)
        self.assertEqual(controller.lights(), [light])

    def test_late_controller_attaches_existing_lights(self) -> None:
        a = TrafficLight("TL1", "MAIN", (True, False), self.clock)
        b = TrafficLight("TL2", "MAIN", (False, True), self.clock)
        other = TrafficLight("TL4", "ROUND", (True, False), self.clock)
        for tl in (a, b, other):
            self.registry.register_light(tl)
        controller = PhaseController("MAIN", self.clock, self.registry,
                                     auto_control=False, load_on_start=False)
        self.assertEqual(controller.lights(), [a, b])

    def test_mismatched_green_vector_is_not_attached(self) -> None:
        controller = PhaseController("MAIN", self.clock, self.registry, num_phases=2,
                                     auto_control=False, load_on_start=False)
        light = TrafficLight("TL1", "MAIN", (True, False, False), self.clock)
        with self.assertLogs("controller", level="ERROR"):
            self.registry.register_light(light)
        self.assertEqual(controller.lights(), [])

    def test_controller_replacement_and_identity_unregister(self) -> None:
        first = PhaseController("MAIN", self.clock, self.registry,
                                auto_control=False, load_on_start=False)
        second = PhaseController("MAIN", self.clock, self.registry,
                                 auto_control=False, load_on_start=False)
        self.assertIs(self.registry.controller("MAIN"), second)
        first.destroy()
        self.assertIs(self.registry.controller("MAIN"), second)
        second.destroy()
        self.assertIsNone(self.registry.controller("MAIN"))


if __name__ == "__main__":
    unittest.main()
