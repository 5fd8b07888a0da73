"""
sim/signals.py
==============
Traffic lights and the signal registry.

* :class:`TrafficLight`: per-light state machine enforcing safe phase
  changes (yellow before red, all-red clearance before green) on its own
  timer, independent of the controller's decision cadence.
* :class:`SignalRegistry`: process-wide lookup of lights and controllers
  by id.  Vehicles read light colours through it; controllers discover the
  lights they drive through it.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from sim.scheduler import TickDispatcher

if TYPE_CHECKING:
    from sim.controller import PhaseController

log = logging.getLogger("signals")


class TrafficLightState(Enum):
    RED = "RED"
    YELLOW = "YELLOW"
    GREEN = "GREEN"


class TrafficLight:
    """One signal head driven by a :class:`~sim.controller.PhaseController`.

    Parameters
    ----------
    light_id : str
        Unique id matched by stop-point waypoints (e.g. ``"TL1"``).
    controller_id : str
        Id of the controller group driving this light (e.g. ``"MAIN"``).
    green_in_phase : sequence of bool
        ``green_in_phase[p]`` is True when this light is green in phase *p*.
    dispatcher : TickDispatcher
        Clock running the transition timer.
    yellow_before_red_s : float
        Yellow hold on every Green → Red change.
    red_to_green_delay_s : float
        All-red hold on every Red → Green change.
    registry : SignalRegistry, optional
        When given, the light registers itself on creation and leaves the
        registry (and its controller's local set) on :meth:`destroy`.
    """

    def __init__(
        self,
        light_id: str,
        controller_id: str,
        green_in_phase: Sequence[bool],
        dispatcher: TickDispatcher,
        yellow_before_red_s: float = 0.5,
        red_to_green_delay_s: float = 1.5,
        registry: Optional["SignalRegistry"] = None,
    ) -> None:
        self.light_id = light_id
        self.controller_id = controller_id
        self.green_in_phase = tuple(bool(g) for g in green_in_phase)
        self.yellow_before_red_s = max(0.0, yellow_before_red_s)
        self.red_to_green_delay_s = max(0.0, red_to_green_delay_s)
        self._state = TrafficLightState.RED
        self._pending_state: Optional[TrafficLightState] = None
        self._dispatcher = dispatcher
        self._timer = dispatcher.create_timer(f"light:{light_id}", self._complete_transition)
        self.state_changed_at: float = dispatcher.now
        self._registry: Optional["SignalRegistry"] = None
        if registry is not None:
            registry.register_light(self)

    @property
    def state(self) -> TrafficLightState:
        return self._state

    @property
    def in_transition(self) -> bool:
        return self._timer.pending

    @property
    def phase_count(self) -> int:
        return len(self.green_in_phase)

    def target_for_phase(self, phase_index: int) -> TrafficLightState:
        """Green when *phase_index* is a green phase of this light, else Red."""
        if 0 <= phase_index < len(self.green_in_phase) and self.green_in_phase[phase_index]:
            return TrafficLightState.GREEN
        return TrafficLightState.RED

    def set_phase(self, phase_index: int) -> None:
        """Start the safe transition towards this light's colour in *phase_index*.

        Any transition still in flight is cancelled first; the newest
        request always wins.
        """
        target = self.target_for_phase(phase_index)
        self._timer.cancel()
        self._pending_state = None
        current = self._state

        if target is current:
            return

        if target is TrafficLightState.RED:
            # Green → Yellow → Red; an interrupted yellow restarts its full hold.
            self._set_state(TrafficLightState.YELLOW)
            self._schedule(TrafficLightState.RED, self.yellow_before_red_s)
            return

        if current is TrafficLightState.RED:
            self._set_state(TrafficLightState.RED)
            self._schedule(TrafficLightState.GREEN, self.red_to_green_delay_s)
            return

        # Yellow → Green: cross traffic is still held red.
        self._set_state(target)

    def destroy(self) -> None:
        """Cancel the pending transition, drop the timer and leave the registry."""
        self._pending_state = None
        self._dispatcher.remove(self._timer)
        if self._registry is not None:
            registry, self._registry = self._registry, None
            registry.unregister_light(self)

    def as_dict(self) -> dict:
        return {
            "light_id": self.light_id,
            "controller_id": self.controller_id,
            "state": self._state.value,
            "pending": self._pending_state.value if self._pending_state else None,
            "green_in_phase": list(self.green_in_phase),
        }

    # ── internals ─────────────────────────────────────────────────────────

    def _schedule(self, state: TrafficLightState, delay_s: float) -> None:
        self._pending_state = state
        if delay_s <= 0.0:
            self._complete_transition()
            return
        self._timer.start(delay_s)

    def _complete_transition(self) -> None:
        if self._pending_state is None:
            return
        state, self._pending_state = self._pending_state, None
        self._set_state(state)

    def _set_state(self, state: TrafficLightState) -> None:
        if state is not self._state:
            log.debug("%s %s -> %s at t=%.2f", self.light_id,
                      self._state.value, state.value, self._dispatcher.now)
            self.state_changed_at = self._dispatcher.now
        self._state = state


class SignalRegistry:
    """Id-based registry of lights and controllers for one simulation.

    Lights and controllers may be created in any order: a controller attaches
    every already-registered light with its id, and a light registered later
    attaches itself to its controller.
    """

    def __init__(self) -> None:
        self._lights: Dict[str, TrafficLight] = {}
        self._controllers: Dict[str, "PhaseController"] = {}

    # ── lights ────────────────────────────────────────────────────────────

    def register_light(self, light: TrafficLight) -> None:
        if not light.light_id:
            log.error("Traffic light without id not registered")
            return
        previous = self._lights.get(light.light_id)
        if previous is not None and previous is not light:
            log.warning("Light '%s' re-registered; replacing previous instance", light.light_id)
        self._lights[light.light_id] = light
        light._registry = self
        controller = self._controllers.get(light.controller_id)
        if controller is not None:
            controller.attach_light(light)

    def unregister_light(self, light: TrafficLight) -> None:
        if light._registry is self:
            light._registry = None
        if self._lights.get(light.light_id) is light:
            del self._lights[light.light_id]
        controller = self._controllers.get(light.controller_id)
        if controller is not None:
            controller.detach_light(light)

    def light(self, light_id: str) -> Optional[TrafficLight]:
        return self._lights.get(light_id)

    def lights(self) -> List[TrafficLight]:
        return list(self._lights.values())

    def lights_for(self, controller_id: str) -> List[TrafficLight]:
        return [tl for tl in self._lights.values() if tl.controller_id == controller_id]

    def light_state(self, light_id: Optional[str]) -> TrafficLightState:
        """Current colour of *light_id*; unknown or empty ids read as Green."""
        if not light_id:
            return TrafficLightState.GREEN
        tl = self._lights.get(light_id)
        if tl is None:
            return TrafficLightState.GREEN
        return tl.state

    def states(self) -> Dict[str, TrafficLightState]:
        """Read projection of every light's colour."""
        return {lid: tl.state for lid, tl in self._lights.items()}

    # ── controllers ───────────────────────────────────────────────────────

    def register_controller(self, controller: "PhaseController") -> None:
        cid = controller.controller_id
        if not cid:
            log.error("Controller without id not registered")
            return
        previous = self._controllers.get(cid)
        if previous is not None and previous is not controller:
            log.warning("Controller '%s' re-registered; replacing previous instance", cid)
        self._controllers[cid] = controller
        for tl in self.lights_for(cid):
            controller.attach_light(tl)

    def unregister_controller(self, controller: "PhaseController") -> None:
        if self._controllers.get(controller.controller_id) is controller:
            del self._controllers[controller.controller_id]

    def controller(self, controller_id: str) -> Optional["PhaseController"]:
        if not controller_id:
            return None
        return self._controllers.get(controller_id)

    def controllers(self) -> List["PhaseController"]:
        return list(self._controllers.values())
