"""
sim/vehicle.py
==============
A single route-following vehicle.  Each agent:
  - advances along its assigned waypoint sequence at a fixed base speed
  - halts before red / yellow stop points and reports itself as waiting
  - holds back while another vehicle sits inside its forward sensing capsule
  - only commits a move when its own footprint fits at the new position
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sim.census import TrafficCensus
from sim.network import Waypoint
from sim.physics import (
    Point,
    distance,
    forward_vector,
    heading_to,
    rotate_toward,
    step_toward,
)
from sim.signals import SignalRegistry, TrafficLightState
from sim.spatial import Footprint, SpatialIndex
from sim.traffic_policy import SimulationPolicy, sensor_radius_m, tick_travel_m

log = logging.getLogger("vehicle")

_STOP_COLORS = (TrafficLightState.RED, TrafficLightState.YELLOW)


@dataclass(frozen=True)
class VehicleTemplate:
    """Spawnable vehicle kind.

    ``half_length`` / ``half_width`` of zero mean "no footprint": the agent
    then falls back to a sphere for its fits-here check.
    """

    name: str = "car"
    base_speed: float = 8.0
    base_rotation_speed: float = 5.0
    half_length: float = 2.25
    half_width: float = 0.9

    @property
    def has_footprint(self) -> bool:
        return self.half_length > 0.0 and self.half_width > 0.0


class VehicleAgent:
    """One vehicle following a fixed route.

    Parameters
    ----------
    agent_id : str
        Unique identifier, e.g. ``"VEH_00001"``.
    template : VehicleTemplate
        Speed and footprint of this vehicle.
    policy : SimulationPolicy
        Headway, stop distance and global multipliers.
    census : TrafficCensus
        Receives active / waiting registrations.
    signals : SignalRegistry
        Light colour lookup by id.
    spatial : SpatialIndex
        Overlap queries against other vehicles.
    """

    def __init__(
        self,
        agent_id: str,
        template: VehicleTemplate,
        policy: SimulationPolicy,
        census: TrafficCensus,
        signals: SignalRegistry,
        spatial: SpatialIndex,
    ) -> None:
        self.id = agent_id
        self.template = template
        self.x = 0.0
        self.y = 0.0
        self.heading = 0.0

        self.route: List[Waypoint] = []
        self.current_index = 0
        self.initialized = False
        self.active = True

        self.is_waiting = False
        self.waiting_light_id: Optional[str] = None
        self.is_blocked_by_vehicle = False

        self._policy = policy
        self._census = census
        self._signals = signals
        self._spatial = spatial

    # ── lifecycle ─────────────────────────────────────────────────────────

    def activate(self) -> None:
        """Join the census and the spatial index."""
        self._census.register_vehicle(self)
        self._spatial.add(self)

    def destroy(self) -> None:
        """Leave every registry; waiting state is cleared first."""
        if not self.active:
            return
        self.active = False
        if self.is_waiting:
            self._census.unregister_waiting(self.waiting_light_id)
            self.is_waiting = False
            self.waiting_light_id = None
        self._census.unregister_vehicle(self)
        self._spatial.remove(self)
        log.debug("%s destroyed at index %d/%d", self.id, self.current_index, len(self.route))

    def set_route(self, route: Sequence[Waypoint]) -> None:
        """Place the vehicle on the first waypoint, facing the second.

        The first waypoint counts as reached, so a single-waypoint route
        completes on the first update.
        """
        self.route = list(route)
        self.current_index = 0
        self.initialized = len(self.route) > 0
        if not self.initialized:
            return
        self.x, self.y = self.route[0].position
        self.current_index = 1
        if len(self.route) > 1:
            self.heading = heading_to(self.position, self.route[1].position, self.heading)

    # ── geometry ──────────────────────────────────────────────────────────

    @property
    def position(self) -> Point:
        return (self.x, self.y)

    @property
    def route_ids(self) -> List[str]:
        return [wp.id for wp in self.route]

    @property
    def target(self) -> Optional[Waypoint]:
        if 0 <= self.current_index < len(self.route):
            return self.route[self.current_index]
        return None

    def footprint(self) -> Footprint:
        return Footprint(self.x, self.y, self.heading,
                         self.template.half_length, self.template.half_width)

    # ── per-tick update ───────────────────────────────────────────────────

    def update(self, dt: float) -> None:
        if not self.active or not self.initialized:
            return

        if self.current_index >= len(self.route):
            self.destroy()
            return

        target = self.route[self.current_index]
        to_target = distance(self.position, target.position)

        # 1) Signal gating
        if self._must_stop_for_light(target, to_target):
            if not self.is_waiting:
                self.is_waiting = True
                self.waiting_light_id = target.gated_light_id
                self._census.register_waiting(self.waiting_light_id)
                log.debug("%s waiting at %s (%s)", self.id, target.id, self.waiting_light_id)
            return
        if self.is_waiting:
            self._census.unregister_waiting(self.waiting_light_id)
            self.is_waiting = False
            self.waiting_light_id = None

        # 2) Vehicle ahead
        if self.vehicle_ahead():
            self.is_blocked_by_vehicle = True
            return
        self.is_blocked_by_vehicle = False

        # 3) Movement
        travel = tick_travel_m(self.template.base_speed, dt, self._policy)
        rotation_speed = self.template.base_rotation_speed * self._policy.global_rotation_multiplier

        if to_target <= travel:
            candidate = target.position
            if not self.fits_at(candidate):
                return
            self.x, self.y = candidate
            self.current_index += 1
            if self.current_index < len(self.route):
                self.heading = heading_to(
                    self.position, self.route[self.current_index].position, self.heading,
                )
        else:
            candidate = step_toward(self.position, target.position, travel)
            if not self.fits_at(candidate):
                return
            travel_heading = heading_to(self.position, target.position, self.heading)
            self.x, self.y = candidate
            self.heading = rotate_toward(self.heading, travel_heading, rotation_speed * dt)

    def _must_stop_for_light(self, target: Waypoint, to_target: float) -> bool:
        light_id = target.gated_light_id
        if light_id is None:
            return False
        color = self._signals.light_state(light_id)
        return color in _STOP_COLORS and to_target <= self._policy.stop_distance_m

    # ── sensing ───────────────────────────────────────────────────────────

    def vehicle_ahead(self, headway_m: Optional[float] = None) -> bool:
        """True when another vehicle sits in the forward sensing capsule."""
        headway = self._policy.safe_headway_m if headway_m is None else headway_m
        if headway <= 0.0:
            return False
        fx, fy = forward_vector(self.heading)
        bumper = self.template.half_length if self.template.has_footprint else 1.0
        origin = (self.x + fx * bumper, self.y + fy * bumper)
        end = (origin[0] + fx * headway, origin[1] + fy * headway)
        radius = sensor_radius_m(self.template.half_width, self._policy)
        hits = self._spatial.overlap_capsule(origin, end, radius, exclude=(self.id,))
        return len(hits) > 0

    def fits_at(self, position: Point) -> bool:
        """True when *position* adds no overlap with another vehicle.

        Bodies already touching our current footprint (after a heading snap
        at a waypoint) are ignored so the vehicle can still pull away.
        """
        hits = self._overlapping(position)
        if not hits:
            return True
        already = {body.id for body in self._overlapping(self.position)}
        return all(body.id in already for body in hits)

    def _overlapping(self, position: Point) -> list:
        if self.template.has_footprint:
            return self._spatial.overlap_box(
                position, self.heading,
                self.template.half_length, self.template.half_width,
                exclude=(self.id,),
            )
        return self._spatial.overlap_sphere(
            position, self._policy.merge_check_radius_m, exclude=(self.id,),
        )

    # ── serialisation ─────────────────────────────────────────────────────

    def as_dict(self) -> Dict[str, Any]:
        target = self.target
        return {
            "id": self.id,
            "template": self.template.name,
            "x": self.x,
            "y": self.y,
            "heading": self.heading,
            "route": self.route_ids,
            "route_index": self.current_index,
            "target": target.id if target else None,
            "waiting": self.is_waiting,
            "waiting_light_id": self.waiting_light_id,
            "blocked": self.is_blocked_by_vehicle,
        }
