"""
sim/spawner.py
==============
Vehicle creation at the network entries.

:class:`VehicleSpawner` owns one entry point: it checks that the spawn
area is clear and instantiates a :class:`~sim.vehicle.VehicleAgent` from
one of its templates.

:class:`SpawnScheduler` runs the spawn loop.  Every attempt makes three
independent draws (entry by weight, reachable exit by weight, concrete
route uniformly), resolves the route's waypoint ids and hands the result
to the entry's spawner.  A failed stage aborts the attempt with a log
line and no side effects.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from sim.census import TrafficCensus
from sim.errors import ConfigurationError, UnresolvedWaypointError
from sim.network import RouteTable, Waypoint, WaypointIndex
from sim.scheduler import TickDispatcher
from sim.signals import SignalRegistry
from sim.spatial import SpatialIndex
from sim.traffic_policy import SimulationPolicy
from sim.vehicle import VehicleAgent, VehicleTemplate

log = logging.getLogger("spawner")

T = TypeVar("T")


def weighted_pick(
    items: Sequence[T],
    weight_of: Callable[[T], float],
    rng: random.Random,
) -> Optional[T]:
    """Cumulative-weight walk over *items*.

    Negative weights count as zero.  Returns None when *items* is empty and
    the first item when every weight is zero; the last item catches a draw
    that floating-point summation pushes past the final boundary.
    """
    if not items:
        return None
    weights = [max(float(weight_of(item)), 0.0) for item in items]
    total = sum(weights)
    if total <= 0.0:
        return None
    draw = rng.random() * total
    cumulative = 0.0
    for item, weight in zip(items, weights):
        cumulative += weight
        if draw < cumulative:
            return item
    return items[-1]


class VehicleSpawner:
    """Spawn point bound to one entry.

    Parameters
    ----------
    entry_id : str
        Entry waypoint id this spawner serves.
    templates : sequence of VehicleTemplate
        Vehicle kinds; one is chosen uniformly per spawn.
    min_spawn_distance_m : float
        Radius around the entry that must be free of other vehicles.
    """

    def __init__(
        self,
        entry_id: str,
        templates: Sequence[VehicleTemplate],
        min_spawn_distance_m: float,
        policy: SimulationPolicy,
        census: TrafficCensus,
        signals: SignalRegistry,
        spatial: SpatialIndex,
        rng: random.Random,
    ) -> None:
        self.entry_id = entry_id
        self.templates: Tuple[VehicleTemplate, ...] = tuple(templates)
        self.min_spawn_distance_m = min_spawn_distance_m
        self._policy = policy
        self._census = census
        self._signals = signals
        self._spatial = spatial
        self._rng = rng

    def can_spawn_here(self, position: Tuple[float, float]) -> bool:
        return not self._spatial.overlap_sphere(position, self.min_spawn_distance_m)

    def spawn_vehicle(self, agent_id: str, route: Sequence[Waypoint]) -> Optional[VehicleAgent]:
        """Create a vehicle on *route*; None when the spawn area is occupied.

        Raises ConfigurationError when the spawner has no templates or the
        route is empty.
        """
        if not self.templates:
            raise ConfigurationError(f"spawner '{self.entry_id}' has no vehicle templates")
        if not route:
            raise ConfigurationError(f"empty route for spawner '{self.entry_id}'")
        if not self.can_spawn_here(route[0].position):
            log.debug("Spawn at %s skipped: area occupied", self.entry_id)
            return None

        template = self._rng.choice(self.templates)
        vehicle = VehicleAgent(agent_id, template, self._policy,
                               self._census, self._signals, self._spatial)
        vehicle.set_route(route)
        vehicle.activate()
        return vehicle


class SpawnScheduler:
    """Periodic weighted sampling of entry, exit and route.

    Parameters
    ----------
    entries : list of (entry_id, probability)
        Entry weight table, in configuration order.
    exits : list of (exit_id, probability)
        Exit weight table; only exits reachable from the sampled entry
        take part in a draw.
    routes : RouteTable
        Candidate waypoint-id sequences per (entry, exit).
    waypoints : WaypointIndex
        Resolves ids to :class:`~sim.network.Waypoint` objects.
    spawners : dict
        ``entry_id -> VehicleSpawner``.
    """

    def __init__(
        self,
        entries: Sequence[Tuple[str, float]],
        exits: Sequence[Tuple[str, float]],
        routes: RouteTable,
        waypoints: WaypointIndex,
        spawners: Dict[str, VehicleSpawner],
        census: TrafficCensus,
        dispatcher: TickDispatcher,
        policy: SimulationPolicy,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.entries: List[Tuple[str, float]] = list(entries)
        self.exits: List[Tuple[str, float]] = list(exits)
        self.routes = routes
        self.waypoints = waypoints
        self.spawners = dict(spawners)
        self.spawned_total = 0
        self.on_spawn: Optional[Callable[[VehicleAgent], None]] = None

        self._census = census
        self._policy = policy
        self._rng = rng or random.Random()
        self._timer = dispatcher.create_timer("spawn", self._on_timer)
        self._dispatcher = dispatcher

    # ── sampling ──────────────────────────────────────────────────────────

    def sample_entry(self) -> Optional[str]:
        if not self.entries:
            log.error("No entries configured")
            return None
        picked = weighted_pick(self.entries, lambda e: e[1], self._rng)
        if picked is None:
            return self.entries[0][0]
        return picked[0]

    def sample_exit(self, entry_id: str) -> Optional[str]:
        reachable = set(self.routes.exits_for(entry_id))
        if not reachable:
            log.error("No reachable exits from entry '%s'", entry_id)
            return None
        candidates = [e for e in self.exits if e[0] in reachable]
        if not candidates:
            log.error("Exits reachable from '%s' are not in the exit table", entry_id)
            return None
        picked = weighted_pick(candidates, lambda e: e[1], self._rng)
        if picked is None:
            return self._rng.choice(candidates)[0]
        return picked[0]

    def sample_route(self, entry_id: str, exit_id: str) -> Optional[Tuple[str, ...]]:
        candidates = self.routes.routes_for(entry_id, exit_id)
        if not candidates:
            log.error("No route from '%s' to '%s'", entry_id, exit_id)
            return None
        return self._rng.choice(candidates)

    # ── spawning ──────────────────────────────────────────────────────────

    def next_vehicle_id(self) -> str:
        return f"VEH_{self.spawned_total + 1:05d}"

    def spawn_one(self) -> Optional[VehicleAgent]:
        """One full spawn attempt; None when any stage fails."""
        entry_id = self.sample_entry()
        if entry_id is None:
            return None
        exit_id = self.sample_exit(entry_id)
        if exit_id is None:
            return None
        route_ids = self.sample_route(entry_id, exit_id)
        if route_ids is None:
            return None

        spawner = self.spawners.get(entry_id)
        if spawner is None:
            log.error("No spawner for entry '%s'", entry_id)
            return None

        try:
            route = self.waypoints.resolve_route(route_ids)
            vehicle = spawner.spawn_vehicle(self.next_vehicle_id(), route)
        except UnresolvedWaypointError as exc:
            log.error("Spawn from '%s' aborted: %s", entry_id, exc)
            return None
        except ConfigurationError as exc:
            log.error("Spawn from '%s' aborted: %s", entry_id, exc)
            return None

        if vehicle is None:
            return None
        self.spawned_total += 1
        log.debug("Spawned %s (%s) %s -> %s", vehicle.id, vehicle.template.name, entry_id, exit_id)
        if self.on_spawn is not None:
            self.on_spawn(vehicle)
        return vehicle

    # ── loop ──────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Make the first attempt on the next tick."""
        self._timer.start(0.0)

    def stop(self) -> None:
        self._timer.cancel()

    @property
    def running(self) -> bool:
        return self._timer.pending

    def next_interval_s(self) -> float:
        return self._rng.uniform(self._policy.min_spawn_interval_s,
                                 self._policy.max_spawn_interval_s)

    def _on_timer(self) -> None:
        if self._census.active_count < self._policy.max_active_vehicles:
            self.spawn_one()
        self._timer.start(self.next_interval_s())

    def destroy(self) -> None:
        self._dispatcher.remove(self._timer)
