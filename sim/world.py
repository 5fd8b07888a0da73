#!/usr/bin/env python3
"""
sim/world.py
============
Waypoint-network traffic world.

The :class:`World` is the construct-once simulation context: it builds
every shared component from a :class:`~sim.scene.SceneConfig` (waypoint
index, route table, signal registry, census, spatial index, tick
dispatcher) and injects them into the lights, controllers, spawners and
vehicles it creates.  Several worlds can live side by side in one
process; nothing here is global.

One call to :meth:`World.tick` is one simulation frame:

1. every due timer fires (spawn loop, controller decisions, light
   transitions),
2. every active vehicle runs its per-tick update.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

from ml.history import DecisionHistory
from ml.persistence import QTableStore
from sim.census import TrafficCensus
from sim.controller import PhaseController
from sim.network import RouteTable, WaypointIndex
from sim.scene import SceneConfig, default_scene
from sim.scheduler import TickDispatcher
from sim.signals import SignalRegistry, TrafficLight
from sim.spatial import SpatialIndex
from sim.spawner import SpawnScheduler, VehicleSpawner
from sim.traffic_policy import SimulationPolicy
from sim.vehicle import VehicleAgent

log = logging.getLogger("world")


def _pick(override: Optional[Any], fallback: Any) -> Any:
    return fallback if override is None else override


class World:
    """Traffic simulation over one waypoint network.

    Parameters
    ----------
    scene : SceneConfig or None
        Network, lights, controllers and spawners.  Defaults to
        :func:`~sim.scene.default_scene`.
    policy : SimulationPolicy or None
        Tunables; defaults to ``SimulationPolicy()``.
    seed : int or None
        Seed for the world's random generator (spawn sampling, template
        choice, exploration).
    qtable_dir : str or None
        Directory for Q-table records.  ``None`` disables persistence.
    history : DecisionHistory or None
        Decision log shared by every controller.
    auto_start : bool
        Start the spawn loop and controller loops right away.
    """

    def __init__(
        self,
        scene: Optional[SceneConfig] = None,
        policy: Optional[SimulationPolicy] = None,
        seed: Optional[int] = None,
        qtable_dir: Optional[str] = None,
        history: Optional[DecisionHistory] = None,
        auto_start: bool = True,
    ) -> None:
        self.scene = (scene or default_scene()).validate()
        self.policy = policy or SimulationPolicy()
        self.seed = seed
        self.rng = random.Random(seed)
        self.store = QTableStore(qtable_dir) if qtable_dir else None
        self.history = history if history is not None else DecisionHistory()

        self.ticks = 0
        self._shut_down = False
        self._build()
        if auto_start:
            self.start()

    # ── construction ──────────────────────────────────────────────────────

    def _build(self) -> None:
        scene, policy = self.scene, self.policy

        self.dispatcher = TickDispatcher()
        self.registry = SignalRegistry()
        self.census = TrafficCensus()
        self.spatial = SpatialIndex()
        self.waypoints = WaypointIndex(scene.waypoints)
        self.routes = RouteTable(scene.routes)

        self.controllers: Dict[str, PhaseController] = {}
        for cfg in scene.controllers:
            self.controllers[cfg.controller_id] = PhaseController(
                cfg.controller_id,
                self.dispatcher,
                self.registry,
                census=self.census,
                num_phases=cfg.num_phases,
                duration_options=_pick(cfg.duration_options_s, policy.duration_options_s),
                alpha=_pick(cfg.alpha, policy.alpha),
                gamma=_pick(cfg.gamma, policy.gamma),
                epsilon=_pick(cfg.epsilon, policy.epsilon),
                waiting_weight=_pick(cfg.waiting_weight, policy.waiting_weight),
                initial_delay_s=_pick(cfg.initial_delay_s, policy.initial_delay_s),
                fallback_duration_s=policy.fallback_duration_s,
                auto_control=cfg.auto_control,
                store=self.store,
                load_on_start=cfg.load_on_start,
                save_on_shutdown=cfg.save_on_shutdown,
                history=self.history,
                rng=self.rng,
            )

        self.lights: Dict[str, TrafficLight] = {}
        for cfg in scene.lights:
            light = TrafficLight(
                cfg.light_id,
                cfg.controller_id,
                cfg.green_in_phase,
                self.dispatcher,
                yellow_before_red_s=_pick(cfg.yellow_before_red_s, policy.yellow_before_red_s),
                red_to_green_delay_s=_pick(cfg.red_to_green_delay_s, policy.red_to_green_delay_s),
                registry=self.registry,
            )
            self.lights[cfg.light_id] = light

        spawners = {
            cfg.entry_id: VehicleSpawner(
                cfg.entry_id,
                cfg.templates,
                _pick(cfg.min_spawn_distance_m, policy.min_spawn_distance_m),
                policy,
                self.census,
                self.registry,
                self.spatial,
                self.rng,
            )
            for cfg in scene.spawners
        }
        self.spawn_scheduler = SpawnScheduler(
            entries=[(e.entry_id, e.probability) for e in scene.entries],
            exits=[(s.exit_id, s.probability) for s in scene.exits],
            routes=self.routes,
            waypoints=self.waypoints,
            spawners=spawners,
            census=self.census,
            dispatcher=self.dispatcher,
            policy=policy,
            rng=self.rng,
        )

        log.info(
            "World built: %d waypoints, %d routes, %d lights, %d controllers, seed=%s",
            len(self.waypoints), len(self.routes.all_routes()),
            len(self.lights), len(self.controllers), self.seed,
        )

    def start(self) -> None:
        """Start every controller loop and, if enabled, the spawn loop."""
        for controller in self.controllers.values():
            controller.start()
        if self.policy.auto_spawn:
            self.spawn_scheduler.start()

    # ── simulation ────────────────────────────────────────────────────────

    @property
    def now(self) -> float:
        return self.dispatcher.now

    @property
    def vehicles(self) -> List[VehicleAgent]:
        return self.census.vehicles()

    def tick(self, dt: float) -> None:
        """Advance the simulation by *dt* seconds."""
        if self._shut_down or dt <= 0.0:
            return
        self.dispatcher.advance(dt)
        for vehicle in self.census.vehicles():
            vehicle.update(dt)
        self.ticks += 1

    def run(self, duration_s: float, dt: float) -> None:
        """Tick headless until *duration_s* of simulated time has passed."""
        end = self.now + duration_s
        while self.now + 1e-9 < end and not self._shut_down:
            self.tick(dt)

    def spawn(self) -> Optional[VehicleAgent]:
        """One immediate spawn attempt outside the spawn loop."""
        return self.spawn_scheduler.spawn_one()

    def waiting_at(self, light_id: str) -> int:
        """Vehicles currently queued at *light_id*."""
        return self.census.waiting_for_light(light_id)

    # ── reset / shutdown ──────────────────────────────────────────────────

    def reset(self) -> None:
        """Remove every vehicle; lights, controllers and learned values stay."""
        self.census.reset()
        self.spatial.clear()
        log.info("World reset at t=%.2f", self.now)

    def shutdown(self) -> None:
        """Stop every loop, persist Q-tables and clear all registries."""
        if self._shut_down:
            return
        self._shut_down = True
        self.spawn_scheduler.destroy()
        for controller in list(self.controllers.values()):
            controller.destroy()
        for light in list(self.lights.values()):
            light.destroy()
        self.census.reset()
        self.spatial.clear()
        log.info("World shut down at t=%.2f after %d ticks", self.now, self.ticks)

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # ── read projections ──────────────────────────────────────────────────

    def light_snapshot(self) -> List[Dict[str, Any]]:
        out = []
        for light in self.lights.values():
            row = light.as_dict()
            row["waiting"] = self.census.waiting_for_light(light.light_id)
            out.append(row)
        return out

    def controller_snapshot(self, controller_id: str) -> Optional[Dict[str, Any]]:
        controller = self.registry.controller(controller_id)
        if controller is None:
            return None
        row = controller.as_dict()
        row["waiting"] = self.census.waiting_for_lights(
            tl.light_id for tl in controller.lights()
        )
        return row

    def snapshot(self) -> Dict[str, Any]:
        return {
            "time_s": self.now,
            "ticks": self.ticks,
            "census": self.census.as_dict(),
            "spawned_total": self.spawn_scheduler.spawned_total,
            "vehicles": [v.as_dict() for v in self.census.vehicles()],
            "lights": self.light_snapshot(),
            "controllers": [
                self.controller_snapshot(cid) for cid in self.controllers
            ],
        }
