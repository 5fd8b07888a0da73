"""
sim/scene.py
============
Scene configuration: everything placed in the network before the first
tick.

:class:`SceneConfig` bundles waypoints, the route catalog, entry / exit
weight tables, lights, controller groups and per-entry spawners.
:func:`default_scene` returns the built-in network; :func:`load_scene`
reads the same structure from JSON.  :meth:`SceneConfig.validate` raises
:class:`~sim.errors.ConfigurationError` on the first inconsistency.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sim.errors import ConfigurationError
from sim.network import DEFAULT_ROUTES, Waypoint, default_waypoints
from sim.vehicle import VehicleTemplate

log = logging.getLogger("scene")


@dataclass(frozen=True)
class EntryConfig:
    """Entry point and its sampling weight."""
    entry_id: str
    probability: float


@dataclass(frozen=True)
class ExitConfig:
    """Exit point and its base sampling weight."""
    exit_id: str
    probability: float


@dataclass(frozen=True)
class LightConfig:
    """One traffic light; ``None`` timings fall back to the policy."""
    light_id: str
    controller_id: str
    green_in_phase: Tuple[bool, ...]
    yellow_before_red_s: Optional[float] = None
    red_to_green_delay_s: Optional[float] = None


@dataclass(frozen=True)
class ControllerConfig:
    """One controller group; ``None`` hyper-parameters fall back to the policy."""
    controller_id: str
    num_phases: int = 2
    duration_options_s: Optional[Tuple[float, ...]] = None
    alpha: Optional[float] = None
    gamma: Optional[float] = None
    epsilon: Optional[float] = None
    waiting_weight: Optional[float] = None
    initial_delay_s: Optional[float] = None
    auto_control: bool = True
    load_on_start: bool = True
    save_on_shutdown: bool = True


@dataclass(frozen=True)
class SpawnerConfig:
    """Spawner bound to one entry, with its vehicle templates."""
    entry_id: str
    templates: Tuple[VehicleTemplate, ...] = ()
    min_spawn_distance_m: Optional[float] = None


@dataclass
class SceneConfig:
    waypoints: List[Waypoint] = field(default_factory=list)
    routes: Dict[str, List[List[str]]] = field(default_factory=dict)
    entries: List[EntryConfig] = field(default_factory=list)
    exits: List[ExitConfig] = field(default_factory=list)
    lights: List[LightConfig] = field(default_factory=list)
    controllers: List[ControllerConfig] = field(default_factory=list)
    spawners: List[SpawnerConfig] = field(default_factory=list)

    # ── validation ────────────────────────────────────────────────────────

    def validate(self) -> "SceneConfig":
        """Check cross-references; returns self for chaining."""
        _require_unique("entry", [e.entry_id for e in self.entries])
        _require_unique("exit", [s.exit_id for s in self.exits])
        _require_unique("light", [tl.light_id for tl in self.lights])
        _require_unique("controller", [c.controller_id for c in self.controllers])
        _require_unique("spawner entry", [sp.entry_id for sp in self.spawners])

        for cfg in list(self.entries) + list(self.exits):
            if cfg.probability < 0.0:
                cid = getattr(cfg, "entry_id", None) or getattr(cfg, "exit_id")
                raise ConfigurationError(f"negative sampling weight for '{cid}'")

        entry_ids = {e.entry_id for e in self.entries}
        exit_ids = {s.exit_id for s in self.exits}
        waypoint_ids = {wp.id for wp in self.waypoints}
        for entry_id, routes in self.routes.items():
            if entry_id not in entry_ids:
                raise ConfigurationError(f"routes listed for unknown entry '{entry_id}'")
            for route in routes:
                if not route:
                    raise ConfigurationError(f"empty route under entry '{entry_id}'")
                if route[0] != entry_id:
                    raise ConfigurationError(
                        f"route {route} under entry '{entry_id}' starts at '{route[0]}'"
                    )
                if route[-1] not in exit_ids:
                    raise ConfigurationError(f"route {route} ends at unknown exit '{route[-1]}'")
                missing = [wid for wid in route if wid not in waypoint_ids]
                if missing:
                    raise ConfigurationError(f"route {route} references unknown waypoints {missing}")

        phases_by_controller = {c.controller_id: c.num_phases for c in self.controllers}
        for tl in self.lights:
            phases = phases_by_controller.get(tl.controller_id)
            if phases is None:
                raise ConfigurationError(
                    f"light '{tl.light_id}' belongs to unknown controller '{tl.controller_id}'"
                )
            if len(tl.green_in_phase) != phases:
                raise ConfigurationError(
                    f"light '{tl.light_id}' has {len(tl.green_in_phase)} green-phase entries, "
                    f"controller '{tl.controller_id}' has {phases} phases"
                )

        light_ids = {tl.light_id for tl in self.lights}
        for wp in self.waypoints:
            if wp.is_stop_point and wp.traffic_light_id and wp.traffic_light_id not in light_ids:
                log.warning("Stop point '%s' bound to unknown light '%s' (reads as green)",
                            wp.id, wp.traffic_light_id)
        return self

    # ── (de)serialisation ─────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SceneConfig":
        try:
            return cls(
                waypoints=[Waypoint(**wp) for wp in raw.get("waypoints", [])],
                routes={k: [list(r) for r in v] for k, v in raw.get("routes", {}).items()},
                entries=[EntryConfig(**e) for e in raw.get("entries", [])],
                exits=[ExitConfig(**s) for s in raw.get("exits", [])],
                lights=[
                    LightConfig(**{**tl, "green_in_phase": tuple(tl["green_in_phase"])})
                    for tl in raw.get("lights", [])
                ],
                controllers=[_controller_from_dict(c) for c in raw.get("controllers", [])],
                spawners=[
                    SpawnerConfig(
                        entry_id=sp["entry_id"],
                        templates=tuple(VehicleTemplate(**t) for t in sp.get("templates", [])),
                        min_spawn_distance_m=sp.get("min_spawn_distance_m"),
                    )
                    for sp in raw.get("spawners", [])
                ],
            )
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(f"malformed scene description: {exc}") from exc


def _controller_from_dict(raw: Dict[str, Any]) -> ControllerConfig:
    data = dict(raw)
    if data.get("duration_options_s") is not None:
        data["duration_options_s"] = tuple(float(d) for d in data["duration_options_s"])
    return ControllerConfig(**data)


def _require_unique(kind: str, ids: Sequence[str]) -> None:
    seen = set()
    for i in ids:
        if not i:
            raise ConfigurationError(f"{kind} with empty id")
        if i in seen:
            raise ConfigurationError(f"duplicate {kind} id '{i}'")
        seen.add(i)


def load_scene(path: str) -> SceneConfig:
    """Read and validate a JSON scene file."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"cannot read scene file {path}: {exc}") from exc
    scene = SceneConfig.from_dict(raw).validate()
    log.info("Scene loaded from %s: %d waypoints, %d lights, %d controllers",
             path, len(scene.waypoints), len(scene.lights), len(scene.controllers))
    return scene


# ── Built-in scene ────────────────────────────────────────────────────────────

DEFAULT_TEMPLATES: Tuple[VehicleTemplate, ...] = (
    VehicleTemplate(name="car", base_speed=8.0, half_length=2.25, half_width=0.9),
    VehicleTemplate(name="van", base_speed=7.0, half_length=2.6, half_width=1.0),
    VehicleTemplate(name="bus", base_speed=6.0, half_length=5.5, half_width=1.25),
)


def default_scene() -> SceneConfig:
    """Five entries, six exits, two controller groups (MAIN and ROUND)."""
    return SceneConfig(
        waypoints=default_waypoints(),
        routes={k: [list(r) for r in v] for k, v in DEFAULT_ROUTES.items()},
        entries=[
            EntryConfig("E1", 0.3),
            EntryConfig("E2", 0.15),
            EntryConfig("E3", 0.2),
            EntryConfig("E4", 0.15),
            EntryConfig("E5", 0.2),
        ],
        exits=[
            ExitConfig("S1", 0.15),
            ExitConfig("S2", 0.15),
            ExitConfig("S3", 0.2),
            ExitConfig("S4", 0.2),
            ExitConfig("S5", 0.15),
            ExitConfig("S6", 0.15),
        ],
        lights=[
            LightConfig("TL1", "MAIN", (True, False)),
            LightConfig("TL2", "MAIN", (False, True)),
            LightConfig("TL3", "MAIN", (True, False)),
            LightConfig("TL4", "ROUND", (True, False)),
            LightConfig("TL5", "ROUND", (False, True)),
            LightConfig("TL6", "ROUND", (True, False)),
            LightConfig("TL7", "ROUND", (False, True)),
        ],
        controllers=[
            ControllerConfig("MAIN", num_phases=2),
            ControllerConfig("ROUND", num_phases=2),
        ],
        spawners=[
            SpawnerConfig(entry_id, templates=DEFAULT_TEMPLATES)
            for entry_id in ("E1", "E2", "E3", "E4", "E5")
        ],
    )
