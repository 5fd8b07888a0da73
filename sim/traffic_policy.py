#!/usr/bin/env python3
"""
sim/traffic_policy.py
=====================
Tunable motion, sensing, spawning, signal and learning parameters for the
network simulation.  Every constant lives in the frozen
:class:`SimulationPolicy` dataclass so that experiments can swap policies
without touching code (``dataclasses.replace(policy, epsilon=0.0)``).

Also provides two stateless helpers derived from a policy:

* :func:`sensor_radius_m`: forward sensing capsule radius for a footprint.
* :func:`tick_travel_m`: distance a vehicle may cover in one tick.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Tuple

from sim.errors import ConfigurationError


@dataclass(frozen=True)
class SimulationPolicy:
    """Immutable bag of every tunable simulation parameter.

    Groups: vehicle interaction, signal compliance, global multipliers,
    spawn envelope, light clearance, Q-learning defaults.
    """

    # ── Vehicle interaction ───────────────────────────────────────────────
    safe_headway_m: float = 4.0
    """Length of the forward sensing capsule, measured from the front bumper."""

    merge_check_radius_m: float = 1.5
    """Sphere radius for the fits-here check when a vehicle has no footprint."""

    sensor_min_radius_m: float = 0.8
    """Lower clamp on the forward sensing capsule radius."""

    sensor_radius_scale: float = 1.0
    """Capsule radius = vehicle half-width × this factor (before clamping)."""

    # ── Signal compliance ─────────────────────────────────────────────────
    stop_distance_m: float = 2.0
    """Distance to a red/yellow stop point at which a vehicle halts."""

    # ── Global multipliers ────────────────────────────────────────────────
    global_speed_multiplier: float = 1.0
    """Scales every vehicle's base speed."""

    global_rotation_multiplier: float = 1.0
    """Scales every vehicle's base rotation speed."""

    # ── Spawn envelope ────────────────────────────────────────────────────
    auto_spawn: bool = True
    """Run the periodic spawn loop."""

    min_spawn_interval_s: float = 2.0
    """Shortest wait between spawn attempts."""

    max_spawn_interval_s: float = 5.0
    """Longest wait between spawn attempts."""

    max_active_vehicles: int = 50
    """Spawn admission gate on the census active count."""

    min_spawn_distance_m: float = 6.0
    """Clearance required around an entry point before spawning there."""

    # ── Light clearance ───────────────────────────────────────────────────
    yellow_before_red_s: float = 0.5
    """Yellow hold on every Green → Red change."""

    red_to_green_delay_s: float = 1.5
    """All-red clearance hold on every Red → Green change."""

    # ── Q-learning defaults ───────────────────────────────────────────────
    alpha: float = 0.1
    """Learning rate."""

    gamma: float = 0.9
    """Discount factor."""

    epsilon: float = 0.1
    """Exploration probability of the epsilon-greedy policy."""

    waiting_weight: float = 2.0
    """Extra cost per vehicle waiting at a light in the reward."""

    duration_options_s: Tuple[float, ...] = (8.0, 12.0)
    """Green-phase durations a controller may choose from."""

    initial_delay_s: float = 1.0
    """Wait before a controller's first decision."""

    fallback_duration_s: float = 1.0
    """Substituted for a non-positive chosen duration."""

    def __post_init__(self) -> None:
        for name in ("alpha", "gamma", "epsilon"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
        if self.min_spawn_interval_s < 0.0 or \
                self.max_spawn_interval_s < self.min_spawn_interval_s:
            raise ConfigurationError(
                "spawn interval bounds must satisfy 0 <= min <= max, got "
                f"{self.min_spawn_interval_s}..{self.max_spawn_interval_s}"
            )
        if self.max_active_vehicles < 0:
            raise ConfigurationError("max_active_vehicles must be non-negative")
        for f in fields(self):
            if f.name.endswith("_m") and getattr(self, f.name) < 0.0:
                raise ConfigurationError(f"{f.name} must be non-negative")

    @classmethod
    def from_dict(cls, raw: dict) -> "SimulationPolicy":
        """Build a policy from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in raw.items() if k in known}
        if "duration_options_s" in kwargs:
            kwargs["duration_options_s"] = tuple(float(d) for d in kwargs["duration_options_s"])
        return cls(**kwargs)


def sensor_radius_m(half_width: float, policy: SimulationPolicy) -> float:
    """Forward sensing capsule radius for a vehicle of *half_width*."""
    return max(policy.sensor_min_radius_m, half_width * policy.sensor_radius_scale)


def tick_travel_m(base_speed: float, dt: float, policy: SimulationPolicy) -> float:
    """Distance covered in one tick at ``base_speed × global multiplier``."""
    return max(0.0, base_speed * policy.global_speed_multiplier * dt)
