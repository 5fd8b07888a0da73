"""
sim/census.py
=============
Global traffic counters for one simulation.

:class:`TrafficCensus` tracks the live vehicles and how many of them are
waiting at each light.  The counts feed the controllers' reward and gate
spawn admission.

The list of active vehicles is the source of truth; the incremental
waiting counters are a cache kept consistent with a scan of that list
(see :meth:`TrafficCensus.is_consistent`).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List

if TYPE_CHECKING:
    from sim.vehicle import VehicleAgent

log = logging.getLogger("census")


class TrafficCensus:
    """Active / waiting vehicle counters."""

    def __init__(self) -> None:
        self._vehicles: List["VehicleAgent"] = []
        self._waiting_total: int = 0
        self._waiting_by_light: Dict[str, int] = {}

    # ── active vehicles ───────────────────────────────────────────────────

    def register_vehicle(self, vehicle: "VehicleAgent") -> None:
        if vehicle not in self._vehicles:
            self._vehicles.append(vehicle)

    def unregister_vehicle(self, vehicle: "VehicleAgent") -> None:
        try:
            self._vehicles.remove(vehicle)
        except ValueError:
            pass

    @property
    def active_count(self) -> int:
        return len(self._vehicles)

    def vehicles(self) -> List["VehicleAgent"]:
        return list(self._vehicles)

    # ── waiting at lights ─────────────────────────────────────────────────

    def register_waiting(self, light_id: str) -> None:
        """A vehicle started waiting at *light_id*."""
        if not light_id:
            log.debug("register_waiting without light id ignored")
            return
        self._waiting_by_light[light_id] = self._waiting_by_light.get(light_id, 0) + 1
        self._waiting_total += 1

    def unregister_waiting(self, light_id: str) -> None:
        """A vehicle stopped waiting at *light_id*; zero-count entries are dropped."""
        count = self._waiting_by_light.get(light_id, 0) if light_id else 0
        if count <= 0:
            log.debug("unregister_waiting for '%s' with no waiting vehicles", light_id)
            return
        if count == 1:
            del self._waiting_by_light[light_id]
        else:
            self._waiting_by_light[light_id] = count - 1
        self._waiting_total -= 1

    @property
    def waiting_count(self) -> int:
        return self._waiting_total

    def waiting_by_light(self) -> Dict[str, int]:
        return dict(self._waiting_by_light)

    def waiting_for_light(self, light_id: str) -> int:
        """Vehicles waiting at *light_id*, counted by scanning the live list."""
        if not light_id:
            return 0
        return sum(
            1 for v in self._vehicles
            if v.is_waiting and v.waiting_light_id == light_id
        )

    def waiting_for_lights(self, light_ids: Iterable[str]) -> int:
        return sum(self.waiting_for_light(lid) for lid in light_ids)

    def is_consistent(self) -> bool:
        """True when the cached counters match a scan of the live vehicles."""
        scanned: Dict[str, int] = {}
        for v in self._vehicles:
            if v.is_waiting and v.waiting_light_id:
                scanned[v.waiting_light_id] = scanned.get(v.waiting_light_id, 0) + 1
        return (
            scanned == self._waiting_by_light
            and self._waiting_total == sum(self._waiting_by_light.values())
        )

    # ── reset ─────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Destroy every active vehicle and zero all counters."""
        for vehicle in list(self._vehicles):
            vehicle.destroy()
        self._vehicles.clear()
        self._waiting_total = 0
        self._waiting_by_light.clear()
        log.info("Census reset")

    def as_dict(self) -> dict:
        return {
            "active_vehicles": self.active_count,
            "waiting_vehicles": self._waiting_total,
            "waiting_by_light": dict(self._waiting_by_light),
        }
