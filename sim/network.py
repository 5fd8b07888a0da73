"""
sim/network.py
==============
Waypoint graph and route catalog for the simulated road network.

Defines :class:`Waypoint`, :class:`WaypointIndex` (id → waypoint lookup)
and :class:`RouteTable`, the static catalog of directed waypoint-id
sequences grouped by ``(entry, exit)`` pair.

:data:`DEFAULT_ROUTES` and :func:`default_waypoints` describe the built-in
five-entry / six-exit network used by :func:`sim.scene.default_scene`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sim.errors import UnresolvedWaypointError

log = logging.getLogger("network")


# ── Waypoint ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Waypoint:
    """A named point of the route graph.

    Parameters
    ----------
    id : str
        Unique identifier (``E1`` entries, ``P7`` interior, ``S3`` exits).
    x, y : float
        Ground-plane position in metres.
    heading : float
        Orientation in radians (informational; vehicles steer by position).
    is_stop_point : bool
        Vehicles halt before this point while its light is red / yellow.
    traffic_light_id : str
        Light governing this stop point (ignored unless *is_stop_point*).
    """

    id: str
    x: float
    y: float
    heading: float = 0.0
    is_stop_point: bool = False
    traffic_light_id: str = ""

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def gated_light_id(self) -> Optional[str]:
        """Light id when this is a stop point bound to a light, else ``None``."""
        if self.is_stop_point and self.traffic_light_id:
            return self.traffic_light_id
        return None


# ── Waypoint index ────────────────────────────────────────────────────────────

class WaypointIndex:
    """Resolves waypoint ids to :class:`Waypoint` instances.

    Built once from the placed waypoints; duplicate ids are reported and the
    first occurrence wins.
    """

    def __init__(self, waypoints: Iterable[Waypoint]) -> None:
        self._by_id: Dict[str, Waypoint] = {}
        for wp in waypoints:
            if not wp.id:
                continue
            if wp.id in self._by_id:
                log.warning("Duplicate waypoint id '%s' ignored", wp.id)
                continue
            self._by_id[wp.id] = wp

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, waypoint_id: str) -> bool:
        return waypoint_id in self._by_id

    def ids(self) -> List[str]:
        return list(self._by_id)

    def get(self, waypoint_id: str) -> Optional[Waypoint]:
        """Return the waypoint or ``None`` (logged) when unknown."""
        wp = self._by_id.get(waypoint_id)
        if wp is None:
            log.error("No waypoint with id '%s'", waypoint_id)
        return wp

    def resolve_route(self, ids: Sequence[str]) -> List[Waypoint]:
        """Convert ``["E1", "P2", ...]`` into waypoints.

        Raises
        ------
        UnresolvedWaypointError
            When any id is unknown (all missing ids are reported at once).
        """
        missing = [wid for wid in ids if wid not in self._by_id]
        if missing:
            raise UnresolvedWaypointError(missing)
        return [self._by_id[wid] for wid in ids]


# ── Route table ───────────────────────────────────────────────────────────────

RouteKey = Tuple[str, str]


class RouteTable:
    """Catalog of directed routes, indexed by ``(entry, exit)`` and by entry.

    The exit of a route is its last waypoint id.  Reachable exits per entry
    are kept deduplicated in first-seen order.

    Parameters
    ----------
    routes_by_entry : mapping
        ``entry_id → [route, ...]`` where each route is a sequence of ids
        starting with *entry_id*.
    """

    def __init__(self, routes_by_entry: Mapping[str, Sequence[Sequence[str]]]) -> None:
        self._routes: Dict[RouteKey, List[Tuple[str, ...]]] = {}
        self._exits_by_entry: Dict[str, List[str]] = {}
        self._entries: List[str] = []
        for entry_id, routes in routes_by_entry.items():
            self.add_entry_routes(entry_id, routes)

    def add_entry_routes(self, entry_id: str, routes: Optional[Sequence[Sequence[str]]]) -> None:
        """Index every route of *entry_id*; empty or foreign routes are skipped."""
        if not routes:
            return
        if entry_id not in self._entries:
            self._entries.append(entry_id)
        for route in routes:
            if not route:
                log.warning("Empty route for entry '%s' skipped", entry_id)
                continue
            if route[0] != entry_id:
                log.error(
                    "Route %s listed under entry '%s' starts at '%s'; skipped",
                    list(route), entry_id, route[0],
                )
                continue
            exit_id = route[-1]
            self._routes.setdefault((entry_id, exit_id), []).append(tuple(route))
            exits = self._exits_by_entry.setdefault(entry_id, [])
            if exit_id not in exits:
                exits.append(exit_id)

    # ── queries ───────────────────────────────────────────────────────────

    def entries(self) -> List[str]:
        return list(self._entries)

    def exits_for(self, entry_id: str) -> List[str]:
        """Exits reachable from *entry_id* (empty when none)."""
        return list(self._exits_by_entry.get(entry_id, ()))

    def routes_for(self, entry_id: str, exit_id: str) -> List[Tuple[str, ...]]:
        """Candidate waypoint-id sequences for ``(entry, exit)``."""
        return list(self._routes.get((entry_id, exit_id), ()))

    def routes_from(self, entry_id: str) -> List[Tuple[str, ...]]:
        """Every route starting at *entry_id*, logged when the entry is unknown."""
        if entry_id not in self._exits_by_entry:
            log.error("Unknown entry '%s'", entry_id)
            return []
        return [
            r for exit_id in self._exits_by_entry[entry_id]
            for r in self._routes[(entry_id, exit_id)]
        ]

    def all_routes(self) -> List[Tuple[str, ...]]:
        return [r for routes in self._routes.values() for r in routes]


# ── Default catalog ───────────────────────────────────────────────────────────

DEFAULT_ROUTES: Dict[str, List[List[str]]] = {
    "E1": [
        ["E1", "P2", "P3", "S2"],
        ["E1", "P2", "P6", "P5", "P4", "S3"],
        ["E1", "P2", "P6", "P8", "P10", "P11", "P13", "P17", "P21", "P22", "S4"],
        ["E1", "P2", "P6", "P8", "P10", "P11", "P13", "P17", "P21", "P25", "P29",
         "P33", "S6"],
        ["E1", "P2", "P6", "P8", "P10", "P11", "P13", "P17", "P21", "P25", "P29",
         "P28", "P27", "S5"],
    ],
    "E2": [
        ["E2", "P14", "P13", "P12", "P9", "P7", "P5", "P4", "S3"],
        ["E2", "P14", "P13", "P12", "P9", "P7", "P5", "P1", "S1"],
        ["E2", "P14", "P13", "P17", "P21", "P22", "S4"],
        ["E2", "P14", "P13", "P17", "P21", "P25", "P29", "P33", "S6"],
        ["E2", "P14", "P13", "P17", "P21", "P25", "P29", "P28", "P27", "S5"],
    ],
    "E3": [
        ["E3", "P18", "P23", "P27", "S5"],
        ["E3", "P18", "P19", "P20", "P16", "P15", "P12", "P9", "P7", "P5", "P4", "S3"],
        ["E3", "P18", "P19", "P20", "P16", "P15", "P12", "P9", "P7", "P5", "P1", "S1"],
        ["E3", "P18", "P19", "P20", "P16", "P15", "P12", "P9", "P7", "P5", "P1",
         "P2", "P3", "S2"],
        ["E3", "P18", "P19", "P20", "P21", "P22", "S4"],
        ["E3", "P18", "P19", "P20", "P21", "P25", "P29", "P33", "S6"],
    ],
    "E4": [
        ["E4", "P31", "P26", "P22", "S4"],
        ["E4", "P31", "P30", "P29", "P33", "S6"],
        ["E4", "P31", "P30", "P29", "P28", "P27", "S5"],
        ["E4", "P31", "P30", "P29", "P28", "P24", "P20", "P16", "P15", "P12", "P9",
         "P7", "P5", "P4", "S3"],
        ["E4", "P31", "P30", "P29", "P28", "P24", "P20", "P16", "P15", "P12", "P9",
         "P7", "P5", "P1", "P2", "P3", "S2"],
        ["E4", "P31", "P30", "P29", "P28", "P24", "P20", "P16", "P15", "P12", "P9",
         "P7", "P5", "P1", "S1"],
    ],
    "E5": [
        ["E5", "P34", "P32", "P28", "P27", "S5"],
        ["E5", "P34", "P32", "P28", "P24", "P20", "P16", "P15", "P12", "P9", "P7",
         "P5", "P4", "S3"],
        ["E5", "P34", "P32", "P28", "P24", "P20", "P16", "P15", "P12", "P9", "P7",
         "P5", "P1", "S1"],
        ["E5", "P34", "P32", "P28", "P24", "P20", "P16", "P15", "P12", "P9", "P7",
         "P5", "P1", "P2", "P3", "S2"],
        ["E5", "P34", "P32", "P28", "P24", "P20", "P21", "P22", "S4"],
    ],
}

# Southbound trunk runs along x = 0, northbound along x = 12.  Merges
# without a light join at a right angle or less and no two segments face
# each other.  The ROUND group is a one-way loop: down the west side
# (P21 → P25 → P29), east along the bottom (P29 → P28), up the east side
# (P28 → P24 → P20) and west along the top (P20 → P21).
_LAYOUT: Dict[str, Tuple[float, float]] = {
    # entries
    "E1": (0.0, 205.0),
    "E2": (55.0, 84.0),
    "E3": (60.0, 40.0),
    "E4": (-60.0, 0.0),
    "E5": (24.0, -50.0),
    # exits
    "S1": (12.0, 205.0),
    "S2": (-50.0, 176.0),
    "S3": (55.0, 150.0),
    "S4": (-60.0, 40.0),
    "S5": (60.0, 0.0),
    "S6": (0.0, -50.0),
    # southbound trunk
    "P2": (0.0, 176.0),
    "P6": (0.0, 150.0),
    "P8": (0.0, 130.0),
    "P10": (0.0, 112.0),
    "P11": (0.0, 98.0),
    "P13": (0.0, 84.0),
    "P17": (0.0, 60.0),
    # northbound trunk
    "P16": (24.0, 56.0),
    "P15": (12.0, 70.0),
    "P12": (12.0, 92.0),
    "P9": (12.0, 112.0),
    "P7": (12.0, 130.0),
    "P5": (12.0, 150.0),
    "P1": (12.0, 176.0),
    # ROUND loop
    "P21": (0.0, 40.0),
    "P25": (0.0, 20.0),
    "P29": (0.0, 0.0),
    "P28": (24.0, 0.0),
    "P24": (24.0, 20.0),
    "P20": (24.0, 40.0),
    # side branches
    "P3": (-16.0, 176.0),
    "P4": (28.0, 150.0),
    "P14": (26.0, 84.0),
    "P18": (44.0, 40.0),
    "P19": (34.0, 40.0),
    "P23": (44.0, 20.0),
    "P27": (44.0, 0.0),
    "P22": (-40.0, 40.0),
    "P26": (-40.0, 22.0),
    "P31": (-40.0, 0.0),
    "P30": (-14.0, 0.0),
    "P33": (0.0, -20.0),
    "P34": (24.0, -32.0),
    "P32": (24.0, -14.0),
}

# stop point id → traffic light id
DEFAULT_STOP_POINTS: Dict[str, str] = {
    "P11": "TL1",   # southbound trunk before the MAIN junction
    "P14": "TL2",   # E2 approach to the MAIN junction
    "P15": "TL3",   # northbound trunk before the MAIN junction
    "P25": "TL4",   # west side of the ROUND loop
    "P30": "TL5",   # E4 approach to the ROUND junction
    "P32": "TL6",   # E5 approach to the ROUND junction
    "P19": "TL7",   # E3 approach to the ROUND loop
}


def default_waypoints() -> List[Waypoint]:
    """Waypoints of the built-in network, stop points already bound."""
    waypoints = []
    for wid, (x, y) in _LAYOUT.items():
        light_id = DEFAULT_STOP_POINTS.get(wid, "")
        waypoints.append(Waypoint(
            id=wid, x=x, y=y,
            is_stop_point=bool(light_id),
            traffic_light_id=light_id,
        ))
    return waypoints
