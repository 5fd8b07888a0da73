"""
sim/spatial.py
==============
Spatial query capability over vehicle footprints.

:class:`SpatialIndex` answers "which bodies overlap this volume?" for
oriented boxes, capsules and spheres.  A numpy broad phase discards bodies
whose bounding circle cannot reach the query volume; the survivors go
through the exact tests in :mod:`sim.physics`.

Queries are read-only: they see every body's footprint as it is at call
time and never mutate the index.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Collection, Dict, List, Protocol, Tuple

import numpy as np

from sim.physics import (
    Point,
    box_corners,
    capsule_overlaps_polygon,
    circle_overlaps_polygon,
    polygons_overlap,
)

log = logging.getLogger("spatial")


@dataclass(frozen=True)
class Footprint:
    """Oriented rectangle occupied by a body on the ground plane."""

    x: float
    y: float
    heading: float
    half_length: float
    half_width: float

    @property
    def center(self) -> Point:
        return (self.x, self.y)

    @property
    def bounding_radius(self) -> float:
        return math.hypot(self.half_length, self.half_width)

    def corners(self) -> List[Point]:
        return box_corners(self.center, self.heading, self.half_length, self.half_width)


class Body(Protocol):
    """Anything the index can hold: an id plus a current footprint."""

    id: str

    def footprint(self) -> Footprint:
        ...


class SpatialIndex:
    """Registry of bodies answering overlap queries."""

    def __init__(self) -> None:
        self._bodies: Dict[str, Body] = {}

    def __len__(self) -> int:
        return len(self._bodies)

    def __contains__(self, body_id: str) -> bool:
        return body_id in self._bodies

    def add(self, body: Body) -> None:
        self._bodies[body.id] = body

    def remove(self, body: Body) -> None:
        if self._bodies.get(body.id) is body:
            del self._bodies[body.id]

    def clear(self) -> None:
        self._bodies.clear()

    # ── broad phase ───────────────────────────────────────────────────────

    def _near(self, cx: float, cy: float, reach: float,
              exclude: Collection[str]) -> List[Tuple[Body, Footprint]]:
        candidates = [b for bid, b in self._bodies.items() if bid not in exclude]
        if not candidates:
            return []
        prints = [b.footprint() for b in candidates]
        arr = np.array([(fp.x, fp.y, fp.bounding_radius) for fp in prints], dtype=float)
        dist = np.hypot(arr[:, 0] - cx, arr[:, 1] - cy)
        mask = dist <= reach + arr[:, 2]
        return [(candidates[i], prints[i]) for i in np.flatnonzero(mask)]

    # ── queries ───────────────────────────────────────────────────────────

    def overlap_box(self, center: Point, heading: float,
                    half_length: float, half_width: float,
                    exclude: Collection[str] = ()) -> List[Body]:
        """Bodies whose footprint overlaps an oriented box."""
        reach = math.hypot(half_length, half_width)
        query = box_corners(center, heading, half_length, half_width)
        return [
            body for body, fp in self._near(center[0], center[1], reach, exclude)
            if polygons_overlap(query, fp.corners())
        ]

    def overlap_capsule(self, start: Point, end: Point, radius: float,
                        exclude: Collection[str] = ()) -> List[Body]:
        """Bodies whose footprint reaches a capsule swept from *start* to *end*."""
        mx = (start[0] + end[0]) * 0.5
        my = (start[1] + end[1]) * 0.5
        reach = math.hypot(end[0] - start[0], end[1] - start[1]) * 0.5 + radius
        return [
            body for body, fp in self._near(mx, my, reach, exclude)
            if capsule_overlaps_polygon(start, end, radius, fp.corners())
        ]

    def overlap_sphere(self, center: Point, radius: float,
                       exclude: Collection[str] = ()) -> List[Body]:
        """Bodies whose footprint reaches a circle around *center*."""
        return [
            body for body, fp in self._near(center[0], center[1], radius, exclude)
            if circle_overlaps_polygon(center, radius, fp.corners())
        ]
