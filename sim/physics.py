#!/usr/bin/env python3
"""
sim/physics.py
==============
Low-level 2-D geometry helpers used by :mod:`sim.vehicle` and
:mod:`sim.spatial`.

All positions live on the ground plane as ``(x, y)`` tuples in metres.
Headings are radians measured counter-clockwise from the +x axis, so the
forward unit vector of a heading ``h`` is ``(cos h, sin h)``.

Keeping these in a separate module avoids circular imports and makes unit
testing straightforward.
"""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

Point = Tuple[float, float]

_EPS = 1e-9


def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def heading_to(origin: Point, target: Point, fallback: float = 0.0) -> float:
    """Heading from *origin* towards *target*.

    Returns *fallback* when the two points coincide.
    """
    dx = target[0] - origin[0]
    dy = target[1] - origin[1]
    if dx * dx + dy * dy <= 1e-8:
        return fallback
    return math.atan2(dy, dx)


def forward_vector(heading: float) -> Point:
    """Unit vector pointing along *heading*."""
    return (math.cos(heading), math.sin(heading))


def step_toward(origin: Point, target: Point, step: float) -> Point:
    """Point *step* metres from *origin* along the segment to *target*.

    Does not overshoot: when *step* covers the whole distance the target
    itself is returned.
    """
    d = distance(origin, target)
    if d <= step or d < _EPS:
        return (target[0], target[1])
    frac = step / d
    return (
        origin[0] + (target[0] - origin[0]) * frac,
        origin[1] + (target[1] - origin[1]) * frac,
    )


def wrap_angle(angle: float) -> float:
    """Wrap *angle* into ``(-pi, pi]``."""
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def rotate_toward(current: float, target: float, t: float) -> float:
    """Interpolate from *current* to *target* heading along the shortest arc.

    Parameters
    ----------
    current, target : float
        Headings in radians.
    t : float
        Interpolation factor; clamped to ``[0, 1]`` (``1`` snaps to *target*).
    """
    t = max(0.0, min(1.0, t))
    delta = wrap_angle(target - current)
    return wrap_angle(current + delta * t)


# ── Oriented boxes ────────────────────────────────────────────────────────────

def box_corners(center: Point, heading: float,
                half_length: float, half_width: float) -> List[Point]:
    """Corners of an oriented rectangle, counter-clockwise.

    *half_length* runs along the heading, *half_width* across it.
    """
    fx, fy = forward_vector(heading)
    lx, ly = -fy, fx
    cx, cy = center
    corners = []
    for sl, sw in ((1.0, 1.0), (-1.0, 1.0), (-1.0, -1.0), (1.0, -1.0)):
        corners.append((
            cx + fx * half_length * sl + lx * half_width * sw,
            cy + fy * half_length * sl + ly * half_width * sw,
        ))
    return corners


def _project(poly: Sequence[Point], ax: float, ay: float) -> Tuple[float, float]:
    dots = [p[0] * ax + p[1] * ay for p in poly]
    return min(dots), max(dots)


def polygons_overlap(a: Sequence[Point], b: Sequence[Point]) -> bool:
    """Separating-axis test for two convex polygons.

    Touching edges do not count as overlap.
    """
    for poly in (a, b):
        n = len(poly)
        for i in range(n):
            x1, y1 = poly[i]
            x2, y2 = poly[(i + 1) % n]
            ax, ay = -(y2 - y1), x2 - x1
            if abs(ax) < _EPS and abs(ay) < _EPS:
                continue
            amin, amax = _project(a, ax, ay)
            bmin, bmax = _project(b, ax, ay)
            if amax <= bmin + _EPS or bmax <= amin + _EPS:
                return False
    return True


def point_in_polygon(p: Point, poly: Sequence[Point]) -> bool:
    """True when *p* lies strictly inside the convex polygon *poly*."""
    sign = 0
    n = len(poly)
    for i in range(n):
        x1, y1 = poly[i]
        x2, y2 = poly[(i + 1) % n]
        cross = (x2 - x1) * (p[1] - y1) - (y2 - y1) * (p[0] - x1)
        if abs(cross) < _EPS:
            return False
        s = 1 if cross > 0 else -1
        if sign == 0:
            sign = s
        elif s != sign:
            return False
    return True


# ── Segments ──────────────────────────────────────────────────────────────────

def point_segment_distance(p: Point, a: Point, b: Point) -> float:
    """Shortest distance from *p* to the segment *a*–*b*."""
    abx, aby = b[0] - a[0], b[1] - a[1]
    denom = abx * abx + aby * aby
    if denom < _EPS:
        return distance(p, a)
    t = ((p[0] - a[0]) * abx + (p[1] - a[1]) * aby) / denom
    t = max(0.0, min(1.0, t))
    return distance(p, (a[0] + abx * t, a[1] + aby * t))


def _orient(a: Point, b: Point, c: Point) -> float:
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    """Proper intersection test for two segments (collinear overlap excluded)."""
    d1 = _orient(q1, q2, p1)
    d2 = _orient(q1, q2, p2)
    d3 = _orient(p1, p2, q1)
    d4 = _orient(p1, p2, q2)
    return d1 * d2 < 0.0 and d3 * d4 < 0.0


def segment_segment_distance(p1: Point, p2: Point, q1: Point, q2: Point) -> float:
    """Shortest distance between two segments."""
    if segments_intersect(p1, p2, q1, q2):
        return 0.0
    return min(
        point_segment_distance(p1, q1, q2),
        point_segment_distance(p2, q1, q2),
        point_segment_distance(q1, p1, p2),
        point_segment_distance(q2, p1, p2),
    )


def segment_polygon_distance(a: Point, b: Point, poly: Sequence[Point]) -> float:
    """Shortest distance between segment *a*–*b* and a convex polygon.

    Zero when the segment touches or lies inside the polygon.
    """
    if point_in_polygon(a, poly) or point_in_polygon(b, poly):
        return 0.0
    n = len(poly)
    return min(
        segment_segment_distance(a, b, poly[i], poly[(i + 1) % n])
        for i in range(n)
    )


def capsule_overlaps_polygon(start: Point, end: Point, radius: float,
                             poly: Sequence[Point]) -> bool:
    """True when the capsule swept along *start*–*end* reaches *poly*."""
    return segment_polygon_distance(start, end, poly) < radius


def circle_overlaps_polygon(center: Point, radius: float,
                            poly: Sequence[Point]) -> bool:
    """True when a circle of *radius* around *center* reaches *poly*."""
    return segment_polygon_distance(center, center, poly) < radius
