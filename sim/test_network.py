#!/usr/bin/env python3
"""
Route catalog and waypoint resolution tests.
"""

from __future__ import annotations

import math
import unittest

from sim.errors import ConfigurationError, UnresolvedWaypointError
from sim.network import (
    DEFAULT_ROUTES,
    RouteTable,
    Waypoint,
    WaypointIndex,
    default_waypoints,
)
from sim.physics import segment_segment_distance


class RouteTableTests(unittest.TestCase):
    def setUp(self) -> None:
        self.table = RouteTable(DEFAULT_ROUTES)

    def test_every_route_starts_at_its_entry_and_ends_at_an_exit(self) -> None:
        for entry_id in self.table.entries():
            for route in self.table.routes_from(entry_id):
                self.assertEqual(route[0], entry_id)
                self.assertTrue(route[-1].startswith("S"), msg=str(route))

    def test_exits_are_deduplicated_in_first_seen_order(self) -> None:
        self.assertEqual(self.table.exits_for("E1"), ["S2", "S3", "S4", "S6", "S5"])
        self.assertEqual(self.table.exits_for("E4"), ["S4", "S6", "S5", "S3", "S2", "S1"])

    def test_routes_for_pair(self) -> None:
        self.assertEqual(self.table.routes_for("E1", "S2"), [("E1", "P2", "P3", "S2")])
        self.assertEqual(len(self.table.routes_for("E3", "S3")), 1)
        self.assertEqual(self.table.routes_for("E1", "S1"), [])

    def test_unknown_entry_has_no_exits(self) -> None:
        self.assertEqual(self.table.exits_for("E9"), [])
        self.assertEqual(self.table.routes_from("E9"), [])

    def test_foreign_and_empty_routes_are_skipped(self) -> None:
        table = RouteTable({"E1": [["E2", "P1", "S1"], [], ["E1", "S1"]]})
        self.assertEqual(table.exits_for("E1"), ["S1"])
        self.assertEqual(table.all_routes(), [("E1", "S1")])

    def test_same_pair_keeps_every_candidate(self) -> None:
        table = RouteTable({"E1": [["E1", "A", "S1"], ["E1", "B", "S1"]]})
        self.assertEqual(table.exits_for("E1"), ["S1"])
        self.assertEqual(len(table.routes_for("E1", "S1")), 2)


class WaypointIndexTests(unittest.TestCase):
    def test_default_layout_resolves_every_route(self) -> None:
        index = WaypointIndex(default_waypoints())
        table = RouteTable(DEFAULT_ROUTES)
        for route in table.all_routes():
            self.assertEqual(len(index.resolve_route(route)), len(route))

    def test_resolve_e1_to_s2(self) -> None:
        index = WaypointIndex(default_waypoints())
        route = index.resolve_route(["E1", "P2", "P3", "S2"])
        self.assertEqual([wp.id for wp in route], ["E1", "P2", "P3", "S2"])
        self.assertEqual(route[0].position, (0.0, 205.0))

    def test_unresolved_ids_are_all_reported(self) -> None:
        index = WaypointIndex(default_waypoints())
        with self.assertRaises(UnresolvedWaypointError) as ctx:
            index.resolve_route(["E1", "PX", "P2", "PY"])
        self.assertEqual(ctx.exception.waypoint_ids, ("PX", "PY"))
        self.assertIsInstance(ctx.exception, ConfigurationError)
        self.assertIn("PX", str(ctx.exception))

    def test_get_unknown_returns_none(self) -> None:
        index = WaypointIndex(default_waypoints())
        self.assertIsNone(index.get("NOPE"))

    def test_duplicate_id_keeps_first(self) -> None:
        index = WaypointIndex([Waypoint("A", 1.0, 1.0), Waypoint("A", 9.0, 9.0)])
        self.assertEqual(len(index), 1)
        self.assertEqual(index.get("A").position, (1.0, 1.0))

    def test_stop_points_carry_their_light(self) -> None:
        index = WaypointIndex(default_waypoints())
        self.assertEqual(index.get("P11").gated_light_id, "TL1")
        self.assertIsNone(index.get("P2").gated_light_id)
        self.assertIsNone(Waypoint("X", 0.0, 0.0, traffic_light_id="TL1").gated_light_id)


class DefaultLayoutTests(unittest.TestCase):

    def _segments(self):
        index = WaypointIndex(default_waypoints())
        edges = set()
        for routes in DEFAULT_ROUTES.values():
            for ids in routes:
                edges.update(zip(ids, ids[1:]))
        return [(index.get(a).position, index.get(b).position, f"{a}->{b}")
                for a, b in sorted(edges)]

    def test_no_segments_face_each_other(self) -> None:
        # Opposing flows closer than a lane apart lock up nose to nose.
        segments = self._segments()
        for i, (p1, p2, name_p) in enumerate(segments):
            for q1, q2, name_q in segments[i + 1:]:
                dp = (p2[0] - p1[0], p2[1] - p1[1])
                dq = (q2[0] - q1[0], q2[1] - q1[1])
                cos = (dp[0] * dq[0] + dp[1] * dq[1]) / (math.hypot(*dp) * math.hypot(*dq))
                if cos < -0.85:
                    gap = segment_segment_distance(p1, p2, q1, q2)
                    self.assertGreaterEqual(gap, 6.0, f"{name_p} faces {name_q}")

    def test_every_segment_has_length(self) -> None:
        for p1, p2, name in self._segments():
            self.assertGreater(math.hypot(p2[0] - p1[0], p2[1] - p1[1]), 5.0, name)


if __name__ == "__main__":
    unittest.main()
