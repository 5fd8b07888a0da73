#!/usr/bin/env python3
"""
HTTP API tests against a bridge that is stepped by hand.
"""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from sim.api import create_app
from sim.sim_bridge import SimBridge
from sim.world import World


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.bridge = SimBridge(World(seed=1), tick_rate_hz=10.0, realtime=False)
        for _ in range(50):
            self.bridge.step()
        self.client = TestClient(create_app(self.bridge))

    def tearDown(self) -> None:
        self.bridge.stop()

    def test_state(self) -> None:
        resp = self.client.get("/state")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertAlmostEqual(body["time_s"], 5.0, places=6)
        self.assertEqual(body["ticks"], 50)
        self.assertFalse(body["paused"])
        self.assertEqual(len(body["lights"]), 7)
        self.assertEqual(body["census"]["active_vehicles"], len(body["vehicles"]))

    def test_census(self) -> None:
        resp = self.client.get("/census")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(set(resp.json()), {"active_vehicles", "waiting_vehicles",
                                            "waiting_by_light"})

    def test_lights(self) -> None:
        resp = self.client.get("/lights")
        self.assertEqual(resp.status_code, 200)
        lights = {row["light_id"]: row for row in resp.json()}
        self.assertEqual(lights["TL2"]["controller_id"], "MAIN")
        self.assertIn(lights["TL2"]["state"], ("RED", "YELLOW", "GREEN"))

    def test_controller_inspector(self) -> None:
        resp = self.client.get("/controllers/MAIN")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["num_phases"], 2)
        self.assertEqual(len(body["q_values"]), 4)
        self.assertGreaterEqual(body["decisions"], 1)
        self.assertEqual(sorted(body["lights"]), ["TL1", "TL2", "TL3"])

    def test_unknown_controller_is_404(self) -> None:
        resp = self.client.get("/controllers/NOPE")
        self.assertEqual(resp.status_code, 404)

    def test_reset(self) -> None:
        resp = self.client.post("/reset")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/census").json()["active_vehicles"], 0)

    def test_pause(self) -> None:
        resp = self.client.post("/pause", json={"paused": True})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["paused"])
        self.assertTrue(self.bridge.is_paused())
        self.assertTrue(self.client.get("/state").json()["paused"])

        resp = self.client.post("/pause", json={"paused": False})
        self.assertEqual(resp.json()["status"], "running")

    def test_pause_rejects_bad_body(self) -> None:
        resp = self.client.post("/pause", json={})
        self.assertEqual(resp.status_code, 422)


if __name__ == "__main__":
    unittest.main()
