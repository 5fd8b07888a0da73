#!/usr/bin/env python3
"""
Action encoding and Q-table update tests.
"""

from __future__ import annotations

import random
import unittest

from ml.q_table import ActionSpace, QTable


class ActionSpaceTests(unittest.TestCase):
    def test_decode_two_phases_two_durations(self) -> None:
        space = ActionSpace.create(2, [8.0, 12.0])
        self.assertEqual(space.size, 4)
        self.assertEqual(space.decode(0), (0, 8.0))
        self.assertEqual(space.decode(1), (1, 8.0))
        self.assertEqual(space.decode(2), (0, 12.0))
        self.assertEqual(space.decode(3), (1, 12.0))

    def test_encode_inverts_decode(self) -> None:
        space = ActionSpace.create(3, [5.0, 10.0])
        for action in range(space.size):
            phase, duration = space.decode(action)
            self.assertEqual(space.encode(phase, space.duration_options.index(duration)), action)

    def test_duration_index_is_clamped(self) -> None:
        space = ActionSpace.create(2, [8.0, 12.0])
        self.assertEqual(space.decode(7), (1, 12.0))

    def test_normalisation(self) -> None:
        with self.assertLogs("qtable", level="WARNING"):
            space = ActionSpace.create(-1, None)
        self.assertEqual(space.num_phases, 1)
        self.assertEqual(space.duration_options, (10.0,))


class QTableTests(unittest.TestCase):
    def test_update_formula(self) -> None:
        table = QTable(1, 4)
        table.values[0] = [0.0, 1.0, 2.0, 0.0]
        new = table.update(0, 0, reward=-3.0, next_state=0, alpha=0.5, gamma=0.9)
        self.assertAlmostEqual(new, 0.5 * 0.0 + 0.5 * (-3.0 + 0.9 * 2.0))
        self.assertAlmostEqual(table.values[0, 0], new)

    def test_alpha_bounds(self) -> None:
        table = QTable(1, 2)
        table.values[0] = [4.0, 0.0]
        table.update(0, 0, reward=-1.0, next_state=0, alpha=0.0, gamma=0.9)
        self.assertEqual(table.values[0, 0], 4.0)
        table.update(0, 1, reward=-1.0, next_state=0, alpha=1.0, gamma=0.5)
        self.assertEqual(table.values[0, 1], -1.0 + 0.5 * 4.0)

    def test_greedy_ties_first_index(self) -> None:
        table = QTable(1, 3)
        table.values[0] = [1.0, 1.0, 0.5]
        action, explored = table.select_action(0, 0.0, random.Random(0))
        self.assertEqual(action, 0)
        self.assertFalse(explored)

    def test_full_exploration_covers_actions(self) -> None:
        table = QTable(1, 4)
        rng = random.Random(3)
        picks = {table.select_action(0, 1.0, rng) for _ in range(200)}
        self.assertEqual({a for a, _ in picks}, {0, 1, 2, 3})
        self.assertTrue(all(explored for _, explored in picks))

    def test_record_round_trip(self) -> None:
        table = QTable(1, 4)
        table.values[0] = [1.0, -2.0, 3.5, 0.0]
        record = table.to_record("MAIN")
        self.assertEqual(record["controller_id"], "MAIN")
        self.assertEqual((record["num_states"], record["num_actions"]), (1, 4))

        fresh = QTable(1, 4)
        self.assertTrue(fresh.load_record(record))
        self.assertEqual(list(fresh.row(0)), [1.0, -2.0, 3.5, 0.0])

    def test_dimension_mismatch_leaves_table_untouched(self) -> None:
        source = QTable(1, 6)
        source.values[0] = [9.0] * 6
        target = QTable(1, 4)
        with self.assertLogs("qtable", level="WARNING"):
            self.assertFalse(target.load_record(source.to_record("MAIN")))
        self.assertEqual(target.values.sum(), 0.0)

    def test_one_by_four_record_rejected_by_one_by_six_table(self) -> None:
        source = QTable(1, 4)
        source.values[0] = [0.5, -1.25, 2.0, 0.0]
        target = QTable(1, 6)
        with self.assertLogs("qtable", level="WARNING"):
            self.assertFalse(target.load_record(source.to_record("MAIN")))
        self.assertEqual(list(target.row(0)), [0.0] * 6)

    def test_value_count_mismatch(self) -> None:
        target = QTable(1, 4)
        record = {"controller_id": "MAIN", "num_states": 1, "num_actions": 4,
                  "values": [1.0, 2.0]}
        with self.assertLogs("qtable", level="WARNING"):
            self.assertFalse(target.load_record(record))
        self.assertEqual(target.values.sum(), 0.0)

    def test_malformed_record(self) -> None:
        target = QTable(1, 4)
        with self.assertLogs("qtable", level="ERROR"):
            self.assertFalse(target.load_record({"controller_id": "MAIN"}))


if __name__ == "__main__":
    unittest.main()
