"""
ml/q_table.py
=============
Tabular Q-learning primitives used by :class:`sim.controller.PhaseController`.

* :class:`ActionSpace`: maps ``(phase, duration)`` pairs to flat action
  indices: ``action = phase + num_phases * duration_index``.
* :class:`QTable`: numpy-backed ``Q[state, action]`` table with the
  one-step update, epsilon-greedy selection and flat record export/import.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

log = logging.getLogger("qtable")

DEFAULT_DURATION_S = 10.0


@dataclass(frozen=True)
class ActionSpace:
    """Discrete ``phase × duration`` action set of one controller."""

    num_phases: int
    duration_options: Tuple[float, ...]

    @classmethod
    def create(cls, num_phases: int, duration_options: Optional[Sequence[float]]) -> "ActionSpace":
        """Build a space, normalising degenerate settings with a warning."""
        if num_phases <= 0:
            log.warning("num_phases=%s is not positive; using 1", num_phases)
            num_phases = 1
        durations = tuple(float(d) for d in (duration_options or ()))
        if not durations:
            log.warning("No duration options configured; using [%.1f]", DEFAULT_DURATION_S)
            durations = (DEFAULT_DURATION_S,)
        return cls(num_phases=int(num_phases), duration_options=durations)

    @property
    def size(self) -> int:
        return self.num_phases * len(self.duration_options)

    def encode(self, phase: int, duration_index: int) -> int:
        return phase + self.num_phases * duration_index

    def decode(self, action: int) -> Tuple[int, float]:
        """Return ``(phase_index, duration_s)`` for *action*.

        Example with 2 phases and 3 durations::

            0 -> phase 0, dur 0      3 -> phase 1, dur 1
            1 -> phase 1, dur 0      4 -> phase 0, dur 2
            2 -> phase 0, dur 1      5 -> phase 1, dur 2
        """
        phase = action % self.num_phases
        duration_index = action // self.num_phases
        duration_index = max(0, min(duration_index, len(self.duration_options) - 1))
        return phase, self.duration_options[duration_index]


class QTable:
    """``Q[state, action]`` values, zero-initialised.

    Parameters
    ----------
    num_states, num_actions : int
        Table dimensions.
    """

    def __init__(self, num_states: int, num_actions: int) -> None:
        self.values = np.zeros((max(1, num_states), max(1, num_actions)), dtype=float)

    @property
    def num_states(self) -> int:
        return self.values.shape[0]

    @property
    def num_actions(self) -> int:
        return self.values.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    def row(self, state: int) -> np.ndarray:
        return self.values[state].copy()

    def max_value(self, state: int) -> float:
        return float(self.values[state].max())

    def best_action(self, state: int) -> int:
        """Argmax of row *state*; ties go to the lowest index."""
        return int(np.argmax(self.values[state]))

    def update(self, state: int, action: int, reward: float, next_state: int,
               alpha: float, gamma: float) -> float:
        """One-step update ``Q ← (1-α)Q + α(r + γ·max Q(next, ·))``.

        Returns the new value.
        """
        max_next = self.max_value(next_state)
        old = self.values[state, action]
        new = (1.0 - alpha) * old + alpha * (reward + gamma * max_next)
        self.values[state, action] = new
        return float(new)

    def select_action(self, state: int, epsilon: float,
                      rng: random.Random) -> Tuple[int, bool]:
        """Epsilon-greedy choice.  Returns ``(action, explored)``."""
        if rng.random() < epsilon:
            return rng.randrange(self.num_actions), True
        return self.best_action(state), False

    # ── records ───────────────────────────────────────────────────────────

    def to_record(self, controller_id: str) -> Dict[str, Any]:
        """Flat, JSON-friendly snapshot tagged with its dimensions."""
        return {
            "controller_id": controller_id,
            "num_states": self.num_states,
            "num_actions": self.num_actions,
            "values": [float(v) for v in self.values.ravel()],
        }

    def load_record(self, record: Dict[str, Any]) -> bool:
        """Apply a record produced by :meth:`to_record`.

        The table is left untouched (and False returned) when the record's
        dimensions or value count do not match this table.
        """
        try:
            num_states = int(record["num_states"])
            num_actions = int(record["num_actions"])
            values = np.asarray(record["values"], dtype=float)
        except (KeyError, TypeError, ValueError) as exc:
            log.error("Malformed Q-table record for '%s': %s",
                      record.get("controller_id") if isinstance(record, dict) else "?", exc)
            return False

        if (num_states, num_actions) != self.shape:
            log.warning(
                "Saved Q-table for '%s' is %dx%d, live table is %dx%d; ignoring it",
                record.get("controller_id"), num_states, num_actions, *self.shape,
            )
            return False
        if values.size != num_states * num_actions:
            log.warning("Saved Q-table for '%s' holds %d values, expected %d; ignoring it",
                        record.get("controller_id"), values.size, num_states * num_actions)
            return False

        self.values = values.reshape(self.shape).copy()
        return True
