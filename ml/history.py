"""
ml/history.py
=============
In-memory log of controller decisions, exported through pandas.

Each :class:`~sim.controller.PhaseController` appends one row per decision;
:meth:`DecisionHistory.to_dataframe` / :meth:`DecisionHistory.to_csv` turn
the log into a dataset for offline analysis of the learned policy.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

log = logging.getLogger("history")

COLUMNS = [
    "time_s",
    "controller_id",
    "action",
    "phase",
    "duration_s",
    "reward",
    "explored",
    "q_value",
    "active_vehicles",
    "waiting_vehicles",
]


class DecisionHistory:
    """Append-only decision log with an optional row cap."""

    def __init__(self, max_rows: Optional[int] = None) -> None:
        self.max_rows = max_rows
        self._rows: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._rows)

    def record(self, **row: Any) -> None:
        """Append one decision; unknown keys are ignored, missing ones are None."""
        self._rows.append({col: row.get(col) for col in COLUMNS})
        if self.max_rows is not None and len(self._rows) > self.max_rows:
            del self._rows[: len(self._rows) - self.max_rows]

    def clear(self) -> None:
        self._rows.clear()

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame(self._rows, columns=COLUMNS)
        for col in ("time_s", "duration_s", "reward", "q_value"):
            df[col] = pd.to_numeric(df[col], errors="coerce")
        return df

    def to_csv(self, path: str) -> str:
        df = self.to_dataframe()
        df.to_csv(path, index=False)
        log.info("Decision history (%d rows) written to %s", len(df), path)
        return path

    def summary(self) -> pd.DataFrame:
        """Per-controller decision count, mean reward and most-chosen action."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=["decisions", "mean_reward", "top_action"])
        grouped = df.groupby("controller_id")
        return pd.DataFrame({
            "decisions": grouped.size(),
            "mean_reward": grouped["reward"].mean(),
            "top_action": grouped["action"].agg(lambda s: s.value_counts().idxmax()),
        })
