#!/usr/bin/env python3
"""
config.py
=========
Application-wide configuration constants.

Values can be overridden via environment variables (see :mod:`main`).
This module is a thin, import-safe leaf: it never imports from
other project packages.
"""

# ── Simulation defaults ──────────────────────────────────────────────────────
DEFAULT_TICK_RATE_HZ: float = 20.0
DEFAULT_SEED = None
DEFAULT_DURATION_S: float = 300.0
DEFAULT_REALTIME: bool = False

# ── Scene (None → built-in network) ──────────────────────────────────────────
DEFAULT_SCENE_PATH = None

# ── Persistence (relative to the working directory) ──────────────────────────
QTABLE_DIR: str = "qtables"
HISTORY_CSV_PATH: str = "decision_history.csv"
# Oldest decisions are dropped beyond this many rows.
HISTORY_MAX_ROWS: int = 50_000

# ── API server defaults ──────────────────────────────────────────────────────
API_HOST: str = "0.0.0.0"
API_PORT: int = 8000

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL: str = "INFO"
LOG_FILE: str = "traffic.log"
QLEARNING_DEBUG_LOG: str = "qlearning_debug.log"
