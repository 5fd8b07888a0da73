"""
sim/errors.py
=============
Exception hierarchy shared by the simulation and the learning store.

Runtime seams (spawn attempts, light attachment, Q-table load/save) catch
these, log them, and abort only the operation that raised them.
"""

from __future__ import annotations

from typing import Iterable


class SimulationError(Exception):
    """Base class for every error raised by this project."""


class ConfigurationError(SimulationError):
    """Invalid or inconsistent scene / controller / policy configuration."""


class UnresolvedWaypointError(ConfigurationError):
    """One or more waypoint ids could not be found in the index."""

    def __init__(self, waypoint_ids: Iterable[str]) -> None:
        self.waypoint_ids = tuple(waypoint_ids)
        super().__init__(
            "unresolved waypoint id(s): " + ", ".join(self.waypoint_ids)
        )


class PersistenceError(SimulationError):
    """A saved controller record could not be read, applied or written."""
