"""
sim/sim_bridge.py
=================
Background-thread runner for a :class:`~sim.world.World`.  Readers (the
API server, the headless main loop) poll the bridge for the latest
snapshot without blocking the simulation.

Public API consumed by :mod:`sim.api`
-------------------------------------
* ``snapshot()``              → ``dict``
* ``get_census()``            → ``dict``
* ``get_lights()``            → ``List[dict]``
* ``get_controller(id)``      → ``dict`` or ``None``
* ``reset()``                 → ``None``
* ``set_paused(bool)``        → ``None``
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from sim.world import World

log = logging.getLogger("sim_bridge")


class SimBridge:
    """Simulation orchestrator running in a background thread.

    The thread calls :meth:`step` at ``tick_rate_hz`` and caches a
    snapshot of the world for other threads after every tick.  Every
    access to the world itself happens under one lock, so readers never
    observe a half-updated census or signal state.

    Parameters
    ----------
    world : World
        The simulation to drive.
    tick_rate_hz : float
        Simulation ticks per second.
    realtime : bool
        Sleep between ticks to track wall-clock time; otherwise tick as
        fast as possible.
    """

    def __init__(
        self,
        world: World,
        tick_rate_hz: float = 20.0,
        realtime: bool = True,
    ) -> None:
        if tick_rate_hz <= 0:
            raise ValueError(f"tick_rate_hz must be positive, got {tick_rate_hz}")
        self._world = world
        self._tick_rate_hz = tick_rate_hz
        self._realtime = realtime

        self._lock = threading.Lock()

        # Cached state: written by the sim thread, read by everyone else
        self._snapshot: Dict[str, Any] = world.snapshot()

        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._paused = False

    @property
    def world(self) -> World:
        return self._world

    @property
    def dt(self) -> float:
        return 1.0 / self._tick_rate_hz

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn the background simulation thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="SimBridge"
        )
        self._thread.start()
        log.info("SimBridge started at %.1f Hz", self._tick_rate_hz)

    def stop(self) -> None:
        """Stop the thread, then shut the world down (persisting Q-tables)."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        with self._lock:
            self._world.shutdown()
            self._snapshot = self._world.snapshot()
        log.info("SimBridge stopped")

    @property
    def running(self) -> bool:
        return self._running

    # ── Read API ──────────────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._snapshot)

    def get_census(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._snapshot["census"])

    def get_lights(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._snapshot["lights"])

    def get_controller(self, controller_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._world.controller_snapshot(controller_id)

    def is_paused(self) -> bool:
        return self._paused

    # ── Control API ───────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Remove every vehicle; learned Q-values are kept."""
        with self._lock:
            self._world.reset()
            self._snapshot = self._world.snapshot()
        log.info("SimBridge reset")

    def set_paused(self, paused: bool) -> None:
        """Pause / unpause the simulation tick."""
        self._paused = paused
        log.info("SimBridge %s", "paused" if paused else "resumed")

    def step(self, dt: Optional[float] = None) -> None:
        """Advance the world by one tick and refresh the snapshot."""
        with self._lock:
            self._world.tick(self.dt if dt is None else dt)
            self._snapshot = self._world.snapshot()

    # ── Background loop ───────────────────────────────────────────────────────

    def _loop(self) -> None:
        dt = self.dt
        while self._running:
            t0 = time.perf_counter()
            if not self._paused and not self._world.is_shut_down:
                try:
                    self.step(dt)
                except Exception:
                    log.exception("SimBridge tick error")
            if self._realtime or self._paused:
                time.sleep(max(0.0, dt - (time.perf_counter() - t0)))
