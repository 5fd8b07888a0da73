#!/usr/bin/env python3
"""
main.py
=======
Entry point: headless simulation run or API server.

Environment overrides (defaults in :mod:`config`):

``TRAFFIC_TICK_HZ``      ticks per simulated second
``TRAFFIC_SEED``         integer seed (unset → random)
``TRAFFIC_SCENE``        JSON scene file (unset → built-in network)
``TRAFFIC_QTABLE_DIR``   Q-table directory (empty → no persistence)
``TRAFFIC_DURATION_S``   headless run length in simulated seconds
``TRAFFIC_REALTIME``     ``1`` to pace ticks against the wall clock
``TRAFFIC_API``          ``1`` to serve the FastAPI app instead
``TRAFFIC_API_PORT``     API port
``TRAFFIC_HISTORY_CSV``  decision-history CSV (empty → not written)
``TRAFFIC_HISTORY_MAX_ROWS``  decisions kept in memory (oldest dropped first)
``TRAFFIC_LOG_LEVEL``    ``DEBUG`` / ``INFO`` / ``WARNING`` …
"""

import logging
import os
import time

import config
from logging_setup import setup_logging
from ml.history import DecisionHistory
from sim.errors import ConfigurationError
from sim.scene import default_scene, load_scene
from sim.sim_bridge import SimBridge
from sim.world import World

log = logging.getLogger("main")

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_seed():
    raw = os.environ.get("TRAFFIC_SEED")
    if raw is None or raw.strip() == "":
        return config.DEFAULT_SEED
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"TRAFFIC_SEED must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_settings() -> dict:
    """Collect the run settings from :mod:`config` and the environment."""
    tick_hz = _env_float("TRAFFIC_TICK_HZ", config.DEFAULT_TICK_RATE_HZ)
    if tick_hz <= 0:
        raise ConfigurationError(f"TRAFFIC_TICK_HZ must be positive, got {tick_hz}")
    history_max_rows = int(_env_float("TRAFFIC_HISTORY_MAX_ROWS", config.HISTORY_MAX_ROWS))
    if history_max_rows < 1:
        raise ConfigurationError(
            f"TRAFFIC_HISTORY_MAX_ROWS must be at least 1, got {history_max_rows}"
        )
    return {
        "tick_hz": tick_hz,
        "seed": _env_seed(),
        "scene_path": os.environ.get("TRAFFIC_SCENE", config.DEFAULT_SCENE_PATH) or None,
        "qtable_dir": os.environ.get("TRAFFIC_QTABLE_DIR", config.QTABLE_DIR) or None,
        "duration_s": _env_float("TRAFFIC_DURATION_S", config.DEFAULT_DURATION_S),
        "realtime": _env_flag("TRAFFIC_REALTIME", config.DEFAULT_REALTIME),
        "api": _env_flag("TRAFFIC_API", False),
        "api_port": int(_env_float("TRAFFIC_API_PORT", config.API_PORT)),
        "history_csv": os.environ.get("TRAFFIC_HISTORY_CSV", config.HISTORY_CSV_PATH) or None,
        "history_max_rows": history_max_rows,
        "log_level": os.environ.get("TRAFFIC_LOG_LEVEL", config.LOG_LEVEL).upper(),
    }


def build_history(settings: dict) -> DecisionHistory:
    return DecisionHistory(max_rows=settings["history_max_rows"])


def build_world(settings: dict, history: DecisionHistory) -> World:
    scene = load_scene(settings["scene_path"]) if settings["scene_path"] else default_scene()
    return World(
        scene=scene,
        seed=settings["seed"],
        qtable_dir=settings["qtable_dir"],
        history=history,
    )


def run_headless(world: World, settings: dict) -> None:
    """Tick until ``duration_s`` of simulated time, logging a status line every 10 s."""
    dt = 1.0 / settings["tick_hz"]
    next_report = 10.0
    try:
        while world.now + 1e-9 < settings["duration_s"]:
            t0 = time.perf_counter()
            world.tick(dt)
            if world.now >= next_report:
                census = world.census
                log.info("t=%6.1fs active=%d waiting=%d spawned=%d",
                         world.now, census.active_count, census.waiting_count,
                         world.spawn_scheduler.spawned_total)
                next_report += 10.0
            if settings["realtime"]:
                time.sleep(max(0.0, dt - (time.perf_counter() - t0)))
    except KeyboardInterrupt:
        log.info("Interrupted at t=%.1fs", world.now)


def run_api(world: World, settings: dict) -> None:
    import uvicorn
    from sim.api import create_app

    bridge = SimBridge(world, tick_rate_hz=settings["tick_hz"], realtime=True)
    bridge.start()
    try:
        uvicorn.run(create_app(bridge), host=config.API_HOST, port=settings["api_port"])
    finally:
        bridge.stop()


def main():
    settings = load_settings()
    setup_logging(getattr(logging, settings["log_level"], logging.INFO))
    log.info("Starting traffic simulation (seed=%s, %.1f Hz)",
             settings["seed"], settings["tick_hz"])

    history = build_history(settings)
    world = build_world(settings, history)

    if settings["api"]:
        run_api(world, settings)
    else:
        run_headless(world, settings)
        world.shutdown()

    if settings["history_csv"] and len(history):
        history.to_csv(settings["history_csv"])
        log.info("Decision summary:\n%s", history.summary())
    log.info("Shutting down...")


if __name__ == "__main__":
    main()
