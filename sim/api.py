"""
sim/api.py
==========
Optional FastAPI server exposing a running simulation.

Start it through :mod:`main` with ``TRAFFIC_API=1``::

    TRAFFIC_API=1 python main.py          # → http://localhost:8000/state

Endpoints
---------
* ``GET  /state``              full snapshot (vehicles, lights, controllers)
* ``GET  /census``             active / waiting counters
* ``GET  /lights``             every light with its colour and queue length
* ``GET  /controllers/{id}``   Q-values and last decision of one controller
* ``POST /reset``              remove every vehicle
* ``POST /pause``              ``{"paused": true|false}``

.. note::

   This server is **not** required to run the simulation.  It exists for
   monitoring and external control.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sim.sim_bridge import SimBridge

log = logging.getLogger("api")

# ── Pydantic schemas ─────────────────────────────────────────────────────────


class CensusModel(BaseModel):
    """Global traffic counters."""
    active_vehicles: int
    waiting_vehicles: int
    waiting_by_light: Dict[str, int]


class LightModel(BaseModel):
    """One traffic light."""
    light_id: str
    controller_id: str
    state: str
    pending: Optional[str] = None
    green_in_phase: List[bool]
    waiting: int


class ControllerModel(BaseModel):
    """Inspector view of one phase controller."""
    controller_id: str
    num_phases: int
    duration_options: List[float]
    q_values: List[float]
    last_action: Optional[int] = None
    last_reward: Optional[float] = None
    current_phase: Optional[int] = None
    current_duration_s: Optional[float] = None
    decisions: int
    lights: List[str]
    waiting: int


class StateModel(BaseModel):
    """Full simulation snapshot."""
    time_s: float
    ticks: int
    paused: bool
    spawned_total: int
    census: CensusModel
    vehicles: List[Dict[str, Any]]
    lights: List[LightModel]


class PauseRequest(BaseModel):
    paused: bool


class StatusModel(BaseModel):
    status: str
    paused: bool


# ── FastAPI application ──────────────────────────────────────────────────────


def create_app(bridge: SimBridge) -> FastAPI:
    """Build an app bound to *bridge*."""
    app = FastAPI(
        title="Traffic Signal Simulation API",
        description="Inspect and control a running traffic simulation.",
        version="1.0",
    )

    @app.get("/state", response_model=StateModel)
    def get_state():
        snap = bridge.snapshot()
        return {
            "time_s": snap["time_s"],
            "ticks": snap["ticks"],
            "paused": bridge.is_paused(),
            "spawned_total": snap["spawned_total"],
            "census": snap["census"],
            "vehicles": snap["vehicles"],
            "lights": snap["lights"],
        }

    @app.get("/census", response_model=CensusModel)
    def get_census():
        return bridge.get_census()

    @app.get("/lights", response_model=List[LightModel])
    def get_lights():
        return bridge.get_lights()

    @app.get("/controllers/{controller_id}", response_model=ControllerModel)
    def get_controller(controller_id: str):
        view = bridge.get_controller(controller_id)
        if view is None:
            raise HTTPException(status_code=404, detail=f"unknown controller '{controller_id}'")
        return view

    @app.post("/reset", response_model=StatusModel)
    def reset():
        bridge.reset()
        log.info("Reset requested over HTTP")
        return {"status": "reset", "paused": bridge.is_paused()}

    @app.post("/pause", response_model=StatusModel)
    def pause(req: PauseRequest):
        bridge.set_paused(req.paused)
        return {"status": "paused" if req.paused else "running", "paused": req.paused}

    return app
