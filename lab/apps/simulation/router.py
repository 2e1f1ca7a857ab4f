"""
router.py — Simulation REST API Endpoints
==========================================
Read the live simulation and send it the three user intents.

ENDPOINTS:
----------
GET    /api/simulation                    → full snapshot
POST   /api/simulation/toggle             → pause ↔ resume
PUT    /api/simulation/speed              → delay between moves (ms)
GET    /api/simulation/history            → stored games shown in the UI
POST   /api/simulation/history/refresh    → fetch history from the store now

The simulation itself lives on app.state (created in the lifespan) and is
injected with Depends(get_simulation).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from lab.apps.simulation.schema import (
    ControlResponse,
    HistoryItem,
    HistoryRefreshResponse,
    SimulationSnapshot,
    SpeedRequest,
)
from lab.core.dependencies import get_simulation
from lab.core.game_loop import Simulation

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════
# ROUTER SETUP
# ═══════════════════════════════════════════════════

router = APIRouter(
    prefix="/api/simulation",
    tags=["simulation"],
    responses={
        503: {"description": "Simulation not initialized"},
    },
)


# ═══════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════

@router.get(
    "",
    response_model=SimulationSnapshot,
    summary="Live simulation snapshot",
)
async def get_snapshot(simulation: Simulation = Depends(get_simulation)):
    return simulation.snapshot()


@router.post(
    "/toggle",
    response_model=ControlResponse,
    summary="Pause or resume",
    description="""
    Flips the pause flag. Pausing stops new moves only: a finished game
    still shows its final board for the observation delay and then resets.
    """,
)
async def toggle_pause(simulation: Simulation = Depends(get_simulation)):
    paused = simulation.toggle_pause()
    return ControlResponse(
        paused=paused,
        speed=simulation.speed,
        message="Simulation paused" if paused else "Simulation resumed",
    )


@router.put(
    "/speed",
    response_model=ControlResponse,
    summary="Set move speed",
    description="""
    Sets the delay between moves in milliseconds. The pending move is
    re-scheduled with the new delay.
    """,
)
async def set_speed(body: SpeedRequest, simulation: Simulation = Depends(get_simulation)):
    try:
        simulation.set_speed(body.speed)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail=str(e),
        )
    return ControlResponse(
        paused=simulation.paused,
        speed=simulation.speed,
        message=f"Speed set to {simulation.speed} ms",
    )


@router.get(
    "/history",
    response_model=list[HistoryItem],
    summary="Displayed game history",
)
async def get_history(simulation: Simulation = Depends(get_simulation)):
    return [h.model_dump(mode="json") for h in simulation.history]


@router.post(
    "/history/refresh",
    response_model=HistoryRefreshResponse,
    summary="Refresh history from the results store",
    description="""
    Same fetch as the periodic poll. When the store is unreachable the
    previous list is kept and `refreshed` is false.
    """,
)
async def refresh_history(simulation: Simulation = Depends(get_simulation)):
    refreshed = await simulation.refresh_history()
    if not refreshed:
        logger.warning("History refresh returned no data, keeping previous list")
    history = [h.model_dump(mode="json") for h in simulation.history]
    return HistoryRefreshResponse(refreshed=refreshed, count=len(history), history=history)
