from fastapi import HTTPException, Request, WebSocket, status

from lab.core.config import get_settings
from lab.core.game_loop import Simulation
from lab.services.api_client import HttpResultsSink, NullResultsSink, ResultsSink


def build_sink() -> ResultsSink:
    """Results sink for the app. An empty STORE_API_URL disables persistence."""
    settings = get_settings()
    if not settings.STORE_API_URL:
        return NullResultsSink()
    return HttpResultsSink.from_settings(settings)


def get_simulation(request: Request) -> Simulation:
    """The simulation owned by the running app (created in lifespan)."""
    simulation = getattr(request.app.state, "simulation", None)
    if simulation is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Simulation not initialized",
        )
    return simulation


def get_ws_simulation(websocket: WebSocket) -> Simulation | None:
    return getattr(websocket.app.state, "simulation", None)
