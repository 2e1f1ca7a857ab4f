"""
router.py — WebSocket Router
=============================
Live feed of the simulation, plus the same controls as the REST API.

ENDPOINT:
---------
WS /ws

FLOW:
-----
1. Client connects
2. Registered with the ObserverManager, gets a "connected" snapshot
3. Loop: receive client events (toggle_pause, set_speed, ...)
4. Disconnect → cleanup

Board updates are not sent from here: the Simulation listener broadcasts
them to every registered observer.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from lab.apps.ws.schema import ClientEvent, ServerEvent, SetSpeedData, error_event
from lab.apps.ws.service import manager
from lab.core.dependencies import get_ws_simulation
from lab.core.game_loop import Simulation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Client message format:
        {"event": "set_speed", "data": {"speed": 250}}

    Server message format:
        {"event": "board_update", "data": {<snapshot>}}
    """
    simulation = get_ws_simulation(websocket)

    # ═══ 1. ACCEPT ═══
    observer_id = None
    try:
        observer_id = await manager.connect(websocket)
        snapshot = simulation.snapshot() if simulation else {}
        await websocket.send_json(
            ServerEvent(event="connected", data={"observer_id": observer_id, **snapshot}).model_dump()
        )
    except Exception as e:
        logger.error(f"❌ Connection failed: {e}")
        if observer_id:
            manager.disconnect(observer_id)
        return

    # ═══ 2. MESSAGE LOOP ═══
    try:
        while True:
            raw = await websocket.receive_text()

            try:
                message = ClientEvent.model_validate(json.loads(raw))
            except (ValueError, ValidationError):
                await websocket.send_json(
                    error_event("invalid_format", "Message must be JSON with 'event' field")
                )
                continue

            logger.info(f"📥 Received from {observer_id}: {message.event}")

            await handle_client_event(
                simulation=simulation,
                event_type=message.event,
                event_data=message.data,
                websocket=websocket,
            )

    except WebSocketDisconnect:
        logger.info(f"🔌 WebSocket disconnected: {observer_id}")
        manager.disconnect(observer_id)

    except Exception as e:
        logger.error(f"❌ WebSocket error: {e}")
        manager.disconnect(observer_id)


async def handle_client_event(
    simulation: Simulation | None,
    event_type: str,
    event_data: dict,
    websocket: WebSocket,
):
    """
    Apply one client intent.

    Events:
        - heartbeat: connection check, answered with pong
        - toggle_pause: pause ↔ resume
        - set_speed: delay between moves (ms)
        - refresh_history: fetch history from the store now

    Control changes are announced to everyone through the simulation's
    control_update broadcast, so nothing else is sent back here.
    """
    if event_type == "heartbeat":
        await websocket.send_json(ServerEvent(event="pong", data=event_data).model_dump())
        return

    if simulation is None:
        await websocket.send_json(error_event("not_ready", "Simulation not initialized"))
        return

    if event_type == "toggle_pause":
        simulation.toggle_pause()

    elif event_type == "set_speed":
        try:
            speed = SetSpeedData.model_validate(event_data).speed
            simulation.set_speed(speed)
        except (ValidationError, ValueError) as e:
            await websocket.send_json(error_event("invalid_speed", str(e)))

    elif event_type == "refresh_history":
        refreshed = await simulation.refresh_history()
        if not refreshed:
            await websocket.send_json(
                error_event("history_unavailable", "Results store returned no history")
            )

    else:
        await websocket.send_json(error_event("unknown_event", f"Unknown event: {event_type}"))
