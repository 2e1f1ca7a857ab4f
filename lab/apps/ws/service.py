"""
service.py — WebSocket Observer Manager
========================================
Keeps every connected observer and fans simulation events out to them.

RESPONSIBILITIES:
-----------------
✅ Register / drop observer connections
✅ Broadcast (every observer gets the event)
✅ Unicast (one observer, e.g. the welcome snapshot)
✅ Drop connections that fail on send

USAGE:
------
    manager = ObserverManager()

    observer_id = await manager.connect(websocket)
    await manager.broadcast({"event": "board_update", "data": {...}})
    manager.disconnect(observer_id)

The Simulation listener is ``manager.broadcast`` itself.
"""

import logging
import uuid
from typing import Dict, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ObserverManager:
    """
    Data structure:
    {
        "obs-1a2b3c4d": WebSocket,
        "obs-5e6f7a8b": WebSocket,
    }
    """

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        logger.info("ObserverManager initialized")

    async def connect(self, websocket: WebSocket, observer_id: Optional[str] = None) -> str:
        """
        Accept the socket and register it.

        Returns:
            str: observer id used for later unicast/disconnect
        """
        await websocket.accept()
        observer_id = observer_id or f"obs-{uuid.uuid4().hex[:8]}"
        self.active_connections[observer_id] = websocket
        logger.info(f"✅ Observer {observer_id} connected ({len(self.active_connections)} active)")
        return observer_id

    def disconnect(self, observer_id: str):
        if observer_id in self.active_connections:
            del self.active_connections[observer_id]
            logger.info(f"❌ Observer {observer_id} disconnected ({len(self.active_connections)} active)")

    async def send_to(self, observer_id: str, message: dict):
        websocket = self.active_connections.get(observer_id)

        if websocket:
            try:
                await websocket.send_json(message)
                logger.debug(f"📤 Sent to {observer_id}: {message['event']}")
            except Exception as e:
                logger.error(f"❌ Failed to send to {observer_id}: {e}")
                self.disconnect(observer_id)
        else:
            logger.warning(f"⚠️  Observer {observer_id} not found")

    async def broadcast(self, message: dict, exclude: Optional[list[str]] = None):
        """
        Send one event to every observer (except ``exclude``).

        Observers whose socket fails are dropped after the loop.
        """
        exclude = exclude or []

        if not self.active_connections:
            return

        disconnected = []

        for observer_id, websocket in list(self.active_connections.items()):
            if observer_id in exclude:
                continue

            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"❌ Failed to broadcast to {observer_id}: {e}")
                disconnected.append(observer_id)

        for observer_id in disconnected:
            self.disconnect(observer_id)

    def get_observers(self) -> list[str]:
        return list(self.active_connections.keys())

    def get_connection_count(self) -> int:
        return len(self.active_connections)


# Singleton used by the app and the WS router
manager = ObserverManager()
