"""
schema.py — WebSocket Event Schemas
====================================
Message types sent over /ws.

MESSAGE FORMAT:
---------------
{
    "event": "event_name",
    "data": {...}
}

SERVER → CLIENT:
----------------
connected        full snapshot, sent once on connect
board_update     a move was applied (snapshot without history)
game_over        game finished; winner / winning_line / line_coordinates set
board_reset      observation delay over, empty board, X to move
history_update   history list replaced (snapshot with history)
control_update   pause flag or speed changed
pong             reply to heartbeat
error            {"code", "message"}

CLIENT → SERVER:
----------------
toggle_pause     {}
set_speed        {"speed": 250}
refresh_history  {}
heartbeat        {...}  (echoed back in pong)
"""

from pydantic import BaseModel, Field


class ServerEvent(BaseModel):
    event: str = Field(description="Event type")
    data: dict = Field(description="Event payload")


class ClientEvent(BaseModel):
    event: str = Field(description="Event type")
    data: dict = Field(default_factory=dict, description="Event payload")


class SetSpeedData(BaseModel):
    speed: int


def error_event(code: str, message: str) -> dict:
    return ServerEvent(event="error", data={"code": code, "message": message}).model_dump()
