from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Marker = Literal["X", "O"]
Outcome = Literal["X Wins", "O Wins", "Draw"]


class MoveIn(BaseModel):
    player: Marker
    position: int = Field(ge=0, le=8)


class GameSubmission(BaseModel):
    """One finished game as the lab posts it (camelCase keys)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(min_length=1, max_length=64)
    outcome: Outcome
    total_moves: int = Field(ge=1, le=9)
    final_board_state: list[Marker | None] = Field(min_length=9, max_length=9)
    moves: list[MoveIn] = Field(default_factory=list, max_length=9)
    finished_at: datetime


class GameEntry(BaseModel):
    """A stored game as the history endpoint returns it (snake_case keys)."""
    id: str
    outcome: Outcome
    total_moves: int
    final_board_state: list[Marker | None]
    moves: list[MoveIn] = []
    finished_at: str


class SaveBatchResponse(BaseModel):
    saved: int = Field(description="Games stored from this batch")
    total: int = Field(description="Games in the store after this batch")
