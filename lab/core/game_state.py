"""
game_state.py — Board, record and stats definitions
====================================================
Markers, move records and the unit of persistence (GameRecord).
Everything else in the lab builds on these.
"""

from __future__ import annotations

import random
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ── Enums ─────────────────────────────────────────────────

class Marker(str, Enum):
    X = "X"
    O = "O"


STARTING_MARKER = Marker.X
BOARD_SIZE = 9

Board = list[Optional[str]]


def empty_board() -> Board:
    return [None] * BOARD_SIZE


# ── Moves & Records ───────────────────────────────────────

class Move(BaseModel):
    """One applied move: who played and where."""
    model_config = ConfigDict(frozen=True)

    player: Marker
    position: int = Field(ge=0, lt=BOARD_SIZE)


def generate_game_id() -> str:
    """game-<epoch ms>-<9 base36 chars>"""
    suffix = "".join(random.choices(string.digits + string.ascii_lowercase, k=9))
    return f"game-{int(time.time() * 1000)}-{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameRecord(BaseModel):
    """
    Finished game, created once when the game terminates.

    Serialized with camelCase keys when submitted to the results store
    (``totalMoves``, ``finalBoardState``, ``finishedAt``).
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=generate_game_id)
    outcome: str                                        # "X Wins" | "O Wins" | "Draw"
    total_moves: int = Field(ge=1, le=BOARD_SIZE)
    final_board_state: tuple[Optional[Marker], ...]
    moves: tuple[Move, ...]
    finished_at: datetime = Field(default_factory=_utcnow)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class HistoryEntry(BaseModel):
    """A stored game as the results store returns it (snake_case keys)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    outcome: str
    final_board_state: list[Optional[Marker]] = Field(default_factory=list)
    total_moves: int = 0
    finished_at: datetime | None = None


# ── Stats ─────────────────────────────────────────────────

def _percent(count: int, total: int) -> int:
    # halves round up
    return int(count * 100 / total + 0.5)


class Stats(BaseModel):
    """Running session counters. Never persisted."""
    x_wins: int = 0
    o_wins: int = 0
    draws: int = 0

    @property
    def total(self) -> int:
        return self.x_wins + self.o_wins + self.draws

    def record(self, winner: Marker | None) -> None:
        if winner == Marker.X:
            self.x_wins += 1
        elif winner == Marker.O:
            self.o_wins += 1
        else:
            self.draws += 1

    def percentages(self) -> dict[str, int]:
        """Whole-number share of each counter; all zero before the first game."""
        total = self.total
        if not total:
            return {"x_wins": 0, "o_wins": 0, "draws": 0}
        return {
            "x_wins": _percent(self.x_wins, total),
            "o_wins": _percent(self.o_wins, total),
            "draws": _percent(self.draws, total),
        }
