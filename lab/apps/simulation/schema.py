"""
schema.py — Pydantic Request/Response Models
=============================================
Data models of the simulation endpoints.

USAGE:
------
    @router.get("", response_model=SimulationSnapshot)
    async def endpoint(simulation: Simulation = Depends(get_simulation)):
        return simulation.snapshot()
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════

class SpeedRequest(BaseModel):
    """
    New delay between moves, in milliseconds.

    Example:
        {"speed": 250}
    """
    speed: int = Field(gt=0, description="Delay between moves (ms), within MIN_SPEED..MAX_SPEED")


# ═══════════════════════════════════════════════════
# RESPONSE MODELS
# ═══════════════════════════════════════════════════

class CellView(BaseModel):
    index: int
    row: int
    col: int
    marker: str | None = None


class LineCoordinates(BaseModel):
    """Winning-line end points as percentages of the board size."""
    x1: str
    y1: str
    x2: str
    y2: str


class StatsView(BaseModel):
    x_wins: int
    o_wins: int
    draws: int
    total: int
    percentages: dict[str, int] = Field(description="Whole-number share per counter")


class BatchView(BaseModel):
    size: int = Field(description="Finished games waiting to be sent")
    threshold: int = Field(description="Batch is sent when size reaches this")


class HistoryItem(BaseModel):
    id: str
    outcome: str
    final_board_state: list[str | None]
    total_moves: int
    finished_at: datetime | None = None


class SimulationSnapshot(BaseModel):
    """
    Everything an observer draws: board, winning line, stats, controls.
    """
    board: list[str | None]
    cells: list[CellView]
    current_player: str
    move_count: int
    is_terminal: bool
    winner: str | None = None
    is_draw: bool
    winning_line: list[int] | None = None
    line_coordinates: LineCoordinates | None = None
    stats: StatsView
    batch: BatchView
    paused: bool
    speed: int = Field(description="Delay between moves (ms)")
    history: list[HistoryItem] = Field(default_factory=list)


class ControlResponse(BaseModel):
    paused: bool
    speed: int
    message: str


class HistoryRefreshResponse(BaseModel):
    refreshed: bool = Field(description="False when the store returned nothing usable")
    count: int
    history: list[HistoryItem]
