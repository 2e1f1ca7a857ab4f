"""
game_engine.py — Outcome evaluation and heuristic move selection
================================================================
The two pure building blocks of the lab:

1. evaluate(board)              → Outcome(winner, line) or None
2. select_move(board, player)  → cell index or None

MOVE POLICY:
------------
Tiers are tried in strict order, each one over the whole board:
    1. Win-now: first empty cell (index order) that wins for the player
    2. Block:   first empty cell that would win for the opponent
    3. Random:  uniform choice among the empty cells

Only tier 3 consumes randomness. Pass a seeded ``random.Random`` as ``rng``
to make a whole game reproducible.

USAGE:
------
    from lab.core.game_engine import evaluate, select_move

    move = select_move(board, Marker.X)
    outcome = evaluate(board)
    if outcome:
        print(outcome.winner, outcome.line)
"""

from __future__ import annotations

import random
from typing import NamedTuple, Optional, Sequence

from lab.core.game_state import Board, Marker


# ═══════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════

Line = tuple[int, int, int]

LINES: tuple[Line, ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # columns
    (0, 4, 8), (2, 4, 6),             # diagonals
)

# Cell centres on a 0-100 grid, used for the winning-line overlay
_CELL_SPAN = 33.33
_CELL_CENTER = 16.66


class Outcome(NamedTuple):
    winner: Marker
    line: Line


# ═══════════════════════════════════════════════════
# OUTCOME EVALUATOR
# ═══════════════════════════════════════════════════

def evaluate(board: Sequence[Optional[str]]) -> Outcome | None:
    """
    Return the first completed line in table order, or None.

    Args:
        board: 9 cells, each None, "X" or "O"

    Returns:
        Outcome(winner, line) or None
    """
    for line in LINES:
        a, b, c = line
        if board[a] and board[a] == board[b] == board[c]:
            return Outcome(Marker(board[a]), line)
    return None


def is_board_full(board: Sequence[Optional[str]]) -> bool:
    return all(cell is not None for cell in board)


def empty_cells(board: Sequence[Optional[str]]) -> list[int]:
    return [i for i, cell in enumerate(board) if cell is None]


def opponent_of(player: Marker | str) -> Marker:
    return Marker.O if Marker(player) == Marker.X else Marker.X


def outcome_label(winner: Marker | None) -> str:
    """Record label: "X Wins", "O Wins" or "Draw"."""
    return f"{winner.value} Wins" if winner else "Draw"


def cell_position(index: int) -> tuple[int, int]:
    """Cell index → (row, col)."""
    return index // 3, index % 3


def line_coordinates(line: Line) -> dict[str, str]:
    """
    Winning-line geometry for the board overlay, as percentage end points.

    The segment runs from the centre of the first cell to the centre of
    the last cell of the line.
    """
    def _point(index: int) -> tuple[float, float]:
        row, col = cell_position(index)
        return col * _CELL_SPAN + _CELL_CENTER, row * _CELL_SPAN + _CELL_CENTER

    (x1, y1), (x2, y2) = _point(line[0]), _point(line[2])
    return {
        "x1": f"{x1:.2f}%",
        "y1": f"{y1:.2f}%",
        "x2": f"{x2:.2f}%",
        "y2": f"{y2:.2f}%",
    }


# ═══════════════════════════════════════════════════
# MOVE SELECTOR
# ═══════════════════════════════════════════════════

def _first_winning_cell(board: Board, marker: Marker) -> int | None:
    for i in empty_cells(board):
        trial = list(board)
        trial[i] = marker
        outcome = evaluate(trial)
        if outcome and outcome.winner == marker:
            return i
    return None


def select_move(
    board: Sequence[Optional[str]],
    player: Marker | str,
    rng: random.Random | None = None,
) -> int | None:
    """
    Pick the next cell for ``player``.

    Args:
        board: current board (not modified)
        player: marker to move
        rng: random source for the fallback tier (default: module ``random``)

    Returns:
        Cell index, or None when the board has no empty cell.
    """
    player = Marker(player)
    board = list(board)

    move = _first_winning_cell(board, player)
    if move is not None:
        return move

    move = _first_winning_cell(board, opponent_of(player))
    if move is not None:
        return move

    available = empty_cells(board)
    if not available:
        return None
    return (rng or random).choice(available)
