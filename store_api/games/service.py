"""Results service — batch validation and history reads."""

from __future__ import annotations

from datetime import timezone

from store_api import store
from store_api.errors import GameNotFoundError, InvalidBatchError
from store_api.games.schema import GameSubmission


def _to_stored(game: GameSubmission) -> dict:
    finished_at = game.finished_at
    if finished_at.tzinfo is None:
        finished_at = finished_at.replace(tzinfo=timezone.utc)
    return {
        "id": game.id,
        "outcome": game.outcome,
        "total_moves": game.total_moves,
        "final_board_state": list(game.final_board_state),
        "moves": [m.model_dump() for m in game.moves],
        "finished_at": finished_at.astimezone(timezone.utc).isoformat(),
    }


def _check_consistency(game: GameSubmission) -> str | None:
    if game.moves and len(game.moves) != game.total_moves:
        return f"totalMoves={game.total_moves} but {len(game.moves)} moves listed"
    marked = sum(1 for cell in game.final_board_state if cell is not None)
    if marked != game.total_moves:
        return f"totalMoves={game.total_moves} but {marked} cells are marked"
    return None


async def save_batch(games: list[GameSubmission]) -> int:
    if not games:
        raise InvalidBatchError("Batch must contain at least one game")

    problems = {g.id: msg for g in games if (msg := _check_consistency(g))}
    if problems:
        raise InvalidBatchError("Inconsistent game records", {"games": problems})

    return await store.save_games([_to_stored(g) for g in games])


async def get_history(limit: int, offset: int = 0) -> list[dict]:
    games, _ = await store.list_games(limit=limit, offset=offset)
    return games


async def get_game(game_id: str) -> dict:
    game = await store.get_game(game_id)
    if not game:
        raise GameNotFoundError(game_id)
    return game
