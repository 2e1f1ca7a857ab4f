"""In-memory game results store. Nothing survives a restart."""

from __future__ import annotations

from datetime import datetime, timezone


# {game_id: game_dict}, insertion order = arrival order
_games: dict[str, dict] = {}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sort_key(game: dict) -> str:
    return game.get("finished_at") or game["stored_at"]


# ── Games ────────────────────────────────────────────

async def save_games(games: list[dict]) -> int:
    """Store a batch. A repeated id replaces the earlier entry."""
    stored_at = _now()
    for game in games:
        _games.pop(game["id"], None)
        _games[game["id"]] = {**game, "stored_at": stored_at}
    return len(games)


async def get_game(game_id: str) -> dict | None:
    return _games.get(game_id)


async def list_games(limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
    """Newest first (by finished_at)."""
    ordered = sorted(_games.values(), key=_sort_key, reverse=True)
    return ordered[offset : offset + limit], len(ordered)


async def count_games() -> int:
    return len(_games)


async def clear() -> None:
    _games.clear()
