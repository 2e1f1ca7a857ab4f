#!/usr/bin/env python3
"""
Terminal Watcher
================
Connects to the lab's /ws feed and redraws the board, the winning line
and the running stats after every event. Read-only: it never sends
controls.

Usage:
    python watch.py                       # ws://localhost:8000/ws
    python watch.py ws://host:8000/ws
"""

import asyncio
import json
import sys

import websockets

WS_URL = "ws://localhost:8000/ws"

_LINE_NAMES = {
    (0, 1, 2): "top row", (3, 4, 5): "middle row", (6, 7, 8): "bottom row",
    (0, 3, 6): "left column", (1, 4, 7): "middle column", (2, 5, 8): "right column",
    (0, 4, 8): "diagonal ↘", (2, 4, 6): "diagonal ↙",
}


def render_board(board: list, winning_line: list | None = None) -> str:
    """3×3 grid; cells on the winning line are wrapped in brackets."""
    highlight = set(winning_line or [])
    rows = []
    for r in range(3):
        cells = []
        for i in range(r * 3, r * 3 + 3):
            mark = board[i] or " "
            cells.append(f"[{mark}]" if i in highlight else f" {mark} ")
        rows.append("|".join(cells))
    return "\n---+---+---\n".join(rows)


def render_stats(stats: dict, batch: dict | None = None) -> str:
    pct = stats.get("percentages", {})
    lines = [
        f"X Wins: {stats['x_wins']} ({pct.get('x_wins', 0)}%)",
        f"O Wins: {stats['o_wins']} ({pct.get('o_wins', 0)}%)",
        f"Draws:  {stats['draws']} ({pct.get('draws', 0)}%)",
        f"Session Games: {stats['total']}",
    ]
    if batch:
        lines.append(f"API Batch: {batch['size']} / {batch['threshold']}")
    return "\n".join(lines)


def render_history(history: list[dict], limit: int = 5) -> str:
    if not history:
        return "Loading game history or no games found..."
    return "\n".join(
        f"{g['outcome']:<7} {g['total_moves']} moves  {g.get('finished_at') or ''}"
        for g in history[:limit]
    )


def render_snapshot(data: dict) -> str:
    parts = [render_board(data["board"], data.get("winning_line"))]

    if data.get("winner"):
        line = tuple(data["winning_line"])
        parts.append(f"🏆 {data['winner']} wins ({_LINE_NAMES.get(line, line)})")
    elif data.get("is_draw"):
        parts.append("🤝 Draw")
    else:
        parts.append(f"Next: {data['current_player']}  (move {data['move_count'] + 1})")

    state = "⏸️  paused" if data.get("paused") else "▶️  playing"
    parts.append(f"{state}  {data['speed']} ms/move")
    parts.append(render_stats(data["stats"], data.get("batch")))
    return "\n\n".join(parts)


async def watch(url: str):
    print(f"🔌 Connecting to {url}...")
    history: list[dict] = []

    async with websockets.connect(url) as websocket:
        print("✅ Connected!")
        async for raw in websocket:
            message = json.loads(raw)
            event = message.get("event")
            data = message.get("data", {})

            if event == "error":
                print(f"❌ {data.get('code')}: {data.get('message')}")
                continue
            if "history" in data:
                history = data["history"]
            if "board" not in data:
                continue

            print("\033[2J\033[H", end="")
            print(render_snapshot(data))
            print("\nRecent Game History")
            print(render_history(history))


if __name__ == "__main__":
    url = sys.argv[1] if len(sys.argv) > 1 else WS_URL
    try:
        asyncio.run(watch(url))
    except KeyboardInterrupt:
        print("\n👋 Bye")
