"""
game_loop.py — Self-play simulation driver
===========================================
Runs endless X-vs-O games on one asyncio event loop and keeps the
session statistics, the batch of finished games and the displayed history.

Flow:
  TICK LOOP (single authoritative clock):
    1. IN PROGRESS : wait `speed` ms → select_move() → apply → evaluate
    2. TERMINAL    : stats +1, record → batch (flush at BATCH_SIZE)
    3. OBSERVE     : keep the final board for 2 × speed ms (ignores pause)
    4. RESET       : empty board, X to move → back to 1

  HISTORY POLL (second task):
    fetch_history() at startup and every HISTORY_POLL_INTERVAL seconds.
    refresh_history() is the same call, on demand.

Every loop iteration reads the simulation's current fields; nothing is
captured when a wait is scheduled. pause/resume/set_speed wake the pending
wait, which drops the pending tick and re-plans against the new values.

Sink calls are fire-and-forget background tasks. Their outcome only
reaches the logs.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from lab.core.game_engine import (
    Outcome,
    cell_position,
    evaluate,
    is_board_full,
    line_coordinates,
    opponent_of,
    outcome_label,
    select_move,
)
from lab.core.game_state import (
    STARTING_MARKER,
    Board,
    GameRecord,
    HistoryEntry,
    Marker,
    Move,
    Stats,
    empty_board,
)
from lab.services.api_client import NullResultsSink, ResultsSink

logger = logging.getLogger(__name__)

Listener = Callable[[dict], Awaitable[None]]

DEFAULT_BATCH_SIZE = 10
DEFAULT_SPEED = 250
MIN_SPEED = 50
MAX_SPEED = 1000
DEFAULT_POLL_INTERVAL = 30.0
OBSERVATION_FACTOR = 2


class Simulation:
    """
    Owner of all mutable lab state.

    Lifecycle: create → start() (inside a running loop) → close().
    tick() and reset_board() can also be driven by hand, which is how the
    tests step through games without any timers. A batch that fills up
    with no running loop is submitted before tick() returns.
    """

    def __init__(
        self,
        sink: ResultsSink | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        speed: int = DEFAULT_SPEED,
        min_speed: int = MIN_SPEED,
        max_speed: int = MAX_SPEED,
        history_poll_interval: float = DEFAULT_POLL_INTERVAL,
        rng: random.Random | None = None,
        listener: Listener | None = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.sink = sink or NullResultsSink()
        self.batch_size = batch_size
        self.min_speed = min_speed
        self.max_speed = max_speed
        self.speed = self._checked_speed(speed)
        self.history_poll_interval = history_poll_interval
        self.rng = rng
        self.listener = listener

        # per-game state
        self.board: Board = empty_board()
        self.current_player: Marker = STARTING_MARKER
        self.move_history: list[Move] = []
        self.outcome: Outcome | None = None
        self._finished = False
        self._reset_at: float | None = None

        # session state
        self.stats = Stats()
        self.batch: list[GameRecord] = []
        self.batches_flushed = 0
        self.history: list[HistoryEntry] = []
        self.paused = False

        # tasks
        self._wake_event = asyncio.Event()
        self._tick_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings,
        sink: ResultsSink | None = None,
        listener: Listener | None = None,
    ) -> "Simulation":
        return cls(
            sink,
            batch_size=settings.BATCH_SIZE,
            speed=settings.DEFAULT_SPEED,
            min_speed=settings.MIN_SPEED,
            max_speed=settings.MAX_SPEED,
            history_poll_interval=settings.HISTORY_POLL_INTERVAL,
            listener=listener,
        )

    # ═══════════════════════════════════════════════════
    # STATE
    # ═══════════════════════════════════════════════════

    @property
    def is_terminal(self) -> bool:
        return self._finished

    @property
    def winner(self) -> Marker | None:
        return self.outcome.winner if self.outcome else None

    @property
    def is_draw(self) -> bool:
        return self._finished and self.outcome is None

    @property
    def is_running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    @property
    def observation_delay(self) -> float:
        """Seconds the final board stays up before the reset."""
        return self.speed * OBSERVATION_FACTOR / 1000

    # ═══════════════════════════════════════════════════
    # TRANSITIONS
    # ═══════════════════════════════════════════════════

    def tick(self) -> int | None:
        """
        One InProgress step: select, apply, record, flip the player.

        Returns the applied cell index, or None when nothing was applied
        (game already terminal, or the board was found won or full).
        """
        if self._finished:
            return None

        # a board handed in already won or full is classified, not played
        self.outcome = evaluate(self.board)
        if self.outcome or is_board_full(self.board):
            self._finish_game()
            return None

        player = self.current_player
        move = select_move(self.board, player, self.rng)

        self.board[move] = player
        self.move_history.append(Move(player=player, position=move))
        self.current_player = opponent_of(player)

        self.outcome = evaluate(self.board)
        if self.outcome or is_board_full(self.board):
            self._finish_game()
        return move

    def _finish_game(self) -> None:
        self._finished = True
        winner = self.winner
        self.stats.record(winner)
        logger.info(
            f"🏁 Game over: {outcome_label(winner)} in {len(self.move_history)} moves "
            f"(X {self.stats.x_wins} / O {self.stats.o_wins} / draw {self.stats.draws})"
        )

        if not self.move_history:
            return

        self.batch.append(GameRecord(
            outcome=outcome_label(winner),
            total_moves=len(self.move_history),
            final_board_state=tuple(self.board),
            moves=tuple(self.move_history),
        ))
        if len(self.batch) >= self.batch_size:
            self._flush_batch()

    def _flush_batch(self) -> None:
        batch = self.batch
        logger.info(f"--- Sending Batch of {len(batch)} Games to API ---")
        if self._has_running_loop():
            self._spawn(self._submit(batch))
        else:
            # stepped by hand: no loop to hand the submit to, so run it now
            asyncio.run(self._submit(batch))
        self.batch = []
        self.batches_flushed += 1

    def reset_board(self) -> None:
        """Terminal → Idle: empty board, X to move. Stats and batch are kept."""
        self.board = empty_board()
        self.current_player = STARTING_MARKER
        self.move_history = []
        self.outcome = None
        self._finished = False
        self._reset_at = None

    # ═══════════════════════════════════════════════════
    # CONTROLS
    # ═══════════════════════════════════════════════════

    def _checked_speed(self, speed: int) -> int:
        if not self.min_speed <= speed <= self.max_speed:
            raise ValueError(
                f"speed must be between {self.min_speed} and {self.max_speed} ms, got {speed}"
            )
        return int(speed)

    def set_speed(self, speed: int) -> None:
        self.speed = self._checked_speed(speed)
        logger.info(f"⏱️  Speed set to {self.speed} ms")
        self._controls_changed()

    def pause(self) -> None:
        if not self.paused:
            self.paused = True
            logger.info("⏸️  Simulation paused")
            self._controls_changed()

    def resume(self) -> None:
        if self.paused:
            self.paused = False
            logger.info("▶️  Simulation resumed")
            self._controls_changed()

    def toggle_pause(self) -> bool:
        """Flip pause state. Returns the new ``paused`` value."""
        if self.paused:
            self.resume()
        else:
            self.pause()
        return self.paused

    def _controls_changed(self) -> None:
        self._wake_event.set()
        if self._has_running_loop():
            self._spawn(self._publish("control_update"))

    async def refresh_history(self) -> bool:
        """
        Fetch stored games and replace the displayed history.

        Returns False (and keeps the old list) when the store had nothing usable.
        """
        try:
            history = await self.sink.fetch_history()
        except Exception as e:
            logger.error(f"❌ History fetch failed: {e}")
            history = None

        if history is None:
            return False

        self.history = list(history)
        logger.info(f"📚 History refreshed: {len(self.history)} games")
        await self._publish("history_update")
        return True

    # ═══════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════

    def start(self) -> None:
        """Start the tick loop and the history poll. Needs a running event loop."""
        if self.is_running:
            logger.warning("Simulation already running")
            return

        self._tick_task = asyncio.create_task(self._run_ticks())
        self._poll_task = asyncio.create_task(self._poll_history())
        logger.info("Simulation tasks created")

    async def close(self) -> None:
        """Cancel every pending tick, poll and sink call. The open batch is dropped."""
        tasks = [t for t in (self._tick_task, self._poll_task) if t is not None]
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tick_task = None
        self._poll_task = None
        if self.batch:
            logger.info(f"Dropping {len(self.batch)} unsent games on shutdown")

    # ═══════════════════════════════════════════════════
    # LOOPS
    # ═══════════════════════════════════════════════════

    async def _interruptible_sleep(self, duration: float | None) -> bool:
        """
        Sleep that a control change cuts short.
        Returns True if woken, False if the full duration passed.
        """
        self._wake_event.clear()
        try:
            await asyncio.wait_for(self._wake_event.wait(), timeout=duration)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run_ticks(self) -> None:
        loop = asyncio.get_running_loop()
        logger.info("🟢 SIMULATION LOOP STARTING")

        try:
            while True:
                # ═══ TERMINAL: observation delay, then reset (pause ignored) ═══
                if self._finished:
                    if self._reset_at is None:
                        self._reset_at = loop.time() + self.observation_delay
                    remaining = self._reset_at - loop.time()
                    if remaining > 0:
                        await self._interruptible_sleep(remaining)
                        continue
                    self.reset_board()
                    await self._publish("board_reset")
                    continue

                # ═══ PAUSED: wait for a control change ═══
                if self.paused:
                    await self._interruptible_sleep(None)
                    continue

                # ═══ IN PROGRESS: one move per `speed` ms ═══
                if await self._interruptible_sleep(self.speed / 1000):
                    continue
                self.tick()
                await self._publish("game_over" if self._finished else "board_update")

        except Exception as e:
            logger.exception(f"💀 SIMULATION LOOP CRASH: {e}")
        finally:
            logger.info("🔴 SIMULATION LOOP ENDED")

    async def _poll_history(self) -> None:
        while True:
            await self.refresh_history()
            await asyncio.sleep(self.history_poll_interval)

    # ═══════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _submit(self, batch: list[GameRecord]) -> None:
        try:
            await self.sink.submit_batch(batch)
        except Exception as e:
            logger.error(f"❌ Error saving game batch: {e}")

    async def _publish(self, event: str) -> None:
        if self.listener is None:
            return
        try:
            await self.listener({
                "event": event,
                "data": self.snapshot(include_history=event == "history_update"),
            })
        except Exception as e:
            logger.error(f"❌ Listener failed on {event}: {e}")

    # ═══════════════════════════════════════════════════
    # PRESENTATION
    # ═══════════════════════════════════════════════════

    def snapshot(self, include_history: bool = True) -> dict:
        """JSON-ready view of everything an observer draws."""
        line = self.outcome.line if self.outcome else None
        board = [cell.value if cell else None for cell in self.board]
        cells = []
        for i, marker in enumerate(board):
            row, col = cell_position(i)
            cells.append({"index": i, "row": row, "col": col, "marker": marker})

        data = {
            "board": board,
            "cells": cells,
            "current_player": self.current_player.value,
            "move_count": len(self.move_history),
            "is_terminal": self._finished,
            "winner": self.winner.value if self.winner else None,
            "is_draw": self.is_draw,
            "winning_line": list(line) if line else None,
            "line_coordinates": line_coordinates(line) if line else None,
            "stats": {
                "x_wins": self.stats.x_wins,
                "o_wins": self.stats.o_wins,
                "draws": self.stats.draws,
                "total": self.stats.total,
                "percentages": self.stats.percentages(),
            },
            "batch": {"size": len(self.batch), "threshold": self.batch_size},
            "paused": self.paused,
            "speed": self.speed,
        }
        if include_history:
            data["history"] = [h.model_dump(mode="json") for h in self.history]
        return data
