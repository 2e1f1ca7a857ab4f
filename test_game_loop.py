"""
Test Game Loop
==============
Simulation driver: transitions, batching, controls and the async tick loop.

Usage:
    pytest test_game_loop.py
"""

import asyncio
import random

import pytest

from lab.core.config import Settings
from lab.core.game_loop import Simulation
from lab.core.game_state import HistoryEntry, Marker, Move, Stats
from lab.services.api_client import ResultsSink

X, O = Marker.X, Marker.O


class FakeSink(ResultsSink):
    def __init__(self, history=None, fail=False):
        self.batches = []
        self.history = history
        self.fail = fail
        self.submit_calls = 0
        self.fetch_calls = 0

    async def submit_batch(self, records):
        self.submit_calls += 1
        if self.fail:
            raise RuntimeError("store down")
        self.batches.append(list(records))

    async def fetch_history(self):
        self.fetch_calls += 1
        if isinstance(self.history, Exception):
            raise self.history
        return self.history


def play_game(sim: Simulation) -> None:
    """Tick one game to its end, then reset."""
    while not sim.is_terminal:
        assert sim.tick() is not None
    sim.reset_board()


async def drain(sim: Simulation) -> None:
    while sim._background:
        await asyncio.sleep(0)


def history_entry(game_id="g1", outcome="Draw"):
    return HistoryEntry(id=game_id, outcome=outcome, final_board_state=[None] * 9, total_moves=9)


# ═══════════════════════════════════════════════════
# TRANSITIONS
# ═══════════════════════════════════════════════════

def test_fresh_simulation_snapshot():
    sim = Simulation()
    snap = sim.snapshot()

    assert snap["board"] == [None] * 9
    assert [c["index"] for c in snap["cells"]] == list(range(9))
    assert snap["cells"][5] == {"index": 5, "row": 1, "col": 2, "marker": None}
    assert snap["current_player"] == "X"
    assert snap["move_count"] == 0
    assert snap["is_terminal"] is False
    assert snap["winner"] is None
    assert snap["winning_line"] is None
    assert snap["stats"]["percentages"] == {"x_wins": 0, "o_wins": 0, "draws": 0}
    assert snap["batch"] == {"size": 0, "threshold": 10}
    assert snap["paused"] is False
    assert snap["speed"] == 250
    assert snap["history"] == []


def test_tick_completes_a_win():
    sim = Simulation(batch_size=100)
    sim.board = [X, X, None, O, O, None, None, None, None]
    sim.move_history = [Move(player=X, position=0), Move(player=O, position=3),
                        Move(player=X, position=1), Move(player=O, position=4)]

    assert sim.tick() == 2

    assert sim.is_terminal
    assert sim.winner == X
    assert sim.outcome.line == (0, 1, 2)
    assert sim.stats.x_wins == 1 and sim.stats.total == 1

    record = sim.batch[0]
    assert record.outcome == "X Wins"
    assert record.total_moves == 5
    assert record.final_board_state[:3] == (X, X, X)
    assert [m.position for m in record.moves] == [0, 3, 1, 4, 2]

    snap = sim.snapshot(include_history=False)
    assert snap["winner"] == "X"
    assert snap["winning_line"] == [0, 1, 2]
    assert snap["line_coordinates"]["x2"] == "83.32%"
    assert "history" not in snap


def test_tick_is_noop_once_terminal():
    sim = Simulation(batch_size=100)
    sim.board = [X, X, None, O, O, None, None, None, None]
    sim.tick()
    board = list(sim.board)

    assert sim.tick() is None
    assert sim.board == board
    assert sim.stats.total == 1


def test_tick_completes_a_draw():
    sim = Simulation(batch_size=100)
    sim.board = [X, O, X, O, X, O, O, None, O]

    assert sim.tick() == 7

    assert sim.is_draw
    assert sim.winner is None
    assert sim.stats.draws == 1
    assert sim.batch[0].outcome == "Draw"
    assert sim.snapshot()["line_coordinates"] is None


def test_full_board_is_classified_as_draw():
    sim = Simulation(batch_size=100)
    sim.board = [X, O, X, O, X, O, O, X, O]

    assert sim.tick() is None
    assert sim.is_terminal
    assert sim.is_draw
    assert sim.stats.draws == 1
    assert sim.board == [X, O, X, O, X, O, O, X, O]


def test_won_board_is_classified_without_a_move():
    sim = Simulation(batch_size=100)
    sim.board = [O, O, O, X, X, None, X, None, None]

    assert sim.tick() is None
    assert sim.winner == O
    assert sim.outcome.line == (0, 1, 2)
    assert sim.stats.o_wins == 1
    assert sim.board[5] is None


def test_reset_keeps_session_state():
    sim = Simulation(batch_size=100, rng=random.Random(3))
    while not sim.is_terminal:
        sim.tick()

    sim.reset_board()

    assert sim.board == [None] * 9
    assert sim.current_player == X
    assert sim.move_history == []
    assert not sim.is_terminal
    assert sim.stats.total == 1
    assert len(sim.batch) == 1


@pytest.mark.parametrize("seed", range(20))
def test_games_alternate_players_from_x(seed):
    sim = Simulation(batch_size=100, rng=random.Random(seed))
    while not sim.is_terminal:
        sim.tick()

    record = sim.batch[0]
    assert 5 <= record.total_moves <= 9
    assert [m.player for m in record.moves] == [X, O, X, O, X, O, X, O, X][: record.total_moves]
    assert sum(cell is not None for cell in record.final_board_state) == record.total_moves


def test_percentages_round_halves_up():
    stats = Stats(x_wins=1, o_wins=3, draws=4)

    assert stats.percentages() == {"x_wins": 13, "o_wins": 38, "draws": 50}


def test_session_distribution_includes_draws():
    sim = Simulation(batch_size=1000, rng=random.Random(7))
    for _ in range(300):
        play_game(sim)

    assert sim.stats.total == 300
    assert sim.stats.draws > 0
    assert sim.stats.x_wins > 0
    assert 99 <= sum(sim.stats.percentages().values()) <= 101


# ═══════════════════════════════════════════════════
# BATCHING
# ═══════════════════════════════════════════════════

def test_batch_flushes_at_threshold():
    async def scenario():
        sink = FakeSink()
        sim = Simulation(sink, batch_size=10, rng=random.Random(11))

        for _ in range(9):
            play_game(sim)
        await drain(sim)
        assert sink.batches == []
        assert len(sim.batch) == 9

        play_game(sim)
        assert sim.batch == []
        assert sim.batches_flushed == 1
        await drain(sim)
        assert len(sink.batches) == 1
        assert len(sink.batches[0]) == 10
        assert len({r.id for r in sink.batches[0]}) == 10

        for _ in range(3):
            play_game(sim)
        await drain(sim)
        assert len(sink.batches) == 1
        assert len(sim.batch) == 3

    asyncio.run(scenario())


def test_batch_flushes_when_stepped_by_hand():
    sink = FakeSink()
    sim = Simulation(sink, rng=random.Random(1))

    for _ in range(10):
        play_game(sim)

    assert sim.batch == []
    assert sim.batches_flushed == 1
    assert len(sink.batches) == 1
    assert len(sink.batches[0]) == 10

    play_game(sim)
    assert len(sim.batch) == 1


def test_sink_must_implement_both_operations():
    class SubmitOnly(ResultsSink):
        async def submit_batch(self, records):
            pass

    with pytest.raises(TypeError):
        SubmitOnly()


def test_failed_submit_is_dropped():
    async def scenario():
        sink = FakeSink(fail=True)
        sim = Simulation(sink, batch_size=2, rng=random.Random(5))

        play_game(sim)
        play_game(sim)
        await drain(sim)

        assert sink.submit_calls == 1
        assert sim.batch == []

        play_game(sim)
        assert len(sim.batch) == 1

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════
# CONTROLS
# ═══════════════════════════════════════════════════

def test_invalid_construction():
    with pytest.raises(ValueError):
        Simulation(batch_size=0)
    with pytest.raises(ValueError):
        Simulation(speed=10)


def test_set_speed_bounds():
    sim = Simulation()
    sim.set_speed(1000)
    assert sim.speed == 1000
    assert sim.observation_delay == 2.0

    with pytest.raises(ValueError):
        sim.set_speed(20)
    with pytest.raises(ValueError):
        sim.set_speed(1001)
    assert sim.speed == 1000


def test_toggle_pause_returns_new_state():
    sim = Simulation()
    assert sim.toggle_pause() is True
    assert sim.paused
    assert sim.toggle_pause() is False
    assert not sim.paused


def test_from_settings():
    settings = Settings(BATCH_SIZE=5, DEFAULT_SPEED=100, MIN_SPEED=100, MAX_SPEED=500)
    sim = Simulation.from_settings(settings)

    assert sim.batch_size == 5
    assert sim.speed == 100
    assert sim.max_speed == 500


def test_control_change_is_published():
    async def scenario():
        events = []

        async def listener(message):
            events.append(message)

        sim = Simulation(listener=listener)
        sim.toggle_pause()
        await drain(sim)

        assert [e["event"] for e in events] == ["control_update"]
        assert events[0]["data"]["paused"] is True
        assert "history" not in events[0]["data"]

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════
# HISTORY
# ═══════════════════════════════════════════════════

def test_refresh_history_replaces_list():
    async def scenario():
        events = []

        async def listener(message):
            events.append(message)

        sink = FakeSink(history=[history_entry("g1"), history_entry("g2", "O Wins")])
        sim = Simulation(sink, listener=listener)

        assert await sim.refresh_history() is True
        assert [h.id for h in sim.history] == ["g1", "g2"]
        assert events[-1]["event"] == "history_update"
        assert [h["id"] for h in events[-1]["data"]["history"]] == ["g1", "g2"]

    asyncio.run(scenario())


@pytest.mark.parametrize("failure", [None, RuntimeError("boom")])
def test_failed_refresh_keeps_previous_history(failure):
    async def scenario():
        sink = FakeSink(history=[history_entry("g1")])
        sim = Simulation(sink)
        await sim.refresh_history()

        sink.history = failure
        assert await sim.refresh_history() is False
        assert [h.id for h in sim.history] == ["g1"]

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════
# TICK LOOP
# ═══════════════════════════════════════════════════

def _recording_simulation(sink=None, **kwargs):
    events = []

    async def listener(message):
        events.append(message["event"])

    return Simulation(sink, listener=listener, rng=random.Random(1), **kwargs), events


def test_start_polls_history_and_close_cancels():
    async def scenario():
        sink = FakeSink(history=[history_entry()])
        sim, events = _recording_simulation(sink)

        sim.start()
        await asyncio.sleep(0.05)
        assert sim.is_running
        assert sink.fetch_calls == 1
        assert len(sim.history) == 1

        await sim.close()
        assert not sim.is_running

    asyncio.run(scenario())


def test_loop_plays_moves():
    async def scenario():
        sim, events = _recording_simulation(speed=50)
        sim.start()
        await asyncio.sleep(0.3)
        await sim.close()

        assert "board_update" in events

    asyncio.run(scenario())


def test_pause_stops_moves():
    async def scenario():
        sim, events = _recording_simulation(speed=50)
        sim.pause()
        sim.start()
        await asyncio.sleep(0.2)
        assert "board_update" not in events
        assert sim.move_history == []

        sim.resume()
        await asyncio.sleep(0.3)
        await sim.close()
        assert "board_update" in events

    asyncio.run(scenario())


def test_paused_terminal_board_still_resets():
    async def scenario():
        sim, events = _recording_simulation(speed=50, batch_size=100)
        sim.board = [X, X, None, O, O, None, None, None, None]
        sim.tick()
        assert sim.is_terminal

        sim.pause()
        sim.start()
        await asyncio.sleep(0.3)
        await sim.close()

        assert "board_reset" in events
        assert not sim.is_terminal
        assert sim.board == [None] * 9

    asyncio.run(scenario())


def test_speed_change_replans_pending_move():
    async def scenario():
        sim, events = _recording_simulation(speed=1000)
        sim.start()
        await asyncio.sleep(0.05)
        assert "board_update" not in events

        sim.set_speed(50)
        await asyncio.sleep(0.35)
        await sim.close()

        assert "board_update" in events

    asyncio.run(scenario())
