"""
Test Lab API
============
REST controls and the /ws observer feed of the lab service.

Usage:
    pytest test_lab_api.py
"""

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from lab.apps.ws.router import websocket_endpoint
from lab.apps.ws.service import manager
from lab.core import config
from lab.core.config import Settings
from lab.core.dependencies import build_sink
from lab.core.game_state import HistoryEntry
from lab.main import create_app
from lab.services.api_client import HttpResultsSink, NullResultsSink, ResultsSink


class StaticHistorySink(ResultsSink):
    def __init__(self, history):
        self.history = history

    async def submit_batch(self, records):
        pass

    async def fetch_history(self):
        return self.history


@pytest.fixture
def settings(monkeypatch):
    settings = Settings(AUTOSTART=False, STORE_API_URL="", DEBUG=False)
    monkeypatch.setattr(config, "_settings", settings)
    return settings


@pytest.fixture
def client(settings):
    with TestClient(create_app()) as client:
        yield client


def test_build_sink(settings):
    assert isinstance(build_sink(), NullResultsSink)

    settings.STORE_API_URL = "http://store.test/api"
    sink = build_sink()
    assert isinstance(sink, HttpResultsSink)
    assert sink.submit_url == "http://store.test/api/postTicTacToeGames"


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["simulation_running"] is False
    assert "x-process-time" in resp.headers


# ═══════════════════════════════════════════════════
# REST
# ═══════════════════════════════════════════════════

def test_snapshot(client):
    resp = client.get("/api/simulation")

    assert resp.status_code == 200
    snap = resp.json()
    assert snap["board"] == [None] * 9
    assert len(snap["cells"]) == 9
    assert snap["current_player"] == "X"
    assert snap["paused"] is False
    assert snap["speed"] == 250
    assert snap["batch"] == {"size": 0, "threshold": 10}
    assert snap["stats"]["total"] == 0
    assert snap["history"] == []


def test_toggle(client):
    resp = client.post("/api/simulation/toggle")
    assert resp.status_code == 200
    assert resp.json() == {"paused": True, "speed": 250, "message": "Simulation paused"}

    resp = client.post("/api/simulation/toggle")
    assert resp.json()["paused"] is False
    assert resp.json()["message"] == "Simulation resumed"


def test_set_speed(client):
    resp = client.put("/api/simulation/speed", json={"speed": 500})
    assert resp.status_code == 200
    assert resp.json()["speed"] == 500
    assert client.get("/api/simulation").json()["speed"] == 500


@pytest.mark.parametrize("speed", [0, 20, 5000])
def test_set_speed_out_of_range(client, speed):
    resp = client.put("/api/simulation/speed", json={"speed": speed})

    assert resp.status_code == 422
    assert client.get("/api/simulation").json()["speed"] == 250


def test_history_refresh(client):
    entry = HistoryEntry(id="g1", outcome="O Wins",
                         final_board_state=["O", "O", "O", "X", "X", None, "X", None, None],
                         total_moves=6)
    client.app.state.simulation.sink = StaticHistorySink([entry])

    resp = client.post("/api/simulation/history/refresh")

    assert resp.status_code == 200
    body = resp.json()
    assert body["refreshed"] is True
    assert body["count"] == 1
    assert body["history"][0]["id"] == "g1"
    assert client.get("/api/simulation/history").json()[0]["outcome"] == "O Wins"


def test_history_refresh_without_store(client):
    resp = client.post("/api/simulation/history/refresh")

    assert resp.status_code == 200
    assert resp.json() == {"refreshed": False, "count": 0, "history": []}


# ═══════════════════════════════════════════════════
# WEBSOCKET
# ═══════════════════════════════════════════════════

def test_ws_session(client):
    with client.websocket_connect("/ws") as ws:
        welcome = ws.receive_json()
        assert welcome["event"] == "connected"
        assert welcome["data"]["observer_id"].startswith("obs-")
        assert welcome["data"]["board"] == [None] * 9

        ws.send_json({"event": "heartbeat", "data": {"n": 1}})
        assert ws.receive_json() == {"event": "pong", "data": {"n": 1}}

        ws.send_json({"event": "toggle_pause"})
        update = ws.receive_json()
        assert update["event"] == "control_update"
        assert update["data"]["paused"] is True

        ws.send_json({"event": "set_speed", "data": {"speed": 400}})
        update = ws.receive_json()
        assert update["event"] == "control_update"
        assert update["data"]["speed"] == 400

        ws.send_json({"event": "set_speed", "data": {"speed": 5}})
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["code"] == "invalid_speed"

        ws.send_json({"event": "refresh_history"})
        assert ws.receive_json()["data"]["code"] == "history_unavailable"

        ws.send_json({"event": "dance"})
        assert ws.receive_json()["data"]["code"] == "unknown_event"

        ws.send_json({"data": {}})
        assert ws.receive_json()["data"]["code"] == "invalid_format"

        ws.send_text("not json")
        assert ws.receive_json()["data"]["code"] == "invalid_format"

        ws.send_json({"event": "heartbeat", "data": {"still": "open"}})
        assert ws.receive_json() == {"event": "pong", "data": {"still": "open"}}


def test_failed_welcome_unregisters_observer():
    class BrokenSocket:
        app = SimpleNamespace(state=SimpleNamespace(simulation=None))

        async def accept(self):
            pass

        async def send_json(self, message):
            raise RuntimeError("socket closed")

    before = manager.get_observers()

    asyncio.run(websocket_endpoint(BrokenSocket()))

    assert manager.get_observers() == before
