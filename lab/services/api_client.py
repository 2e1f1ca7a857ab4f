"""
api_client.py — Results store client
=====================================
Finished games leave the lab through a ResultsSink: batches go out with
submit_batch(), stored games come back with fetch_history().

HttpResultsSink talks to the results store (store_api, port 3001):
    POST {base}/postTicTacToeGames     ← JSON array of records (camelCase)
    GET  {base}/getTicTacToeGames/     → JSON array of entries (snake_case)

Neither call ever raises into the simulation. Failures are logged;
fetch_history() returns None so the caller keeps whatever it showed before.

Usage:
    sink = HttpResultsSink.from_settings(get_settings())
    await sink.submit_batch(records)
    history = await sink.fetch_history()
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from lab.core.game_state import GameRecord, HistoryEntry

logger = logging.getLogger(__name__)

_TIMEOUT = httpx.Timeout(10.0, connect=5.0)
_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Expires": "0",
}
_history_adapter = TypeAdapter(list[HistoryEntry])


class ResultsServiceError(Exception):
    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"[{operation}] {message}")


class ResultsSink(ABC):
    """Where finished games go, and where stored games come back from."""

    @abstractmethod
    async def submit_batch(self, records: Sequence[GameRecord]) -> None:
        ...

    @abstractmethod
    async def fetch_history(self) -> list[HistoryEntry] | None:
        ...



class NullResultsSink(ResultsSink):
    """Drops every batch and never has history. Used when no store is configured."""

    async def submit_batch(self, records: Sequence[GameRecord]) -> None:
        logger.debug(f"Dropping batch of {len(records)} games (no results store)")

    async def fetch_history(self) -> list[HistoryEntry] | None:
        return None


class HttpResultsSink(ResultsSink):
    def __init__(
        self,
        base_url: str = "http://localhost:3001/api",
        submit_endpoint: str = "postTicTacToeGames",
        history_endpoint: str = "getTicTacToeGames",
        timeout: httpx.Timeout | float = _TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.submit_endpoint = submit_endpoint
        self.history_endpoint = history_endpoint
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "HttpResultsSink":
        return cls(
            base_url=settings.STORE_API_URL,
            submit_endpoint=settings.SUBMIT_ENDPOINT,
            history_endpoint=settings.HISTORY_ENDPOINT,
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT, connect=5.0),
        )

    # ── Helpers ─────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    @property
    def submit_url(self) -> str:
        return f"{self.base_url}/{self.submit_endpoint}"

    @property
    def history_url(self) -> str:
        return f"{self.base_url}/{self.history_endpoint}/"

    async def _post_batch(self, records: Sequence[GameRecord]) -> dict:
        body = [r.to_wire() for r in records]
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.submit_url,
                    headers={"Content-Type": "application/json"},
                    json=body,
                )
                resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise ResultsServiceError(
                "submit", f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except Exception as e:
            raise ResultsServiceError("submit", str(e)) from e

    async def _get_history(self) -> list[HistoryEntry]:
        try:
            async with self._client() as client:
                resp = await client.get(
                    self.history_url,
                    headers=_NO_CACHE_HEADERS,
                )
                resp.raise_for_status()
            return _history_adapter.validate_python(resp.json())
        except httpx.HTTPStatusError as e:
            raise ResultsServiceError(
                "history", f"HTTP error! status: {e.response.status_code}"
            ) from e
        except ValidationError as e:
            raise ResultsServiceError(
                "history", f"malformed response ({e.error_count()} errors)"
            ) from e
        except Exception as e:
            raise ResultsServiceError("history", str(e)) from e

    # ── ResultsSink ─────────────────────────────────────

    async def submit_batch(self, records: Sequence[GameRecord]) -> None:
        logger.info(f"📤 Sending batch of {len(records)} games to results store")
        try:
            await self._post_batch(records)
        except ResultsServiceError as e:
            logger.error(f"❌ Error saving game batch: {e}")
            return
        logger.info(f"✅ Batch of {len(records)} games saved")

    async def fetch_history(self) -> list[HistoryEntry] | None:
        try:
            history = await self._get_history()
        except ResultsServiceError as e:
            logger.error(f"❌ Error loading game history: {e}")
            return None
        logger.debug(f"📥 Loaded {len(history)} history entries")
        return history
