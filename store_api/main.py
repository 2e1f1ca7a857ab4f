"""Tic-Tac-Toe Results Store — FastAPI Application Factory."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from store_api import store
from store_api.config import get_store_settings
from store_api.errors import register_error_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_store_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.VERSION}")

    yield

    logger.info(f"Shutdown, {await store.count_games()} games were held in memory")


def create_app() -> FastAPI:
    settings = get_store_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Stores batches of finished tic-tac-toe games and serves them back as history",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Timing middleware
    class TimingMiddleware:
        def __init__(self, app: ASGIApp):
            self.app = app

        async def __call__(self, scope: Scope, receive: Receive, send: Send):
            if scope["type"] != "http":
                await self.app(scope, receive, send)
                return
            start = time.time()

            async def send_with_timing(message):
                if message["type"] == "http.response.start":
                    raw_headers = list(message.get("headers", []))
                    raw_headers.append((b"x-process-time", f"{time.time() - start:.4f}s".encode()))
                    message["headers"] = raw_headers
                await send(message)

            await self.app(scope, receive, send_with_timing)

    app.add_middleware(TimingMiddleware)

    # Error handlers
    register_error_handlers(app)

    # System endpoints
    @app.get("/health", tags=["system"])
    async def health():
        return {
            "status": "ok",
            "app": settings.APP_NAME,
            "version": settings.VERSION,
            "games": await store.count_games(),
        }

    # Domain routers
    from store_api.games.router import router as games_router

    app.include_router(games_router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    settings = get_store_settings()
    uvicorn.run("store_api.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
