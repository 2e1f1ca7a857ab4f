"""
main.py — FastAPI Application Factory
======================================
Tic-Tac-Toe AI Lab backend

Owns one Simulation for the whole app lifetime: created and started in
the lifespan, closed on shutdown. Observers follow it over /ws; the REST
API under /api/simulation reads it and sends it the user intents.

Usage:
    # Development mode (hot-reload)
    uvicorn lab.main:app --reload

    # Or directly
    python -m lab.main
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lab.core.config import Settings, get_settings
from lab.core.dependencies import build_sink
from lab.core.game_loop import Simulation

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.
    Builds the simulation on startup, cancels its tasks on shutdown.
    """
    # ═══════════════════════════════════════════════════
    # STARTUP
    # ═══════════════════════════════════════════════════
    from lab.apps.ws.service import manager

    settings = get_settings()
    logger.info(f"🚀 Starting {settings.APP_NAME} v{settings.VERSION}")
    logger.info(f"📍 Environment: {settings.ENV}")

    sink = build_sink()
    if settings.STORE_API_URL:
        logger.info(f"🗄️  Results store: {settings.STORE_API_URL}")
    else:
        logger.warning("⚠️  STORE_API_URL not set - finished games will not be saved")

    simulation = Simulation.from_settings(settings, sink=sink, listener=manager.broadcast)
    app.state.simulation = simulation

    if settings.AUTOSTART:
        simulation.start()
        logger.info("✅ Simulation started")

    yield

    # ═══════════════════════════════════════════════════
    # SHUTDOWN
    # ═══════════════════════════════════════════════════
    await simulation.close()
    app.state.simulation = None
    logger.info("👋 Shutting down gracefully...")


def create_app() -> FastAPI:
    """
    FastAPI application factory.

    Returns:
        FastAPI: configured instance
    """
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Endless heuristic self-play tic-tac-toe with live stats and batched result storage",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # ═══════════════════════════════════════════════════
    # CORS Middleware (browser observers on another port)
    # ═══════════════════════════════════════════════════
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    # ═══════════════════════════════════════════════════
    # Request Timing Middleware
    # ═══════════════════════════════════════════════════
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}s"
        return response

    # ═══════════════════════════════════════════════════
    # Global Exception Handler
    # ═══════════════════════════════════════════════════
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catches every exception no route handled."""
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        if settings.DEBUG:
            import traceback
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "detail": str(exc),
                    "traceback": traceback.format_exc(),
                }
            )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error"}
        )

    # ═══════════════════════════════════════════════════
    # Health Check Endpoint
    # ═══════════════════════════════════════════════════
    @app.get("/health", tags=["system"])
    def health_check(request: Request):
        simulation = getattr(request.app.state, "simulation", None)
        return {
            "status": "ok",
            "app": settings.APP_NAME,
            "version": settings.VERSION,
            "environment": settings.ENV,
            "simulation_running": bool(simulation and simulation.is_running),
        }

    @app.get("/", tags=["system"])
    def root():
        return {
            "message": settings.APP_NAME,
            "version": settings.VERSION,
            "docs": "/docs" if settings.DEBUG else "disabled",
        }

    # ═══════════════════════════════════════════════════
    # Routers
    # ═══════════════════════════════════════════════════
    from lab.apps.simulation.router import router as simulation_router
    from lab.apps.ws.router import router as ws_router

    app.include_router(simulation_router)
    app.include_router(ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    print("=" * 60)
    print(f"🎮 {settings.APP_NAME}")
    print("=" * 60)
    print(f"📡 Starting server at http://{settings.HOST}:{settings.PORT}")
    print(f"📚 API Docs: http://{settings.HOST}:{settings.PORT}/docs")
    print("=" * 60)

    uvicorn.run(
        "lab.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
