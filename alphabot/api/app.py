"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from alphabot import __version__
from alphabot.api.routers import admins_router, appstate_router, bots_router, config_router
from alphabot.core.config import BotSettings, config_file_path, get_settings

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 300


async def _heartbeat(app: FastAPI, interval: int = HEARTBEAT_INTERVAL) -> None:
    """Periodic heartbeat: log uptime and appstate presence"""
    while True:
        await asyncio.sleep(interval)
        uptime = int(time.time() - app.state.start_time)
        has_appstate = app.state.settings.appstate_file.is_file()
        logger.info(f"Heartbeat: uptime={uptime}s, appstate={has_appstate}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    app.state.start_time = time.time()
    settings: BotSettings = app.state.settings

    logger.info("Starting Alphabot dashboard")
    logger.info(f"AppState file: {settings.appstate_file}")
    logger.info(f"Config file: {app.state.config_path}")

    heartbeat = asyncio.create_task(_heartbeat(app))

    yield

    logger.info("Shutting down Alphabot dashboard")
    heartbeat.cancel()


def create_app(settings: BotSettings | None = None, config_path: Path | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Alphabot Dashboard",
        description="Appstate, admin and config management for Alphabot",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings or get_settings()
    app.state.config_path = config_path or config_file_path()
    app.state.start_time = time.time()

    app.include_router(appstate_router.router)
    app.include_router(admins_router.router)
    app.include_router(config_router.router)
    app.include_router(bots_router.router)

    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": "alphabot-dashboard", "status": "running", "docs": "/docs"}

    @app.get("/api/health")
    async def health():
        """Liveness check (no external dependency)"""
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - app.state.start_time),
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")

    return app
