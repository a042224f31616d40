"""HTTP health check server"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from alphabot.core.bot import Alphabot

LOGGER = logging.getLogger("HealthServer")

SERVICE_NAME = "alphabot"
HEARTBEAT_INTERVAL = 300


class HealthCheckServer:
    """HTTP health check server"""

    def __init__(
        self, bot: Alphabot | None = None, host: str = "0.0.0.0", port: int = 4344
    ) -> None:
        self.bot = bot
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)

    def _ready(self) -> bool:
        return self.bot is not None and self.bot.is_ready()

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.json_response({"service": SERVICE_NAME, "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness: always 200, ``ready`` tells whether the listener is up"""
        ready = self._ready()
        return web.json_response({"status": "healthy" if ready else "starting", "ready": ready})

    async def handle_status(self, request: web.Request) -> web.Response:
        ready = self._ready()
        counts: dict[str, int] = {}
        if self.bot is not None and self.bot.app is not None:
            counts = {**self.bot.app.registry.stats, **self.bot.app.sessions.stats}
        return web.json_response(
            {
                "service": SERVICE_NAME,
                "ready": ready,
                "bot_id": self.bot.app.bot_id if ready and self.bot and self.bot.app else None,
                "uptime_seconds": int(time.time() - self._start_time),
                **counts,
            }
        )

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        """Periodic heartbeat: log uptime and bot status"""
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            uptime = int(time.time() - self._start_time)
            ready = self._ready()
            background = len(self.bot.app.background) if self.bot and self.bot.app else 0
            LOGGER.info(f"Heartbeat: uptime={uptime}s, ready={ready}, tasks={background}")

    async def start(self) -> None:
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()

            self._heartbeat_task = asyncio.create_task(self._heartbeat())

            LOGGER.info(f"Health server started on {self.host}:{self.port}")
            LOGGER.info(f"  GET http://{self.host}:{self.port}/health - Health check")
            LOGGER.info(f"  GET http://{self.host}:{self.port}/status - Detailed status")
        except Exception as e:
            LOGGER.exception(f"Failed to start health server: {e}")
            raise

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            try:
                await self.runner.cleanup()
                LOGGER.info("Health server stopped")
            except Exception as e:
                LOGGER.exception(f"Error stopping health server: {e}")
