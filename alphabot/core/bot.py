"""Alphabot lifecycle: login, plugin loading, listening, maintenance and shutdown."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any

from alphabot.core.app_context import AppContext, create_app_context
from alphabot.core.appstate import (
    is_expired,
    load_appstate,
    sanitize_for_logging,
    save_appstate,
    validate_appstate,
)
from alphabot.core.config import BotSettings, get_settings
from alphabot.core.dispatcher import EventDispatcher
from alphabot.core.events import normalize_event
from alphabot.core.exceptions import AlphabotError, TransportError
from alphabot.core.health_server import HealthCheckServer
from alphabot.core.loader import PluginLoader
from alphabot.core.logging import setup_logging
from alphabot.core.transport import (
    AsyncTransport,
    Listener,
    LoginFactory,
    load_login_factory,
    login,
)

LOGGER = logging.getLogger("Bot")

APPSTATE_REFRESH_INTERVAL = 12 * 60 * 60
LISTENER_REFRESH_INTERVAL = 2 * 60 * 60
HEALTH_CHECK_INTERVAL = 5 * 60
HEALTH_CHECK_TIMEOUT = 30
MAX_HEALTH_FAILURES = 3
LOGIN_RETRY_DELAY = 5
RESTART_EXIT_CODE = 2


class Alphabot:
    def __init__(
        self,
        settings: BotSettings,
        app: AppContext | None = None,
        *,
        login_factory: LoginFactory | None = None,
        health_server: bool = True,
    ) -> None:
        self.settings = settings
        self.app = app
        self.dispatcher: EventDispatcher | None = None
        self.health = (
            HealthCheckServer(self, settings.health_host, settings.health_port)
            if health_server
            else None
        )
        self.exit_code = 0
        self._factory = login_factory
        self._listener: Listener | None = None
        self._loops: list[asyncio.Task] = []
        self._stop: asyncio.Event | None = None
        self._ready = False
        self._closed = False

    def is_ready(self) -> bool:
        return self._ready

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        """Open storage and load command and event plugins."""
        if self.app is None:
            self.app = await create_app_context(self.settings)
        loader = PluginLoader(self.app.registry)
        loader.load_commands()
        loader.load_events()
        self.dispatcher = EventDispatcher(self.app)
        stats = self.app.registry.stats
        LOGGER.info(
            f"Plugins ready: {stats['commands']} commands, {stats['events']} events, "
            f"{stats['listeners']} listeners"
        )

    async def login(self) -> None:
        """Validate the appstate and log in, retrying once."""
        cookies = load_appstate(self.settings.appstate_file)
        LOGGER.info(f"AppState loaded: {sanitize_for_logging(cookies)}")
        if is_expired(cookies):
            LOGGER.warning("AppState session cookie looks expired, login will probably fail")

        factory = self._factory or load_login_factory(self.settings.transport)
        api: Any = None
        for attempt in (1, 2):
            try:
                api = await login(factory, cookies, self.settings.fca_options)
                break
            except Exception as e:
                if attempt == 2:
                    raise TransportError(f"Login failed: {e}") from e
                LOGGER.warning(f"Login attempt {attempt} failed: {e}, retrying...")
                await asyncio.sleep(LOGIN_RETRY_DELAY)

        self.app.transport = AsyncTransport(api)
        self.app.bot_id = self.app.transport.current_user_id()
        LOGGER.info(f"Successfully logged in as: {self.app.bot_id}")

    # ------------------------------------------------------------------
    # Listening
    # ------------------------------------------------------------------

    def _on_event(self, err: Any, raw: Any) -> None:
        if err:
            LOGGER.error(f"Listener error: {err}")
            return
        if not isinstance(raw, dict):
            return
        event = normalize_event(raw)
        self.app.spawn(self.dispatcher.dispatch(event), name=f"dispatch:{event.type}")

    def _listen(self) -> None:
        self._listener = self.app.require_transport().listen(self._on_event)

    def _stop_listening(self) -> None:
        if self._listener is None:
            return
        try:
            self._listener.stop_listening()
        except Exception as e:
            LOGGER.warning(f"Error stopping listener: {e}")
        self._listener = None

    def refresh_listener(self) -> None:
        self._stop_listening()
        self._listen()
        LOGGER.info("Listener refreshed")

    # ------------------------------------------------------------------
    # Maintenance loops
    # ------------------------------------------------------------------

    async def _appstate_refresh_loop(self) -> None:
        """Persist the client's current cookies every 12 hours."""
        while True:
            await asyncio.sleep(APPSTATE_REFRESH_INTERVAL)
            try:
                cookies = self.app.require_transport().app_state()
                report = validate_appstate(cookies)
                if not report.valid:
                    LOGGER.warning(f"Refreshed appstate rejected: {report.errors}")
                    continue
                save_appstate(self.settings.appstate_file, cookies)
                LOGGER.info(f"AppState refreshed ({report.cookie_count} cookies)")
            except asyncio.CancelledError:
                break
            except Exception as e:
                LOGGER.warning(f"AppState refresh error: {e}")

    async def _listener_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(LISTENER_REFRESH_INTERVAL)
            try:
                self.refresh_listener()
            except asyncio.CancelledError:
                break
            except Exception as e:
                LOGGER.error(f"Listener refresh error: {e}")

    async def check_health(self) -> bool:
        """Ask the client for the bot's own profile."""
        try:
            await asyncio.wait_for(
                self.app.require_transport().get_user_info([self.app.bot_id]),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
            return True
        except (AlphabotError, RuntimeError, TimeoutError) as e:
            LOGGER.warning(f"Health check failed: {type(e).__name__}: {e}")
            return False

    async def _health_check_loop(self) -> None:
        """Re-listen on a failed check; give up after repeated failures."""
        failures = 0
        while True:
            await asyncio.sleep(HEALTH_CHECK_INTERVAL)
            try:
                if await self.check_health():
                    failures = 0
                    LOGGER.debug("Health check passed")
                    continue
                failures += 1
                if failures >= MAX_HEALTH_FAILURES:
                    LOGGER.error(f"Health check failed {failures} times, shutting down")
                    self.request_shutdown(1)
                    break
                self.refresh_listener()
            except asyncio.CancelledError:
                break
            except Exception as e:
                LOGGER.warning(f"Health check loop error: {e}")

    async def _auto_restart(self, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        LOGGER.info("Scheduled restart")
        self.request_shutdown(RESTART_EXIT_CODE)

    # ------------------------------------------------------------------
    # Run / shutdown
    # ------------------------------------------------------------------

    def request_shutdown(self, code: int = 0) -> None:
        if self._stop is None or self._stop.is_set():
            return
        self.exit_code = code
        self._stop.set()

    async def start(self) -> int:
        """Run until a shutdown is requested. Returns the process exit code."""
        self._stop = asyncio.Event()
        try:
            await self.setup()
            await self.login()
            self.app.sessions.start_sweeper()
            self._listen()
            self._ready = True
            if self.health is not None:
                await self.health.start()

            self._loops = [
                asyncio.create_task(self._appstate_refresh_loop(), name="appstate-refresh"),
                asyncio.create_task(self._listener_refresh_loop(), name="listener-refresh"),
                asyncio.create_task(self._health_check_loop(), name="health-check"),
            ]
            if self.settings.refresh > 0:
                self._loops.append(
                    asyncio.create_task(
                        self._auto_restart(self.settings.refresh), name="auto-restart"
                    )
                )
            LOGGER.info("Bot is running")
            await self._stop.wait()
        finally:
            await self.close()
        return self.exit_code

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._ready = False
        LOGGER.info("Shutting down...")

        for task in self._loops:
            task.cancel()
        await asyncio.gather(*self._loops, return_exceptions=True)
        self._stop_listening()

        if self.app is not None:
            cancelled = self.app.sessions.cancel_all_tasks()
            if cancelled:
                LOGGER.info(f"Cancelled {cancelled} running command tasks")
            self.app.sessions.stop_sweeper()

        if self.health is not None:
            await self.health.stop()

        if self.app is not None:
            if self.app.transport is not None:
                try:
                    await asyncio.wait_for(self.app.transport.logout(), timeout=10)
                    LOGGER.info("Logged out")
                except Exception as e:
                    LOGGER.warning(f"Logout failed: {e}")

            pending = list(self.app.background)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if self.app.database is not None:
                await self.app.database.disconnect()


def run_bot(settings: BotSettings | None = None) -> int:
    """Process entry for the bot child; returns the exit code."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    bot = Alphabot(settings)

    async def runner() -> int:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, bot.request_shutdown)
        try:
            return await bot.start()
        except AlphabotError as e:
            LOGGER.error(f"Startup failed: {e}")
            for error in getattr(e, "errors", []):
                LOGGER.error(f"  - {error}")
            return 1
        except Exception as e:
            LOGGER.exception(f"Fatal error: {e}")
            return 1

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")
        return 0
