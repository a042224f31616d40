"""Process supervisor: keeps the bot (or, without a usable appstate, the dashboard) running."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time
from collections import deque
from collections.abc import Callable, Sequence
from pathlib import Path

from alphabot.core.appstate import validate_appstate
from alphabot.core.config import BotSettings

LOGGER = logging.getLogger("Launcher")

MAX_RESTARTS = 5
RESTART_WINDOW = 60.0
BOT_RESTART_DELAY = 2.0
DASHBOARD_RESTART_DELAY = 3.0

BOT_COMMAND = (sys.executable, "-X", "faulthandler", "-m", "alphabot", "bot")
DASHBOARD_COMMAND = (sys.executable, "-m", "alphabot", "dashboard")


class RestartWindow:
    """Allows at most ``limit`` restarts inside any rolling ``window`` seconds."""

    def __init__(
        self,
        limit: int = MAX_RESTARTS,
        window: float = RESTART_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._stamps: deque[float] = deque()

    def record(self) -> bool:
        """Count one restart; False once the budget for the window is spent."""
        now = self._clock()
        while self._stamps and now - self._stamps[0] >= self.window:
            self._stamps.popleft()
        if len(self._stamps) >= self.limit:
            return False
        self._stamps.append(now)
        return True

    def __len__(self) -> int:
        return len(self._stamps)


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class PidLock:
    """PID file guarding against two bot processes sharing one session."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def held_by(self) -> int | None:
        """PID of a live holder, or None. A stale lock is removed."""
        if not self.path.is_file():
            return None
        try:
            pid = int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            pid = 0
        if pid_alive(pid):
            return pid
        self.release()
        return None

    def acquire(self, pid: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(pid), encoding="utf-8")

    def release(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            LOGGER.warning(f"Could not remove lock {self.path}: {e}")


def appstate_ready(settings: BotSettings) -> bool:
    path = settings.appstate_file
    if not path.is_file():
        return False
    try:
        return validate_appstate(path.read_text(encoding="utf-8")).valid
    except OSError:
        return False


async def launch_bot(settings: BotSettings) -> int | None:
    """Start a detached bot process unless one already holds the lock."""
    lock = PidLock(settings.lock_file)
    held = lock.held_by()
    if held is not None:
        LOGGER.warning(f"Bot is already running (PID {held}), not starting another")
        return None
    proc = await asyncio.create_subprocess_exec(*BOT_COMMAND)
    lock.acquire(proc.pid)
    LOGGER.info(f"Bot started (PID {proc.pid})")
    return proc.pid


class Supervisor:
    def __init__(
        self,
        settings: BotSettings,
        *,
        bot_command: Sequence[str] = BOT_COMMAND,
        dashboard_command: Sequence[str] = DASHBOARD_COMMAND,
        restart_delay: float = BOT_RESTART_DELAY,
        window: RestartWindow | None = None,
    ) -> None:
        self.settings = settings
        self.bot_command = list(bot_command)
        self.dashboard_command = list(dashboard_command)
        self.restart_delay = restart_delay
        self.window = window or RestartWindow()
        self.lock = PidLock(settings.lock_file)

    async def _run_child(self, command: list[str], lock: PidLock | None) -> int:
        proc = await asyncio.create_subprocess_exec(*command)
        if lock is not None:
            lock.acquire(proc.pid)
        try:
            return await proc.wait()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.terminate()
                await proc.wait()
            raise
        finally:
            if lock is not None:
                lock.release()

    async def supervise(
        self, name: str, command: list[str], delay: float, lock: PidLock | None = None
    ) -> int:
        """Run ``command`` until it exits 0 or restarts too often. Returns the exit code."""
        while True:
            code = await self._run_child(command, lock)
            if code == 0:
                LOGGER.info(f"{name} stopped")
                return 0
            if not self.window.record():
                LOGGER.error(
                    f"{name} restarted {self.window.limit} times within "
                    f"{int(self.window.window)}s, giving up"
                )
                return 1
            LOGGER.warning(f"{name} exited with code {code}, restarting in {delay:g}s...")
            await asyncio.sleep(delay)

    async def run(self) -> int:
        if not appstate_ready(self.settings):
            LOGGER.warning("AppState missing or invalid, starting the dashboard instead")
            return await self.supervise(
                "Dashboard", self.dashboard_command, DASHBOARD_RESTART_DELAY
            )

        held = self.lock.held_by()
        if held is not None:
            LOGGER.warning(f"Bot is already running (PID {held}). Skip starting another instance.")
            return 0
        return await self.supervise("Bot", self.bot_command, self.restart_delay, self.lock)


def run_launcher(settings: BotSettings) -> int:
    try:
        return asyncio.run(Supervisor(settings).run())
    except KeyboardInterrupt:
        LOGGER.warning("Launcher interrupted")
        return 0
