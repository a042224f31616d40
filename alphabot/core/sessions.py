"""Ephemeral per-process session state: cooldowns, waiters and running tasks.

Nothing here is persisted. Expiry is checked lazily on every read and
eagerly by a sweeper task that runs on a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, NamedTuple

LOGGER = logging.getLogger("Sessions")

DEFAULT_WAITER_TTL = 60.0
SWEEP_INTERVAL = 60.0


class WaiterKind(str, Enum):
    REPLY = "reply"
    REACTION = "reaction"


class CooldownStatus(NamedTuple):
    ready: bool
    remaining: float


@dataclass
class WaiterRecord:
    """A follow-up callback bound to a message the bot sent."""

    name: str
    message_id: str
    thread_id: str
    author_id: str
    callback: Callable[..., Any]
    author_only: bool = True
    expires_at: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def public(self) -> dict[str, Any]:
        """Everything except the callback, as handed to the callback itself."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "callback"}
        data["extra"] = dict(self.extra)
        return data


class CancellationToken:
    """Cooperative stop flag for long-running handlers."""

    def __init__(self, key: str) -> None:
        self.key = key
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, delay: float) -> bool:
        """Wait up to ``delay`` seconds; returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True


class SessionStore:
    """Cooldown map, reply/reaction waiters and cancellation tokens."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        # command -> user -> expires_at
        self._cooldowns: dict[str, dict[str, float]] = {}
        self._waiters: dict[WaiterKind, dict[str, WaiterRecord]] = {
            WaiterKind.REPLY: {},
            WaiterKind.REACTION: {},
        }
        self._tasks: dict[str, CancellationToken] = {}
        self._sweeper: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Cooldowns
    # ------------------------------------------------------------------

    def check_cooldown(self, command: str, user_id: str, cooldown: float) -> CooldownStatus:
        """Whether ``user_id`` may run ``command`` now. Never sets a cooldown."""
        if cooldown <= 0:
            return CooldownStatus(True, 0.0)
        users = self._cooldowns.get(command)
        expires_at = users.get(user_id) if users else None
        if expires_at is None:
            return CooldownStatus(True, 0.0)
        remaining = expires_at - self._clock()
        if remaining <= 0:
            del users[user_id]  # type: ignore[index]
            return CooldownStatus(True, 0.0)
        return CooldownStatus(False, remaining)

    def set_cooldown(self, command: str, user_id: str, seconds: float) -> None:
        if seconds <= 0:
            return
        self._cooldowns.setdefault(command, {})[user_id] = self._clock() + seconds

    def forget_command(self, command: str) -> None:
        """Drop every cooldown of a command that is no longer registered."""
        self._cooldowns.pop(command, None)

    # ------------------------------------------------------------------
    # Waiters
    # ------------------------------------------------------------------

    def add_waiter(
        self,
        kind: WaiterKind,
        message_id: str,
        record: WaiterRecord,
        ttl: float = DEFAULT_WAITER_TTL,
    ) -> bool:
        """Register a follow-up. A non-callable callback is ignored (returns False)."""
        if not callable(record.callback):
            LOGGER.debug(f"Ignoring {kind.value} waiter for {message_id}: callback not callable")
            return False
        record.expires_at = self._clock() + ttl if ttl > 0 else None
        self._waiters[kind][message_id] = record
        return True

    def _live(self, kind: WaiterKind, message_id: str) -> WaiterRecord | None:
        waiters = self._waiters[kind]
        record = waiters.get(message_id)
        if record is None:
            return None
        if record.expires_at is not None and record.expires_at <= self._clock():
            del waiters[message_id]
            return None
        return record

    def peek_waiter(self, kind: WaiterKind, message_id: str) -> WaiterRecord | None:
        return self._live(kind, message_id)

    def consume_waiter(
        self,
        kind: WaiterKind,
        message_id: str,
        accept: Callable[[WaiterRecord], bool] | None = None,
    ) -> WaiterRecord | None:
        """Look up and remove a waiter; at most one caller ever gets it.

        When ``accept`` rejects the record it stays registered.
        """
        record = self._live(kind, message_id)
        if record is None:
            return None
        if accept is not None and not accept(record):
            return None
        del self._waiters[kind][message_id]
        return record

    # ------------------------------------------------------------------
    # Long-running tasks
    # ------------------------------------------------------------------

    def open_task(self, key: str) -> CancellationToken | None:
        """Start tracking a loop under ``key``; None if one is already running."""
        if key in self._tasks:
            return None
        token = CancellationToken(key)
        self._tasks[key] = token
        return token

    def cancel_task(self, key: str) -> bool:
        token = self._tasks.pop(key, None)
        if token is None:
            return False
        token.cancel()
        return True

    def close_task(self, key: str, token: CancellationToken) -> None:
        """Stop tracking ``token``, unless ``key`` has been reused since."""
        if self._tasks.get(key) is token:
            del self._tasks[key]

    def is_running(self, key: str) -> bool:
        return key in self._tasks

    def cancel_all_tasks(self) -> int:
        count = len(self._tasks)
        for token in self._tasks.values():
            token.cancel()
        self._tasks.clear()
        return count

    # ------------------------------------------------------------------
    # Sweeping
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Drop expired cooldowns and waiters. Returns how many entries went."""
        now = self._clock()
        removed = 0
        for command in list(self._cooldowns):
            users = self._cooldowns[command]
            for user_id in [u for u, exp in users.items() if exp <= now]:
                del users[user_id]
                removed += 1
            if not users:
                del self._cooldowns[command]
        for waiters in self._waiters.values():
            for message_id in [
                m for m, r in waiters.items() if r.expires_at is not None and r.expires_at <= now
            ]:
                del waiters[message_id]
                removed += 1
        return removed

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                removed = self.sweep()
                if removed:
                    LOGGER.debug(f"Session sweep removed {removed} expired entries")
            except asyncio.CancelledError:
                break
            except Exception as e:
                LOGGER.warning(f"Session sweep error: {e}")

    def start_sweeper(self, interval: float = SWEEP_INTERVAL) -> asyncio.Task:
        """Start the periodic sweep once; later calls return the same task."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval))
        return self._sweeper

    def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

    @property
    def stats(self) -> dict[str, int]:
        return {
            "cooldowns": sum(len(u) for u in self._cooldowns.values()),
            "reply_waiters": len(self._waiters[WaiterKind.REPLY]),
            "reaction_waiters": len(self._waiters[WaiterKind.REACTION]),
            "running_tasks": len(self._tasks),
        }
