"""Per-invocation handler context: event, records and send capabilities."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from alphabot.core.events import InboundEvent
from alphabot.core.sessions import (
    DEFAULT_WAITER_TTL,
    CancellationToken,
    WaiterKind,
    WaiterRecord,
)
from alphabot.shared.models.thread import ThreadRecord
from alphabot.shared.models.user import UserRecord

if TYPE_CHECKING:
    from alphabot.core.app_context import AppContext
    from alphabot.core.registry import Command

LOGGER = logging.getLogger("Context")


class ContextKind(str, Enum):
    COMMAND = "command"
    REPLY = "reply"
    REACTION = "reaction"
    MESSAGE = "message"
    THREAD_LOG = "thread-log"


@dataclass
class HandlerData:
    """Records loaded once per dispatch and shared by every check and handler."""

    thread: ThreadRecord | None = None
    user: UserRecord | None = None

    def is_banned(self, user_id: str | None) -> bool:
        if self.user is not None and self.user.banned:
            return True
        if self.thread is not None:
            if self.thread.banned:
                return True
            if user_id and self.thread.is_member_banned(user_id):
                return True
        return False


class SentMessage:
    """A message the bot sent, able to register follow-ups on itself."""

    def __init__(self, ctx: MessageContext, thread_id: str, info: dict[str, Any]) -> None:
        self._ctx = ctx
        self.thread_id = thread_id
        self.message_id = str(info.get("messageID") or "")
        self.info = info

    def _waiter(self, kind: WaiterKind, callback: Any, ttl: float, fields: dict[str, Any]) -> bool:
        if not self.message_id:
            LOGGER.debug(f"Cannot attach {kind.value} waiter: send returned no message ID")
            return False
        record = WaiterRecord(
            name=fields.pop("name", self._ctx.name),
            message_id=self.message_id,
            thread_id=self.thread_id,
            author_id=fields.pop("author_id", self._ctx.author_id or ""),
            callback=callback,
            author_only=fields.pop("author_only", True),
            extra=fields,
        )
        return self._ctx.app.sessions.add_waiter(kind, self.message_id, record, ttl)

    def add_reply_event(
        self, callback: Any, ttl: float = DEFAULT_WAITER_TTL, **fields: Any
    ) -> bool:
        """Call ``callback(ctx, event_data)`` when someone replies to this message."""
        return self._waiter(WaiterKind.REPLY, callback, ttl, fields)

    def add_react_event(
        self, callback: Any, ttl: float = DEFAULT_WAITER_TTL, **fields: Any
    ) -> bool:
        """Call ``callback(ctx, event_data)`` when someone reacts to this message."""
        return self._waiter(WaiterKind.REACTION, callback, ttl, fields)

    def unsend(self, delay: float = 0.0) -> asyncio.Task:
        """Retract the message after ``delay`` seconds without blocking the caller."""

        async def _unsend() -> None:
            if delay > 0:
                await asyncio.sleep(delay)
            try:
                await self._ctx.app.require_transport().unsend(self.message_id)
            except Exception as e:
                LOGGER.warning(f"Unsend of {self.message_id} failed: {e}")

        return self._ctx.app.spawn(_unsend(), name=f"unsend:{self.message_id}")


class MessageContext:
    """What a handler gets: the event, its records and ways to answer."""

    def __init__(
        self,
        app: AppContext,
        event: InboundEvent,
        kind: ContextKind,
        *,
        name: str = "",
        command: Command | None = None,
        args: list[str] | None = None,
        prefix: str = "",
        data: HandlerData | None = None,
        user_permissions: frozenset[str] = frozenset(),
        event_data: dict[str, Any] | None = None,
    ) -> None:
        self.app = app
        self.event = event
        self.kind = kind
        self.command = command
        self.name = name or (command.name if command else "")
        self.args = args or []
        self.prefix = prefix or app.settings.prefix
        self.data = data or HandlerData()
        self.user_permissions = user_permissions
        self.event_data = event_data or {}

    @property
    def thread_id(self) -> str:
        return self.event.thread_id or ""

    @property
    def message_id(self) -> str | None:
        return self.event.message_id

    @property
    def author_id(self) -> str | None:
        return self.event.actor_id

    @property
    def extra(self) -> dict[str, Any]:
        return self.command.extra if self.command else {}

    @property
    def language(self) -> str:
        thread = self.data.thread
        return (thread.language if thread else None) or self.app.settings.language

    def lang(self, key: str, **values: Any) -> str:
        pack = self.command.lang_data if self.command else None
        return self.app.translator.get(key, values, language=self.language, command_pack=pack)

    async def send(
        self, content: Any, thread_id: str | None = None, reply_to: str | None = None
    ) -> SentMessage:
        target = thread_id or self.thread_id
        info = await self.app.require_transport().send_message(content, target, reply_to)
        return SentMessage(self, target, info)

    async def reply(self, content: Any) -> SentMessage:
        if self.kind is ContextKind.REACTION:
            raise RuntimeError("reply is not available for reaction events")
        return await self.send(content, reply_to=self.message_id)

    async def react(self, emoji: str) -> None:
        if self.kind is ContextKind.REACTION:
            raise RuntimeError("react is not available for reaction events")
        if not self.message_id:
            raise RuntimeError("event has no message to react to")
        await self.app.require_transport().set_reaction(emoji, self.message_id)

    def open_task(self, key: str) -> CancellationToken | None:
        return self.app.sessions.open_task(key)

    def cancel_task(self, key: str) -> bool:
        return self.app.sessions.cancel_task(key)

    def close_task(self, key: str, token: CancellationToken) -> None:
        self.app.sessions.close_task(key, token)
