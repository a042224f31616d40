"""Inbound event routing: classification, gates and isolated handler calls."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Any

from alphabot.core.app_context import AppContext
from alphabot.core.context import ContextKind, HandlerData, MessageContext
from alphabot.core.events import (
    CHANGE_THREAD_IMAGE,
    MESSAGE_REACTION,
    MESSAGE_REPLY,
    InboundEvent,
)
from alphabot.core.exceptions import (
    CooldownActive,
    HandlerExecutionError,
    NsfwNotAllowed,
    PermissionDenied,
)
from alphabot.core.permissions import DeniedPolicy, check_permission
from alphabot.core.registry import Command
from alphabot.core.sessions import WaiterKind, WaiterRecord
from alphabot.shared.models.thread import ThreadRecord

LOGGER = logging.getLogger("Dispatcher")

COOLDOWN_EMOJI = "🕓"


class EventKind(str, Enum):
    COMMAND = "command"
    REPLY = "reply"
    REACTION = "reaction"
    MESSAGE = "message"
    THREAD_LOG = "thread-log"
    IGNORED = "ignored"


class EventDispatcher:
    """Routes one normalized event to the right handler.

    ``dispatch`` never raises: handler failures become a localized error
    reply (commands, replies, reactions) or a log line (message listeners,
    thread-log handlers).
    """

    def __init__(self, app: AppContext, denied_policy: DeniedPolicy | None = None) -> None:
        self.app = app
        self.denied_policy = denied_policy or DeniedPolicy(app.settings.denied_policy)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def effective_prefix(self, thread: ThreadRecord | None) -> str:
        prefix = (thread.prefix if thread else None) or self.app.settings.prefix or "/"
        return prefix.strip().lower()

    @staticmethod
    def parse_command(event: InboundEvent, prefix: str) -> tuple[str, list[str]] | None:
        """Split ``<prefix><name> args...``; None when the body is not prefixed."""
        args = event.args()
        if not args:
            return None
        head = args[0].lower()
        if not head.startswith(prefix) or len(head) == len(prefix):
            return None
        return head[len(prefix) :], args[1:]

    def classify(self, event: InboundEvent, prefix: str) -> EventKind:
        if event.is_thread_log:
            return EventKind.THREAD_LOG
        if event.type == MESSAGE_REACTION:
            return EventKind.REACTION
        if not event.is_message:
            return EventKind.IGNORED

        parsed = self.parse_command(event, prefix)
        if parsed is not None and self.app.registry.resolve(parsed[0]) is not None:
            return EventKind.COMMAND
        if (
            event.type == MESSAGE_REPLY
            and event.message_reply is not None
            and self.app.sessions.peek_waiter(WaiterKind.REPLY, event.message_reply.message_id)
        ):
            return EventKind.REPLY
        return EventKind.MESSAGE

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def dispatch(self, event: InboundEvent) -> EventKind:
        try:
            return await self._dispatch(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            LOGGER.exception(f"Unhandled error dispatching {event.type} event: {e}")
            return EventKind.IGNORED

    async def _dispatch(self, event: InboundEvent) -> EventKind:
        if event.is_thread_log:
            await self._handle_thread_log(event)
            return EventKind.THREAD_LOG
        if event.type == MESSAGE_REACTION:
            return await self._handle_reaction(event)
        if not event.is_message:
            return EventKind.IGNORED

        actor = event.actor_id
        if actor is None or actor == self.app.bot_id:
            return EventKind.IGNORED

        data = await self._load_data(event)
        if data.is_banned(actor):
            LOGGER.debug(f"Dropping message from banned actor {actor} in {event.thread_id}")
            return EventKind.IGNORED

        prefix = self.effective_prefix(data.thread)
        kind = self.classify(event, prefix)
        if kind is EventKind.COMMAND:
            await self._handle_command(event, data, prefix)
        elif kind is EventKind.REPLY:
            if not await self._handle_reply(event, data):
                # waiter belongs to someone else; the reply is an ordinary message
                await self._handle_message(event, data)
                return EventKind.MESSAGE
        else:
            await self._handle_message(event, data)
        return kind

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def _fetch_user(self, user_id: str) -> dict[str, Any]:
        info = await self.app.require_transport().get_user_info([user_id])
        return info.get(user_id) or {}

    async def _load_data(self, event: InboundEvent) -> HandlerData:
        actor = event.actor_id
        transport = self.app.transport
        in_group = event.is_group or (
            event.type == MESSAGE_REACTION and event.thread_id not in (actor, event.sender_id)
        )
        fetch_thread = (
            transport.get_thread_info if transport and transport.supports_thread_info else None
        )
        fetch_user = self._fetch_user if transport else None

        data = HandlerData()
        try:
            if in_group and event.thread_id:
                data.thread = await self.app.threads.ensure(event.thread_id, fetch_thread)
            if actor:
                data.user = await self.app.users.ensure(actor, fetch_user)
        except Exception as e:
            LOGGER.warning(
                f"Could not load records for {event.thread_id}/{actor}: {type(e).__name__}: {e}"
            )
        return data

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @staticmethod
    def _cooldown_free(command: Command, args: list[str]) -> bool:
        return bool(args) and args[0].lower() in command.cooldown_free_args

    def _check_gates(self, command: Command, ctx: MessageContext) -> None:
        """Raise the first failing gate: permission, NSFW, then cooldown."""
        event = ctx.event
        sender = event.sender_id or ""

        allowed = check_permission(command.permissions, ctx.user_permissions)
        if allowed and command.is_absolute:
            allowed = self.app.settings.is_absolute(sender)
        if not allowed:
            raise PermissionDenied(command.name, sender)

        thread = ctx.data.thread
        if command.nsfw and event.is_group and not (thread is not None and thread.nsfw):
            raise NsfwNotAllowed(command.name, ctx.thread_id)

        if self._cooldown_free(command, ctx.args):
            return
        status = self.app.sessions.check_cooldown(command.name, sender, command.cooldown)
        if not status.ready:
            raise CooldownActive(command.name, status.remaining)

    async def _handle_command(self, event: InboundEvent, data: HandlerData, prefix: str) -> None:
        parsed = self.parse_command(event, prefix)
        command = self.app.registry.resolve(parsed[0]) if parsed else None
        if parsed is None or command is None:
            return
        sender = event.sender_id or ""

        tags = await self.app.permissions.resolve(
            sender, event.thread_id, thread=data.thread, user=data.user
        )
        ctx = MessageContext(
            self.app,
            event,
            ContextKind.COMMAND,
            command=command,
            args=parsed[1],
            prefix=prefix,
            data=data,
            user_permissions=tags,
        )

        try:
            self._check_gates(command, ctx)
        except PermissionDenied as e:
            LOGGER.debug(str(e))
            if self.denied_policy is DeniedPolicy.REPLY:
                await self._quietly(ctx.reply(ctx.lang("handlers.commands.permissionDenied")))
            return
        except NsfwNotAllowed as e:
            LOGGER.debug(str(e))
            await self._quietly(ctx.reply(ctx.lang("handlers.commands.nsfwNotAllowed")))
            return
        except CooldownActive as e:
            LOGGER.debug(str(e))
            await self._quietly(ctx.react(COOLDOWN_EMOJI))
            return

        # Applies whatever the handler's outcome.
        if not self._cooldown_free(command, ctx.args):
            self.app.sessions.set_cooldown(command.name, sender, command.cooldown)
        LOGGER.info(f"[{event.thread_id}] {sender} -> {prefix}{command.name} {' '.join(ctx.args)}")
        await self._run(ctx, command.handler, ctx)

    # ------------------------------------------------------------------
    # Waiters
    # ------------------------------------------------------------------

    async def _invoke_waiter(
        self, event: InboundEvent, data: HandlerData, record: WaiterRecord, kind: ContextKind
    ) -> None:
        event_data = record.public()
        ctx = MessageContext(
            self.app,
            event,
            kind,
            name=record.name,
            command=self.app.registry.resolve(record.name) if record.name else None,
            args=event.args(),
            prefix=self.effective_prefix(data.thread),
            data=data,
            event_data=event_data,
        )
        await self._run(ctx, record.callback, ctx, event_data)

    async def _handle_reply(self, event: InboundEvent, data: HandlerData) -> bool:
        if event.message_reply is None:
            return False
        actor = event.actor_id
        record = self.app.sessions.consume_waiter(
            WaiterKind.REPLY,
            event.message_reply.message_id,
            accept=lambda r: not r.author_only or r.author_id == actor,
        )
        if record is None:
            return False
        await self._invoke_waiter(event, data, record, ContextKind.REPLY)
        return True

    async def _handle_reaction(self, event: InboundEvent) -> EventKind:
        if not event.message_id:
            return EventKind.IGNORED
        sessions = self.app.sessions
        if sessions.peek_waiter(WaiterKind.REACTION, event.message_id) is None:
            return EventKind.IGNORED
        actor = event.actor_id
        if actor is None or actor == self.app.bot_id:
            return EventKind.IGNORED

        data = await self._load_data(event)
        if data.is_banned(actor):
            return EventKind.IGNORED

        record = sessions.consume_waiter(
            WaiterKind.REACTION,
            event.message_id,
            accept=lambda r: not r.author_only or r.author_id == actor,
        )
        if record is None:
            return EventKind.IGNORED
        await self._invoke_waiter(event, data, record, ContextKind.REACTION)
        return EventKind.REACTION

    # ------------------------------------------------------------------
    # Plain messages and thread-log events
    # ------------------------------------------------------------------

    async def _handle_message(self, event: InboundEvent, data: HandlerData) -> None:
        listeners = self.app.registry.message_listeners()
        if not listeners:
            return
        calls = []
        for name, handler in listeners:
            ctx = MessageContext(
                self.app,
                event,
                ContextKind.MESSAGE,
                name=name,
                command=self.app.registry.resolve(name),
                args=event.args(),
                prefix=self.effective_prefix(data.thread),
                data=data,
            )
            calls.append(self._run(ctx, handler, ctx))
        await asyncio.gather(*calls)

    async def _handle_thread_log(self, event: InboundEvent) -> None:
        if event.type != CHANGE_THREAD_IMAGE and not event.participant_ids:
            return
        name = event.handler_name
        if name is None:
            LOGGER.debug(f"Unmapped thread event {event.log_message_type}")
            return
        handler = self.app.registry.get_event(name)
        if handler is None:
            return

        data = HandlerData()
        if event.thread_id:
            try:
                data.thread = await self.app.threads.get(event.thread_id)
            except Exception as e:
                LOGGER.warning(f"Could not load thread {event.thread_id}: {e}")

        ctx = MessageContext(
            self.app,
            event,
            ContextKind.THREAD_LOG,
            name=name,
            prefix=self.effective_prefix(data.thread),
            data=data,
        )
        await self._run(ctx, handler, ctx)

    # ------------------------------------------------------------------
    # Isolation helpers
    # ------------------------------------------------------------------

    async def _run(self, ctx: MessageContext, handler: Any, *args: Any) -> None:
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = HandlerExecutionError(ctx.name, e)
            LOGGER.exception(f"Handler {ctx.name or '?'} ({ctx.kind.value}) failed: {error}")
            if ctx.kind in (ContextKind.MESSAGE, ContextKind.THREAD_LOG):
                return
            await self._quietly(
                ctx.send(
                    ctx.lang("handlers.default.error", error=str(error)),
                    reply_to=ctx.message_id,
                )
            )

    @staticmethod
    async def _quietly(awaitable: Awaitable[Any]) -> None:
        """Await a best-effort send; transport failures are logged only."""
        try:
            await awaitable
        except Exception as e:
            LOGGER.warning(f"Transport call failed: {type(e).__name__}: {e}")
