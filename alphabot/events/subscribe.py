"""Welcome new members; greet the group when the bot itself is added."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

LOGGER = logging.getLogger("Events")

config = {"name": "subscribe"}


async def run(ctx: MessageContext) -> None:
    added = ctx.event.log_message_data.get("addedParticipants") or []
    bot_id = ctx.app.bot_id
    newcomers = [p for p in added if str(p.get("userFbId")) != bot_id]

    if ctx.event.participant_ids:
        await ctx.app.threads.update_info(
            ctx.thread_id,
            {
                "participantIDs": ctx.event.participant_ids,
                "userInfo": [
                    {"id": str(p.get("userFbId")), "name": p.get("fullName")} for p in newcomers
                ],
            },
        )

    if len(newcomers) < len(added):
        LOGGER.info(f"Bot added to thread {ctx.thread_id}")
        await ctx.send(ctx.lang("events.subscribe.botJoined", prefix=ctx.prefix))
    if not newcomers:
        return

    names = ", ".join(p.get("fullName") or str(p.get("userFbId")) for p in newcomers)
    thread = ctx.data.thread
    title = thread.name if thread and thread.name else ctx.thread_id
    await ctx.send(ctx.lang("events.subscribe.welcome", names=names, thread=title))
