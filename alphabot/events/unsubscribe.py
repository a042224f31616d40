"""Say goodbye when a member leaves or is removed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

LOGGER = logging.getLogger("Events")

config = {"name": "unsubscribe"}


async def run(ctx: MessageContext) -> None:
    left_id = str(ctx.event.log_message_data.get("leftParticipantFbId") or "")
    if not left_id:
        return
    if left_id == ctx.app.bot_id:
        LOGGER.info(f"Bot removed from thread {ctx.thread_id}")
        return

    thread = ctx.data.thread
    member = thread.member(left_id) if thread else None
    name = (member.name if member else None) or await ctx.app.users.display_name(left_id)

    if ctx.event.participant_ids:
        await ctx.app.threads.update_info(
            ctx.thread_id, {"participantIDs": ctx.event.participant_ids}
        )

    key = "left" if ctx.event.author == left_id else "kicked"
    await ctx.send(ctx.lang(f"events.unsubscribe.{key}", name=name))
