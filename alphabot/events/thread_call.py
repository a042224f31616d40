from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

LOGGER = logging.getLogger("Events")

config = {"name": "thread-call"}


async def run(ctx: MessageContext) -> None:
    data = ctx.event.log_message_data
    event = data.get("event") or "call"
    LOGGER.info(f"[{ctx.thread_id}] {event} by {data.get('caller_id') or ctx.event.author}")
