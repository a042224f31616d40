from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

LOGGER = logging.getLogger("Events")

config = {"name": "user-nickname"}


async def run(ctx: MessageContext) -> None:
    data = ctx.event.log_message_data
    LOGGER.info(
        f"[{ctx.thread_id}] {ctx.event.author} set nickname of "
        f"{data.get('participant_id')} to {data.get('nickname')!r}"
    )
