"""Echo command used to check argument parsing."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "test",
    "description": "Reply with the received arguments",
    "usage": "[text]",
    "cooldown": 3,
    "permissions": [0],
}

lang_data = {
    "en_US": {"result": "✅ Bot is working!\n⏰ Time: {time}\n📝 Args: {args}", "none": "none"},
    "vi_VN": {
        "result": "✅ Bot hoạt động bình thường!\n⏰ Thời gian: {time}\n📝 Args: {args}",
        "none": "Không có",
    },
}


async def run(ctx: MessageContext) -> None:
    await ctx.reply(
        ctx.lang(
            "result",
            time=datetime.now().strftime("%H:%M:%S %d/%m/%Y"),
            args=" ".join(ctx.args) or ctx.lang("none"),
        )
    )
