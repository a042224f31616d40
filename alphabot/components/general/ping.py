from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "ping",
    "aliases": ["p"],
    "description": "Check that the bot is responding",
    "cooldown": 2,
    "permissions": [0],
}

lang_data = {
    "en_US": {"pong": "🏓 Pong!\n⏰ {time}\n💻 Bot is running normally!"},
    "vi_VN": {"pong": "🏓 Pong!\n⏰ {time}\n💻 Bot hoạt động bình thường!"},
}


async def run(ctx: MessageContext) -> None:
    """Usage: ping"""
    await ctx.reply(ctx.lang("pong", time=datetime.now().strftime("%H:%M:%S %d/%m/%Y")))
