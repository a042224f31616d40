from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "nsfw",
    "description": "Allow or forbid NSFW commands in this group",
    "usage": "[on | off]",
    "permissions": [2],
    "cooldown": 5,
}

lang_data = {
    "en_US": {"on": "🔞 NSFW commands are now allowed.", "off": "✅ NSFW commands are now disabled."},
    "vi_VN": {"on": "🔞 Đã bật lệnh NSFW cho nhóm.", "off": "✅ Đã tắt lệnh NSFW cho nhóm."},
}


async def run(ctx: MessageContext) -> None:
    """Usage: nsfw, nsfw on, nsfw off (no argument toggles)"""
    thread = ctx.data.thread
    current = bool(thread and thread.nsfw)
    choice = ctx.args[0].lower() if ctx.args else ""
    if choice in ("on", "true", "1"):
        enabled = True
    elif choice in ("off", "false", "0"):
        enabled = False
    else:
        enabled = not current

    await ctx.app.threads.set_setting(ctx.thread_id, "nsfw", enabled)
    await ctx.reply(ctx.lang("on" if enabled else "off"))
