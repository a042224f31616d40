from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "setprefix",
    "description": "Change the command prefix for this group",
    "usage": "<prefix | reset>",
    "permissions": [2],
    "cooldown": 5,
}

lang_data = {
    "en_US": {
        "missing": "❌ Please enter the new prefix!",
        "invalid": "❌ The prefix must be a single word of at most 5 characters.",
        "done": "✅ Prefix changed to: {prefix}",
        "reset": "✅ Prefix reset to the default: {prefix}",
    },
    "vi_VN": {
        "missing": "❌ Vui lòng nhập prefix mới!",
        "invalid": "❌ Prefix phải là một từ, tối đa 5 ký tự.",
        "done": "✅ Đã đổi prefix thành: {prefix}",
        "reset": "✅ Đã đặt lại prefix mặc định: {prefix}",
    },
}

MAX_PREFIX_LENGTH = 5


async def run(ctx: MessageContext) -> None:
    if not ctx.args:
        await ctx.reply(ctx.lang("missing"))
        return

    value = ctx.args[0].strip().lower()
    if value == "reset":
        await ctx.app.threads.set_setting(ctx.thread_id, "prefix", None)
        await ctx.reply(ctx.lang("reset", prefix=ctx.app.settings.prefix))
        return
    if len(ctx.args) > 1 or len(value) > MAX_PREFIX_LENGTH:
        await ctx.reply(ctx.lang("invalid"))
        return

    await ctx.app.threads.set_setting(ctx.thread_id, "prefix", value)
    await ctx.reply(ctx.lang("done", prefix=value))
