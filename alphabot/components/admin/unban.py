from __future__ import annotations

from typing import TYPE_CHECKING

from alphabot.components.admin.ban import target_of

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "unban",
    "description": "Let a banned member use the bot again",
    "usage": "[reply | @mention | <user id>]",
    "permissions": [2],
    "cooldown": 3,
}

lang_data = {
    "en_US": {
        "noTarget": "❌ Reply to, tag or give the ID of the member!",
        "notBanned": "⚠️ {name} is not banned.",
        "unbanned": "✅ {name} can use the bot again.",
    },
    "vi_VN": {
        "noTarget": "❌ Vui lòng reply, tag hoặc nhập ID thành viên!",
        "notBanned": "⚠️ {name} không bị cấm.",
        "unbanned": "✅ {name} đã được bỏ cấm.",
    },
}


async def run(ctx: MessageContext) -> None:
    target = target_of(ctx)
    if not target:
        await ctx.reply(ctx.lang("noTarget"))
        return

    name = await ctx.app.users.display_name(target)
    thread = ctx.data.thread
    if thread is None or not thread.is_member_banned(target):
        await ctx.reply(ctx.lang("notBanned", name=name))
        return

    await ctx.app.threads.set_member_banned(ctx.thread_id, target, False)
    await ctx.reply(ctx.lang("unbanned", name=name))
