"""Ban a member from using the bot in this group."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "ban",
    "description": "Stop the bot from answering a member in this group",
    "usage": "[reply | @mention | <user id>]",
    "permissions": [2],
    "cooldown": 3,
}

lang_data = {
    "en_US": {
        "noTarget": "❌ Reply to, tag or give the ID of the member!",
        "protected": "⛔ This member cannot be banned.",
        "banned": "🚫 {name} can no longer use the bot in this group.",
    },
    "vi_VN": {
        "noTarget": "❌ Vui lòng reply, tag hoặc nhập ID thành viên!",
        "protected": "⛔ Không thể cấm thành viên này.",
        "banned": "🚫 {name} đã bị cấm sử dụng bot trong nhóm này.",
    },
}


def target_of(ctx: MessageContext) -> str | None:
    event = ctx.event
    if event.message_reply is not None and event.message_reply.sender_id:
        return event.message_reply.sender_id
    if event.mentions:
        return next(iter(event.mentions))
    if ctx.args and ctx.args[0].isdigit():
        return ctx.args[0]
    return None


async def run(ctx: MessageContext) -> None:
    target = target_of(ctx)
    if not target:
        await ctx.reply(ctx.lang("noTarget"))
        return

    settings = ctx.app.settings
    protected = {ctx.author_id, ctx.app.bot_id, *settings.admins, *settings.absolutes}
    if target in protected:
        await ctx.reply(ctx.lang("protected"))
        return

    await ctx.app.threads.set_member_banned(ctx.thread_id, target, True)
    name = await ctx.app.users.display_name(target)
    await ctx.reply(ctx.lang("banned", name=name))
