"""Per-thread permission override for one member."""

from __future__ import annotations

from typing import TYPE_CHECKING

from alphabot.core.permissions import ROLE_PRESETS

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

config = {
    "name": "setpermission",
    "aliases": ["setperm"],
    "description": "Set a member's permission level in this group",
    "usage": "[reply | @mention | <user id>] <user | mod | admin>",
    "permissions": [2],
    "cooldown": 3,
}

lang_data = {
    "en_US": {
        "noTarget": "❌ Reply to, tag or give the ID of the member to update!",
        "levels": (
            "Available levels:\n• user - regular member\n• mod - moderator\n• admin - administrator"
        ),
        "noLevel": "❌ Please enter a permission level!\n\n{levels}",
        "badLevel": "❌ Invalid permission level!\n\n{levels}",
        "done": (
            "✅ Permissions updated!\n\n👤 User: {name}\n🎯 Permissions: {tags}\n"
            "📍 Group: {thread}"
        ),
    },
    "vi_VN": {
        "noTarget": "❌ Vui lòng reply hoặc tag người cần cập nhật quyền!",
        "levels": (
            "Các level có sẵn:\n• user - Người dùng thông thường\n• mod - Moderator\n"
            "• admin - Quản trị viên"
        ),
        "noLevel": "❌ Vui lòng nhập level quyền!\n\n{levels}",
        "badLevel": "❌ Level quyền không hợp lệ!\n\n{levels}",
        "done": (
            "✅ Đã cập nhật quyền thành công!\n\n👤 Người dùng: {name}\n🎯 Quyền mới: {tags}\n"
            "📍 Group: {thread}"
        ),
    },
}


def parse_target(ctx: MessageContext) -> tuple[str | None, str | None]:
    """Target and level from a reply, a mention, or ``<id> <level>``."""
    event = ctx.event
    args = ctx.args
    if event.message_reply is not None and event.message_reply.sender_id:
        return event.message_reply.sender_id, args[0] if args else None
    if event.mentions:
        # mention text spans several tokens; the level is the last one
        target = next(iter(event.mentions))
        return target, args[-1] if len(args) > 1 else None
    if len(args) >= 2:
        return args[0], args[1]
    return None, None


async def run(ctx: MessageContext) -> None:
    target, level = parse_target(ctx)
    if not target:
        await ctx.reply(ctx.lang("noTarget"))
        return
    if not level:
        await ctx.reply(ctx.lang("noLevel", levels=ctx.lang("levels")))
        return

    tags = ROLE_PRESETS.get(level.lower())
    if tags is None:
        await ctx.reply(ctx.lang("badLevel", levels=ctx.lang("levels")))
        return

    await ctx.app.threads.set_permissions(ctx.thread_id, target, tags)
    name = await ctx.app.users.display_name(target)
    await ctx.reply(ctx.lang("done", name=name, tags=", ".join(tags), thread=ctx.thread_id))
