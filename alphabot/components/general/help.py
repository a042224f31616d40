"""Command list and per-command details."""

from __future__ import annotations

from typing import TYPE_CHECKING

from alphabot.core.exceptions import CommandNotFound
from alphabot.core.permissions import check_permission

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext
    from alphabot.core.registry import Command

config = {
    "name": "help",
    "aliases": ["h", "menu"],
    "description": "List the commands you can use, or show one command",
    "usage": "[command]",
    "cooldown": 3,
    "permissions": [0],
}

lang_data = {
    "en_US": {
        "header": "📋 Commands ({count})",
        "footer": "💡 {prefix}help <command> for details",
        "details": (
            "📌 {prefix}{name}\n📝 {description}\n🔤 Aliases: {aliases}\n"
            "⚙️ Usage: {prefix}{name} {usage}\n⏱️ Cooldown: {cooldown}s\n🏷️ Category: {category}"
        ),
        "none": "none",
    },
    "vi_VN": {
        "header": "📋 Danh sách lệnh ({count})",
        "footer": "💡 {prefix}help <lệnh> để xem chi tiết",
        "details": (
            "📌 {prefix}{name}\n📝 {description}\n🔤 Tên khác: {aliases}\n"
            "⚙️ Cách dùng: {prefix}{name} {usage}\n"
            "⏱️ Thời gian chờ: {cooldown}s\n🏷️ Nhóm: {category}"
        ),
        "none": "không có",
    },
}


def visible_commands(commands: list[Command], user_tags: frozenset[str]) -> list[Command]:
    return [c for c in commands if not c.hidden and check_permission(c.permissions, user_tags)]


async def run(ctx: MessageContext) -> None:
    registry = ctx.app.registry

    if ctx.args:
        command = registry.resolve(ctx.args[0])
        if command is None or command.hidden:
            raise CommandNotFound(ctx.args[0])
        await ctx.reply(
            ctx.lang(
                "details",
                prefix=ctx.prefix,
                name=command.name,
                description=command.description or "-",
                aliases=", ".join(command.aliases) or ctx.lang("none"),
                usage=command.usage,
                cooldown=command.cooldown,
                category=command.category,
            )
        )
        return

    commands = visible_commands(registry.commands(), ctx.user_permissions)
    lines = [ctx.lang("header", count=len(commands))]
    for category in sorted({c.category for c in commands}):
        names = ", ".join(c.name for c in commands if c.category == category)
        lines.append(f"\n[{category.upper()}]\n{names}")
    lines.append("\n" + ctx.lang("footer", prefix=ctx.prefix))
    await ctx.reply("\n".join(lines))
