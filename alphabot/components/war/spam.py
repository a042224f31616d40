"""Repeat a message in the current group until stopped."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext

LOGGER = logging.getLogger("Spam")

config = {
    "name": "spam",
    "aliases": ["spamv1", "spv1", "spam1"],
    "description": "Send a message repeatedly",
    "usage": "<text> | stop",
    "permissions": [2],
    "cooldown": 3,
    "cooldown_free_args": ["stop"],
    "category": "War",
    "extra": {"delay": 2000},
}

lang_data = {
    "en_US": {
        "noThread": "❌ Could not determine the group ID!",
        "stopped": "✅ Spam stopped!",
        "notRunning": "⚠️ No spam is running in this group!",
        "missing": (
            "❌ Please enter the text to spam!\n💡 Usage: {prefix}spam <text> or {prefix}spam stop"
        ),
        "running": '⚠️ Spam is already running here! Use "{prefix}spam stop" to stop it.',
        "started": '🔥 Spamming: "{content}"\n⚠️ Use "{prefix}spam stop" to stop.',
        "sendFailed": "❌ Spam stopped because a message could not be sent!",
    },
    "vi_VN": {
        "noThread": "❌ Lỗi: Không thể xác định ID nhóm!",
        "stopped": "✅ Đã dừng spam thành công!",
        "notRunning": "⚠️ Không có spam nào đang chạy trong nhóm này!",
        "missing": (
            "❌ Vui lòng nhập nội dung cần spam!\n"
            "💡 Sử dụng: {prefix}spam [nội dung] hoặc {prefix}spam stop"
        ),
        "running": '⚠️ Đã có spam đang chạy trong nhóm này! Sử dụng "{prefix}spam stop" để dừng.',
        "started": '🔥 Bắt đầu spam: "{content}"\n⚠️ Sử dụng "{prefix}spam stop" để dừng.',
        "sendFailed": "❌ Đã dừng spam do lỗi gửi tin nhắn!",
    },
}


def task_key(thread_id: str) -> str:
    return f"spam:{thread_id}"


async def run(ctx: MessageContext) -> None:
    thread_id = ctx.thread_id
    if not thread_id:
        await ctx.reply(ctx.lang("noThread"))
        return

    key = task_key(thread_id)
    if ctx.args and ctx.args[0].lower() == "stop":
        stopped = ctx.cancel_task(key)
        await ctx.reply(ctx.lang("stopped" if stopped else "notRunning"))
        return

    content = " ".join(ctx.args).strip()
    if not content:
        await ctx.reply(ctx.lang("missing", prefix=ctx.prefix))
        return

    token = ctx.open_task(key)
    if token is None:
        await ctx.reply(ctx.lang("running", prefix=ctx.prefix))
        return

    delay = ctx.extra.get("delay", 2000) / 1000
    try:
        await ctx.send(ctx.lang("started", content=content, prefix=ctx.prefix))
        while not token.cancelled:
            try:
                await ctx.send(content)
            except Exception as e:
                LOGGER.warning(f"Spam in {thread_id} stopped after send error: {e}")
                await ctx.send(ctx.lang("sendFailed"))
                break
            if await token.sleep(delay):
                break
    finally:
        ctx.close_task(key, token)
