"""Keep the stored thread name, admins and appearance in sync with the group."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from alphabot.core.events import CHANGE_THREAD_IMAGE

if TYPE_CHECKING:
    from alphabot.core.context import MessageContext
    from alphabot.core.events import InboundEvent
    from alphabot.shared.models.thread import ThreadRecord

LOGGER = logging.getLogger("Events")

config = {"name": "thread-update"}


def info_from_event(event: InboundEvent, record: ThreadRecord | None) -> dict[str, Any]:
    """Translate one thread-log event into a ``get_thread_info``-shaped patch."""
    data = event.log_message_data
    kind = event.log_message_type

    if event.type == CHANGE_THREAD_IMAGE:
        image = event.raw.get("image") or {}
        return {"imageSrc": image.get("url") if isinstance(image, dict) else None}
    if kind == "log:thread-name":
        return {"threadName": data.get("name") or ""}
    if kind == "log:thread-color":
        return {"color": data.get("theme_color") or data.get("thread_color")}
    if kind == "log:thread-icon":
        return {"emoji": data.get("thread_icon")}
    if kind == "log:thread-approval-mode":
        return {"approvalMode": str(data.get("APPROVAL_MODE")) == "1"}
    if kind == "log:thread-admins":
        target = str(data.get("TARGET_ID") or "")
        admins = list(record.admin_ids) if record else []
        if not target:
            return {}
        if data.get("ADMIN_EVENT") == "add_admin" and target not in admins:
            admins.append(target)
        elif data.get("ADMIN_EVENT") == "remove_admin" and target in admins:
            admins.remove(target)
        return {"adminIDs": admins}
    return {}


async def run(ctx: MessageContext) -> None:
    info = info_from_event(ctx.event, ctx.data.thread)
    if not info:
        return
    record = await ctx.app.threads.update_info(ctx.thread_id, info)
    LOGGER.info(f"[{ctx.thread_id}] {ctx.event.log_message_type or ctx.event.type}: {info}")
    ctx.data.thread = record
