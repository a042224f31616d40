"""Normalization of raw client events into one typed shape."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MESSAGE = "message"
MESSAGE_REPLY = "message_reply"
MESSAGE_REACTION = "message_reaction"
THREAD_EVENT = "event"
CHANGE_THREAD_IMAGE = "change_thread_image"

MESSAGE_TYPES = frozenset({MESSAGE, MESSAGE_REPLY})
THREAD_LOG_TYPES = frozenset({THREAD_EVENT, CHANGE_THREAD_IMAGE})

# logMessageType -> registered event handler name
LOG_EVENT_HANDLERS: dict[str, str] = {
    "log:subscribe": "subscribe",
    "log:unsubscribe": "unsubscribe",
    "log:user-nickname": "user-nickname",
    "log:thread-call": "thread-call",
    "log:thread-name": "thread-update",
    "log:thread-color": "thread-update",
    "log:thread-icon": "thread-update",
    "log:thread-approval-mode": "thread-update",
    "log:thread-admins": "thread-update",
    CHANGE_THREAD_IMAGE: "thread-update",
}


def _id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class ReplyRef:
    """The message a reply points at."""

    message_id: str
    sender_id: str | None = None
    body: str = ""


@dataclass
class InboundEvent:
    type: str
    thread_id: str | None = None
    message_id: str | None = None
    sender_id: str | None = None
    body: str = ""
    is_group: bool = False
    mentions: dict[str, str] = field(default_factory=dict)
    message_reply: ReplyRef | None = None
    reaction: str | None = None
    user_id: str | None = None
    log_message_type: str | None = None
    log_message_data: dict[str, Any] = field(default_factory=dict)
    participant_ids: list[str] = field(default_factory=list)
    author: str | None = None
    attachments: list[Any] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def actor_id(self) -> str | None:
        """Who triggered the event: the reactor for reactions, else the sender/author."""
        if self.type == MESSAGE_REACTION:
            return self.user_id
        return self.sender_id or self.author

    @property
    def is_message(self) -> bool:
        return self.type in MESSAGE_TYPES

    @property
    def is_thread_log(self) -> bool:
        return self.type in THREAD_LOG_TYPES

    @property
    def handler_name(self) -> str | None:
        """Registered event handler for thread-log events, if the type is mapped."""
        if self.type == CHANGE_THREAD_IMAGE:
            return LOG_EVENT_HANDLERS[CHANGE_THREAD_IMAGE]
        if self.type == THREAD_EVENT and self.log_message_type:
            return LOG_EVENT_HANDLERS.get(self.log_message_type)
        return None

    def args(self) -> list[str]:
        return self.body.strip().split() if self.body else []


def normalize_event(raw: dict[str, Any]) -> InboundEvent:
    """Build an InboundEvent from a client payload (camelCase keys)."""
    reply = raw.get("messageReply")
    message_reply = None
    if isinstance(reply, dict) and _id(reply.get("messageID")):
        message_reply = ReplyRef(
            message_id=str(reply["messageID"]),
            sender_id=_id(reply.get("senderID")),
            body=reply.get("body") or "",
        )

    mentions = raw.get("mentions") or {}
    return InboundEvent(
        type=str(raw.get("type") or ""),
        thread_id=_id(raw.get("threadID")),
        message_id=_id(raw.get("messageID")),
        sender_id=_id(raw.get("senderID")),
        body=raw.get("body") or "",
        is_group=bool(raw.get("isGroup", False)),
        mentions=(
            {str(k): str(v) for k, v in mentions.items()} if isinstance(mentions, dict) else {}
        ),
        message_reply=message_reply,
        reaction=raw.get("reaction"),
        user_id=_id(raw.get("userID")),
        log_message_type=raw.get("logMessageType"),
        log_message_data=dict(raw.get("logMessageData") or {}),
        participant_ids=[str(p) for p in raw.get("participantIDs") or []],
        author=_id(raw.get("author")),
        attachments=list(raw.get("attachments") or []),
        raw=raw,
    )
