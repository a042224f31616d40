"""Persisted thread (conversation) record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_KNOWN_KEYS = {"threadID", "info", "data", "permissions", "banned", "lastUpdate"}
_INFO_KEYS = {"name", "isGroup", "adminIDs", "members"}
_DATA_KEYS = {"prefix", "nsfw", "language"}


def normalize_admin_ids(raw: Any) -> list[str]:
    """Reduce ``{"id": ...}`` wrappers to bare string IDs, dropping blanks."""
    if not raw:
        return []
    result: list[str] = []
    for entry in raw:
        value = entry.get("id") if isinstance(entry, dict) else entry
        if value is None or value == "":
            continue
        value = str(value)
        if value not in result:
            result.append(value)
    return result


@dataclass
class ThreadMember:
    """A participant of a group thread."""

    user_id: str
    name: str | None = None
    nickname: str | None = None
    banned: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "userID": self.user_id,
            "name": self.name,
            "nickname": self.nickname,
            "banned": self.banned,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ThreadMember:
        return cls(
            user_id=str(raw.get("userID") or raw.get("id") or ""),
            name=raw.get("name"),
            nickname=raw.get("nickname"),
            banned=bool(raw.get("banned", False)),
        )


@dataclass
class ThreadRecord:
    """Thread document as stored in ``threads.json`` or the ``threads`` table.

    The on-disk layout groups protocol-derived fields under ``info`` and
    bot settings under ``data``. Unknown keys at the top level, under
    ``info`` and under ``data`` survive a load/save cycle through
    ``extra``, ``info_extra`` and ``data_extra``.
    """

    thread_id: str
    name: str | None = None
    admin_ids: list[str] = field(default_factory=list)
    members: list[ThreadMember] = field(default_factory=list)
    is_group: bool = True
    prefix: str | None = None
    nsfw: bool = False
    language: str | None = None
    banned: bool = False
    permissions: dict[str, list[str]] = field(default_factory=dict)
    last_update: int = 0
    extra: dict[str, Any] = field(default_factory=dict)
    info_extra: dict[str, Any] = field(default_factory=dict)
    data_extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.admin_ids = normalize_admin_ids(self.admin_ids)

    def member(self, user_id: str) -> ThreadMember | None:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def is_member_banned(self, user_id: str) -> bool:
        member = self.member(user_id)
        return member is not None and member.banned

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = dict(self.extra)
        doc.update(
            {
                "threadID": self.thread_id,
                "info": {
                    **self.info_extra,
                    "name": self.name,
                    "isGroup": self.is_group,
                    "adminIDs": list(self.admin_ids),
                    "members": [m.to_dict() for m in self.members],
                },
                "data": {
                    **self.data_extra,
                    "prefix": self.prefix,
                    "nsfw": self.nsfw,
                    "language": self.language,
                },
                "permissions": {k: list(v) for k, v in self.permissions.items()},
                "banned": self.banned,
                "lastUpdate": self.last_update,
            }
        )
        return doc

    @classmethod
    def from_dict(cls, raw: dict[str, Any], thread_id: str | None = None) -> ThreadRecord:
        info = raw.get("info") or {}
        data = raw.get("data") or {}
        return cls(
            thread_id=str(raw.get("threadID") or thread_id or ""),
            name=info.get("name"),
            admin_ids=normalize_admin_ids(info.get("adminIDs")),
            members=[ThreadMember.from_dict(m) for m in info.get("members") or []],
            is_group=bool(info.get("isGroup", True)),
            prefix=data.get("prefix"),
            nsfw=bool(data.get("nsfw", False)),
            language=data.get("language"),
            banned=bool(raw.get("banned", False)),
            permissions={
                str(k): [str(t) for t in v] for k, v in (raw.get("permissions") or {}).items()
            },
            last_update=int(raw.get("lastUpdate") or 0),
            extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
            info_extra={k: v for k, v in info.items() if k not in _INFO_KEYS},
            data_extra={k: v for k, v in data.items() if k not in _DATA_KEYS},
        )
