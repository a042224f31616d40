"""Persisted user record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_KNOWN_KEYS = {"userID", "name", "banned", "permissions", "lastUpdate"}


@dataclass
class UserRecord:
    """User document as stored in ``users.json`` or the ``users`` table."""

    user_id: str
    name: str | None = None
    banned: bool = False
    permissions: list[str] | None = None
    last_update: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = dict(self.extra)
        doc.update(
            {
                "userID": self.user_id,
                "name": self.name,
                "banned": self.banned,
                "lastUpdate": self.last_update,
            }
        )
        if self.permissions is not None:
            doc["permissions"] = list(self.permissions)
        return doc

    @classmethod
    def from_dict(cls, raw: dict[str, Any], user_id: str | None = None) -> UserRecord:
        permissions = raw.get("permissions")
        return cls(
            user_id=str(raw.get("userID") or user_id or ""),
            name=raw.get("name"),
            banned=bool(raw.get("banned", False)),
            permissions=[str(p) for p in permissions] if permissions is not None else None,
            last_update=int(raw.get("lastUpdate") or 0),
            extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
        )
