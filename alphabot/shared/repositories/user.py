"""Repository for user records."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from alphabot.shared.cache import AsyncTTLCache, cached
from alphabot.shared.models.user import UserRecord
from alphabot.shared.repositories.documents import DocumentStore

logger = logging.getLogger(__name__)

UserInfoFetcher = Callable[[str], Awaitable[dict[str, Any]]]


class UserRepository:
    """Cache-through access to user documents."""

    def __init__(self, store: DocumentStore, *, cache_ttl: float = 300.0) -> None:
        self.store = store
        self._cache = AsyncTTLCache(maxsize=1024, ttl=cache_ttl)

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user:{user_id}"

    @cached(cache="_cache", key_func=lambda self, user_id: f"user:{user_id}")
    async def get(self, user_id: str) -> UserRecord | None:
        doc = await self.store.get(user_id)
        if doc is None:
            return None
        return UserRecord.from_dict(doc, user_id)

    async def save(self, record: UserRecord) -> None:
        await self.store.put(record.user_id, record.to_dict())
        self._cache.set(self._key(record.user_id), record)

    async def ensure(self, user_id: str, fetch_info: UserInfoFetcher | None = None) -> UserRecord:
        """Return the record, creating it (with the profile name if available) on first sight."""
        record = await self.get(user_id)
        if record is not None:
            return record

        record = UserRecord(user_id=user_id, last_update=int(time.time() * 1000))
        if fetch_info is not None:
            try:
                info = await fetch_info(user_id)
                record.name = info.get("name") or None
            except Exception as e:
                logger.warning(f"User info fetch failed for {user_id}: {type(e).__name__}: {e}")
        await self.save(record)
        logger.debug(f"New user registered: {record.name or user_id} ({user_id})")
        return record

    async def display_name(self, user_id: str) -> str:
        record = await self.get(user_id)
        return (record.name if record else None) or user_id

    async def set_banned(self, user_id: str, banned: bool) -> None:
        await self.store.update(user_id, {"userID": user_id, "banned": banned})
        self._cache.invalidate(self._key(user_id))

    async def set_permissions(self, user_id: str, tags: list[str] | None) -> None:
        """Store (or clear with None) a user's global permission tags."""
        await self.store.update(user_id, {"userID": user_id, "permissions": tags})
        self._cache.invalidate(self._key(user_id))
