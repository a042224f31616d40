"""Repository for thread records."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from alphabot.shared.cache import AsyncTTLCache, cached
from alphabot.shared.models.thread import ThreadMember, ThreadRecord, normalize_admin_ids
from alphabot.shared.repositories.documents import DocumentStore

logger = logging.getLogger(__name__)

ThreadInfoFetcher = Callable[[str], Awaitable[dict[str, Any]]]

# Group metadata (name, admins, members) is re-fetched at most this often.
REFRESH_INTERVAL_MS = 3_600_000


def _now_ms() -> int:
    return int(time.time() * 1000)


def apply_thread_info(record: ThreadRecord, info: dict[str, Any]) -> None:
    """Merge a client ``get_thread_info`` payload into ``record`` in place.

    Member ban flags set by the bot are kept; everything else is taken from
    the payload when present.
    """
    if info.get("threadName") is not None:
        record.name = info["threadName"]
    if "isGroup" in info:
        record.is_group = bool(info["isGroup"])
    if info.get("adminIDs") is not None:
        record.admin_ids = normalize_admin_ids(info["adminIDs"])

    participants = [str(p) for p in info.get("participantIDs") or []]
    if participants:
        names = {str(u.get("id")): u.get("name") for u in info.get("userInfo") or []}
        nicknames = {str(k): v for k, v in (info.get("nicknames") or {}).items()}
        previous = {m.user_id: m for m in record.members}
        record.members = [
            ThreadMember(
                user_id=uid,
                name=names.get(uid) or (previous[uid].name if uid in previous else None),
                nickname=nicknames.get(uid, previous[uid].nickname if uid in previous else None),
                banned=previous[uid].banned if uid in previous else False,
            )
            for uid in participants
        ]

    for key in ("emoji", "color", "approvalMode", "imageSrc"):
        if key in info:
            record.info_extra[key] = info[key]


class ThreadRepository:
    """Cache-through access to thread documents plus field-level updates."""

    def __init__(self, store: DocumentStore, *, cache_ttl: float = 300.0) -> None:
        self.store = store
        self._cache = AsyncTTLCache(maxsize=512, ttl=cache_ttl)

    @staticmethod
    def _key(thread_id: str) -> str:
        return f"thread:{thread_id}"

    @cached(cache="_cache", key_func=lambda self, thread_id: f"thread:{thread_id}")
    async def get(self, thread_id: str) -> ThreadRecord | None:
        """Get a thread record, or None if the bot has never seen it."""
        doc = await self.store.get(thread_id)
        if doc is None:
            return None
        return ThreadRecord.from_dict(doc, thread_id)

    async def save(self, record: ThreadRecord) -> None:
        await self.store.put(record.thread_id, record.to_dict())
        self._cache.set(self._key(record.thread_id), record)

    async def ensure(
        self, thread_id: str, fetch_info: ThreadInfoFetcher | None = None
    ) -> ThreadRecord:
        """Return the record, creating it on first sight and refreshing stale metadata."""
        record = await self.get(thread_id)
        now = _now_ms()
        if record is not None and (
            fetch_info is None or now - record.last_update < REFRESH_INTERVAL_MS
        ):
            return record

        created = record is None
        if record is None:
            record = ThreadRecord(thread_id=thread_id)

        if fetch_info is not None:
            try:
                apply_thread_info(record, await fetch_info(thread_id))
            except Exception as e:
                logger.warning(f"Thread info fetch failed for {thread_id}: {type(e).__name__}: {e}")

        record.last_update = now
        await self.save(record)
        if created:
            logger.info(f"New thread registered: {record.name or thread_id} ({thread_id})")
        return record

    async def set_permissions(self, thread_id: str, user_id: str, tags: list[str]) -> None:
        """Store a per-thread permission override for one user."""
        await self.store.set_path(thread_id, ["permissions", user_id], list(tags))
        self._cache.invalidate(self._key(thread_id))

    async def set_setting(self, thread_id: str, name: str, value: Any) -> None:
        """Write one bot setting under the thread's ``data`` (``prefix``, ``nsfw``, ...)."""
        await self.store.set_path(thread_id, ["data", name], value)
        self._cache.invalidate(self._key(thread_id))

    async def set_banned(self, thread_id: str, banned: bool) -> None:
        await self.store.update(thread_id, {"banned": banned})
        self._cache.invalidate(self._key(thread_id))

    async def set_member_banned(self, thread_id: str, user_id: str, banned: bool) -> ThreadRecord:
        # Read-modify-write of the members list; last write wins.
        record = await self.ensure(thread_id)
        member = record.member(user_id)
        if member is None:
            member = ThreadMember(user_id=user_id)
            record.members.append(member)
        member.banned = banned
        await self.save(record)
        return record

    async def update_info(self, thread_id: str, info: dict[str, Any]) -> ThreadRecord:
        """Apply a partial ``get_thread_info``-shaped payload and persist it."""
        record = await self.ensure(thread_id)
        apply_thread_info(record, info)
        await self.save(record)
        return record
