"""Permission tags, level checks and per-thread resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

from alphabot.core.config import BotSettings
from alphabot.shared.models.thread import ThreadRecord
from alphabot.shared.models.user import UserRecord
from alphabot.shared.repositories.thread import ThreadRepository
from alphabot.shared.repositories.user import UserRepository

LOGGER = logging.getLogger("Permissions")

USER = "user"
MOD = "mod"
THREAD_ADMIN = "thread_admin"
ADMIN = "admin"
SUPPER_ADMIN = "supper_admin"

PERMISSION_TAGS = (USER, MOD, THREAD_ADMIN, ADMIN, SUPPER_ADMIN)

# Required level -> tags that satisfy it (that rank or above)
LEVEL_TAGS: dict[int, frozenset[str]] = {
    0: frozenset({USER, MOD, THREAD_ADMIN, ADMIN, SUPPER_ADMIN}),
    1: frozenset({MOD, THREAD_ADMIN, ADMIN, SUPPER_ADMIN}),
    2: frozenset({THREAD_ADMIN, ADMIN, SUPPER_ADMIN}),
    3: frozenset({SUPPER_ADMIN}),
}

# Named tag sets handed out by setpermission
ROLE_PRESETS: dict[str, list[str]] = {
    "user": [USER],
    "mod": [USER, MOD],
    "moderator": [USER, MOD],
    "admin": [USER, MOD, ADMIN],
    "administrator": [USER, MOD, ADMIN],
}

_UNSET: Any = object()


class DeniedPolicy(str, Enum):
    """What the dispatcher does when a permission check fails."""

    SILENT = "silent"
    REPLY = "reply"


def check_permission(required_levels: Iterable[int], user_tags: Iterable[str]) -> bool:
    """True if the user's tags satisfy any of the required levels.

    Empty levels or empty tags never pass; unknown levels grant nothing.
    """
    levels = list(required_levels)
    tags = set(user_tags)
    if not levels or not tags:
        return False
    return any(tags & LEVEL_TAGS.get(level, frozenset()) for level in levels)


class PermissionResolver:
    """Computes a user's effective tags in a thread.

    First match wins:
      1. global ADMINS / ABSOLUTES  -> {admin, supper_admin}
      2. thread adminIDs            -> {thread_admin, admin}
      3. thread override for user   -> stored list
      4. global MODERATORS          -> {user, mod}
      5. user's global permissions  -> stored list
      6. otherwise                  -> {user}

    Global moderators only reach level 1; thread roles and overrides are
    checked first so a moderator who is also a group admin keeps level 2.
    """

    def __init__(
        self,
        settings: BotSettings,
        threads: ThreadRepository,
        users: UserRepository,
    ) -> None:
        self.settings = settings
        self.threads = threads
        self.users = users

    async def resolve(
        self,
        user_id: str,
        thread_id: str | None,
        *,
        thread: ThreadRecord | None = _UNSET,
        user: UserRecord | None = _UNSET,
    ) -> frozenset[str]:
        """Pass ``thread``/``user`` when already loaded to skip the repository reads."""
        try:
            return await self._resolve(user_id, thread_id, thread, user)
        except Exception as e:
            LOGGER.warning(
                f"Permission lookup failed for {user_id} in {thread_id}: {type(e).__name__}: {e}"
            )
            return frozenset({USER})

    async def _resolve(
        self,
        user_id: str,
        thread_id: str | None,
        thread: ThreadRecord | None,
        user: UserRecord | None,
    ) -> frozenset[str]:
        settings = self.settings
        if user_id in settings.absolutes or user_id in settings.admins:
            return frozenset({ADMIN, SUPPER_ADMIN})
        if thread is _UNSET:
            thread = await self.threads.get(thread_id) if thread_id else None
        if thread is not None:
            if user_id in thread.admin_ids:
                return frozenset({THREAD_ADMIN, ADMIN})
            override = thread.permissions.get(user_id)
            if override:
                return frozenset(override)

        if user_id in settings.moderators:
            return frozenset({USER, MOD})

        if user is _UNSET:
            user = await self.users.get(user_id)
        if user is not None and user.permissions:
            return frozenset(user.permissions)

        return frozenset({USER})

    async def check(
        self, required_levels: Iterable[int], user_id: str, thread_id: str | None
    ) -> bool:
        return check_permission(required_levels, await self.resolve(user_id, thread_id))
