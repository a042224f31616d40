"""Explicit wiring of every long-lived bot component."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from alphabot.core.config import LANGUAGES_DIR, BotSettings
from alphabot.core.database import setup_database_schema
from alphabot.core.i18n import Translator
from alphabot.core.permissions import PermissionResolver
from alphabot.core.registry import PluginRegistry
from alphabot.core.sessions import SessionStore
from alphabot.core.transport import AsyncTransport
from alphabot.shared.database import DatabaseManager
from alphabot.shared.repositories.documents import (
    DocumentStore,
    JsonDocumentStore,
    PostgresDocumentStore,
)
from alphabot.shared.repositories.thread import ThreadRepository
from alphabot.shared.repositories.user import UserRepository

LOGGER = logging.getLogger("Bot")


@dataclass
class AppContext:
    settings: BotSettings
    registry: PluginRegistry
    sessions: SessionStore
    threads: ThreadRepository
    users: UserRepository
    permissions: PermissionResolver
    translator: Translator
    transport: AsyncTransport | None = None
    bot_id: str | None = None
    database: DatabaseManager | None = None
    background: set[asyncio.Task] = field(default_factory=set)

    def require_transport(self) -> AsyncTransport:
        if self.transport is None:
            raise RuntimeError("Chat transport is not connected")
        return self.transport

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Run ``coro`` in the background, holding a reference until it finishes."""
        task = asyncio.create_task(coro, name=name)
        self.background.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self.background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error(f"Background task {task.get_name()} failed: {task.exception()!r}")


def build_app_context(
    settings: BotSettings,
    threads_store: DocumentStore,
    users_store: DocumentStore,
    database: DatabaseManager | None = None,
) -> AppContext:
    registry = PluginRegistry()
    sessions = SessionStore()
    registry.on_remove(sessions.forget_command)

    threads = ThreadRepository(threads_store)
    users = UserRepository(users_store)
    translator = Translator(LANGUAGES_DIR, settings.language)
    translator.load()

    return AppContext(
        settings=settings,
        registry=registry,
        sessions=sessions,
        threads=threads,
        users=users,
        permissions=PermissionResolver(settings, threads, users),
        translator=translator,
        database=database,
    )


async def create_app_context(settings: BotSettings) -> AppContext:
    """Open the configured backend and wire everything around it."""
    if settings.database == "POSTGRES":
        database = DatabaseManager(settings.database_url, schema=setup_database_schema)
        await database.connect()
        threads_store: DocumentStore = PostgresDocumentStore(database, "threads", "thread_id")
        users_store: DocumentStore = PostgresDocumentStore(database, "users", "user_id")
        LOGGER.info("Database ready (POSTGRES)")
        return build_app_context(settings, threads_store, users_store, database)

    json_threads = JsonDocumentStore(
        settings.database_dir / "threads.json", beautify=settings.database_json_beautify
    )
    json_users = JsonDocumentStore(
        settings.database_dir / "users.json", beautify=settings.database_json_beautify
    )
    thread_count = json_threads.load()
    user_count = json_users.load()
    LOGGER.info(f"Database ready (JSON: {thread_count} threads, {user_count} users)")
    return build_app_context(settings, json_threads, json_users)
