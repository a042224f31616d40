"""Shared fixtures: isolated settings, a callback-style fake client and JSON-backed app context."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

import pytest
import pytest_asyncio

from alphabot.core.app_context import AppContext, build_app_context
from alphabot.core.config import BotSettings, get_settings
from alphabot.core.dispatcher import EventDispatcher
from alphabot.core.events import InboundEvent, normalize_event
from alphabot.core.sessions import SessionStore
from alphabot.core.transport import AsyncTransport
from alphabot.shared.repositories.documents import JsonDocumentStore

BOT_ID = "999"
ADMIN_ID = "900"
THREAD_ID = "200"
USER_ID = "100"


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeListener:
    def __init__(self, api: FakeApi) -> None:
        self.api = api

    def stop_listening(self) -> None:
        self.api.listening = False


class FakeApi:
    """Callback-style chat client recording everything the bot does."""

    def __init__(self, user_id: str = BOT_ID, names: dict[str, str] | None = None) -> None:
        self.user_id = user_id
        self.names = names or {}
        self.sent: list[dict[str, Any]] = []
        self.reactions: list[tuple[str, str]] = []
        self.listening = False
        self.logged_out = False
        self.fail_sends = False
        self._on_event = None
        self._ids = itertools.count(1)

    def send_message(self, content, thread_id, callback, reply_to_message_id=None):
        if self.fail_sends:
            callback("send failed", None)
            return
        message_id = f"bot-msg-{next(self._ids)}"
        self.sent.append(
            {
                "body": content,
                "thread_id": thread_id,
                "reply_to": reply_to_message_id,
                "message_id": message_id,
            }
        )
        callback(None, {"messageID": message_id, "threadID": thread_id})

    def set_message_reaction(self, emoji, message_id, callback, force_custom_emoji):
        self.reactions.append((emoji, message_id))
        callback(None, None)

    def get_user_info(self, ids, callback):
        callback(None, {i: {"name": self.names.get(i, f"User {i}")} for i in ids})

    def get_current_user_id(self):
        return self.user_id

    def listen(self, callback):
        self.listening = True
        self._on_event = callback
        return FakeListener(self)

    def emit(self, raw: dict[str, Any]) -> None:
        self._on_event(None, raw)

    def logout(self, callback):
        self.logged_out = True
        callback(None, None)

    def get_app_state(self):
        return []

    @property
    def bodies(self) -> list[str]:
        return [m["body"] for m in self.sent]


def make_event(
    body: str = "",
    *,
    sender: str = USER_ID,
    thread: str = THREAD_ID,
    message_id: str = "mid.1",
    is_group: bool = True,
    **extra: Any,
) -> InboundEvent:
    raw = {
        "type": "message",
        "threadID": thread,
        "messageID": message_id,
        "senderID": sender,
        "body": body,
        "isGroup": is_group,
        **extra,
    }
    return normalize_event(raw)


async def wait_for(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep settings away from the developer's .env and config file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ALPHABOT_CONFIG", str(tmp_path / "config" / "config.main.json"))
    # LANGUAGE in particular is often set by the locale
    for name in BotSettings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> BotSettings:
    return BotSettings(prefix="/", admins=[ADMIN_ID], data_dir=tmp_path / "data")


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def app(settings, api, clock, tmp_path) -> AppContext:
    context = build_app_context(
        settings,
        JsonDocumentStore(tmp_path / "db" / "threads.json"),
        JsonDocumentStore(tmp_path / "db" / "users.json"),
    )
    context.sessions = SessionStore(clock=clock)
    context.registry.on_remove(context.sessions.forget_command)
    context.transport = AsyncTransport(api)
    context.bot_id = BOT_ID
    return context


@pytest_asyncio.fixture
async def dispatcher(app) -> EventDispatcher:
    return EventDispatcher(app)
