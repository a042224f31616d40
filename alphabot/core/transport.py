"""Chat client capability interface and its awaitable adapter.

The Messenger client itself is an external dependency. It is reached
through a login factory named by dotted path in ``TRANSPORT``
(``package.module:login``), called as ``factory(app_state, options)`` and
returning an object with the callback-style methods of ``ChatTransport``.
Callbacks may fire on foreign threads; the adapter marshals them back to
the event loop.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from alphabot.core.exceptions import TransportError, ValidationError

LOGGER = logging.getLogger("Transport")

Callback = Callable[..., None]
EventCallback = Callable[[Any, Any], None]


@runtime_checkable
class Listener(Protocol):
    def stop_listening(self) -> None: ...


@runtime_checkable
class ChatTransport(Protocol):
    def send_message(
        self,
        content: Any,
        thread_id: str,
        callback: Callback,
        reply_to_message_id: str | None = None,
    ) -> None: ...

    def set_message_reaction(
        self, emoji: str, message_id: str, callback: Callback, force_custom_emoji: bool
    ) -> None: ...

    def get_user_info(self, ids: list[str], callback: Callback) -> None: ...

    def get_current_user_id(self) -> str: ...

    def listen(self, callback: EventCallback) -> Listener: ...

    def logout(self, callback: Callback) -> None: ...

    def get_app_state(self) -> list[dict[str, Any]]: ...


LoginFactory = Callable[[list[dict[str, Any]], dict[str, Any]], Any]


def load_login_factory(path: str) -> LoginFactory:
    """Import ``package.module:attr`` (or ``package.module.attr``)."""
    if not path:
        raise ValidationError("No chat transport configured (set TRANSPORT=package.module:login)")
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError, ValueError) as e:
        raise ValidationError(f"Cannot load chat transport {path!r}: {e}") from e
    if not callable(factory):
        raise ValidationError(f"Chat transport {path!r} is not callable")
    return factory


async def login(
    factory: LoginFactory, app_state: list[dict[str, Any]], options: dict[str, Any]
) -> ChatTransport:
    """Run the factory (sync or async) and return the client."""
    api = factory(app_state, options)
    if inspect.isawaitable(api):
        api = await api
    if api is None:
        raise TransportError("Login factory returned no client")
    return api


class AsyncTransport:
    """Awaitable facade over a callback-style ChatTransport."""

    def __init__(self, api: ChatTransport, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.api = api
        self._loop = loop or asyncio.get_running_loop()

    def _future(self) -> tuple[asyncio.Future, Callback]:
        future = self._loop.create_future()

        def _settle(err: Any = None, data: Any = None) -> None:
            if future.done():
                return
            if err:
                exc = err if isinstance(err, BaseException) else TransportError(str(err))
                future.set_exception(exc)
            else:
                future.set_result(data)

        def callback(err: Any = None, data: Any = None) -> None:
            self._loop.call_soon_threadsafe(_settle, err, data)

        return future, callback

    async def send_message(
        self, content: Any, thread_id: str, reply_to: str | None = None
    ) -> dict[str, Any]:
        future, callback = self._future()
        self.api.send_message(content, thread_id, callback, reply_to)
        return (await future) or {}

    async def set_reaction(self, emoji: str, message_id: str) -> Any:
        future, callback = self._future()
        self.api.set_message_reaction(emoji, message_id, callback, True)
        return await future

    async def get_user_info(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        future, callback = self._future()
        self.api.get_user_info(ids, callback)
        return (await future) or {}

    async def get_thread_info(self, thread_id: str) -> dict[str, Any]:
        fetch = getattr(self.api, "get_thread_info", None)
        if fetch is None:
            raise TransportError("Client does not support get_thread_info")
        future, callback = self._future()
        fetch(thread_id, callback)
        return (await future) or {}

    async def unsend(self, message_id: str) -> None:
        unsend = getattr(self.api, "unsend_message", None)
        if unsend is None:
            raise TransportError("Client does not support unsend_message")
        future, callback = self._future()
        unsend(message_id, callback)
        await future

    async def logout(self) -> None:
        future, callback = self._future()
        self.api.logout(callback)
        await future

    @property
    def supports_thread_info(self) -> bool:
        return callable(getattr(self.api, "get_thread_info", None))

    def current_user_id(self) -> str:
        return str(self.api.get_current_user_id())

    def app_state(self) -> list[dict[str, Any]]:
        return self.api.get_app_state()

    def listen(self, on_event: EventCallback) -> Listener:
        """Prefer ``listen_mqtt`` when the client has it."""

        def callback(err: Any, event: Any = None) -> None:
            self._loop.call_soon_threadsafe(on_event, err, event)

        listen_mqtt = getattr(self.api, "listen_mqtt", None)
        if callable(listen_mqtt):
            return listen_mqtt(callback)
        return self.api.listen(callback)
