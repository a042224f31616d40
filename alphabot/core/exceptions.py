"""Exception taxonomy for dispatch, persistence and startup."""

from __future__ import annotations


class AlphabotError(Exception):
    """Base class for all bot errors."""


class CommandNotFound(AlphabotError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: {name}")
        self.name = name


class PermissionDenied(AlphabotError):
    def __init__(self, command: str, user_id: str) -> None:
        super().__init__(f"User {user_id} may not run {command}")
        self.command = command
        self.user_id = user_id


class CooldownActive(AlphabotError):
    def __init__(self, command: str, remaining: float) -> None:
        super().__init__(f"{command} is cooling down ({remaining:.1f}s left)")
        self.command = command
        self.remaining = remaining


class NsfwNotAllowed(AlphabotError):
    def __init__(self, command: str, thread_id: str) -> None:
        super().__init__(f"{command} is NSFW and thread {thread_id} does not allow it")
        self.command = command
        self.thread_id = thread_id


class HandlerExecutionError(AlphabotError):
    """Wraps anything raised inside a command, waiter or event handler."""

    def __init__(self, handler: str, original: BaseException) -> None:
        super().__init__(str(original) or type(original).__name__)
        self.handler = handler
        self.original = original


class ValidationError(AlphabotError):
    """Malformed appstate or configuration; fatal at startup."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class PersistenceError(AlphabotError):
    """A store could not be read or written."""


class DuplicateNameError(AlphabotError):
    def __init__(self, name: str, owner: str) -> None:
        super().__init__(f"'{name}' is already registered by command '{owner}'")
        self.name = name
        self.owner = owner


class TransportError(AlphabotError):
    """The chat client reported an error through its callback."""
