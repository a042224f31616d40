"""In-memory registry of commands, thread-log event handlers and message listeners."""

from __future__ import annotations

import dataclasses
import importlib
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from alphabot.core.exceptions import CommandNotFound, DuplicateNameError

LOGGER = logging.getLogger("Registry")

Handler = Callable[..., Any]


@dataclass(frozen=True)
class CommandConfig:
    """Handler-free view of a command, safe to hand to other commands."""

    name: str
    aliases: tuple[str, ...]
    permissions: tuple[int, ...]
    cooldown: int
    nsfw: bool
    is_absolute: bool
    category: str
    description: str
    usage: str


@dataclass(frozen=True)
class Command:
    name: str
    handler: Handler
    aliases: tuple[str, ...] = ()
    permissions: tuple[int, ...] = (0, 1, 2)
    cooldown: int = 3
    # first arguments (e.g. "stop") that neither wait for nor start the cooldown
    cooldown_free_args: tuple[str, ...] = ()
    nsfw: bool = False
    is_absolute: bool = False
    hidden: bool = False
    category: str = "general"
    description: str = ""
    usage: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    lang_data: dict[str, dict[str, str]] = field(default_factory=dict, compare=False)
    source: str = ""

    @property
    def config(self) -> CommandConfig:
        return CommandConfig(
            name=self.name,
            aliases=self.aliases,
            permissions=self.permissions,
            cooldown=self.cooldown,
            nsfw=self.nsfw,
            is_absolute=self.is_absolute,
            category=self.category,
            description=self.description,
            usage=self.usage,
        )


class PluginRegistry:
    """Name and alias maps for loaded plugins.

    A name is never also an alias of a different command: ``register``
    refuses any collision between the new command's name/aliases and the
    names/aliases already present.
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}
        self._aliases: dict[str, str] = {}
        self._events: dict[str, Handler] = {}
        self._listeners: dict[str, Handler] = {}
        self._removal_hooks: list[Callable[[str], None]] = []

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _owner_of(self, key: str) -> str | None:
        if key in self._commands:
            return key
        return self._aliases.get(key)

    def register(self, command: Command) -> Command:
        """Add a command under its lower-cased name and aliases; returns the stored entry."""
        name = command.name.strip().lower()
        aliases = tuple(a.strip().lower() for a in command.aliases)
        if not name or not all(aliases):
            raise ValueError(f"Command {command.name!r} has an empty name or alias")
        if (name, aliases) != (command.name, command.aliases):
            command = dataclasses.replace(command, name=name, aliases=aliases)

        keys = [command.name, *command.aliases]
        if len(set(keys)) != len(keys):
            raise DuplicateNameError(command.name, command.name)
        for key in keys:
            owner = self._owner_of(key)
            if owner is not None:
                raise DuplicateNameError(key, owner)
        self._commands[command.name] = command
        for alias in command.aliases:
            self._aliases[alias] = command.name
        LOGGER.debug(f"Registered command {command.name} (aliases: {list(command.aliases)})")
        return command

    def resolve(self, name_or_alias: str) -> Command | None:
        """Exact name first, then alias; case-insensitive."""
        key = name_or_alias.strip().lower()
        command = self._commands.get(key)
        if command is not None:
            return command
        owner = self._aliases.get(key)
        return self._commands.get(owner) if owner else None

    def get_config(self, name: str) -> CommandConfig | None:
        command = self._commands.get(name.lower())
        return command.config if command else None

    def on_remove(self, hook: Callable[[str], None]) -> None:
        """Call ``hook(name)`` whenever a command leaves the registry."""
        self._removal_hooks.append(hook)

    def _detach(self, name: str) -> Command | None:
        command = self._commands.pop(name, None)
        if command is None:
            return None
        for alias in command.aliases:
            if self._aliases.get(alias) == name:
                del self._aliases[alias]
        return command

    def unregister(self, name: str) -> Command | None:
        command = self._detach(name.lower())
        if command is not None:
            for hook in self._removal_hooks:
                hook(command.name)
            LOGGER.debug(f"Unregistered command {command.name}")
        return command

    def replace(self, name: str, new: Command) -> None:
        """Swap one command for another; the old entry is back if the new one collides."""
        old = self._detach(name.lower())
        try:
            self.register(new)
        except DuplicateNameError:
            if old is not None:
                self.register(old)
            raise
        if old is not None:
            for hook in self._removal_hooks:
                hook(old.name)

    def reload(self, name: str) -> Command:
        """Re-import a command's module and swap the new definition in."""
        from alphabot.core.loader import adapt_module

        current = self._commands.get(name.lower())
        if current is None:
            raise CommandNotFound(name)
        module = sys.modules.get(current.source)
        module = importlib.reload(module) if module else importlib.import_module(current.source)
        new = adapt_module(module, category=current.category)
        if new is None:
            raise ValueError(f"{current.source} no longer defines a command")
        self.replace(current.name, new)
        LOGGER.info(f"Reloaded command {new.name} from {current.source}")
        return new

    def commands(self) -> list[Command]:
        return sorted(self._commands.values(), key=lambda c: c.name)

    def categories(self) -> list[str]:
        return sorted({c.category for c in self._commands.values()})

    def by_category(self, category: str) -> list[Command]:
        return [c for c in self.commands() if c.category == category]

    # ------------------------------------------------------------------
    # Thread-log events and message listeners
    # ------------------------------------------------------------------

    def register_event(self, name: str, handler: Handler) -> None:
        if name in self._events:
            raise DuplicateNameError(name, name)
        self._events[name] = handler

    def get_event(self, name: str) -> Handler | None:
        return self._events.get(name)

    def add_message_listener(self, name: str, handler: Handler) -> None:
        self._listeners[name] = handler

    def message_listeners(self) -> list[tuple[str, Handler]]:
        return list(self._listeners.items())

    @property
    def stats(self) -> dict[str, int]:
        return {
            "commands": len(self._commands),
            "aliases": len(self._aliases),
            "events": len(self._events),
            "listeners": len(self._listeners),
        }
