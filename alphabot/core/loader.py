"""Plugin discovery and module-shape adapters.

A plugin module may describe its command in any of these shapes:

* ``config`` dict + ``run`` function
* ``config`` dict + ``on_start`` function
* ``config`` dict + ``running`` function
* flat module attributes (``name``, ``aliases``, ``permissions`` ...) + one
  of the functions above

Each shape is one adapter in ``SHAPES``; the first adapter that recognises
a module wins and ``build_command`` turns its output into a ``Command``.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from collections.abc import Callable, Iterator
from types import ModuleType
from typing import Any

from alphabot.core.config import COMPONENTS_PACKAGE, EVENTS_PACKAGE
from alphabot.core.exceptions import DuplicateNameError
from alphabot.core.registry import Command, Handler, PluginRegistry

LOGGER = logging.getLogger("Loader")

DEFAULT_PERMISSIONS = (0, 1, 2)
DEFAULT_COOLDOWN = 3
VALID_LEVELS = frozenset({0, 1, 2, 3})
ENTRY_POINTS = ("run", "on_start", "running")

Shape = Callable[[ModuleType], "tuple[dict[str, Any], Handler] | None"]

_FLAT_KEYS = (
    "name",
    "aliases",
    "permissions",
    "cooldown",
    "cooldown_free_args",
    "nsfw",
    "is_absolute",
    "hidden",
    "category",
    "description",
    "usage",
    "extra",
)


def _config_with_entry(entry: str) -> Shape:
    def adapter(module: ModuleType) -> tuple[dict[str, Any], Handler] | None:
        config = getattr(module, "config", None)
        handler = getattr(module, entry, None)
        if isinstance(config, dict) and callable(handler):
            return config, handler
        return None

    adapter.__name__ = f"config_{entry}"
    return adapter


def _flat_attributes(module: ModuleType) -> tuple[dict[str, Any], Handler] | None:
    if not isinstance(getattr(module, "name", None), str):
        return None
    for entry in ENTRY_POINTS:
        handler = getattr(module, entry, None)
        if callable(handler):
            config = {key: getattr(module, key) for key in _FLAT_KEYS if hasattr(module, key)}
            return config, handler
    return None


SHAPES: list[Shape] = [*(_config_with_entry(e) for e in ENTRY_POINTS), _flat_attributes]


def build_command(
    config: dict[str, Any], handler: Handler, module: ModuleType, category: str
) -> Command:
    """Validate a raw definition and apply defaults. Raises ValueError on bad input."""
    name = str(config.get("name") or "").strip().lower()
    if not name or any(ch.isspace() for ch in name):
        raise ValueError(f"invalid command name {config.get('name')!r}")

    aliases = tuple(
        dict.fromkeys(
            alias
            for alias in (str(a).strip().lower() for a in config.get("aliases") or [])
            if alias and alias != name
        )
    )

    raw_permissions = config.get("permissions")
    permissions = (
        DEFAULT_PERMISSIONS
        if raw_permissions is None
        else tuple(int(level) for level in raw_permissions)
    )
    unknown = [level for level in permissions if level not in VALID_LEVELS]
    if unknown:
        raise ValueError(f"unknown permission levels {unknown} for {name}")

    cooldown = int(config.get("cooldown", DEFAULT_COOLDOWN))
    if cooldown < 0:
        raise ValueError(f"negative cooldown for {name}")

    free_args = config.get("cooldown_free_args", config.get("cooldownFreeArgs")) or []
    if isinstance(free_args, str):
        free_args = [free_args]

    lang_data = getattr(module, "lang_data", None) or config.get("lang_data") or {}

    return Command(
        name=name,
        handler=handler,
        aliases=aliases,
        permissions=permissions,
        cooldown=cooldown,
        cooldown_free_args=tuple(str(arg).strip().lower() for arg in free_args),
        nsfw=bool(config.get("nsfw", False)),
        is_absolute=bool(config.get("is_absolute", config.get("isAbsolute", False))),
        hidden=bool(config.get("hidden", config.get("isHidden", False))),
        category=str(config.get("category") or category).lower(),
        description=str(config.get("description") or ""),
        usage=str(config.get("usage") or ""),
        extra=dict(config.get("extra") or {}),
        lang_data=dict(lang_data),
        source=module.__name__,
    )


def adapt_module(module: ModuleType, category: str = "general") -> Command | None:
    """Normalize a plugin module into a Command, or None if no shape matches."""
    for shape in SHAPES:
        found = shape(module)
        if found is not None:
            config, handler = found
            return build_command(config, handler, module, category)
    return None


def category_for(module_name: str, package: str) -> str:
    """``alphabot.components.admin.ban`` -> ``admin``; top-level modules are ``general``."""
    parts = module_name[len(package) + 1 :].split(".")
    return parts[0] if len(parts) > 1 else "general"


class PluginLoader:
    """Imports plugin packages and fills a PluginRegistry."""

    def __init__(self, registry: PluginRegistry) -> None:
        self.registry = registry

    @staticmethod
    def _iter_modules(package: str) -> Iterator[str]:
        pkg = importlib.import_module(package)
        for info in pkgutil.walk_packages(pkg.__path__, prefix=f"{package}."):
            if not info.ispkg:
                yield info.name

    @staticmethod
    def _import(module_name: str) -> ModuleType | None:
        try:
            return importlib.import_module(module_name)
        except Exception as e:
            LOGGER.exception(f"Failed to load plugin {module_name}: {e}")
            return None

    def load_commands(self, package: str = COMPONENTS_PACKAGE) -> int:
        """Register every command module under ``package``. Returns the count loaded."""
        loaded = 0
        for module_name in self._iter_modules(package):
            module = self._import(module_name)
            if module is None:
                continue

            try:
                command = adapt_module(module, category_for(module_name, package))
            except (TypeError, ValueError) as e:
                LOGGER.error(f"Invalid command definition in {module_name}: {e}")
                continue

            listener = getattr(module, "handle_message", None)
            if command is None:
                if callable(listener):
                    self.registry.add_message_listener(module_name.rsplit(".", 1)[-1], listener)
                else:
                    LOGGER.debug(f"Skipping {module_name}: no command definition")
                continue

            try:
                command = self.registry.register(command)
            except (DuplicateNameError, ValueError) as e:
                LOGGER.error(f"Skipping {module_name}: {e}")
                continue

            if callable(listener):
                self.registry.add_message_listener(command.name, listener)
            loaded += 1

        LOGGER.info(f"Loaded {loaded} commands from {package}")
        return loaded

    def load_events(self, package: str = EVENTS_PACKAGE) -> int:
        """Register every thread-log event handler under ``package``."""
        loaded = 0
        for module_name in self._iter_modules(package):
            module = self._import(module_name)
            if module is None:
                continue

            found = next((f for f in (shape(module) for shape in SHAPES) if f), None)
            if found is None:
                LOGGER.debug(f"Skipping {module_name}: no event definition")
                continue
            config, handler = found
            name = str(config.get("name") or "").strip()
            if not name:
                LOGGER.error(f"Event module {module_name} has no name")
                continue

            try:
                self.registry.register_event(name, handler)
            except DuplicateNameError as e:
                LOGGER.error(f"Skipping {module_name}: {e}")
                continue
            loaded += 1

        LOGGER.info(f"Loaded {loaded} event handlers from {package}")
        return loaded
