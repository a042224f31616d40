"""Core modules for Alphabot."""

from .config import (
    COMPONENTS_PACKAGE,
    EVENTS_PACKAGE,
    LANGUAGES_DIR,
    BotSettings,
    get_settings,
    reload_settings,
)
from .exceptions import (
    AlphabotError,
    CommandNotFound,
    CooldownActive,
    DuplicateNameError,
    HandlerExecutionError,
    NsfwNotAllowed,
    PermissionDenied,
    PersistenceError,
    TransportError,
    ValidationError,
)
from .health_server import HealthCheckServer
from .logging import setup_logging
from .registry import Command, PluginRegistry
from .sessions import CancellationToken, SessionStore, WaiterKind

__all__ = [
    # Settings
    "BotSettings",
    "get_settings",
    "reload_settings",
    # Package locations
    "COMPONENTS_PACKAGE",
    "EVENTS_PACKAGE",
    "LANGUAGES_DIR",
    # Errors
    "AlphabotError",
    "CommandNotFound",
    "CooldownActive",
    "DuplicateNameError",
    "HandlerExecutionError",
    "NsfwNotAllowed",
    "PermissionDenied",
    "PersistenceError",
    "TransportError",
    "ValidationError",
    # Setup functions
    "setup_logging",
    # Services
    "HealthCheckServer",
    "PluginRegistry",
    "Command",
    "SessionStore",
    "CancellationToken",
    "WaiterKind",
]
