"""API Routers package

Routers are organized by feature domain.
"""

from . import admins_router, appstate_router, bots_router, config_router

__all__ = [
    "admins_router",
    "appstate_router",
    "bots_router",
    "config_router",
]
