"""Dependency injection utilities for FastAPI"""

from fastapi import Request

from alphabot.api.services import ConfigFileService
from alphabot.core.config import BotSettings


def get_app_settings(request: Request) -> BotSettings:
    """Settings the app was created with"""
    return request.app.state.settings


def get_config_service(request: Request) -> ConfigFileService:
    return ConfigFileService(request.app.state.config_path)
