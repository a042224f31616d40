"""Services layer - file-backed configuration operations."""

from .config_file import ConfigFileService

__all__ = ["ConfigFileService"]
