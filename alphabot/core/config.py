"""Bot configuration.

Settings come from (highest priority first) constructor arguments,
environment variables, ``.env`` and ``config/config.main.json``. The JSON
file keeps the upper-case key names the dashboard writes (``PREFIX``,
``ADMINS`` ...); they map onto the lower-case fields below.
"""

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

# === Path Configuration ===
PACKAGE_DIR = Path(__file__).parent.parent
COMPONENTS_PACKAGE = "alphabot.components"
EVENTS_PACKAGE = "alphabot.events"
LANGUAGES_DIR = PACKAGE_DIR / "languages"

CONFIG_FILE_ENV = "ALPHABOT_CONFIG"
DEFAULT_CONFIG_FILE = Path("config") / "config.main.json"

DATABASE_KINDS = ("JSON", "POSTGRES")


def config_file_path() -> Path:
    """Location of the JSON config file (``$ALPHABOT_CONFIG`` or ``config/config.main.json``)."""
    return Path(os.getenv(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE)


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    """Read the JSON config file; a missing file is an empty config."""
    path = path or config_file_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: top level is not an object")
        return {}
    return data


class MainConfigSource(PydanticBaseSettingsSource):
    """Settings source over ``config.main.json`` with case-insensitive keys."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None = None) -> None:
        super().__init__(settings_cls)
        self._data = {k.lower(): v for k, v in read_config_file(path).items()}

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: self._data[name] for name in self.settings_cls.model_fields if name in self._data
        }


class BotSettings(BaseSettings):
    """Alphabot settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Commands
    prefix: str = Field(default="/", description="Global command prefix")
    language: str = Field(default="en_US", description="Default language pack")
    denied_policy: str = Field(
        default="silent", description="Reaction to permission failures: silent | reply"
    )

    # Privileged users
    admins: list[str] = Field(default_factory=list, description="Global admin user IDs")
    moderators: list[str] = Field(default_factory=list, description="Global moderator user IDs")
    absolutes: list[str] = Field(
        default_factory=list, description="Owners allowed to run absolute commands"
    )

    # Persistence
    database: str = Field(default="JSON", description="JSON or POSTGRES")
    database_url: str = Field(default="", description="PostgreSQL database URL")
    database_json_beautify: bool = Field(default=False, description="Indent JSON store files")
    data_dir: Path = Field(default=Path("data"), description="Runtime data directory")
    appstate_path: Path | None = Field(default=None, description="Cookie file location")

    # Chat client
    transport: str = Field(default="", description="Login factory as 'package.module:attr'")
    fca_options: dict[str, Any] = Field(default_factory=dict, description="Client login options")
    refresh: int = Field(default=0, description="Auto-restart after N milliseconds (0 = off)")

    # Servers
    health_host: str = Field(default="0.0.0.0", description="Bot health server host")
    health_port: int = Field(default=4344, description="Bot health server port")
    dashboard_host: str = Field(default="127.0.0.1", description="Dashboard API host")
    dashboard_port: int = Field(default=8000, description="Dashboard API port")
    bot_url: str = Field(default="http://localhost:4344", description="Bot health server URL")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            MainConfigSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("admins", "moderators", "absolutes", mode="before")
    @classmethod
    def validate_id_list(cls, v: Any) -> Any:
        """Accept numeric IDs and comma-separated strings"""
        if isinstance(v, str) and not v.strip().startswith("["):
            return [part.strip() for part in v.split(",") if part.strip()]
        if isinstance(v, list):
            return [str(item) for item in v]
        return v

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("PREFIX must not be empty")
        return v

    @field_validator("database")
    @classmethod
    def validate_database(cls, v: str) -> str:
        """Validate backend kind; MONGO configs are served by the document table backend"""
        v_upper = v.strip().upper()
        if v_upper in ("MONGO", "MONGODB", "POSTGRESQL"):
            return "POSTGRES"
        if v_upper not in DATABASE_KINDS:
            raise ValueError(f"DATABASE must be one of {', '.join(DATABASE_KINDS)}")
        return v_upper

    @field_validator("denied_policy")
    @classmethod
    def validate_denied_policy(cls, v: str) -> str:
        v_lower = v.strip().lower()
        if v_lower not in ("silent", "reply"):
            raise ValueError("DENIED_POLICY must be 'silent' or 'reply'")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @model_validator(mode="after")
    def validate_database_url(self) -> "BotSettings":
        """The table backend needs a postgresql:// URL"""
        if self.database == "POSTGRES" and not self.database_url.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://' when DATABASE=POSTGRES")
        return self

    @property
    def appstate_file(self) -> Path:
        return self.appstate_path or self.data_dir / "appstate.json"

    @property
    def database_dir(self) -> Path:
        return self.data_dir / "logs" / "database"

    @property
    def lock_file(self) -> Path:
        return self.data_dir / "bot.lock"

    def is_absolute(self, user_id: str) -> bool:
        return str(user_id) in self.absolutes


@lru_cache
def get_settings() -> BotSettings:
    """Get cached settings instance"""
    return BotSettings()


def reload_settings() -> BotSettings:
    """Drop the cached instance (after the config file changed) and rebuild it."""
    get_settings.cache_clear()
    return get_settings()
