"""Config file service: read and update ``config.main.json``."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import pydantic

from alphabot.core.config import BotSettings, config_file_path
from alphabot.core.exceptions import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

ADMINS_KEY = "ADMINS"


def check_config(config: dict[str, Any]) -> None:
    """Run the known keys through BotSettings; raises ValidationError with field errors."""
    known = {k.lower(): v for k, v in config.items() if k.lower() in BotSettings.model_fields}
    try:
        BotSettings(**known)
    except pydantic.ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Invalid configuration", errors=errors) from None


class ConfigFileService:
    """File-backed config operations used by the dashboard routers."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or config_file_path()

    def read(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not contain a JSON object")
        return data

    def write(self, config: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(config, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e
        logger.info(f"Saved config to {self.path}")

    def replace(self, config: dict[str, Any]) -> dict[str, Any]:
        check_config(config)
        self.write(config)
        return config

    # ---- Admins ----

    def admins(self) -> list[str]:
        raw = self.read().get(ADMINS_KEY) or []
        return [str(a) for a in raw] if isinstance(raw, list) else []

    def add_admin(self, user_id: str) -> list[str]:
        """Append ``user_id``; raises ValueError if it is already listed."""
        config = self.read()
        admins = [str(a) for a in config.get(ADMINS_KEY) or []]
        if user_id in admins:
            raise ValueError(f"{user_id} is already an admin")
        admins.append(user_id)
        config[ADMINS_KEY] = admins
        self.write(config)
        return admins

    def remove_admin(self, user_id: str) -> list[str]:
        """Remove ``user_id``; raises KeyError if it is not listed."""
        config = self.read()
        admins = [str(a) for a in config.get(ADMINS_KEY) or []]
        if user_id not in admins:
            raise KeyError(user_id)
        admins.remove(user_id)
        config[ADMINS_KEY] = admins
        self.write(config)
        return admins
