"""Language packs and message formatting."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger("I18n")

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _flatten(tree: dict[str, Any], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in tree.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, path))
        else:
            flat[path] = str(value)
    return flat


def format_message(template: str, values: dict[str, Any] | None = None) -> str:
    """Substitute ``{name}`` placeholders; unknown placeholders stay as written."""
    if not values:
        return template
    return _PLACEHOLDER.sub(
        lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), template
    )


class Translator:
    """Global packs from ``<lang>.json`` files plus per-command packs.

    Lookup order for a key: the command's pack in the requested language,
    the global pack in the requested language, the global pack in the
    default language, then the key itself.
    """

    def __init__(self, languages_dir: Path, default_language: str = "en_US") -> None:
        self.languages_dir = Path(languages_dir)
        self.default_language = default_language
        self._packs: dict[str, dict[str, str]] = {}

    def load(self) -> int:
        self._packs.clear()
        for path in sorted(self.languages_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                LOGGER.warning(f"Skipping language pack {path.name}: {e}")
                continue
            self._packs[path.stem] = _flatten(data)
        if self.default_language not in self._packs:
            LOGGER.warning(f"Default language pack {self.default_language} not found")
        LOGGER.debug(f"Loaded language packs: {', '.join(self._packs) or 'none'}")
        return len(self._packs)

    @property
    def languages(self) -> list[str]:
        return sorted(self._packs)

    def get(
        self,
        key: str,
        values: dict[str, Any] | None = None,
        *,
        language: str | None = None,
        command_pack: dict[str, dict[str, str]] | None = None,
    ) -> str:
        language = language or self.default_language
        candidates: list[dict[str, str] | None] = []
        if command_pack:
            candidates.append(command_pack.get(language))
            candidates.append(command_pack.get(self.default_language))
        candidates.append(self._packs.get(language))
        candidates.append(self._packs.get(self.default_language))

        for pack in candidates:
            if pack and key in pack:
                return format_message(pack[key], values)
        return format_message(key, values)
