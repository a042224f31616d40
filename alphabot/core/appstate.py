"""Session cookie (appstate) validation and storage."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from alphabot.core.exceptions import ValidationError

LOGGER = logging.getLogger("AppState")

REQUIRED_COOKIES = ("c_user", "xs", "datr", "sb")
MIN_COOKIES = 10
EXPIRED_MARKERS = ("0%", "expired", "invalid")


class Cookie(BaseModel):
    """One browser cookie; exports store timestamps either as text or epoch numbers."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    key: str
    value: str
    domain: str | None = None
    path: str | None = None
    host_only: bool | None = Field(default=None, alias="hostOnly")
    creation: str | int | float | None = None
    last_accessed: str | int | float | None = Field(default=None, alias="lastAccessed")


class AppStateReport(BaseModel):
    valid: bool = False
    user_id: str | None = None
    errors: list[str] = Field(default_factory=list)
    cookie_count: int = 0


def validate_appstate(raw: Any) -> AppStateReport:
    """Check a cookie list (or its JSON text) without raising."""
    report = AppStateReport()
    if not raw:
        report.errors.append("AppState is empty")
        return report

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            report.errors.append(f"Invalid JSON format: {e}")
            return report

    if not isinstance(raw, list):
        report.errors.append("AppState must be an array of cookies")
        return report

    report.cookie_count = len(raw)
    if len(raw) < MIN_COOKIES:
        report.errors.append("AppState appears incomplete (too few cookies)")
        return report

    found: set[str] = set()
    for cookie in raw:
        if not isinstance(cookie, dict) or not cookie.get("key") or not cookie.get("value"):
            report.errors.append("Invalid cookie structure (missing key/value)")
            continue
        found.add(cookie["key"])
        if cookie["key"] == "c_user":
            report.user_id = str(cookie["value"])

    for name in REQUIRED_COOKIES:
        if name not in found:
            report.errors.append(f"Missing required cookie: {name}")

    report.valid = not report.errors and bool(report.user_id)
    return report


def parse_appstate(raw: Any) -> list[dict[str, Any]]:
    """Validate and return the cookie list; raises ValidationError when unusable."""
    report = validate_appstate(raw)
    if not report.valid:
        raise ValidationError("Invalid appstate", errors=report.errors)
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    try:
        cookies = [Cookie.model_validate(c) for c in raw]
    except PydanticValidationError as e:
        errors = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Invalid appstate", errors=errors) from e
    return [c.model_dump(by_alias=True, exclude_none=True) for c in cookies]


def cookies_from_header(header: str, domain: str = "facebook.com") -> list[dict[str, Any]]:
    """Turn a browser ``Cookie`` header (``a=1; b=2``) into appstate entries."""
    now = datetime.now(timezone.utc).isoformat()
    cookies = []
    for part in header.split(";"):
        key, sep, value = part.strip().partition("=")
        if not sep or not key.strip() or not value.strip():
            continue
        cookies.append(
            {
                "key": key.strip(),
                "value": value.strip(),
                "domain": domain,
                "path": "/",
                "hostOnly": False,
                "creation": now,
                "lastAccessed": now,
            }
        )
    return cookies


def load_appstate(path: Path) -> list[dict[str, Any]]:
    if not path.is_file():
        raise ValidationError(f"AppState file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"Cannot read appstate file {path}: {e}") from e
    return parse_appstate(text)


def save_appstate(path: Path, cookies: list[dict[str, Any]]) -> None:
    """Write the cookie list atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(cookies, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)


def _find(cookies: list[dict[str, Any]], key: str) -> dict[str, Any] | None:
    return next((c for c in cookies if isinstance(c, dict) and c.get("key") == key), None)


def sanitize_for_logging(cookies: Any) -> dict[str, Any]:
    """Summary that is safe to log (no cookie values except the user ID)."""
    if not isinstance(cookies, list):
        return {"error": "Invalid appstate format"}
    user = _find(cookies, "c_user")
    return {
        "user_id": user.get("value") if user else "Unknown",
        "session_exists": _find(cookies, "xs") is not None,
        "cookie_count": len(cookies),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def is_expired(cookies: list[dict[str, Any]]) -> bool:
    """Heuristic: no ``xs`` session cookie, or one carrying an expiry marker."""
    session = _find(cookies, "xs")
    if session is None:
        return True
    value = str(session.get("value", "")).lower()
    return any(marker in value for marker in EXPIRED_MARKERS)
