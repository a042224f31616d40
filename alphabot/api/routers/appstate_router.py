"""Appstate API routes"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel

from alphabot.api.dependencies import get_app_settings
from alphabot.core.appstate import (
    AppStateReport,
    cookies_from_header,
    parse_appstate,
    save_appstate,
    validate_appstate,
)
from alphabot.core.config import BotSettings
from alphabot.core.exceptions import ValidationError
from alphabot.launcher import launch_bot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["appstate"])


# ============================================
# Response / Request Models
# ============================================


class StatusResponse(BaseModel):
    exists: bool
    valid: bool = False
    user_id: str | None = None
    errors: list[str] = []


class AppStateInfo(BaseModel):
    exists: bool
    user_id: str | None = None
    count: int = 0
    last_modified: datetime | None = None


class AppStateUpload(BaseModel):
    appstate: list[dict[str, Any]] | str
    launch: bool = False


class CookieUpload(BaseModel):
    cookies: str
    launch: bool = False


class UpdateResponse(BaseModel):
    user_id: str | None
    cookies: int
    bot_pid: int | None = None


# ============================================
# Helpers
# ============================================


def _read_report(settings: BotSettings) -> AppStateReport | None:
    path = settings.appstate_file
    if not path.is_file():
        return None
    try:
        return validate_appstate(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.warning(f"Cannot read appstate {path}: {e}")
        return AppStateReport(errors=[str(e)])


async def _store(settings: BotSettings, raw: Any, launch: bool) -> UpdateResponse:
    try:
        cookies = parse_appstate(raw)
    except ValidationError as e:
        raise HTTPException(
            status_code=400, detail={"message": str(e), "errors": e.errors}
        ) from None

    save_appstate(settings.appstate_file, cookies)
    report = validate_appstate(cookies)
    logger.info(f"AppState updated for user {report.user_id} ({report.cookie_count} cookies)")

    pid = None
    if launch:
        try:
            pid = await launch_bot(settings)
        except OSError as e:
            logger.error(f"Failed to start bot: {e}")
    return UpdateResponse(user_id=report.user_id, cookies=report.cookie_count, bot_pid=pid)


# ============================================
# Appstate Endpoints
# ============================================


@router.get("/status", response_model=StatusResponse)
async def get_status(settings: BotSettings = Depends(get_app_settings)) -> StatusResponse:
    """Whether a usable appstate is on disk"""
    report = _read_report(settings)
    if report is None:
        return StatusResponse(exists=False)
    return StatusResponse(
        exists=True, valid=report.valid, user_id=report.user_id, errors=report.errors
    )


@router.get("/appstate", response_model=AppStateInfo)
async def get_appstate(settings: BotSettings = Depends(get_app_settings)) -> AppStateInfo:
    """Summary of the stored appstate (never the cookie values)"""
    path = settings.appstate_file
    report = _read_report(settings)
    if report is None:
        return AppStateInfo(exists=False)
    return AppStateInfo(
        exists=True,
        user_id=report.user_id,
        count=report.cookie_count,
        last_modified=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
    )


@router.get("/appstate/download")
async def download_appstate(settings: BotSettings = Depends(get_app_settings)) -> FileResponse:
    path = settings.appstate_file
    if not path.is_file():
        raise HTTPException(status_code=404, detail="No appstate file found")
    return FileResponse(path, media_type="application/json", filename="appstate.json")


@router.post("/appstate", response_model=UpdateResponse)
async def upload_appstate(
    body: AppStateUpload, settings: BotSettings = Depends(get_app_settings)
) -> UpdateResponse:
    """Validate and store a cookie array; optionally start the bot"""
    raw = body.appstate
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}") from None
    return await _store(settings, raw, body.launch)


@router.post("/appstate/cookies", response_model=UpdateResponse)
async def upload_cookie_header(
    body: CookieUpload, settings: BotSettings = Depends(get_app_settings)
) -> UpdateResponse:
    """Build the appstate from a browser cookie string"""
    return await _store(settings, cookies_from_header(body.cookies), body.launch)
