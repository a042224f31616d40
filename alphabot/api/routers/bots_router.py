"""Bot status monitoring API routes"""

import logging

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from alphabot.api.dependencies import get_app_settings
from alphabot.core.config import BotSettings
from alphabot.launcher import PidLock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bot", tags=["bot"])


class BotStatusResponse(BaseModel):
    """Bot status response"""

    online: bool
    pid: int | None = None
    service: str | None = None
    bot_id: str | None = None
    uptime_seconds: int | None = None
    commands: int | None = None
    events: int | None = None
    listeners: int | None = None


async def check_bot_health(bot_url: str) -> BotStatusResponse:
    """Ask the bot's health server for its status"""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{bot_url}/status", timeout=8.0)

            if response.status_code == 200:
                data = response.json()
                logger.debug(f"Bot status check successful: {data}")
                return BotStatusResponse(
                    online=True,
                    service=data.get("service"),
                    bot_id=data.get("bot_id"),
                    uptime_seconds=data.get("uptime_seconds"),
                    commands=data.get("commands"),
                    events=data.get("events"),
                    listeners=data.get("listeners"),
                )
            logger.warning(f"Bot health check returned status {response.status_code}")
            return BotStatusResponse(online=False)

    except httpx.TimeoutException:
        logger.warning("Bot health check timeout (bot may be offline)")
        return BotStatusResponse(online=False)

    except httpx.ConnectError:
        logger.warning(f"Cannot connect to bot at {bot_url} (bot offline)")
        return BotStatusResponse(online=False)

    except Exception as e:
        logger.exception(f"Error checking bot status: {e}")
        return BotStatusResponse(online=False)


@router.get("/status", response_model=BotStatusResponse)
async def get_bot_status(settings: BotSettings = Depends(get_app_settings)) -> BotStatusResponse:
    status = await check_bot_health(settings.bot_url)
    status.pid = PidLock(settings.lock_file).held_by()
    return status


@router.get("/health")
async def get_bot_health(settings: BotSettings = Depends(get_app_settings)):
    """Bot health check"""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{settings.bot_url}/health", timeout=8.0)

            if response.status_code == 200:
                return response.json()
            return {"status": "unhealthy", "bot_offline": True}

    except httpx.HTTPError:
        return {"status": "unhealthy", "bot_offline": True}
