"""Bot configuration API routes"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from alphabot.api.dependencies import get_config_service
from alphabot.api.services import ConfigFileService
from alphabot.core.exceptions import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])


class ConfigResponse(BaseModel):
    config: dict[str, Any]


class ConfigUpdate(BaseModel):
    config: dict[str, Any]


@router.get("", response_model=ConfigResponse)
async def get_config(service: ConfigFileService = Depends(get_config_service)) -> ConfigResponse:
    if not service.path.is_file():
        raise HTTPException(status_code=404, detail="Config file not found")
    try:
        return ConfigResponse(config=service.read())
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e)) from None


@router.put("", response_model=ConfigResponse)
async def replace_config(
    body: ConfigUpdate, service: ConfigFileService = Depends(get_config_service)
) -> ConfigResponse:
    """Validate and save the whole config; the bot picks it up on restart"""
    try:
        saved = service.replace(body.config)
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail={"message": str(e), "errors": e.errors}
        ) from None
    except PersistenceError as e:
        logger.error(f"Failed to save config: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from None
    return ConfigResponse(config=saved)
