"""Global admin list API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator

from alphabot.api.dependencies import get_config_service
from alphabot.api.services import ConfigFileService
from alphabot.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admins", tags=["admins"])


class AdminsResponse(BaseModel):
    admins: list[str]


class AdminCreate(BaseModel):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: object) -> str:
        v = str(v).strip()
        if not v.isdigit():
            raise ValueError("id must be a numeric user ID")
        return v


@router.get("", response_model=AdminsResponse)
async def list_admins(service: ConfigFileService = Depends(get_config_service)) -> AdminsResponse:
    try:
        return AdminsResponse(admins=service.admins())
    except PersistenceError as e:
        logger.error(f"Failed to read admins: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from None


@router.post("", response_model=AdminsResponse, status_code=201)
async def add_admin(
    body: AdminCreate, service: ConfigFileService = Depends(get_config_service)
) -> AdminsResponse:
    try:
        admins = service.add_admin(body.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except PersistenceError as e:
        logger.error(f"Failed to save admins: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from None
    logger.info(f"Admin added: {body.id}")
    return AdminsResponse(admins=admins)


@router.delete("/{user_id}", response_model=AdminsResponse)
async def remove_admin(
    user_id: str, service: ConfigFileService = Depends(get_config_service)
) -> AdminsResponse:
    try:
        admins = service.remove_admin(user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Admin not found") from None
    except PersistenceError as e:
        logger.error(f"Failed to save admins: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from None
    logger.info(f"Admin removed: {user_id}")
    return AdminsResponse(admins=admins)
