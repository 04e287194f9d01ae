# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter, status

from overtime.api.deps import AdminDep, AuthDep, unwrap
from overtime.db import SessionDep
from overtime.exceptions import AppError
from overtime.schemas.config import ConfigResponse, CreateConfigPayload, UpdateConfigPayload
from overtime.schemas.request import ActionResult
from overtime.services import config_store

config_router = APIRouter(prefix="/config", tags=["config"])


@config_router.get("", response_model=list[ConfigResponse])
async def list_configs(session: SessionDep, auth: AdminDep) -> list[ConfigResponse]:
    """List all configuration values (admin only)."""
    return await config_store.list_configs(session)


@config_router.get("/{key}", response_model=ConfigResponse)
async def get_config(key: str, session: SessionDep, auth: AuthDep) -> ConfigResponse:
    config = await config_store.get_config_by_key(session, key)
    if config is None:
        raise AppError("Config not found", status_code=status.HTTP_404_NOT_FOUND)
    return config


@config_router.post("", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def insert_config(payload: CreateConfigPayload, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Add a configuration value (admin only)."""
    return unwrap(await config_store.insert_config(session, auth, payload))


@config_router.put("/{key}", response_model=ActionResult)
async def update_config(
    key: str,
    payload: UpdateConfigPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    """Change a configuration value (admin only)."""
    return unwrap(await config_store.update_config(session, auth, key, payload))
