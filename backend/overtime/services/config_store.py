from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from overtime.exceptions import WorkflowError
from overtime.models.base import now_utc
from overtime.models.config import OvertimeConfig
from overtime.models.enums import AuditAction, AuditEntityType, ErrorKind, Role
from overtime.schemas.config import ConfigResponse
from overtime.schemas.request import ActionResult
from overtime.services.actions import server_action
from overtime.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.schemas.auth import AuthContext
    from overtime.schemas.config import CreateConfigPayload, UpdateConfigPayload

logger = logging.getLogger(__name__)

# Payout hours each direct report adds to a supervisor's monthly quota.
SUPERVISOR_HOURS_PER_EMPLOYEE = "supervisor_hours_per_employee"


def _build_config_response(config: OvertimeConfig) -> ConfigResponse:
    return ConfigResponse(
        id=config.id,
        key=config.key,
        value=config.value,
        updated_at=config.updated_at,
        updated_by=config.updated_by,
    )


async def _get_config(session: AsyncSession, key: str) -> OvertimeConfig | None:
    result = await session.execute(select(OvertimeConfig).where(col(OvertimeConfig.key) == key))
    return result.scalar_one_or_none()


async def get_config_value(session: AsyncSession, key: str) -> float | None:
    """Return the stored value for ``key``, or None when it was never configured."""
    result = await session.execute(select(col(OvertimeConfig.value)).where(col(OvertimeConfig.key) == key))
    return result.scalar_one_or_none()


async def list_configs(session: AsyncSession) -> list[ConfigResponse]:
    """All configuration values ordered by key."""
    result = await session.execute(select(OvertimeConfig).order_by(col(OvertimeConfig.key)))
    return [_build_config_response(c) for c in result.scalars().all()]


@server_action("insertConfig")
async def insert_config(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateConfigPayload,
) -> ActionResult:
    """Add a configuration value. Keys are unique."""
    if not auth.has(Role.ADMIN):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    if await _get_config(session, payload.key) is not None:
        raise WorkflowError(ErrorKind.DUPLICATE_CONFIG)

    config = OvertimeConfig(key=payload.key, value=payload.value, updated_by=auth.identity)
    session.add(config)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race against a concurrent insert of the same key.
        await session.rollback()
        raise WorkflowError(ErrorKind.DUPLICATE_CONFIG) from None

    await write_audit_log(
        session,
        actor=auth.identity,
        entity_type=AuditEntityType.CONFIG,
        entity_id=config.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(config),
    )
    await session.commit()
    logger.info("Config %s set to %s by %s", payload.key, payload.value, auth.identity)
    return ActionResult(success="inserted")


@server_action("updateConfig")
async def update_config(
    session: AsyncSession,
    auth: AuthContext,
    key: str,
    payload: UpdateConfigPayload,
) -> ActionResult:
    """Change an existing configuration value."""
    if not auth.has(Role.ADMIN):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    config = await _get_config(session, key)
    if config is None:
        raise WorkflowError(ErrorKind.NOT_FOUND)

    before = model_to_audit_dict(config)
    config.value = payload.value
    config.updated_at = now_utc()
    config.updated_by = auth.identity
    await session.flush()

    await write_audit_log(
        session,
        actor=auth.identity,
        entity_type=AuditEntityType.CONFIG,
        entity_id=config.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(config),
    )
    await session.commit()
    logger.info("Config %s changed to %s by %s", key, payload.value, auth.identity)
    return ActionResult(success="updated")


async def get_config_by_key(session: AsyncSession, key: str) -> ConfigResponse | None:
    config = await _get_config(session, key)
    return None if config is None else _build_config_response(config)