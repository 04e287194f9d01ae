# ruff: noqa: B008
from __future__ import annotations

from fastapi import APIRouter, Query, status

from overtime.api.deps import AuthDep
from overtime.db import SessionDep
from overtime.exceptions import AppError
from overtime.models.enums import Role
from overtime.schemas.quota import SupervisorQuotaResponse
from overtime.services.quota import get_supervisor_quota

quota_router = APIRouter(prefix="/quota", tags=["quota"])


@quota_router.get("", response_model=SupervisorQuotaResponse)
async def get_quota(
    session: SessionDep,
    auth: AuthDep,
    supervisor: str | None = Query(default=None),
) -> SupervisorQuotaResponse:
    """Monthly payout quota of the caller, or of any supervisor for HR and admins."""
    target = supervisor or auth.identity
    if target != auth.identity and not auth.has(Role.ADMIN, Role.HR, Role.PLANT_MANAGER):
        raise AppError("Not allowed to view this quota", status_code=status.HTTP_403_FORBIDDEN)
    return await get_supervisor_quota(session, target)
