"""Supervisor payout quota.

Managers and leaders may give final approval to payouts without plant-manager
sign-off as long as the hours fit in a monthly quota. The quota scales with the
number of direct reports and is recomputed from stored approvals on every call.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy import and_, func, or_, select
from sqlmodel import col

from overtime.config import get_settings
from overtime.models.enums import RequestKind, RequestStatus
from overtime.models.request import OvertimeRequest
from overtime.schemas.quota import SupervisorQuotaResponse
from overtime.services.config_store import SUPERVISOR_HOURS_PER_EMPLOYEE, get_config_value
from overtime.services.employee import get_employee_directory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_CONSUMING_STATUSES = [RequestStatus.APPROVED.value, RequestStatus.ACCOUNTED.value]


def month_start(now: datetime | None = None) -> datetime:
    """Local midnight on the first day of ``now``'s month, as a UTC instant."""
    tz = ZoneInfo(get_settings().timezone)
    local = (now or datetime.now(UTC)).astimezone(tz)
    start = datetime(local.year, local.month, 1, tzinfo=tz)
    return start.astimezone(UTC)


async def monthly_limit(session: AsyncSession, identity: str) -> float:
    """Subordinate count times the configured hours per employee.

    Zero means every payout this supervisor approves is escalated.
    """
    per_employee = await get_config_value(session, SUPERVISOR_HOURS_PER_EMPLOYEE)
    if per_employee is None or per_employee <= 0:
        return 0.0

    directory = get_employee_directory()
    supervisor = await directory.get_by_email(identity)
    if supervisor is None:
        logger.info("No employee record for supervisor %s; quota is zero", identity)
        return 0.0

    subordinates = await directory.count_subordinates(supervisor.full_name)
    return subordinates * per_employee


async def used_this_month(
    session: AsyncSession,
    identity: str,
    now: datetime | None = None,
) -> float:
    """Payout hours this supervisor approved on their own authority this month."""
    stmt = select(func.coalesce(func.sum(func.abs(col(OvertimeRequest.hours))), 0.0)).where(
        col(OvertimeRequest.supervisor_final_approval).is_(True),
        col(OvertimeRequest.supervisor_approved_by) == identity,
        col(OvertimeRequest.status).in_(_CONSUMING_STATUSES),
        col(OvertimeRequest.approved_at) >= month_start(now),
        or_(
            col(OvertimeRequest.kind) == RequestKind.ORDER.value,
            and_(
                col(OvertimeRequest.kind) == RequestKind.SUBMISSION.value,
                col(OvertimeRequest.payout_request).is_(True),
            ),
        ),
    )
    result = await session.execute(stmt)
    return float(result.scalar_one())


async def get_supervisor_quota(
    session: AsyncSession,
    identity: str,
    now: datetime | None = None,
) -> SupervisorQuotaResponse:
    limit = await monthly_limit(session, identity)
    used = await used_this_month(session, identity, now)
    return SupervisorQuotaResponse(limit=limit, used=used, remaining=max(0.0, limit - used))


def fits_quota(quota: SupervisorQuotaResponse, hours: float) -> bool:
    """True when ``hours`` more can be approved without escalation."""
    return quota.limit > 0 and quota.used + abs(hours) <= quota.limit


def consume_quota(quota: SupervisorQuotaResponse, hours: float) -> SupervisorQuotaResponse:
    """Quota after approving ``hours`` more, for in-batch bookkeeping."""
    used = quota.used + abs(hours)
    return SupervisorQuotaResponse(limit=quota.limit, used=used, remaining=max(0.0, quota.limit - used))
