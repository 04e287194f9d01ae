from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from overtime.config import get_settings
from overtime.exceptions import WorkflowError
from overtime.models.enums import ErrorKind, NotificationTemplate, Role
from overtime.schemas.request import ActionResult
from overtime.services.actions import server_action
from overtime.services.notifications import NotificationParams, notify
from overtime.services.request import compute_balance

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


def _submissions_url() -> str:
    return f"{get_settings().base_url.rstrip('/')}/pl/overtime-submissions"


@server_action("sendEmployeeReminder")
async def send_employee_reminder(
    session: AsyncSession,
    auth: AuthContext,
    employee_email: str,
    note: str | None = None,
) -> ActionResult:
    """Remind an employee of their unsettled overtime balance."""
    if not auth.has(Role.MANAGER, Role.LEADER, Role.HR, Role.ADMIN, Role.PLANT_MANAGER):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    balance = await compute_balance(session, employee_email)
    params = NotificationParams(
        template=NotificationTemplate.EMPLOYEE_REMINDER,
        request_url=_submissions_url(),
        actor=auth.identity,
        employee=employee_email,
        total_hours=balance,
        note=note,
    )
    if not await notify(employee_email, params):
        return ActionResult(error="sendEmployeeReminder server action error")
    logger.info("Balance reminder sent to %s by %s", employee_email, auth.identity)
    return ActionResult(success="sent")


@server_action("sendSupervisorNotification")
async def send_supervisor_notification(
    session: AsyncSession,
    auth: AuthContext,
    supervisor_email: str,
    employee_email: str,
    note: str | None = None,
) -> ActionResult:
    """Tell a supervisor about an employee's overtime balance."""
    if not auth.has(Role.HR, Role.ADMIN, Role.PLANT_MANAGER):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    balance = await compute_balance(session, employee_email)
    params = NotificationParams(
        template=NotificationTemplate.SUPERVISOR_NOTIFICATION,
        request_url=_submissions_url(),
        actor=auth.identity,
        employee=employee_email,
        total_hours=balance,
        note=note,
    )
    if not await notify(supervisor_email, params):
        return ActionResult(error="sendSupervisorNotification server action error")
    logger.info("Balance of %s reported to %s by %s", employee_email, supervisor_email, auth.identity)
    return ActionResult(success="sent")
