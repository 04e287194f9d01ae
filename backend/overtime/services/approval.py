"""Approval state machine for overtime orders and submissions.

Every status change is a conditional ``UPDATE ... WHERE id = ? AND status = ?``
against the status that was read, so two actors racing on the same request
cannot both win. Notifications go out only after the commit.
"""

# ruff: noqa: TC003
from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlmodel import col

from overtime.config import get_settings
from overtime.exceptions import WorkflowError
from overtime.models.base import now_utc
from overtime.models.enums import (
    OPEN_STATUSES,
    ApprovalStage,
    AuditAction,
    AuditEntityType,
    ErrorKind,
    NotificationTemplate,
    RequestKind,
    RequestStatus,
    Role,
)
from overtime.models.request import OvertimeRequest
from overtime.schemas.request import ActionResult, CorrectionHistoryEntry, FieldChange, StatusChange
from overtime.services.actions import server_action
from overtime.services.audit import model_to_audit_dict, write_audit_log
from overtime.services.notifications import NotificationParams, notify, request_url
from overtime.services.permissions import capabilities_for
from overtime.services.quota import consume_quota, fits_quota, get_supervisor_quota

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.schemas.auth import AuthContext
    from overtime.schemas.quota import SupervisorQuotaResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def local_today() -> dt.date:
    """Today's date in the plant's timezone."""
    return dt.datetime.now(ZoneInfo(get_settings().timezone)).date()


def recipient_for(request: OvertimeRequest) -> str | None:
    """Email address of the person a request is about."""
    if request.kind == RequestKind.ORDER:
        return request.employee_email
    return request.submitted_by


def notification_params(
    request: OvertimeRequest,
    template: NotificationTemplate,
    **extra: Any,
) -> NotificationParams:
    """Template parameters describing ``request``."""
    kind = RequestKind(request.kind)
    return NotificationParams(
        template=template,
        request_id=request.id,
        internal_id=request.internal_id,
        kind=kind,
        request_url=request_url(kind, request.id),
        hours=request.hours,
        payment=request.payment,
        date=request.date,
        scheduled_day_off=request.scheduled_day_off,
        work_start_time=request.work_start_time,
        work_end_time=request.work_end_time,
        **extra,
    )


async def load_request(
    session: AsyncSession,
    kind: RequestKind,
    request_id: uuid.UUID,
) -> OvertimeRequest:
    """Fetch a request of ``kind``. Raises ``not found`` otherwise."""
    result = await session.execute(
        select(OvertimeRequest).where(
            col(OvertimeRequest.id) == request_id,
            col(OvertimeRequest.kind) == kind.value,
        )
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise WorkflowError(ErrorKind.NOT_FOUND)
    return request


async def transition(
    session: AsyncSession,
    request: OvertimeRequest,
    auth: AuthContext,
    *,
    expected: RequestStatus,
    values: dict[str, Any],
    action: AuditAction,
) -> None:
    """Apply ``values`` only if the request still has status ``expected``.

    Zero matched rows means another actor got there first: the request either
    vanished (``not found``) or moved on (``invalid status``). On success the
    change is audited and committed, and ``request`` is refreshed.
    """
    before = model_to_audit_dict(request)
    result = await session.execute(
        update(OvertimeRequest)
        .where(
            col(OvertimeRequest.id) == request.id,
            col(OvertimeRequest.status) == expected.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        current = await session.execute(
            select(col(OvertimeRequest.status)).where(col(OvertimeRequest.id) == request.id)
        )
        if current.scalar_one_or_none() is None:
            raise WorkflowError(ErrorKind.NOT_FOUND)
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    await session.refresh(request)
    await write_audit_log(
        session,
        actor=auth.identity,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=action,
        before_json=before,
        after_json=model_to_audit_dict(request),
    )
    await session.commit()


def require_reason(reason: str | None) -> str:
    if not reason or not reason.strip():
        raise WorkflowError(ErrorKind.REASON_REQUIRED)
    return reason.strip()


# ---------------------------------------------------------------------------
# Per-request transitions (shared with bulk operations)
# ---------------------------------------------------------------------------


async def approve_request(
    session: AsyncSession,
    auth: AuthContext,
    request: OvertimeRequest,
    quota: SupervisorQuotaResponse | None = None,
) -> tuple[str, SupervisorQuotaResponse | None]:
    """Approve one request and return ``(outcome, quota)``.

    A pending payout approved by a manager or leader becomes final when it fits
    their monthly quota and is escalated to the plant manager otherwise. Pass
    ``quota`` to reuse a quota already fetched for this caller; the returned
    quota includes the hours consumed here.
    """
    status = RequestStatus(request.status)
    if status not in OPEN_STATUSES:
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    caps = await capabilities_for(session, auth, request)
    if not caps.can_approve(status):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    now = now_utc()
    me = auth.identity
    supervisor_stamp = {"supervisor_approved_at": now, "supervisor_approved_by": me}
    plant_manager_stamp = {"plant_manager_approved_at": now, "plant_manager_approved_by": me}
    final_stamp = {
        "status": RequestStatus.APPROVED.value,
        "approved_at": now,
        "approved_by": me,
    }

    if status == RequestStatus.PENDING_PLANT_MANAGER:
        values = {**plant_manager_stamp, **final_stamp}
        outcome, stage, action = "plant-manager-approved", ApprovalStage.FINAL, AuditAction.APPROVE
    elif not request.requires_dual_approval:
        values = final_stamp
        outcome, stage, action = "approved", ApprovalStage.FINAL, AuditAction.APPROVE
    elif auth.has(Role.PLANT_MANAGER, Role.ADMIN):
        values = {**supervisor_stamp, **plant_manager_stamp, **final_stamp}
        outcome, stage, action = "approved", ApprovalStage.FINAL, AuditAction.APPROVE
    else:
        if caps.uses_quota and quota is None:
            quota = await get_supervisor_quota(session, me)
        if caps.uses_quota and quota is not None and fits_quota(quota, request.hours):
            values = {**supervisor_stamp, "supervisor_final_approval": True, **final_stamp}
            outcome, stage, action = "approved", ApprovalStage.FINAL, AuditAction.APPROVE
            quota = consume_quota(quota, request.hours)
        else:
            values = {**supervisor_stamp, "status": RequestStatus.PENDING_PLANT_MANAGER.value}
            outcome, stage, action = "supervisor-approved", ApprovalStage.SUPERVISOR, AuditAction.SUPERVISOR_APPROVE

    await transition(session, request, auth, expected=status, values=values, action=action)
    logger.info("%s %s %s by %s", request.kind, request.internal_id, outcome, me)

    await notify(
        recipient_for(request),
        notification_params(request, NotificationTemplate.APPROVAL, stage=stage, actor=me),
    )
    return outcome, quota


async def reject_request(
    session: AsyncSession,
    auth: AuthContext,
    request: OvertimeRequest,
    reason: str,
) -> None:
    status = RequestStatus(request.status)
    if status not in OPEN_STATUSES:
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    caps = await capabilities_for(session, auth, request)
    if not caps.can_reject(status):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    values = {
        "status": RequestStatus.REJECTED.value,
        "rejected_at": now_utc(),
        "rejected_by": auth.identity,
        "rejection_reason": reason,
    }
    await transition(session, request, auth, expected=status, values=values, action=AuditAction.REJECT)
    logger.info("%s %s rejected by %s", request.kind, request.internal_id, auth.identity)

    await notify(
        recipient_for(request),
        notification_params(request, NotificationTemplate.REJECTION, actor=auth.identity, reason=reason),
    )


async def mark_request_as_accounted(
    session: AsyncSession,
    auth: AuthContext,
    request: OvertimeRequest,
) -> None:
    caps = await capabilities_for(session, auth, request)
    if not caps.mark_as_accounted:
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    if request.status != RequestStatus.APPROVED:
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    values = {
        "status": RequestStatus.ACCOUNTED.value,
        "accounted_at": now_utc(),
        "accounted_by": auth.identity,
    }
    await transition(
        session,
        request,
        auth,
        expected=RequestStatus.APPROVED,
        values=values,
        action=AuditAction.ACCOUNT,
    )


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------


@server_action("approve")
async def approve(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    request_id: uuid.UUID,
) -> ActionResult:
    """Approve a request.

    Succeeds with ``approved``, ``supervisor-approved`` (escalated to the plant
    manager) or ``plant-manager-approved``.
    """
    request = await load_request(session, kind, request_id)
    outcome, _ = await approve_request(session, auth, request)
    return ActionResult(success=outcome)


@server_action("reject")
async def reject(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    request_id: uuid.UUID,
    reason: str,
) -> ActionResult:
    reason = require_reason(reason)
    request = await load_request(session, kind, request_id)
    await reject_request(session, auth, request, reason)
    return ActionResult(success="rejected")


@server_action("markAsAccounted")
async def mark_as_accounted(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    request_id: uuid.UUID,
) -> ActionResult:
    """Settle an approved request. HR and admins only."""
    if not auth.has(Role.HR, Role.ADMIN):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    request = await load_request(session, kind, request_id)
    await mark_request_as_accounted(session, auth, request)
    return ActionResult(success="accounted")


@server_action("convertToPayout")
async def convert_to_payout(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> ActionResult:
    """Turn an approved time-off submission into a paid-out one."""
    request = await load_request(session, RequestKind.SUBMISSION, request_id)
    caps = await capabilities_for(session, auth, request)
    if not caps.convert_to_payout:
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    if request.status != RequestStatus.APPROVED or request.payment or request.scheduled_day_off is not None:
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    values = {
        "payment": True,
        "payout_converted_at": now_utc(),
        "payout_converted_by": auth.identity,
    }
    await transition(
        session,
        request,
        auth,
        expected=RequestStatus.APPROVED,
        values=values,
        action=AuditAction.CONVERT_TO_PAYOUT,
    )
    logger.info("Submission %s converted to payout by %s", request.internal_id, auth.identity)
    return ActionResult(success="converted")


@server_action("supervisorSetScheduledDayOff")
async def supervisor_set_scheduled_day_off(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    scheduled_day_off: dt.date,
    reason: str,
) -> ActionResult:
    """Settle an escalated payout order as time off instead.

    The supervisor picks a day off, which approves the order without waiting
    for the plant manager. The switch is recorded in the correction history.
    """
    reason = require_reason(reason)
    if scheduled_day_off < local_today():
        raise WorkflowError(ErrorKind.INVALID_DATE)

    request = await load_request(session, RequestKind.ORDER, request_id)
    caps = await capabilities_for(session, auth, request)
    if not caps.set_scheduled_day_off:
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    if request.status != RequestStatus.PENDING_PLANT_MANAGER:
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    now = now_utc()
    entry = CorrectionHistoryEntry(
        corrected_at=now,
        corrected_by=auth.identity,
        reason=reason,
        status_changed=StatusChange(from_=RequestStatus.PENDING_PLANT_MANAGER, to=RequestStatus.APPROVED),
        changes={
            "payment": FieldChange(from_=request.payment, to=False),
            "scheduled_day_off": FieldChange(from_=request.scheduled_day_off, to=scheduled_day_off),
        },
    )
    values = {
        "status": RequestStatus.APPROVED.value,
        "payment": False,
        "scheduled_day_off": scheduled_day_off,
        "approved_at": now,
        "approved_by": auth.identity,
        "edited_at": now,
        "edited_by": auth.identity,
        "correction_history": [*request.correction_history, entry.to_json()],
    }
    await transition(
        session,
        request,
        auth,
        expected=RequestStatus.PENDING_PLANT_MANAGER,
        values=values,
        action=AuditAction.SCHEDULE_DAY_OFF,
    )
    logger.info("Order %s switched to day off %s by %s", request.internal_id, scheduled_day_off, auth.identity)
    return ActionResult(success="approved")
