# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlmodel import col

from overtime.exceptions import WorkflowError
from overtime.models.base import now_utc
from overtime.models.enums import (
    NON_COUNTING_STATUSES,
    OPEN_STATUSES,
    AuditAction,
    AuditEntityType,
    ErrorKind,
    NotificationTemplate,
    RequestKind,
    RequestStatus,
    Role,
)
from overtime.models.request import OvertimeRequest
from overtime.schemas.request import (
    ActionResult,
    BalanceResponse,
    CorrectionHistoryEntry,
    RequestListResponse,
    RequestResponse,
)
from overtime.services.actions import server_action
from overtime.services.approval import (
    load_request,
    local_today,
    notification_params,
    transition,
)
from overtime.services.audit import model_to_audit_dict, write_audit_log
from overtime.services.employee import get_employee_directory
from overtime.services.internal_id import next_internal_id
from overtime.services.notifications import notify
from overtime.services.permissions import capabilities_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.schemas.auth import AuthContext
    from overtime.schemas.request import (
        CreateOrderPayload,
        CreateSubmissionPayload,
        PayoutRequestPayload,
    )

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: OvertimeRequest) -> RequestResponse:
    """Map a request model to its response schema."""
    return RequestResponse(
        id=request.id,
        kind=RequestKind(request.kind),
        internal_id=request.internal_id,
        status=RequestStatus(request.status),
        submitted_by=request.submitted_by,
        created_by=request.created_by,
        supervisor=request.supervisor,
        employee_identifier=request.employee_identifier,
        employee_email=request.employee_email,
        payment=request.payment,
        payout_request=request.payout_request,
        hours=request.hours,
        reason=request.reason,
        date=request.date,
        work_start_time=request.work_start_time,
        work_end_time=request.work_end_time,
        scheduled_day_off=request.scheduled_day_off,
        submitted_at=request.submitted_at,
        supervisor_approved_at=request.supervisor_approved_at,
        supervisor_approved_by=request.supervisor_approved_by,
        supervisor_final_approval=request.supervisor_final_approval,
        plant_manager_approved_at=request.plant_manager_approved_at,
        plant_manager_approved_by=request.plant_manager_approved_by,
        approved_at=request.approved_at,
        approved_by=request.approved_by,
        rejected_at=request.rejected_at,
        rejected_by=request.rejected_by,
        rejection_reason=request.rejection_reason,
        accounted_at=request.accounted_at,
        accounted_by=request.accounted_by,
        cancelled_at=request.cancelled_at,
        cancelled_by=request.cancelled_by,
        cancellation_reason=request.cancellation_reason,
        payout_converted_at=request.payout_converted_at,
        payout_converted_by=request.payout_converted_by,
        edited_at=request.edited_at,
        edited_by=request.edited_by,
        correction_history=[CorrectionHistoryEntry.model_validate(e) for e in request.correction_history],
    )


async def _persist_new_request(
    session: AsyncSession,
    auth: AuthContext,
    request: OvertimeRequest,
) -> None:
    session.add(request)
    await session.flush()
    await write_audit_log(
        session,
        actor=auth.identity,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(request),
    )
    await session.commit()
    logger.info("%s %s filed by %s", request.kind, request.internal_id, auth.identity)


async def compute_balance(session: AsyncSession, identity: str) -> float:
    """Sum of submission hours that still count (not cancelled or rejected)."""
    result = await session.execute(
        select(func.coalesce(func.sum(col(OvertimeRequest.hours)), 0.0)).where(
            col(OvertimeRequest.kind) == RequestKind.SUBMISSION.value,
            col(OvertimeRequest.submitted_by) == identity,
            col(OvertimeRequest.status).not_in([s.value for s in NON_COUNTING_STATUSES]),
        )
    )
    return float(result.scalar_one())


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    request: OvertimeRequest,
    reason: str | None,
) -> None:
    """Withdraw an undecided request on behalf of whoever filed it."""
    caps = await capabilities_for(session, auth, request)
    if not caps.cancel:
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    status = RequestStatus(request.status)
    if status not in OPEN_STATUSES:
        raise WorkflowError(ErrorKind.CANNOT_CANCEL)

    values = {
        "status": RequestStatus.CANCELLED.value,
        "cancelled_at": now_utc(),
        "cancelled_by": auth.identity,
        "cancellation_reason": reason,
    }
    await transition(session, request, auth, expected=status, values=values, action=AuditAction.CANCEL)
    logger.info("%s %s cancelled by %s", request.kind, request.internal_id, auth.identity)


def normalize_cancel_reason(kind: RequestKind, reason: str | None) -> str | None:
    """Orders need a cancellation reason; for submissions it is optional."""
    reason = reason.strip() if reason else None
    if kind == RequestKind.ORDER and not reason:
        raise WorkflowError(ErrorKind.REASON_REQUIRED)
    return reason or None


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@server_action("insertOrder")
async def insert_order(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateOrderPayload,
    employee_identifier: str,
) -> ActionResult:
    """File an overtime order on behalf of an employee.

    The filing manager becomes the order's supervisor and their approval is
    implied: time-off orders are approved at once, payout orders wait for the
    plant manager.
    """
    if not auth.has(Role.MANAGER, Role.LEADER, Role.ADMIN):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    employee = await get_employee_directory().get_by_identifier(employee_identifier)
    if employee is None:
        raise WorkflowError(ErrorKind.EMPLOYEE_NOT_FOUND)

    internal_id = await next_internal_id(session, RequestKind.ORDER)
    now = now_utc()
    me = auth.identity
    request = OvertimeRequest(
        kind=RequestKind.ORDER.value,
        internal_id=internal_id,
        submitted_by=employee.email or employee.identifier,
        created_by=me,
        supervisor=me,
        employee_identifier=employee.identifier,
        employee_email=employee.email,
        payment=payload.payment,
        hours=payload.hours,
        reason=payload.reason,
        scheduled_day_off=None if payload.payment else payload.scheduled_day_off,
        work_start_time=payload.work_start_time,
        work_end_time=payload.work_end_time,
        submitted_at=now,
        supervisor_approved_at=now,
        supervisor_approved_by=me,
    )
    if payload.payment:
        request.status = RequestStatus.PENDING_PLANT_MANAGER.value
    else:
        request.status = RequestStatus.APPROVED.value
        request.approved_at = now
        request.approved_by = me

    await _persist_new_request(session, auth, request)

    delivered = await notify(
        employee.email,
        notification_params(request, NotificationTemplate.CREATION, actor=me),
    )
    if delivered:
        request.email_notification_sent = True
        await session.commit()
    return ActionResult(success="inserted", id=request.id)


@server_action("insertSubmission")
async def insert_submission(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateSubmissionPayload,
) -> ActionResult:
    """Record the caller's own overtime (or time taken off) for one day."""
    internal_id = await next_internal_id(session, RequestKind.SUBMISSION)
    request = OvertimeRequest(
        kind=RequestKind.SUBMISSION.value,
        internal_id=internal_id,
        status=RequestStatus.PENDING.value,
        submitted_by=auth.identity,
        created_by=auth.identity,
        supervisor=payload.supervisor,
        hours=payload.hours,
        reason=payload.reason,
        date=payload.date,
    )
    await _persist_new_request(session, auth, request)
    return ActionResult(success="inserted", id=request.id)


@server_action("insertPayoutRequest")
async def insert_payout_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: PayoutRequestPayload,
) -> ActionResult:
    """Ask for accrued overtime to be paid out.

    Stored as a submission with negative hours, so it draws down the balance
    while it is pending.
    """
    balance = await compute_balance(session, auth.identity)
    if payload.hours > balance:
        raise WorkflowError(ErrorKind.EXCEEDS_BALANCE)
    if balance <= 0:
        raise WorkflowError(ErrorKind.NO_BALANCE)

    internal_id = await next_internal_id(session, RequestKind.SUBMISSION)
    request = OvertimeRequest(
        kind=RequestKind.SUBMISSION.value,
        internal_id=internal_id,
        status=RequestStatus.PENDING.value,
        submitted_by=auth.identity,
        created_by=auth.identity,
        supervisor=payload.supervisor,
        hours=-payload.hours,
        reason=payload.reason,
        date=local_today(),
        payout_request=True,
        payment=True,
    )
    await _persist_new_request(session, auth, request)
    return ActionResult(success="inserted", id=request.id)


# ---------------------------------------------------------------------------
# Cancellation and deletion
# ---------------------------------------------------------------------------


@server_action("cancel")
async def cancel(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    request_id: uuid.UUID,
    reason: str | None = None,
) -> ActionResult:
    reason = normalize_cancel_reason(kind, reason)
    request = await load_request(session, kind, request_id)
    await cancel_request(session, auth, request, reason)
    return ActionResult(success="cancelled")


@server_action("delete")
async def delete(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    request_id: uuid.UUID,
) -> ActionResult:
    """Hard-delete a request. Admins only; settled requests are kept."""
    if not auth.has(Role.ADMIN):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)
    request = await load_request(session, kind, request_id)
    status = RequestStatus(request.status)
    if status == RequestStatus.ACCOUNTED:
        raise WorkflowError(ErrorKind.INVALID_STATUS)

    before = model_to_audit_dict(request)
    result = await session.execute(
        sa_delete(OvertimeRequest)
        .where(
            col(OvertimeRequest.id) == request.id,
            col(OvertimeRequest.status) == status.value,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        raise WorkflowError(ErrorKind.INVALID_STATUS)
    session.expunge(request)

    await write_audit_log(
        session,
        actor=auth.identity,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=AuditAction.DELETE,
        before_json=before,
    )
    await session.commit()
    logger.info("%s %s deleted by %s", request.kind, request.internal_id, auth.identity)
    return ActionResult(success="deleted")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_request(
    session: AsyncSession,
    kind: RequestKind,
    request_id: uuid.UUID,
) -> RequestResponse:
    """Fetch one request. Raises ``not found``."""
    return _build_request_response(await load_request(session, kind, request_id))


async def list_requests(
    session: AsyncSession,
    kind: RequestKind,
    *,
    status: RequestStatus | None = None,
    submitted_by: str | None = None,
    supervisor: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """List requests of one kind, newest first."""
    filters = [col(OvertimeRequest.kind) == kind.value]
    if status is not None:
        filters.append(col(OvertimeRequest.status) == status.value)
    if submitted_by is not None:
        filters.append(col(OvertimeRequest.submitted_by) == submitted_by)
    if supervisor is not None:
        filters.append(col(OvertimeRequest.supervisor) == supervisor)

    count_result = await session.execute(select(func.count()).select_from(OvertimeRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(OvertimeRequest)
        .where(*filters)
        .order_by(col(OvertimeRequest.submitted_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())
    return RequestListResponse(items=[_build_request_response(r) for r in requests], total=total)


async def get_balance(session: AsyncSession, identity: str) -> BalanceResponse:
    return BalanceResponse(identity=identity, balance=await compute_balance(session, identity))
