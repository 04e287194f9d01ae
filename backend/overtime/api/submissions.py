# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from overtime.api.deps import AuthDep, unwrap
from overtime.db import SessionDep
from overtime.exceptions import AppError
from overtime.models.enums import RequestKind, RequestStatus, Role
from overtime.schemas.reminder import EmployeeReminderPayload, SupervisorNotificationPayload
from overtime.schemas.request import (
    ActionResult,
    BalanceResponse,
    BulkCancelPayload,
    BulkPayload,
    BulkRejectPayload,
    BulkResult,
    CancelPayload,
    CreateSubmissionPayload,
    PayoutRequestPayload,
    RejectPayload,
    RequestListResponse,
    RequestResponse,
    SubmissionCorrectionPayload,
)
from overtime.services import approval, bulk, correction, reminder
from overtime.services import request as request_service

submissions_router = APIRouter(prefix="/submissions", tags=["submissions"])

_KIND = RequestKind.SUBMISSION


@submissions_router.post("", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def insert_submission(
    payload: CreateSubmissionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    """Record the caller's overtime for one day."""
    return unwrap(await request_service.insert_submission(session, auth, payload))


@submissions_router.post("/payout", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def insert_payout_request(
    payload: PayoutRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    """Ask for accrued overtime to be paid out."""
    return unwrap(await request_service.insert_payout_request(session, auth, payload))


@submissions_router.get("", response_model=RequestListResponse)
async def list_submissions(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    submitted_by: str | None = Query(default=None),
    supervisor: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List overtime submissions with optional filters."""
    return await request_service.list_requests(
        session,
        _KIND,
        status=status_filter,
        submitted_by=submitted_by,
        supervisor=supervisor,
        offset=offset,
        limit=limit,
    )


@submissions_router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    session: SessionDep,
    auth: AuthDep,
    identity: str | None = Query(default=None),
) -> BalanceResponse:
    """Overtime balance of the caller, or of anyone for HR and managers."""
    target = identity or auth.identity
    if target != auth.identity and not auth.has(
        Role.ADMIN, Role.HR, Role.PLANT_MANAGER, Role.MANAGER, Role.LEADER
    ):
        raise AppError("Not allowed to view this balance", status_code=status.HTTP_403_FORBIDDEN)
    return await request_service.get_balance(session, target)


@submissions_router.post("/reminders/employee", response_model=ActionResult)
async def send_employee_reminder(
    payload: EmployeeReminderPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    return unwrap(await reminder.send_employee_reminder(session, auth, payload.employee_email, payload.note))


@submissions_router.post("/reminders/supervisor", response_model=ActionResult)
async def send_supervisor_notification(
    payload: SupervisorNotificationPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    return unwrap(
        await reminder.send_supervisor_notification(
            session, auth, payload.supervisor_email, payload.employee_email, payload.note
        )
    )


@submissions_router.post("/bulk/approve", response_model=BulkResult)
async def bulk_approve(payload: BulkPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_approve(session, auth, _KIND, payload.ids))


@submissions_router.post("/bulk/reject", response_model=BulkResult)
async def bulk_reject(payload: BulkRejectPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_reject(session, auth, _KIND, payload.ids, payload.reason))


@submissions_router.post("/bulk/account", response_model=BulkResult)
async def bulk_mark_as_accounted(payload: BulkPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_mark_as_accounted(session, auth, _KIND, payload.ids))


@submissions_router.post("/bulk/cancel", response_model=BulkResult)
async def bulk_cancel(payload: BulkCancelPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_cancel(session, auth, _KIND, payload.ids, payload.reason))


@submissions_router.get("/{request_id}", response_model=RequestResponse)
async def get_submission(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Get a single overtime submission."""
    return await request_service.get_request(session, _KIND, request_id)


@submissions_router.post("/{request_id}/approve", response_model=ActionResult)
async def approve_submission(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Approve a submission; payout requests may be escalated to the plant manager."""
    return unwrap(await approval.approve(session, auth, _KIND, request_id))


@submissions_router.post("/{request_id}/reject", response_model=ActionResult)
async def reject_submission(
    request_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    return unwrap(await approval.reject(session, auth, _KIND, request_id, payload.reason))


@submissions_router.post("/{request_id}/account", response_model=ActionResult)
async def mark_submission_as_accounted(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Mark an approved submission as settled (HR, admins)."""
    return unwrap(await approval.mark_as_accounted(session, auth, _KIND, request_id))


@submissions_router.post("/{request_id}/cancel", response_model=ActionResult)
async def cancel_submission(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: CancelPayload | None = None,
) -> ActionResult:
    """Withdraw an undecided submission."""
    reason = payload.reason if payload is not None else None
    return unwrap(await request_service.cancel(session, auth, _KIND, request_id, reason))


@submissions_router.post("/{request_id}/correct", response_model=ActionResult)
async def correct_submission(
    request_id: uuid.UUID,
    payload: SubmissionCorrectionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    return unwrap(await correction.correct_submission(session, auth, request_id, payload))


@submissions_router.post("/{request_id}/convert-to-payout", response_model=ActionResult)
async def convert_to_payout(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Pay out an approved time-off submission (plant managers, admins)."""
    return unwrap(await approval.convert_to_payout(session, auth, request_id))


@submissions_router.delete("/{request_id}", response_model=ActionResult)
async def delete_submission(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Hard-delete a submission (admin only)."""
    return unwrap(await request_service.delete(session, auth, _KIND, request_id))
