"""Corrections: audited edits of a request after it was filed.

Each correction appends one entry to the request's correction history holding
only the fields whose values actually changed. Corrections may also cancel a
request, and for submissions a correction of a cancelled entry restores it.
"""

# ruff: noqa: TC003
from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import TYPE_CHECKING, Any

from overtime.exceptions import WorkflowError
from overtime.models.base import now_utc
from overtime.models.enums import (
    AuditAction,
    ErrorKind,
    NotificationTemplate,
    RequestKind,
    RequestStatus,
)
from overtime.schemas.request import ActionResult, CorrectionHistoryEntry, FieldChange, StatusChange
from overtime.services.actions import server_action
from overtime.services.approval import load_request, notification_params, recipient_for, transition
from overtime.services.notifications import notify
from overtime.services.permissions import capabilities_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.models.request import OvertimeRequest
    from overtime.schemas.auth import AuthContext
    from overtime.schemas.request import OrderCorrectionPayload, SubmissionCorrectionPayload

logger = logging.getLogger(__name__)

ORDER_CORRECTABLE_FIELDS = (
    "supervisor",
    "hours",
    "reason",
    "payment",
    "scheduled_day_off",
    "work_start_time",
    "work_end_time",
)
SUBMISSION_CORRECTABLE_FIELDS = ("supervisor", "date", "hours", "reason")

# Columns that cannot be cleared by a correction.
_NOT_NULLABLE = frozenset({"supervisor", "hours", "payment"})


def _comparable(value: Any) -> Any:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if isinstance(value, dt.datetime) and value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value


def diff_fields(
    request: OvertimeRequest,
    new_values: dict[str, Any],
    fields: tuple[str, ...],
) -> dict[str, FieldChange]:
    """Field-level diff between ``request`` and ``new_values``.

    Fields missing from ``new_values`` are left out, as are fields whose new
    value equals the stored one.
    """
    changes: dict[str, FieldChange] = {}
    for field in fields:
        if field not in new_values:
            continue
        old, new = getattr(request, field), new_values[field]
        if new is None and field in _NOT_NULLABLE:
            continue
        if _comparable(old) != _comparable(new):
            changes[field] = FieldChange(from_=old, to=new)
    return changes


def _check_order_times(request: OvertimeRequest, changes: dict[str, FieldChange]) -> None:
    start = changes["work_start_time"].to if "work_start_time" in changes else request.work_start_time
    end = changes["work_end_time"].to if "work_end_time" in changes else request.work_end_time
    if start is None or end is None:
        return
    duration = _comparable(end) - _comparable(start)
    if not dt.timedelta(hours=1) <= duration <= dt.timedelta(hours=24):
        raise WorkflowError(ErrorKind.INVALID_DATE)


def _next_status(
    request: OvertimeRequest,
    mark_as_cancelled: bool,
) -> RequestStatus:
    current = RequestStatus(request.status)
    if mark_as_cancelled:
        return RequestStatus.CANCELLED
    # Only submissions come back from a cancellation; orders stay cancelled.
    if current == RequestStatus.CANCELLED and request.kind == RequestKind.SUBMISSION:
        return RequestStatus.PENDING
    return current


async def _correct(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    request_id: uuid.UUID,
    new_values: dict[str, Any],
    reason: str,
    mark_as_cancelled: bool,
) -> ActionResult:
    request = await load_request(session, kind, request_id)
    status = RequestStatus(request.status)
    if status == RequestStatus.ACCOUNTED:
        raise WorkflowError(ErrorKind.CANNOT_CORRECT_ACCOUNTED)

    caps = await capabilities_for(session, auth, request)
    if status not in caps.correction_statuses:
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    if not reason.strip():
        raise WorkflowError(ErrorKind.REASON_REQUIRED)

    fields = ORDER_CORRECTABLE_FIELDS if kind == RequestKind.ORDER else SUBMISSION_CORRECTABLE_FIELDS
    changes = diff_fields(request, new_values, fields)
    if kind == RequestKind.ORDER:
        _check_order_times(request, changes)

    now = now_utc()
    new_status = _next_status(request, mark_as_cancelled)
    status_changed = None if new_status == status else StatusChange(from_=status, to=new_status)
    entry = CorrectionHistoryEntry(
        corrected_at=now,
        corrected_by=auth.identity,
        reason=reason.strip(),
        status_changed=status_changed,
        changes=changes,
    )

    values: dict[str, Any] = {field: change.to for field, change in changes.items()}
    values.update(
        status=new_status.value,
        edited_at=now,
        edited_by=auth.identity,
        correction_history=[*request.correction_history, entry.to_json()],
    )
    if status_changed is not None and new_status == RequestStatus.CANCELLED:
        values.update(cancelled_at=now, cancelled_by=auth.identity)
    elif status_changed is not None and status == RequestStatus.CANCELLED:
        values.update(cancelled_at=None, cancelled_by=None, cancellation_reason=None)

    await transition(session, request, auth, expected=status, values=values, action=AuditAction.CORRECT)
    logger.info(
        "%s %s corrected by %s (%d field(s) changed)",
        request.kind,
        request.internal_id,
        auth.identity,
        len(changes),
    )

    # The employee the request is about hears of every correction but their own.
    recipient = recipient_for(request)
    if recipient != auth.identity:
        history = entry.to_json()
        await notify(
            recipient,
            notification_params(
                request,
                NotificationTemplate.CORRECTION,
                actor=auth.identity,
                reason=entry.reason,
                changes=history["changes"],
                status_changed=history.get("status_changed"),
            ),
        )
    return ActionResult(success="corrected")


@server_action("correctOrder")
async def correct_order(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: OrderCorrectionPayload,
) -> ActionResult:
    """Correct an order, optionally cancelling it."""
    return await _correct(
        session,
        auth,
        RequestKind.ORDER,
        request_id,
        payload.data.model_dump(exclude_unset=True),
        payload.reason,
        payload.mark_as_cancelled,
    )


@server_action("correctSubmission")
async def correct_submission(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: SubmissionCorrectionPayload,
) -> ActionResult:
    """Correct a submission, optionally cancelling it.

    Correcting a cancelled submission without ``mark_as_cancelled`` puts it
    back to ``pending``.
    """
    return await _correct(
        session,
        auth,
        RequestKind.SUBMISSION,
        request_id,
        payload.data.model_dump(exclude_unset=True),
        payload.reason,
        payload.mark_as_cancelled,
    )
