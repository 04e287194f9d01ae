"""Tests for the approval state machine: approve, reject, account, convert and day off."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING

import pytest
from conftest import ADMIN, EMPLOYEE, HR, OTHER_EMPLOYEE, PLANT_MANAGER, SUPERVISOR, make_auth
from sqlalchemy import select, update
from sqlmodel import col

from overtime.exceptions import WorkflowError
from overtime.models.audit import AuditLog
from overtime.models.enums import ApprovalStage, ErrorKind, NotificationTemplate, RequestKind, RequestStatus
from overtime.models.request import OvertimeRequest
from overtime.services import approval

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.services.notifications import InMemoryNotifier

    MakeRequest = Callable[..., Awaitable[OvertimeRequest]]


async def _audit_actions(session: AsyncSession, entity_id: uuid.UUID) -> list[str]:
    result = await session.execute(
        select(col(AuditLog.action)).where(col(AuditLog.entity_id) == entity_id).order_by(col(AuditLog.created_at))
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# approve
# ---------------------------------------------------------------------------


async def test_supervisor_approves_submission(
    db_session: AsyncSession,
    make_request: MakeRequest,
    notifier: InMemoryNotifier,
) -> None:
    request = await make_request()

    result = await approval.approve(db_session, make_auth(SUPERVISOR), RequestKind.SUBMISSION, request.id)

    assert result.ok
    assert result.success == "approved"
    assert request.status == RequestStatus.APPROVED
    assert request.approved_by == SUPERVISOR
    assert request.approved_at is not None
    assert request.edited_at is None
    sent = notifier.sent_to(EMPLOYEE)
    assert len(sent) == 1
    assert sent[0].template == NotificationTemplate.APPROVAL
    assert sent[0].stage == ApprovalStage.FINAL
    assert await _audit_actions(db_session, request.id) == ["APPROVE"]


async def test_hr_approves_any_submission(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(supervisor=OTHER_EMPLOYEE)
    result = await approval.approve(db_session, make_auth(HR, "hr"), RequestKind.SUBMISSION, request.id)
    assert result.success == "approved"


async def test_unrelated_user_cannot_approve(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await approval.approve(db_session, make_auth(OTHER_EMPLOYEE), RequestKind.SUBMISSION, request.id)
    assert result.error == "unauthorized"
    assert request.status == RequestStatus.PENDING


async def test_external_supervisor_cannot_approve(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    auth = make_auth(SUPERVISOR, "external-overtime-user")
    result = await approval.approve(db_session, auth, RequestKind.SUBMISSION, request.id)
    assert result.error == "unauthorized"


async def test_latest_supervisor_may_approve_older_request(
    db_session: AsyncSession,
    make_request: MakeRequest,
) -> None:
    older = await make_request(supervisor=OTHER_EMPLOYEE)
    # The employee's newest submission names a new supervisor.
    await make_request()

    result = await approval.approve(db_session, make_auth(SUPERVISOR), RequestKind.SUBMISSION, older.id)

    assert result.success == "approved"


async def test_approve_is_not_repeatable(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    auth = make_auth(SUPERVISOR)

    first = await approval.approve(db_session, auth, RequestKind.SUBMISSION, request.id)
    second = await approval.approve(db_session, auth, RequestKind.SUBMISSION, request.id)

    assert first.success == "approved"
    assert second.error == "invalid status"
    assert await _audit_actions(db_session, request.id) == ["APPROVE"]


async def test_approve_unknown_request(db_session: AsyncSession) -> None:
    result = await approval.approve(db_session, make_auth(ADMIN, "admin"), RequestKind.ORDER, uuid.uuid4())
    assert result.error == "not found"


async def test_approve_wrong_kind_is_not_found(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await approval.approve(db_session, make_auth(ADMIN, "admin"), RequestKind.ORDER, request.id)
    assert result.error == "not found"


async def test_approve_checks_status_before_permission(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.REJECTED)
    result = await approval.approve(db_session, make_auth(OTHER_EMPLOYEE), RequestKind.SUBMISSION, request.id)
    assert result.error == "invalid status"


async def test_stale_status_loses_race(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    # Another actor cancels it after we read it.
    await db_session.execute(
        update(OvertimeRequest)
        .where(col(OvertimeRequest.id) == request.id)
        .values(status=RequestStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()
    assert request.status == RequestStatus.PENDING

    with pytest.raises(WorkflowError) as exc_info:
        await approval.approve_request(db_session, make_auth(SUPERVISOR), request)
    assert exc_info.value.kind == ErrorKind.INVALID_STATUS


async def test_plant_manager_approves_payout_directly(db_session: AsyncSession, make_request: MakeRequest) -> None:
    payout = await make_request(hours=-4, payout_request=True, payment=True)

    result = await approval.approve(
        db_session, make_auth(PLANT_MANAGER, "plant-manager"), RequestKind.SUBMISSION, payout.id
    )

    assert result.success == "approved"
    assert payout.supervisor_approved_by == PLANT_MANAGER
    assert payout.plant_manager_approved_by == PLANT_MANAGER
    assert payout.supervisor_final_approval is False


async def test_supervisor_cannot_give_second_stage(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    auth = make_auth(SUPERVISOR, "production-manager")
    result = await approval.approve(db_session, auth, RequestKind.ORDER, order.id)
    assert result.error == "unauthorized"


async def test_escalation_notifies_supervisor_stage(
    db_session: AsyncSession,
    make_request: MakeRequest,
    notifier: InMemoryNotifier,
) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True)
    await approval.approve(db_session, make_auth(SUPERVISOR, "production-manager"), RequestKind.ORDER, order.id)
    sent = notifier.sent_to(EMPLOYEE)
    assert sent[-1].stage == ApprovalStage.SUPERVISOR


async def test_approval_survives_notifier_failure(
    db_session: AsyncSession,
    make_request: MakeRequest,
    notifier: InMemoryNotifier,
) -> None:
    async def _broken(to: str, params: object) -> None:
        raise ConnectionError("smtp down")

    notifier.send = _broken  # type: ignore[method-assign]
    request = await make_request()

    result = await approval.approve(db_session, make_auth(SUPERVISOR), RequestKind.SUBMISSION, request.id)

    assert result.success == "approved"
    assert request.status == RequestStatus.APPROVED


# ---------------------------------------------------------------------------
# reject
# ---------------------------------------------------------------------------


async def test_admin_rejects_pending_request(
    db_session: AsyncSession,
    make_request: MakeRequest,
    notifier: InMemoryNotifier,
) -> None:
    request = await make_request()

    result = await approval.reject(
        db_session, make_auth(ADMIN, "admin"), RequestKind.SUBMISSION, request.id, "insufficient justification"
    )

    assert result.success == "rejected"
    assert request.status == RequestStatus.REJECTED
    assert request.rejection_reason == "insufficient justification"
    assert request.rejected_by == ADMIN
    sent = notifier.sent_to(EMPLOYEE)
    assert [n.template for n in sent] == [NotificationTemplate.REJECTION]
    assert sent[0].reason == "insufficient justification"


async def test_reject_requires_reason(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await approval.reject(db_session, make_auth(SUPERVISOR), RequestKind.SUBMISSION, request.id, "   ")
    assert result.error == "reason required"
    assert request.status == RequestStatus.PENDING


async def test_reject_approved_is_invalid(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.APPROVED)
    result = await approval.reject(db_session, make_auth(ADMIN, "admin"), RequestKind.SUBMISSION, request.id, "late")
    assert result.error == "invalid status"


async def test_order_supervisor_may_reject_escalated_order(
    db_session: AsyncSession,
    make_request: MakeRequest,
) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    result = await approval.reject(db_session, make_auth(SUPERVISOR), RequestKind.ORDER, order.id, "budget")
    assert result.success == "rejected"


async def test_submission_supervisor_cannot_reject_escalated_payout(
    db_session: AsyncSession,
    make_request: MakeRequest,
) -> None:
    payout = await make_request(
        hours=-4, payout_request=True, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER
    )
    result = await approval.reject(db_session, make_auth(SUPERVISOR), RequestKind.SUBMISSION, payout.id, "budget")
    assert result.error == "unauthorized"


async def test_plant_manager_rejects_escalated_payout(db_session: AsyncSession, make_request: MakeRequest) -> None:
    payout = await make_request(
        hours=-4, payout_request=True, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER
    )
    result = await approval.reject(
        db_session, make_auth(PLANT_MANAGER, "plant-manager"), RequestKind.SUBMISSION, payout.id, "budget"
    )
    assert result.success == "rejected"


# ---------------------------------------------------------------------------
# markAsAccounted
# ---------------------------------------------------------------------------


async def test_hr_marks_approved_as_accounted(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.APPROVED)

    result = await approval.mark_as_accounted(db_session, make_auth(HR, "hr"), RequestKind.SUBMISSION, request.id)

    assert result.success == "accounted"
    assert request.status == RequestStatus.ACCOUNTED
    assert request.accounted_by == HR


async def test_accounting_requires_hr(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.APPROVED)
    result = await approval.mark_as_accounted(
        db_session, make_auth(SUPERVISOR, "production-manager"), RequestKind.SUBMISSION, request.id
    )
    assert result.error == "unauthorized"


async def test_accounting_pending_is_invalid(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await approval.mark_as_accounted(db_session, make_auth(HR, "hr"), RequestKind.SUBMISSION, request.id)
    assert result.error == "invalid status"


async def test_accounted_is_terminal(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.ACCOUNTED)
    admin = make_auth(ADMIN, "admin")
    assert (await approval.approve(db_session, admin, RequestKind.SUBMISSION, request.id)).error == "invalid status"
    assert (await approval.reject(db_session, admin, RequestKind.SUBMISSION, request.id, "x")).error == (
        "invalid status"
    )
    assert (await approval.mark_as_accounted(db_session, admin, RequestKind.SUBMISSION, request.id)).error == (
        "invalid status"
    )


# ---------------------------------------------------------------------------
# convertToPayout
# ---------------------------------------------------------------------------


async def test_plant_manager_converts_approved_submission(
    db_session: AsyncSession,
    make_request: MakeRequest,
) -> None:
    request = await make_request(status=RequestStatus.APPROVED)

    result = await approval.convert_to_payout(db_session, make_auth(PLANT_MANAGER, "plant-manager"), request.id)

    assert result.success == "converted"
    assert request.payment is True
    assert request.payout_converted_by == PLANT_MANAGER
    assert request.status == RequestStatus.APPROVED


async def test_convert_requires_plant_manager(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.APPROVED)
    result = await approval.convert_to_payout(db_session, make_auth(HR, "hr"), request.id)
    assert result.error == "unauthorized"


async def test_convert_twice_is_invalid(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.APPROVED)
    auth = make_auth(ADMIN, "admin")
    await approval.convert_to_payout(db_session, auth, request.id)
    result = await approval.convert_to_payout(db_session, auth, request.id)
    assert result.error == "invalid status"


async def test_convert_pending_is_invalid(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await approval.convert_to_payout(db_session, make_auth(ADMIN, "admin"), request.id)
    assert result.error == "invalid status"


# ---------------------------------------------------------------------------
# supervisorSetScheduledDayOff
# ---------------------------------------------------------------------------


async def test_supervisor_schedules_day_off(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    day_off = approval.local_today() + timedelta(days=3)

    result = await approval.supervisor_set_scheduled_day_off(
        db_session, make_auth(SUPERVISOR), order.id, day_off, "no payout budget"
    )

    assert result.success == "approved"
    assert order.status == RequestStatus.APPROVED
    assert order.payment is False
    assert order.scheduled_day_off == day_off
    assert order.edited_by == SUPERVISOR
    (entry,) = order.correction_history
    assert entry["reason"] == "no payout budget"
    assert entry["status_changed"] == {"from": "pending-plant-manager", "to": "approved"}
    assert entry["changes"]["payment"] == {"from": True, "to": False}
    assert entry["changes"]["scheduled_day_off"] == {"from": None, "to": day_off.isoformat()}


async def test_day_off_today_is_allowed(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    result = await approval.supervisor_set_scheduled_day_off(
        db_session, make_auth(SUPERVISOR), order.id, approval.local_today(), "swap"
    )
    assert result.success == "approved"


async def test_day_off_in_past_is_invalid(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    result = await approval.supervisor_set_scheduled_day_off(
        db_session, make_auth(SUPERVISOR), order.id, date(2000, 1, 1), "swap"
    )
    assert result.error == "invalid date"


async def test_day_off_requires_reason(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    result = await approval.supervisor_set_scheduled_day_off(
        db_session, make_auth(SUPERVISOR), order.id, approval.local_today(), ""
    )
    assert result.error == "reason required"


async def test_day_off_only_for_supervisor(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)
    result = await approval.supervisor_set_scheduled_day_off(
        db_session, make_auth(ADMIN, "admin"), order.id, approval.local_today(), "swap"
    )
    assert result.error == "unauthorized"


async def test_day_off_requires_escalated_order(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True)
    result = await approval.supervisor_set_scheduled_day_off(
        db_session, make_auth(SUPERVISOR), order.id, approval.local_today(), "swap"
    )
    assert result.error == "invalid status"
