"""Tests for creating, cancelling, deleting and reading overtime requests."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from conftest import ADMIN, EMPLOYEE, HR, OTHER_EMPLOYEE, SUPERVISOR, make_auth
from sqlalchemy import func, select
from sqlmodel import col

from overtime.exceptions import WorkflowError
from overtime.models.audit import AuditLog
from overtime.models.enums import ErrorKind, NotificationTemplate, RequestKind, RequestStatus
from overtime.models.request import OvertimeRequest
from overtime.schemas.request import CreateOrderPayload, CreateSubmissionPayload, PayoutRequestPayload
from overtime.services import request as request_service
from overtime.services.approval import local_today

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.services.notifications import InMemoryNotifier

    MakeRequest = Callable[..., Awaitable[OvertimeRequest]]


def _order_payload(**overrides: object) -> CreateOrderPayload:
    values: dict[str, object] = {
        "hours": 4,
        "reason": "inventory",
        "payment": False,
        "scheduled_day_off": date.today() + timedelta(days=7),
        "work_start_time": datetime(2025, 6, 2, 14, 0, tzinfo=UTC),
        "work_end_time": datetime(2025, 6, 2, 18, 0, tzinfo=UTC),
    }
    values.update(overrides)
    return CreateOrderPayload(**values)  # type: ignore[arg-type]


def _submission_payload(hours: float = 2.0) -> CreateSubmissionPayload:
    return CreateSubmissionPayload(supervisor=SUPERVISOR, date=date.today(), hours=hours, reason="late delivery")


async def _count_requests(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(OvertimeRequest))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# insertOrder
# ---------------------------------------------------------------------------


async def test_insert_time_off_order_is_approved(
    db_session: AsyncSession,
    notifier: InMemoryNotifier,
) -> None:
    result = await request_service.insert_order(
        db_session, make_auth(SUPERVISOR, "production-manager"), _order_payload(), "2001"
    )

    assert result.success == "inserted"
    order = await db_session.get(OvertimeRequest, result.id)
    assert order is not None
    assert order.kind == RequestKind.ORDER
    assert order.status == RequestStatus.APPROVED
    assert order.supervisor == SUPERVISOR
    assert order.created_by == SUPERVISOR
    assert order.employee_email == EMPLOYEE
    assert order.supervisor_approved_by == SUPERVISOR
    assert order.approved_by == SUPERVISOR
    assert order.email_notification_sent is True
    assert [n.template for n in notifier.sent_to(EMPLOYEE)] == [NotificationTemplate.CREATION]


async def test_insert_payout_order_waits_for_plant_manager(db_session: AsyncSession) -> None:
    payload = _order_payload(payment=True, scheduled_day_off=None)

    result = await request_service.insert_order(db_session, make_auth(SUPERVISOR, "group-leader"), payload, "2001")

    order = await db_session.get(OvertimeRequest, result.id)
    assert order is not None
    assert order.status == RequestStatus.PENDING_PLANT_MANAGER
    assert order.approved_at is None
    assert order.supervisor_approved_at is not None


async def test_insert_order_for_employee_without_email(
    db_session: AsyncSession,
    notifier: InMemoryNotifier,
) -> None:
    result = await request_service.insert_order(db_session, make_auth(ADMIN, "admin"), _order_payload(), "2003")

    order = await db_session.get(OvertimeRequest, result.id)
    assert order is not None
    assert order.employee_email is None
    assert order.email_notification_sent is False
    assert notifier.sent == []


async def test_insert_order_requires_manager(db_session: AsyncSession) -> None:
    result = await request_service.insert_order(db_session, make_auth(HR, "hr"), _order_payload(), "2001")
    assert result.error == "unauthorized"
    assert await _count_requests(db_session) == 0


async def test_insert_order_unknown_employee(db_session: AsyncSession) -> None:
    result = await request_service.insert_order(db_session, make_auth(ADMIN, "admin"), _order_payload(), "9999")
    assert result.error == "employee not found"


async def test_orders_get_sequential_internal_ids(db_session: AsyncSession) -> None:
    auth = make_auth(SUPERVISOR, "production-manager")
    first = await request_service.insert_order(db_session, auth, _order_payload(), "2001")
    second = await request_service.insert_order(db_session, auth, _order_payload(), "2002")

    ids = []
    for result in (first, second):
        order = await db_session.get(OvertimeRequest, result.id)
        assert order is not None
        ids.append(order.internal_id)
    suffix = f"{local_today().year % 100:02d}"
    assert ids == [f"1/{suffix}", f"2/{suffix}"]


# ---------------------------------------------------------------------------
# insertSubmission / insertPayoutRequest
# ---------------------------------------------------------------------------


async def test_insert_submission(db_session: AsyncSession) -> None:
    result = await request_service.insert_submission(db_session, make_auth(EMPLOYEE), _submission_payload())

    submission = await db_session.get(OvertimeRequest, result.id)
    assert submission is not None
    assert submission.status == RequestStatus.PENDING
    assert submission.submitted_by == EMPLOYEE
    assert submission.supervisor == SUPERVISOR
    assert submission.payout_request is False

    audit = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == submission.id))
    assert [a.action for a in audit.scalars().all()] == ["CREATE"]


async def test_payout_exceeding_balance_is_refused(db_session: AsyncSession, make_request: MakeRequest) -> None:
    await make_request(hours=3.0, status=RequestStatus.APPROVED)

    result = await request_service.insert_payout_request(
        db_session, make_auth(EMPLOYEE), PayoutRequestPayload(supervisor=SUPERVISOR, hours=4)
    )

    assert result.error == "exceeds_balance"
    assert await _count_requests(db_session) == 1


async def test_payout_with_empty_balance_is_refused(db_session: AsyncSession, make_request: MakeRequest) -> None:
    # Balance is exactly zero, so even the smallest payout exceeds it.
    await make_request(hours=2.0)
    await make_request(hours=-2.0)
    result = await request_service.insert_payout_request(
        db_session, make_auth(EMPLOYEE), PayoutRequestPayload(supervisor=SUPERVISOR, hours=0.5)
    )
    assert result.error == "exceeds_balance"


async def test_payout_request_is_stored_negative(db_session: AsyncSession, make_request: MakeRequest) -> None:
    await make_request(hours=6.0, status=RequestStatus.APPROVED)

    result = await request_service.insert_payout_request(
        db_session, make_auth(EMPLOYEE), PayoutRequestPayload(supervisor=SUPERVISOR, hours=4, reason="holiday")
    )

    payout = await db_session.get(OvertimeRequest, result.id)
    assert payout is not None
    assert payout.hours == -4
    assert payout.payout_request is True
    assert payout.payment is True
    assert payout.status == RequestStatus.PENDING
    assert await request_service.compute_balance(db_session, EMPLOYEE) == 2


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------


async def test_balance_excludes_cancelled_and_rejected(db_session: AsyncSession, make_request: MakeRequest) -> None:
    await make_request(hours=4.0, status=RequestStatus.APPROVED)
    await make_request(hours=2.5)
    await make_request(hours=-1.0, status=RequestStatus.ACCOUNTED)
    await make_request(hours=8.0, status=RequestStatus.CANCELLED)
    await make_request(hours=8.0, status=RequestStatus.REJECTED)
    # Other people's hours and orders do not count.
    await make_request(hours=5.0, submitted_by=OTHER_EMPLOYEE)
    await make_request(kind=RequestKind.ORDER, hours=5.0)

    assert await request_service.compute_balance(db_session, EMPLOYEE) == 5.5


async def test_balance_of_unknown_identity_is_zero(db_session: AsyncSession) -> None:
    assert await request_service.compute_balance(db_session, "ghost@example.com") == 0


# ---------------------------------------------------------------------------
# cancel
# ---------------------------------------------------------------------------


async def test_submitter_cancels_pending_submission(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()

    result = await request_service.cancel(db_session, make_auth(EMPLOYEE), RequestKind.SUBMISSION, request.id)

    assert result.success == "cancelled"
    assert request.status == RequestStatus.CANCELLED
    assert request.cancelled_by == EMPLOYEE


async def test_only_requester_may_cancel(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await request_service.cancel(db_session, make_auth(ADMIN, "admin"), RequestKind.SUBMISSION, request.id)
    assert result.error == "unauthorized"


async def test_cancel_approved_is_refused(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.APPROVED)
    result = await request_service.cancel(db_session, make_auth(EMPLOYEE), RequestKind.SUBMISSION, request.id)
    assert result.error == "cannot cancel"


async def test_cancel_order_requires_reason(db_session: AsyncSession, make_request: MakeRequest) -> None:
    order = await make_request(kind=RequestKind.ORDER, payment=True, status=RequestStatus.PENDING_PLANT_MANAGER)

    missing = await request_service.cancel(db_session, make_auth(SUPERVISOR), RequestKind.ORDER, order.id)
    done = await request_service.cancel(db_session, make_auth(SUPERVISOR), RequestKind.ORDER, order.id, "moved")

    assert missing.error == "reason required"
    assert done.success == "cancelled"
    assert order.cancellation_reason == "moved"


async def test_cancel_request_raises_for_stale_status(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.REJECTED)
    with pytest.raises(WorkflowError) as exc_info:
        await request_service.cancel_request(db_session, make_auth(EMPLOYEE), request, None)
    assert exc_info.value.kind == ErrorKind.CANNOT_CANCEL


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


async def test_admin_deletes_request(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.REJECTED)

    result = await request_service.delete(db_session, make_auth(ADMIN, "admin"), RequestKind.SUBMISSION, request.id)

    assert result.success == "deleted"
    assert await db_session.get(OvertimeRequest, request.id) is None
    audit = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == request.id))
    (entry,) = audit.scalars().all()
    assert entry.action == "DELETE"
    assert entry.before_json is not None
    assert entry.after_json is None


async def test_delete_requires_admin(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request()
    result = await request_service.delete(db_session, make_auth(HR, "hr"), RequestKind.SUBMISSION, request.id)
    assert result.error == "unauthorized"


async def test_delete_accounted_is_refused(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(status=RequestStatus.ACCOUNTED)
    result = await request_service.delete(db_session, make_auth(ADMIN, "admin"), RequestKind.SUBMISSION, request.id)
    assert result.error == "invalid status"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def test_get_request_not_found(db_session: AsyncSession) -> None:
    with pytest.raises(WorkflowError) as exc_info:
        await request_service.get_request(db_session, RequestKind.SUBMISSION, uuid.uuid4())
    assert exc_info.value.kind == ErrorKind.NOT_FOUND


async def test_get_request(db_session: AsyncSession, make_request: MakeRequest) -> None:
    request = await make_request(hours=3.5)
    response = await request_service.get_request(db_session, RequestKind.SUBMISSION, request.id)
    assert response.id == request.id
    assert response.hours == 3.5
    assert response.status == RequestStatus.PENDING
    assert response.correction_history == []


async def test_list_requests_filters(db_session: AsyncSession, make_request: MakeRequest) -> None:
    await make_request()
    await make_request(status=RequestStatus.APPROVED)
    await make_request(submitted_by=OTHER_EMPLOYEE)
    await make_request(kind=RequestKind.ORDER)

    everything = await request_service.list_requests(db_session, RequestKind.SUBMISSION)
    pending = await request_service.list_requests(db_session, RequestKind.SUBMISSION, status=RequestStatus.PENDING)
    mine = await request_service.list_requests(db_session, RequestKind.SUBMISSION, submitted_by=EMPLOYEE)
    page = await request_service.list_requests(db_session, RequestKind.SUBMISSION, limit=1)

    assert everything.total == 3
    assert pending.total == 2
    assert mine.total == 2
    assert page.total == 3
    assert len(page.items) == 1
