# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from overtime.api.deps import AuthDep, unwrap
from overtime.db import SessionDep
from overtime.models.enums import RequestKind, RequestStatus
from overtime.schemas.request import (
    ActionResult,
    BulkCancelPayload,
    BulkPayload,
    BulkRejectPayload,
    BulkResult,
    CancelPayload,
    CreateOrderPayload,
    OrderCorrectionPayload,
    RejectPayload,
    RequestListResponse,
    RequestResponse,
    ScheduleDayOffPayload,
)
from overtime.services import approval, bulk, correction
from overtime.services import request as request_service

orders_router = APIRouter(prefix="/orders", tags=["orders"])

_KIND = RequestKind.ORDER


@orders_router.post("", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def insert_order(
    payload: CreateOrderPayload,
    session: SessionDep,
    auth: AuthDep,
    employee_identifier: str = Query(min_length=1),
) -> ActionResult:
    """File an overtime order for an employee (managers, leaders, admins)."""
    return unwrap(await request_service.insert_order(session, auth, payload, employee_identifier))


@orders_router.get("", response_model=RequestListResponse)
async def list_orders(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    submitted_by: str | None = Query(default=None),
    supervisor: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List overtime orders with optional filters."""
    return await request_service.list_requests(
        session,
        _KIND,
        status=status_filter,
        submitted_by=submitted_by,
        supervisor=supervisor,
        offset=offset,
        limit=limit,
    )


# Bulk routes are registered before the "/{request_id}" routes they would
# otherwise be shadowed by.


@orders_router.post("/bulk/approve", response_model=BulkResult)
async def bulk_approve(payload: BulkPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_approve(session, auth, _KIND, payload.ids))


@orders_router.post("/bulk/reject", response_model=BulkResult)
async def bulk_reject(payload: BulkRejectPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_reject(session, auth, _KIND, payload.ids, payload.reason))


@orders_router.post("/bulk/account", response_model=BulkResult)
async def bulk_mark_as_accounted(payload: BulkPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_mark_as_accounted(session, auth, _KIND, payload.ids))


@orders_router.post("/bulk/cancel", response_model=BulkResult)
async def bulk_cancel(payload: BulkCancelPayload, session: SessionDep, auth: AuthDep) -> BulkResult:
    return unwrap(await bulk.bulk_cancel(session, auth, _KIND, payload.ids, payload.reason))


@orders_router.get("/{request_id}", response_model=RequestResponse)
async def get_order(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Get a single overtime order."""
    return await request_service.get_request(session, _KIND, request_id)


@orders_router.post("/{request_id}/approve", response_model=ActionResult)
async def approve_order(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Approve an order; payout orders may be escalated to the plant manager."""
    return unwrap(await approval.approve(session, auth, _KIND, request_id))


@orders_router.post("/{request_id}/reject", response_model=ActionResult)
async def reject_order(
    request_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    return unwrap(await approval.reject(session, auth, _KIND, request_id, payload.reason))


@orders_router.post("/{request_id}/account", response_model=ActionResult)
async def mark_order_as_accounted(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Mark an approved order as settled (HR, admins)."""
    return unwrap(await approval.mark_as_accounted(session, auth, _KIND, request_id))


@orders_router.post("/{request_id}/cancel", response_model=ActionResult)
async def cancel_order(
    request_id: uuid.UUID,
    payload: CancelPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    """Withdraw an undecided order. A reason is required."""
    return unwrap(await request_service.cancel(session, auth, _KIND, request_id, payload.reason))


@orders_router.post("/{request_id}/correct", response_model=ActionResult)
async def correct_order(
    request_id: uuid.UUID,
    payload: OrderCorrectionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    return unwrap(await correction.correct_order(session, auth, request_id, payload))


@orders_router.post("/{request_id}/scheduled-day-off", response_model=ActionResult)
async def set_scheduled_day_off(
    request_id: uuid.UUID,
    payload: ScheduleDayOffPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ActionResult:
    """Settle an escalated payout order as a day off (supervisor only)."""
    return unwrap(
        await approval.supervisor_set_scheduled_day_off(
            session, auth, request_id, payload.scheduled_day_off, payload.reason
        )
    )


@orders_router.delete("/{request_id}", response_model=ActionResult)
async def delete_order(request_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ActionResult:
    """Hard-delete an order (admin only)."""
    return unwrap(await request_service.delete(session, auth, _KIND, request_id))
