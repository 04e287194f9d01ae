"""Bulk operations over many requests of one kind.

Each item goes through the same guards and transition as its single-item
counterpart and is committed on its own. Items the caller may not act on are
skipped; the batch fails only when nothing at all could be applied.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from overtime.exceptions import WorkflowError
from overtime.models.enums import ErrorKind, RequestKind, Role
from overtime.models.request import OvertimeRequest
from overtime.schemas.request import BulkResult
from overtime.services.actions import server_action
from overtime.services.approval import (
    approve_request,
    mark_request_as_accounted,
    reject_request,
    require_reason,
)
from overtime.services.request import cancel_request, normalize_cancel_reason

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.schemas.auth import AuthContext
    from overtime.schemas.quota import SupervisorQuotaResponse

logger = logging.getLogger(__name__)

# Stored on orders cancelled in bulk without a reason.
BULK_CANCEL_REASON = "Bulk cancellation"


async def _load_targets(
    session: AsyncSession,
    kind: RequestKind,
    ids: list[uuid.UUID],
) -> list[OvertimeRequest]:
    """Fetch the requested items once, in input order, dropping unknown IDs."""
    result = await session.execute(
        select(OvertimeRequest).where(
            col(OvertimeRequest.id).in_(ids),
            col(OvertimeRequest.kind) == kind.value,
        )
    )
    by_id = {request.id: request for request in result.scalars().all()}
    return [by_id[request_id] for request_id in dict.fromkeys(ids) if request_id in by_id]


async def _apply_each(
    session: AsyncSession,
    kind: RequestKind,
    ids: list[uuid.UUID],
    operation: str,
    apply: Callable[[OvertimeRequest], Awaitable[None]],
) -> BulkResult:
    count = 0
    for request in await _load_targets(session, kind, ids):
        try:
            await apply(request)
        except WorkflowError as exc:
            logger.debug("Skipping %s %s in bulk %s: %s", kind, request.id, operation, exc.kind)
            continue
        count += 1

    if count == 0:
        empty = ErrorKind.NO_ELIGIBLE_ORDERS if kind == RequestKind.ORDER else ErrorKind.NO_VALID_SUBMISSIONS
        raise WorkflowError(empty)
    logger.info("Bulk %s applied to %d of %d %s request(s)", operation, count, len(ids), kind)
    return BulkResult(success=operation, count=count, total=len(ids))


@server_action("bulkApprove", BulkResult)
async def bulk_approve(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    ids: list[uuid.UUID],
) -> BulkResult:
    """Approve every eligible request.

    The caller's quota is read once and then tracked in memory, so payouts
    approved earlier in the batch count against later ones.
    """
    quota: SupervisorQuotaResponse | None = None

    async def _approve(request: OvertimeRequest) -> None:
        nonlocal quota
        _, quota = await approve_request(session, auth, request, quota)

    return await _apply_each(session, kind, ids, "approved", _approve)


@server_action("bulkReject", BulkResult)
async def bulk_reject(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    ids: list[uuid.UUID],
    reason: str,
) -> BulkResult:
    reason = require_reason(reason)

    async def _reject(request: OvertimeRequest) -> None:
        await reject_request(session, auth, request, reason)

    return await _apply_each(session, kind, ids, "rejected", _reject)


@server_action("bulkMarkAsAccounted", BulkResult)
async def bulk_mark_as_accounted(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    ids: list[uuid.UUID],
) -> BulkResult:
    if not auth.has(Role.HR, Role.ADMIN):
        raise WorkflowError(ErrorKind.UNAUTHORIZED)

    async def _account(request: OvertimeRequest) -> None:
        await mark_request_as_accounted(session, auth, request)

    return await _apply_each(session, kind, ids, "accounted", _account)


@server_action("bulkCancel", BulkResult)
async def bulk_cancel(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    ids: list[uuid.UUID],
    reason: str | None = None,
) -> BulkResult:
    if kind == RequestKind.ORDER and not (reason and reason.strip()):
        reason = BULK_CANCEL_REASON
    reason = normalize_cancel_reason(kind, reason)

    async def _cancel(request: OvertimeRequest) -> None:
        await cancel_request(session, auth, request, reason)

    return await _apply_each(session, kind, ids, "cancelled", _cancel)
