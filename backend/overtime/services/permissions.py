"""Capability resolution: what a caller may do to one request.

All role checks for the approval workflow live here. Call sites ask the
resolved ``Capabilities`` instead of inspecting roles themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from overtime.models.enums import RequestKind, RequestStatus, Role
from overtime.models.request import OvertimeRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.schemas.auth import AuthContext

_ADMIN_CORRECTABLE = frozenset(RequestStatus) - {RequestStatus.ACCOUNTED}
_REVIEWER_CORRECTABLE = frozenset({RequestStatus.PENDING, RequestStatus.APPROVED})
_AUTHOR_CORRECTABLE = frozenset({RequestStatus.PENDING})


@dataclass(frozen=True)
class Capabilities:
    """Structured permission set of one caller against one request."""

    approve_as_supervisor: bool = False
    approve_as_plant_manager: bool = False
    reject_pending: bool = False
    reject_pending_plant_manager: bool = False
    mark_as_accounted: bool = False
    convert_to_payout: bool = False
    set_scheduled_day_off: bool = False
    cancel: bool = False
    delete: bool = False
    correction_statuses: frozenset[RequestStatus] = frozenset()
    uses_quota: bool = False

    def can_approve(self, status: RequestStatus) -> bool:
        if status == RequestStatus.PENDING:
            return self.approve_as_supervisor
        if status == RequestStatus.PENDING_PLANT_MANAGER:
            return self.approve_as_plant_manager
        return False

    def can_reject(self, status: RequestStatus) -> bool:
        if status == RequestStatus.PENDING:
            return self.reject_pending
        if status == RequestStatus.PENDING_PLANT_MANAGER:
            return self.reject_pending_plant_manager
        return False


def uses_quota(auth: AuthContext) -> bool:
    """Managers and leaders grant final payout approval from a monthly quota."""
    return auth.has(Role.MANAGER, Role.LEADER) and not auth.has(Role.PLANT_MANAGER, Role.ADMIN)


def resolve_capabilities(
    auth: AuthContext,
    request: OvertimeRequest,
    *,
    is_latest_supervisor: bool = False,
) -> Capabilities:
    """Resolve the caller's permissions for ``request``.

    ``is_latest_supervisor`` extends supervisor rights to whoever supervises the
    submitter's most recent request, so a newly assigned supervisor can act on
    older requests that still name the previous one.
    """
    is_order = request.kind == RequestKind.ORDER
    is_external = auth.has(Role.EXTERNAL_OVERTIME_USER)
    is_admin = auth.has(Role.ADMIN)
    is_supervisor = request.supervisor == auth.identity or is_latest_supervisor
    # The manager who filed an order is its author.
    is_author = auth.identity == (request.created_by if is_order else request.submitted_by)
    is_requester = auth.identity in (request.submitted_by, request.created_by)

    stage_one = not is_external and (is_supervisor or auth.has(Role.HR, Role.ADMIN))
    stage_two = not is_external and auth.has(Role.PLANT_MANAGER, Role.ADMIN)

    correction_statuses: frozenset[RequestStatus] = frozenset()
    if is_admin:
        correction_statuses |= _ADMIN_CORRECTABLE
    if auth.has(Role.HR) or (not is_order and auth.has(Role.PLANT_MANAGER)):
        correction_statuses |= _REVIEWER_CORRECTABLE
    if is_author or (not is_order and is_supervisor):
        correction_statuses |= _AUTHOR_CORRECTABLE

    return Capabilities(
        approve_as_supervisor=stage_one,
        approve_as_plant_manager=stage_two,
        reject_pending=stage_one,
        reject_pending_plant_manager=stage_two or (is_order and stage_one),
        mark_as_accounted=auth.has(Role.HR, Role.ADMIN),
        convert_to_payout=not is_order and auth.has(Role.PLANT_MANAGER, Role.ADMIN),
        set_scheduled_day_off=is_order and is_supervisor,
        cancel=is_requester,
        delete=is_admin,
        correction_statuses=correction_statuses,
        uses_quota=uses_quota(auth),
    )


async def is_latest_supervisor(
    session: AsyncSession,
    kind: RequestKind,
    submitter: str,
    identity: str,
) -> bool:
    """True when ``identity`` supervises the submitter's most recent request."""
    stmt = (
        select(OvertimeRequest.supervisor)
        .where(col(OvertimeRequest.kind) == kind.value, col(OvertimeRequest.submitted_by) == submitter)
        .order_by(col(OvertimeRequest.submitted_at).desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none() == identity


async def capabilities_for(
    session: AsyncSession,
    auth: AuthContext,
    request: OvertimeRequest,
) -> Capabilities:
    """Resolve capabilities, looking up latest-supervisor status when it matters."""
    latest = False
    if request.supervisor != auth.identity:
        latest = await is_latest_supervisor(session, RequestKind(request.kind), request.submitted_by, auth.identity)
    return resolve_capabilities(auth, request, is_latest_supervisor=latest)
