# ruff: noqa: TC003
from __future__ import annotations

import datetime as dt
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from overtime.models.base import UUIDBase, now_utc
from overtime.models.enums import RequestKind, RequestStatus

_TZ_DATETIME = sa.DateTime(timezone=True)


class OvertimeRequest(UUIDBase, table=True):
    """An overtime order or submission with its approval workflow state.

    Orders are filed by a manager for an employee and carry a work time range.
    Submissions are filed by the employee for a single day; payout requests are
    submissions with negative hours that withdraw from the accrued balance.
    """

    __tablename__ = "overtime_request"
    __table_args__ = (
        sa.Index("ix_overtime_request_kind_status", "kind", "status"),
        sa.Index("ix_overtime_request_kind_submitter", "kind", "submitted_by", "submitted_at"),
        sa.UniqueConstraint("kind", "internal_id", name="uq_overtime_request_internal_id"),
    )

    kind: str = Field(max_length=20)
    internal_id: str = Field(max_length=32)
    status: str = Field(default=RequestStatus.PENDING, max_length=50, index=True)

    submitted_by: str = Field(max_length=255, index=True)
    created_by: str = Field(max_length=255)
    supervisor: str = Field(max_length=255, index=True)
    employee_identifier: str | None = Field(default=None, max_length=64)
    employee_email: str | None = Field(default=None, max_length=255)

    payment: bool = False
    payout_request: bool = False
    hours: float
    reason: str | None = None

    date: dt.date | None = Field(default=None, sa_type=sa.Date)
    work_start_time: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    work_end_time: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    scheduled_day_off: dt.date | None = Field(default=None, sa_type=sa.Date)

    submitted_at: dt.datetime = Field(default_factory=now_utc, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    supervisor_approved_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    supervisor_approved_by: str | None = Field(default=None, max_length=255)
    supervisor_final_approval: bool = False
    plant_manager_approved_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    plant_manager_approved_by: str | None = Field(default=None, max_length=255)
    approved_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    approved_by: str | None = Field(default=None, max_length=255)
    rejected_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    rejected_by: str | None = Field(default=None, max_length=255)
    rejection_reason: str | None = None
    accounted_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    accounted_by: str | None = Field(default=None, max_length=255)
    cancelled_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    cancelled_by: str | None = Field(default=None, max_length=255)
    cancellation_reason: str | None = None
    payout_converted_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    payout_converted_by: str | None = Field(default=None, max_length=255)
    edited_at: dt.datetime | None = Field(default=None, sa_type=_TZ_DATETIME)  # ty: ignore[invalid-argument-type]
    edited_by: str | None = Field(default=None, max_length=255)

    email_notification_sent: bool = False
    correction_history: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)

    @property
    def requires_dual_approval(self) -> bool:
        """Payouts need supervisor and plant-manager sign-off (or quota fast-path)."""
        if self.kind == RequestKind.SUBMISSION:
            return self.payout_request
        return self.payment

    @property
    def payout_hours(self) -> float:
        """Hours counted against a supervisor quota (payout requests are negative)."""
        return abs(self.hours)
