# ruff: noqa: TC001, TC003
from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from overtime.models.enums import RequestKind, RequestStatus

MAX_ORDER_HOURS = 16
MIN_SUBMISSION_HOURS = -8
MAX_SUBMISSION_HOURS = 16
SUBMISSION_LOOKBACK_DAYS = 7
SUBMISSION_LOOKAHEAD_DAYS = 30


def _check_half_hour_step(hours: float) -> float:
    if (hours * 2) % 1 != 0:
        msg = "hours must be in 0.5 increments"
        raise ValueError(msg)
    return hours


def _check_half_hour_clock(value: dt.datetime | None, field: str) -> None:
    if value is not None and (value.minute not in (0, 30) or value.second or value.microsecond):
        msg = f"{field} must be on the hour or half hour"
        raise ValueError(msg)


def _check_work_range(start: dt.datetime | None, end: dt.datetime | None) -> None:
    if start is None or end is None:
        return
    if end <= start:
        msg = "work_end_time must be after work_start_time"
        raise ValueError(msg)
    duration = end - start
    if duration < dt.timedelta(hours=1):
        msg = "work duration must be at least 1 hour"
        raise ValueError(msg)
    if duration > dt.timedelta(hours=24):
        msg = "work duration cannot exceed 24 hours"
        raise ValueError(msg)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateOrderPayload(BaseModel):
    """Request body for a manager filing an overtime order for an employee."""

    hours: float = Field(ge=0, le=MAX_ORDER_HOURS)
    reason: str | None = None
    payment: bool = False
    scheduled_day_off: dt.date | None = None
    work_start_time: dt.datetime
    work_end_time: dt.datetime

    @field_validator("hours")
    @classmethod
    def _hours_step(cls, value: float) -> float:
        return _check_half_hour_step(value)

    @model_validator(mode="after")
    def _validate_order(self) -> Self:
        _check_half_hour_clock(self.work_start_time, "work_start_time")
        _check_half_hour_clock(self.work_end_time, "work_end_time")
        _check_work_range(self.work_start_time, self.work_end_time)
        if not self.payment and self.scheduled_day_off is None:
            msg = "scheduled_day_off is required unless the order is paid out"
            raise ValueError(msg)
        return self


class CreateSubmissionPayload(BaseModel):
    """Request body for an employee recording overtime for a single day.

    Positive entries must fall within the last week. Negative entries (time
    taken off) may be booked up to a month ahead.
    """

    supervisor: str = Field(min_length=1, max_length=255)
    date: dt.date
    hours: float = Field(ge=MIN_SUBMISSION_HOURS, le=MAX_SUBMISSION_HOURS)
    reason: str | None = None

    @field_validator("hours")
    @classmethod
    def _hours_step(cls, value: float) -> float:
        return _check_half_hour_step(value)

    @model_validator(mode="after")
    def _validate_submission(self) -> Self:
        today = dt.date.today()
        earliest = today - dt.timedelta(days=SUBMISSION_LOOKBACK_DAYS)
        latest = today if self.hours >= 0 else today + dt.timedelta(days=SUBMISSION_LOOKAHEAD_DAYS)
        if not earliest <= self.date <= latest:
            msg = f"date must be between {earliest.isoformat()} and {latest.isoformat()}"
            raise ValueError(msg)
        if self.hours >= 0 and not (self.reason and self.reason.strip()):
            msg = "reason is required for overtime entries"
            raise ValueError(msg)
        return self


class PayoutRequestPayload(BaseModel):
    """Request body for converting accrued overtime into a payout."""

    supervisor: str = Field(min_length=1, max_length=255)
    hours: float = Field(gt=0, le=1000)
    reason: str = ""

    @field_validator("hours")
    @classmethod
    def _hours_step(cls, value: float) -> float:
        return _check_half_hour_step(value)


class OrderCorrectionData(BaseModel):
    """Fields of an order that a correction may change. Unset fields stay as stored."""

    supervisor: str | None = Field(default=None, min_length=1, max_length=255)
    hours: float | None = Field(default=None, ge=0, le=MAX_ORDER_HOURS)
    reason: str | None = None
    payment: bool | None = None
    scheduled_day_off: dt.date | None = None
    work_start_time: dt.datetime | None = None
    work_end_time: dt.datetime | None = None

    @field_validator("hours")
    @classmethod
    def _hours_step(cls, value: float | None) -> float | None:
        return None if value is None else _check_half_hour_step(value)

    @model_validator(mode="after")
    def _validate_times(self) -> Self:
        _check_half_hour_clock(self.work_start_time, "work_start_time")
        _check_half_hour_clock(self.work_end_time, "work_end_time")
        _check_work_range(self.work_start_time, self.work_end_time)
        return self


class SubmissionCorrectionData(BaseModel):
    """Fields of a submission that a correction may change. Unset fields stay as stored."""

    supervisor: str | None = Field(default=None, min_length=1, max_length=255)
    date: dt.date | None = None
    hours: float | None = Field(default=None, ge=MIN_SUBMISSION_HOURS, le=MAX_SUBMISSION_HOURS)
    reason: str | None = None

    @field_validator("hours")
    @classmethod
    def _hours_step(cls, value: float | None) -> float | None:
        return None if value is None else _check_half_hour_step(value)


class OrderCorrectionPayload(BaseModel):
    """Request body for correcting an order."""

    data: OrderCorrectionData = Field(default_factory=OrderCorrectionData)
    reason: str = ""
    mark_as_cancelled: bool = False


class SubmissionCorrectionPayload(BaseModel):
    """Request body for correcting a submission."""

    data: SubmissionCorrectionData = Field(default_factory=SubmissionCorrectionData)
    reason: str = ""
    mark_as_cancelled: bool = False


class RejectPayload(BaseModel):
    """Request body for rejecting a request."""

    reason: str = Field(default="", max_length=1000)


class CancelPayload(BaseModel):
    """Request body for withdrawing a request before it is decided."""

    reason: str | None = Field(default=None, max_length=1000)


class ScheduleDayOffPayload(BaseModel):
    """Request body for a supervisor turning an escalated payout into time off."""

    scheduled_day_off: dt.date
    reason: str = ""


class BulkPayload(BaseModel):
    """Request body for bulk actions."""

    ids: list[uuid.UUID] = Field(min_length=1)


class BulkRejectPayload(BulkPayload):
    """Request body for bulk rejection."""

    reason: str = Field(default="", max_length=1000)


class BulkCancelPayload(BulkPayload):
    """Request body for bulk cancellation. Orders cancelled without a reason get a default one."""

    reason: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Correction history
# ---------------------------------------------------------------------------


class FieldChange(BaseModel):
    """Before/after values of a single corrected field."""

    model_config = ConfigDict(populate_by_name=True)

    from_: Any = Field(default=None, alias="from")
    to: Any = None


class StatusChange(BaseModel):
    """Status transition recorded by a correction."""

    model_config = ConfigDict(populate_by_name=True)

    from_: RequestStatus = Field(alias="from")
    to: RequestStatus


class CorrectionHistoryEntry(BaseModel):
    """One append-only entry of a request's correction history."""

    corrected_at: dt.datetime
    corrected_by: str
    reason: str = Field(min_length=1)
    status_changed: StatusChange | None = None
    changes: dict[str, FieldChange] = Field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        """Serialize for the JSON history column, omitting an absent status change."""
        data = self.model_dump(mode="json", by_alias=True)
        if data["status_changed"] is None:
            del data["status_changed"]
        return data


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    """Response schema for a single overtime order or submission."""

    id: uuid.UUID
    kind: RequestKind
    internal_id: str
    status: RequestStatus
    submitted_by: str
    created_by: str
    supervisor: str
    employee_identifier: str | None
    employee_email: str | None
    payment: bool
    payout_request: bool
    hours: float
    reason: str | None
    date: dt.date | None
    work_start_time: dt.datetime | None
    work_end_time: dt.datetime | None
    scheduled_day_off: dt.date | None
    submitted_at: dt.datetime
    supervisor_approved_at: dt.datetime | None
    supervisor_approved_by: str | None
    supervisor_final_approval: bool
    plant_manager_approved_at: dt.datetime | None
    plant_manager_approved_by: str | None
    approved_at: dt.datetime | None
    approved_by: str | None
    rejected_at: dt.datetime | None
    rejected_by: str | None
    rejection_reason: str | None
    accounted_at: dt.datetime | None
    accounted_by: str | None
    cancelled_at: dt.datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    payout_converted_at: dt.datetime | None
    payout_converted_by: str | None
    edited_at: dt.datetime | None
    edited_by: str | None
    correction_history: list[CorrectionHistoryEntry]


class RequestListResponse(BaseModel):
    """Paginated list of overtime requests."""

    items: list[RequestResponse]
    total: int


class ActionResult(BaseModel):
    """Tagged outcome of a workflow operation: exactly one of success or error."""

    success: str | None = None
    error: str | None = None
    id: uuid.UUID | None = None  # set when the operation created a request

    @property
    def ok(self) -> bool:
        return self.error is None


class BulkResult(ActionResult):
    """Outcome of a bulk operation; partial success is still success."""

    count: int = 0
    total: int = 0


class BalanceResponse(BaseModel):
    """Accrued overtime balance of one employee."""

    identity: str
    balance: float
