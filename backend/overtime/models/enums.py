from __future__ import annotations

import enum


class RequestKind(enum.StrEnum):
    """Which workflow a request belongs to."""

    ORDER = "ORDER"
    SUBMISSION = "SUBMISSION"


class RequestStatus(enum.StrEnum):
    """State machine for overtime requests."""

    PENDING = "pending"
    PENDING_PLANT_MANAGER = "pending-plant-manager"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACCOUNTED = "accounted"
    CANCELLED = "cancelled"


# Statuses that still wait for a decision; only these may be rejected or cancelled.
OPEN_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.PENDING_PLANT_MANAGER})

# Statuses excluded from an employee's overtime balance.
NON_COUNTING_STATUSES = frozenset({RequestStatus.CANCELLED, RequestStatus.REJECTED})


class Role(enum.StrEnum):
    """Closed set of roles the workflow understands."""

    ADMIN = "admin"
    HR = "hr"
    PLANT_MANAGER = "plant-manager"
    MANAGER = "manager"
    LEADER = "leader"
    EXTERNAL_OVERTIME_USER = "external-overtime-user"


class ApprovalStage(enum.StrEnum):
    """Stage reported to the employee in approval notifications."""

    SUPERVISOR = "supervisor"
    FINAL = "final"


class ErrorKind(enum.StrEnum):
    """Tagged errors returned across the public operation boundary."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not found"
    INVALID_STATUS = "invalid status"
    REASON_REQUIRED = "reason required"
    INVALID_DATE = "invalid date"
    CANNOT_CANCEL = "cannot cancel"
    CANNOT_CORRECT_ACCOUNTED = "cannot correct accounted"
    EXCEEDS_BALANCE = "exceeds_balance"
    NO_BALANCE = "no_balance"
    DUPLICATE_CONFIG = "duplicate config"
    EMPLOYEE_NOT_FOUND = "employee not found"
    NO_ELIGIBLE_ORDERS = "no eligible orders found"
    NO_VALID_SUBMISSIONS = "no valid submissions"


class NotificationTemplate(enum.StrEnum):
    """Email template the notifier should render."""

    CREATION = "CREATION"
    APPROVAL = "APPROVAL"
    REJECTION = "REJECTION"
    CORRECTION = "CORRECTION"
    EMPLOYEE_REMINDER = "EMPLOYEE_REMINDER"
    SUPERVISOR_NOTIFICATION = "SUPERVISOR_NOTIFICATION"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    CONFIG = "CONFIG"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    SUPERVISOR_APPROVE = "SUPERVISOR_APPROVE"
    REJECT = "REJECT"
    ACCOUNT = "ACCOUNT"
    CANCEL = "CANCEL"
    CORRECT = "CORRECT"
    CONVERT_TO_PAYOUT = "CONVERT_TO_PAYOUT"
    SCHEDULE_DAY_OFF = "SCHEDULE_DAY_OFF"
