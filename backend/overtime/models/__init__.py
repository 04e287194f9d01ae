from sqlmodel import SQLModel

from overtime.models.audit import AuditLog
from overtime.models.base import UUIDBase
from overtime.models.config import OvertimeConfig
from overtime.models.counter import IdCounter
from overtime.models.enums import (
    ApprovalStage,
    AuditAction,
    AuditEntityType,
    ErrorKind,
    NotificationTemplate,
    RequestKind,
    RequestStatus,
    Role,
)
from overtime.models.request import OvertimeRequest

__all__ = [
    "ApprovalStage",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "ErrorKind",
    "IdCounter",
    "NotificationTemplate",
    "OvertimeConfig",
    "OvertimeRequest",
    "RequestKind",
    "RequestStatus",
    "Role",
    "SQLModel",
    "UUIDBase",
]
