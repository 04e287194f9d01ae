from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from overtime.models.base import UUIDBase, now_utc


class OvertimeConfig(UUIDBase, table=True):
    """Keyed numeric setting maintained by administrators."""

    __tablename__ = "overtime_config"

    key: str = Field(max_length=100, unique=True)
    value: float
    updated_at: datetime = Field(default_factory=now_utc, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_by: str = Field(max_length=255)
