# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class CreateConfigPayload(BaseModel):
    """Request body for adding a configuration value."""

    key: str = Field(min_length=1, max_length=100)
    value: float


class UpdateConfigPayload(BaseModel):
    """Request body for changing a configuration value."""

    value: float


class ConfigResponse(BaseModel):
    """Response schema for a configuration value."""

    id: uuid.UUID
    key: str
    value: float
    updated_at: datetime
    updated_by: str
