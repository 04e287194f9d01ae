from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the stub directory."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    manager: str | None = Field(default=None, max_length=200)


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    identifier: str
    first_name: str
    last_name: str
    email: str | None
    manager: str | None


class EmployeeListResponse(BaseModel):
    """List of employees."""

    items: list[EmployeeResponse]
    total: int
