from pydantic import BaseModel, Field


class EmployeeReminderPayload(BaseModel):
    """Request body for reminding an employee of their overtime balance."""

    employee_email: str = Field(min_length=1, max_length=255)
    note: str | None = Field(default=None, max_length=2000)


class SupervisorNotificationPayload(BaseModel):
    """Request body for telling a supervisor about an employee's balance."""

    supervisor_email: str = Field(min_length=1, max_length=255)
    employee_email: str = Field(min_length=1, max_length=255)
    note: str | None = Field(default=None, max_length=2000)
