from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EmployeeInfo(BaseModel):
    """Employee record from the plant's employee directory."""

    identifier: str  # badge / personnel number
    first_name: str
    last_name: str
    email: str | None = None
    manager: str | None = None  # full name of the direct manager

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Interface for the employee directory."""

    async def get_by_identifier(self, identifier: str) -> EmployeeInfo | None:
        """Fetch an employee by identifier. Returns None if not found."""
        ...

    async def get_by_email(self, email: str) -> EmployeeInfo | None:
        """Fetch an employee by email (case-insensitive). Returns None if not found."""
        ...

    async def count_subordinates(self, manager_name: str) -> int:
        """Count employees whose manager is ``manager_name``."""
        ...

    async def list_employees(self) -> list[EmployeeInfo]:
        """All employees in the directory."""
        ...


class InMemoryEmployeeDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[str, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.identifier] = employee

    async def get_by_identifier(self, identifier: str) -> EmployeeInfo | None:
        """Fetch an employee by identifier. Returns None if not found."""
        return self._employees.get(identifier)

    async def get_by_email(self, email: str) -> EmployeeInfo | None:
        """Fetch an employee by email (case-insensitive). Returns None if not found."""
        wanted = email.lower()
        for employee in self._employees.values():
            if employee.email is not None and employee.email.lower() == wanted:
                return employee
        return None

    async def count_subordinates(self, manager_name: str) -> int:
        """Count employees whose manager is ``manager_name``."""
        return sum(1 for e in self._employees.values() if e.manager == manager_name)

    async def list_employees(self) -> list[EmployeeInfo]:
        """All employees in the directory, ordered by identifier."""
        return [self._employees[k] for k in sorted(self._employees)]


_employee_directory: EmployeeDirectory = InMemoryEmployeeDirectory()


def get_employee_directory() -> EmployeeDirectory:
    """FastAPI dependency for the employee directory."""
    return _employee_directory


def set_employee_directory(directory: EmployeeDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _employee_directory
    _employee_directory = directory
