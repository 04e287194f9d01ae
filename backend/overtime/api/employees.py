from __future__ import annotations

from fastapi import APIRouter

from overtime.api.deps import AdminDep, AuthDep
from overtime.exceptions import AppError
from overtime.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from overtime.services.employee import EmployeeInfo, get_employee_directory

employees_router = APIRouter(prefix="/employees", tags=["employees"])


def _build_employee_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        identifier=employee.identifier,
        first_name=employee.first_name,
        last_name=employee.last_name,
        email=employee.email,
        manager=employee.manager,
    )


@employees_router.put(
    "/{identifier}",
    response_model=EmployeeResponse,
)
async def upsert_employee(
    identifier: str,
    payload: UpsertEmployeeRequest,
    auth: AdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub directory (admin only)."""
    directory = get_employee_directory()
    employee = EmployeeInfo(
        identifier=identifier,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        manager=payload.manager,
    )
    directory.seed(employee)  # ty: ignore[unresolved-attribute]
    return _build_employee_response(employee)


@employees_router.get(
    "/{identifier}",
    response_model=EmployeeResponse,
)
async def get_employee(
    identifier: str,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get employee info from the directory."""
    employee = await get_employee_directory().get_by_identifier(identifier)
    if employee is None:
        raise AppError("Employee not found", status_code=404)
    return _build_employee_response(employee)


@employees_router.get(
    "",
    response_model=EmployeeListResponse,
)
async def list_employees(
    auth: AuthDep,
) -> EmployeeListResponse:
    """List all employees in the directory."""
    employees = await get_employee_directory().list_employees()
    items = [_build_employee_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))
