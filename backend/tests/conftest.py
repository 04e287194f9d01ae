from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from overtime.db import get_session
from overtime.main import app
from overtime.models import SQLModel
from overtime.models.enums import RequestKind, RequestStatus
from overtime.models.request import OvertimeRequest
from overtime.schemas.auth import AuthContext, parse_roles
from overtime.services.employee import (
    EmployeeInfo,
    InMemoryEmployeeDirectory,
    get_employee_directory,
    set_employee_directory,
)
from overtime.services.notifications import InMemoryNotifier, get_notifier, set_notifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

# Shared identities. The supervisor manages both employees in the directory.
SUPERVISOR = "sam.supervisor@example.com"
EMPLOYEE = "eve.employee@example.com"
OTHER_EMPLOYEE = "olaf.other@example.com"
HR = "hanna.hr@example.com"
ADMIN = "ada.admin@example.com"
PLANT_MANAGER = "pia.plant@example.com"


def make_auth(identity: str, *roles: str) -> AuthContext:
    """Build an auth context the way the API does from headers."""
    return AuthContext(identity=identity, roles=parse_roles(roles))


def headers(identity: str, *roles: str) -> dict[str, str]:
    """Dev auth headers for the HTTP client."""
    return {"X-User-Email": identity, "X-Roles": ",".join(roles)}


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite engine with a fresh schema for every test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session; services commit through it as they would in production."""
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def directory() -> Iterator[InMemoryEmployeeDirectory]:
    """Seed the in-memory employee directory for every test."""
    previous = get_employee_directory()
    directory = InMemoryEmployeeDirectory()
    directory.seed(EmployeeInfo(identifier="1001", first_name="Sam", last_name="Supervisor", email=SUPERVISOR))
    directory.seed(
        EmployeeInfo(
            identifier="2001", first_name="Eve", last_name="Employee", email=EMPLOYEE, manager="Sam Supervisor"
        )
    )
    directory.seed(
        EmployeeInfo(
            identifier="2002", first_name="Olaf", last_name="Other", email=OTHER_EMPLOYEE, manager="Sam Supervisor"
        )
    )
    directory.seed(EmployeeInfo(identifier="2003", first_name="Nina", last_name="Nomail", manager="Sam Supervisor"))
    set_employee_directory(directory)
    yield directory
    set_employee_directory(previous)


@pytest.fixture(autouse=True)
def notifier() -> Iterator[InMemoryNotifier]:
    """Capture notifications instead of sending them."""
    previous = get_notifier()
    notifier = InMemoryNotifier()
    set_notifier(notifier)
    yield notifier
    set_notifier(previous)


@pytest.fixture
def make_request(db_session: AsyncSession) -> Callable[..., Awaitable[OvertimeRequest]]:
    """Insert a request row directly, bypassing creation rules.

    Defaults describe a pending time-off submission by ``EMPLOYEE`` supervised
    by ``SUPERVISOR``.
    """
    counter = 0

    async def _make(**fields: Any) -> OvertimeRequest:
        nonlocal counter
        counter += 1
        kind = fields.pop("kind", RequestKind.SUBMISSION)
        values: dict[str, Any] = {
            "kind": kind.value,
            "internal_id": f"{900 + counter}/26",
            "status": RequestStatus.PENDING.value,
            "submitted_by": EMPLOYEE,
            "created_by": EMPLOYEE,
            "supervisor": SUPERVISOR,
            "hours": 2.0,
            "reason": "line changeover",
        }
        if kind == RequestKind.ORDER:
            values.update(created_by=SUPERVISOR, employee_identifier="2001", employee_email=EMPLOYEE)
        values.update(fields)
        if isinstance(values["status"], RequestStatus):
            values["status"] = values["status"].value
        request = OvertimeRequest(**values)
        db_session.add(request)
        await db_session.commit()
        return request

    return _make
