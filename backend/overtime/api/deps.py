# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated, TypeVar

from fastapi import Depends, Header, status

from overtime.exceptions import AppError, status_code_for
from overtime.models.enums import Role
from overtime.schemas.auth import AuthContext, parse_roles
from overtime.schemas.request import ActionResult

ResultT = TypeVar("ResultT", bound=ActionResult)


async def get_auth_context(
    x_user_email: str = Header(min_length=1),
    x_roles: str = Header(default=""),
) -> AuthContext:
    """Extract dev auth context from request headers.

    ``X-Roles`` is a comma-separated list of identity-provider role names.
    """
    return AuthContext(identity=x_user_email.strip(), roles=parse_roles(x_roles.split(",")))


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.has(Role.ADMIN):
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


def unwrap(result: ResultT) -> ResultT:
    """Turn an error result into an HTTP error; pass successes through."""
    if result.error is not None:
        raise AppError(result.error, status_code=status_code_for(result.error))
    return result
