"""Public operation boundary.

Every workflow operation returns a tagged ``ActionResult`` instead of raising.
Permission and state violations surface as ``WorkflowError`` from inside the
operation; unexpected storage faults are logged and reported under a generic
``"<operation> server action error"`` tag.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from overtime.exceptions import WorkflowError
from overtime.schemas.request import ActionResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=ActionResult)


def server_action(
    name: str,
    result_type: type[ResultT] = ActionResult,  # type: ignore[assignment]
) -> Callable[[Callable[..., Awaitable[ResultT]]], Callable[..., Awaitable[ResultT]]]:
    """Wrap an operation taking ``session`` first so errors become tagged results."""

    def decorator(func: Callable[..., Awaitable[ResultT]]) -> Callable[..., Awaitable[ResultT]]:
        @functools.wraps(func)
        async def wrapper(session: AsyncSession, *args: Any, **kwargs: Any) -> ResultT:
            try:
                return await func(session, *args, **kwargs)
            except WorkflowError as exc:
                return result_type(error=exc.kind.value)
            except SQLAlchemyError:
                logger.exception("%s failed", name)
                await session.rollback()
                return result_type(error=f"{name} server action error")

        return wrapper

    return decorator
