"""Human-readable internal IDs of the form ``N/YY``.

Each (kind, year) pair has a counter row that is locked and incremented in the
caller's transaction. The first ID of a year seeds the counter from IDs already
stored, so rows created before the counter existed keep their sequence.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from overtime.config import get_settings
from overtime.models.counter import IdCounter
from overtime.models.request import OvertimeRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from overtime.models.enums import RequestKind

logger = logging.getLogger(__name__)


def year_suffix(year: int) -> str:
    return f"{year % 100:02d}"


def format_internal_id(seq: int, year: int) -> str:
    return f"{seq}/{year_suffix(year)}"


def fallback_internal_id(now: datetime, year: int) -> str:
    """Timestamp-based ID used when the counter cannot be read."""
    return f"{int(now.timestamp() * 1000)}/{year_suffix(year)}"


async def _scan_max_sequence(session: AsyncSession, kind: RequestKind, year: int) -> int:
    """Highest ``N`` among stored ``N/YY`` IDs for this kind and year."""
    suffix = year_suffix(year)
    pattern = re.compile(rf"^(\d+)/{suffix}$")
    result = await session.execute(
        select(col(OvertimeRequest.internal_id)).where(
            col(OvertimeRequest.kind) == kind.value,
            col(OvertimeRequest.internal_id).like(f"%/{suffix}"),
        )
    )
    highest = 0
    for internal_id in result.scalars().all():
        match = pattern.match(internal_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


async def _lock_counter(session: AsyncSession, kind: RequestKind, year: int) -> IdCounter | None:
    result = await session.execute(
        select(IdCounter)
        .where(col(IdCounter.kind) == kind.value, col(IdCounter.year) == year)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def _next_sequence(session: AsyncSession, kind: RequestKind, year: int) -> int:
    counter = await _lock_counter(session, kind, year)
    if counter is None:
        seed = await _scan_max_sequence(session, kind, year)
        counter = IdCounter(kind=kind.value, year=year, seq=seed)
        session.add(counter)
        try:
            await session.flush()
        except IntegrityError:
            # Another transaction created this year's counter first.
            await session.rollback()
            counter = await _lock_counter(session, kind, year)
            if counter is None:
                raise

    counter.seq += 1
    await session.flush()
    return counter.seq


async def next_internal_id(
    session: AsyncSession,
    kind: RequestKind,
    now: datetime | None = None,
) -> str:
    """Reserve the next ``N/YY`` ID for ``kind``.

    Must be called before anything else is added to the session: a storage
    error rolls the session back and yields a timestamp ID instead.
    """
    now = now or datetime.now(UTC)
    year = now.astimezone(ZoneInfo(get_settings().timezone)).year
    try:
        seq = await _next_sequence(session, kind, year)
    except SQLAlchemyError:
        logger.exception("Internal ID counter unavailable for %s/%s; using timestamp", kind, year)
        await session.rollback()
        return fallback_internal_id(now, year)
    return format_internal_id(seq, year)
