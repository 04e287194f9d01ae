"""Fire-and-forget email notifications.

Notifications are sent only after the transition they describe has been
committed. A failing notifier is logged and never turns a persisted
transition into an error.
"""

# ruff: noqa: TC003
from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from overtime.config import get_settings
from overtime.models.enums import ApprovalStage, NotificationTemplate, RequestKind

logger = logging.getLogger(__name__)

_KIND_PATHS = {
    RequestKind.ORDER: "individual-overtime-orders",
    RequestKind.SUBMISSION: "overtime-submissions",
}


class NotificationParams(BaseModel):
    """Structured template parameters handed to the notifier."""

    template: NotificationTemplate
    request_id: uuid.UUID | None = None
    internal_id: str | None = None
    kind: RequestKind | None = None
    request_url: str | None = None
    stage: ApprovalStage | None = None
    actor: str | None = None
    hours: float | None = None
    payment: bool | None = None
    date: dt.date | None = None
    scheduled_day_off: dt.date | None = None
    work_start_time: dt.datetime | None = None
    work_end_time: dt.datetime | None = None
    reason: str | None = None
    changes: dict[str, Any] | None = None
    status_changed: dict[str, Any] | None = None
    employee: str | None = None
    total_hours: float | None = None
    note: str | None = None


class SentNotification(BaseModel):
    """A notification captured by the in-memory notifier."""

    to: str
    params: NotificationParams


@runtime_checkable
class Notifier(Protocol):
    """Interface for the email notifier."""

    async def send(self, to: str, params: NotificationParams) -> None:
        """Deliver one notification. May raise on transport failure."""
        ...


class InMemoryNotifier:
    """In-memory stub that records notifications instead of mailing them."""

    def __init__(self) -> None:
        self.sent: list[SentNotification] = []

    async def send(self, to: str, params: NotificationParams) -> None:
        """Record the notification."""
        self.sent.append(SentNotification(to=to, params=params))

    def sent_to(self, recipient: str) -> list[NotificationParams]:
        """Notifications recorded for one recipient, oldest first."""
        return [n.params for n in self.sent if n.to == recipient]


_notifier: Notifier = InMemoryNotifier()


def get_notifier() -> Notifier:
    """FastAPI dependency for the notifier."""
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    """Override the notifier (for testing or production wiring)."""
    global _notifier
    _notifier = notifier


def request_url(kind: RequestKind, request_id: uuid.UUID) -> str:
    """Link to a request's detail page in the web client."""
    base = get_settings().base_url.rstrip("/")
    return f"{base}/pl/{_KIND_PATHS[kind]}/{request_id}"


async def notify(to: str | None, params: NotificationParams) -> bool:
    """Send a notification, logging instead of raising on failure.

    Returns True when the notifier accepted the message.
    """
    if not to:
        return False
    try:
        await get_notifier().send(to, params)
    except Exception:
        logger.exception("Failed to send %s notification to %s", params.template, to)
        return False
    return True
