"""Outbound notification collaborator.

Delivery is fire-and-forget: events are published after the balance
mutation has committed and a delivery failure is logged, never raised.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from leave_engine.schemas.notification import AdjustmentEvent, StatusChangeEvent

if TYPE_CHECKING:
    import uuid

    from leave_engine.models.enums import LeaveApplicationStatus

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationService(Protocol):
    """Interface for the notification delivery service."""

    async def publish_status_change(self, event: StatusChangeEvent) -> None: ...

    async def publish_adjustment(self, event: AdjustmentEvent) -> None: ...


class LoggingNotificationService:
    """Default sink: writes events to the log."""

    async def publish_status_change(self, event: StatusChangeEvent) -> None:
        logger.info("Application %s is now %s", event.application_id, event.new_status.value)

    async def publish_adjustment(self, event: AdjustmentEvent) -> None:
        logger.info("Balance %s adjusted by %+.2f: %s", event.balance_id, event.delta, event.reason)


class InMemoryNotificationService:
    """Records events for inspection in tests."""

    def __init__(self) -> None:
        self.status_changes: list[StatusChangeEvent] = []
        self.adjustments: list[AdjustmentEvent] = []

    async def publish_status_change(self, event: StatusChangeEvent) -> None:
        self.status_changes.append(event)

    async def publish_adjustment(self, event: AdjustmentEvent) -> None:
        self.adjustments.append(event)


_notification_service: NotificationService = LoggingNotificationService()


def get_notification_service() -> NotificationService:
    return _notification_service


def set_notification_service(service: NotificationService) -> None:
    """Override the service (for testing or production wiring)."""
    global _notification_service
    _notification_service = service


async def notify_status_change(application_id: uuid.UUID, new_status: LeaveApplicationStatus) -> None:
    """Publish a status-change event, swallowing delivery failures."""
    event = StatusChangeEvent(application_id=application_id, new_status=new_status)
    try:
        await get_notification_service().publish_status_change(event)
    except Exception:
        logger.exception("Failed to publish status change for application %s", application_id)


async def notify_adjustment(balance_id: uuid.UUID, delta: float, reason: str) -> None:
    """Publish an adjustment event, swallowing delivery failures."""
    event = AdjustmentEvent(balance_id=balance_id, delta=delta, reason=reason)
    try:
        await get_notification_service().publish_adjustment(event)
    except Exception:
        logger.exception("Failed to publish adjustment for balance %s", balance_id)
