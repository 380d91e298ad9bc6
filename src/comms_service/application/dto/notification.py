from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from comms_service.domain.entities.notification import Notification
from comms_service.domain.value_objects.enums import (
    NotificationPriority,
    NotificationType,
)


@dataclass(frozen=True, slots=True)
class NotificationFilterDTO:
    type: NotificationType | None = None
    read: bool | None = None
    priority: NotificationPriority | None = None
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True, slots=True)
class NotificationPageDTO:
    items: list[Notification]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass(frozen=True, slots=True)
class NotifyRequestDTO:
    """A domain event already translated into notification terms."""

    recipient_id: int
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_url: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
