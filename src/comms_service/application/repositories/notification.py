from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from comms_service.application.dto.notification import NotificationFilterDTO
from comms_service.domain.entities.notification import (
    Notification,
    NotificationPreferences,
)


class NotificationReader(Protocol):
    async def get_by_id(self, notification_id: UUID) -> Notification | None: ...

    async def list_for_recipient(
        self, recipient_id: int, filters: NotificationFilterDTO
    ) -> tuple[list[Notification], int]:
        """Return (page, total matching) newest first."""
        ...

    async def count_unread(self, recipient_id: int) -> int: ...


class NotificationWriter(Protocol):
    async def create(self, notification: Notification) -> Notification: ...

    async def mark_read(self, notification_id: UUID, ts: datetime) -> None: ...

    async def mark_all_read(self, recipient_id: int, ts: datetime) -> int: ...

    async def delete(self, notification_id: UUID) -> None: ...


class PreferencesRepository(Protocol):
    async def get(self, user_id: int) -> NotificationPreferences | None: ...

    async def upsert(self, prefs: NotificationPreferences) -> NotificationPreferences: ...
