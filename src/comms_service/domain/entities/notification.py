from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Notification:
    id: UUID
    recipient_id: int
    type: str
    title: str
    message: str
    priority: str
    action_url: str | None
    read: bool
    created_at: datetime
    read_at: datetime | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NotificationPreferences:
    user_id: int
    toast_enabled: bool = True
    desktop_enabled: bool = False
    updated_at: datetime | None = None
