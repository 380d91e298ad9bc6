from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from comms_service.api.v1.schemas.common import PageResponse


class NotificationResponse(BaseModel):
    id: UUID
    recipient_id: int
    type: str
    title: str
    message: str
    priority: str
    action_url: str | None
    data: dict[str, Any]
    read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(PageResponse[NotificationResponse]):
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    marked_read: int


class PreferencesResponse(BaseModel):
    user_id: int
    toast_enabled: bool
    desktop_enabled: bool
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class UpdatePreferencesRequest(BaseModel):
    toast_enabled: bool | None = None
    desktop_enabled: bool | None = None
