from __future__ import annotations

from comms_service.domain.entities.notification import (
    Notification,
    NotificationPreferences,
)
from comms_service.infrastructure.db.models.notification import (
    NotificationModel,
    NotificationPreferencesModel,
)


def model_to_entity(model: NotificationModel) -> Notification:
    return Notification(
        id=model.id,
        recipient_id=model.recipient_id,
        type=model.type,
        title=model.title,
        message=model.message,
        priority=model.priority,
        action_url=model.action_url,
        read=model.read,
        created_at=model.created_at,
        read_at=model.read_at,
        data=dict(model.data or {}),
    )


def entity_to_model(entity: Notification) -> NotificationModel:
    return NotificationModel(
        id=entity.id,
        recipient_id=entity.recipient_id,
        type=entity.type,
        title=entity.title,
        message=entity.message,
        priority=entity.priority,
        action_url=entity.action_url,
        data=entity.data,
        read=entity.read,
        read_at=entity.read_at,
        created_at=entity.created_at,
    )


def prefs_to_entity(model: NotificationPreferencesModel) -> NotificationPreferences:
    return NotificationPreferences(
        user_id=model.user_id,
        toast_enabled=model.toast_enabled,
        desktop_enabled=model.desktop_enabled,
        updated_at=model.updated_at,
    )
