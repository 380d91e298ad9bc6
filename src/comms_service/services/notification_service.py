"""Notification fan-out: persist first, then push and escalate to live users."""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any

from comms_service.application.dto.notification import (
    NotificationFilterDTO,
    NotificationPageDTO,
)
from comms_service.application.dto.payloads import notification_payload
from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import ValidationError
from comms_service.application.policies.escalation import plan_escalation
from comms_service.application.policies.permissions import assert_notification_owner
from comms_service.application.ports.clock import Clock, SystemClock
from comms_service.application.ports.realtime import EventPusher, OfflineQueue, PresenceReader
from comms_service.application.uow import UnitOfWork
from comms_service.config import settings
from comms_service.domain.entities.notification import (
    Notification,
    NotificationPreferences,
)
from comms_service.domain.value_objects.enums import (
    NotificationPriority,
    NotificationType,
)
from comms_service.infrastructure.ws.protocol import OutboundEvent

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 500


def _validate(
    type_: str, title: str, message: str, priority: str
) -> tuple[NotificationType, NotificationPriority]:
    try:
        n_type = NotificationType(type_)
    except ValueError:
        raise ValidationError(f"Unknown notification type: {type_}") from None
    try:
        n_priority = NotificationPriority(priority)
    except ValueError:
        raise ValidationError(f"Unknown notification priority: {priority}") from None
    if not title.strip() or len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be 1-{TITLE_MAX_LENGTH} characters")
    if not message.strip() or len(message) > MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Message must be 1-{MESSAGE_MAX_LENGTH} characters")
    return n_type, n_priority


async def get_preferences(user_id: int, uow: UnitOfWork) -> NotificationPreferences:
    prefs = await uow.preferences.get(user_id)
    return prefs if prefs is not None else NotificationPreferences(user_id=user_id)


async def update_preferences(
    principal: Principal,
    uow: UnitOfWork,
    *,
    toast_enabled: bool | None = None,
    desktop_enabled: bool | None = None,
) -> NotificationPreferences:
    current = await get_preferences(principal.user_id, uow)
    updated = replace(
        current,
        toast_enabled=current.toast_enabled if toast_enabled is None else toast_enabled,
        desktop_enabled=current.desktop_enabled if desktop_enabled is None else desktop_enabled,
    )
    updated = await uow.preferences.upsert(updated)
    await uow.commit()
    return updated


def escalation_payload(
    notification: Notification, prefs: NotificationPreferences
) -> dict[str, Any] | None:
    plan = plan_escalation(
        NotificationPriority(notification.priority),
        prefs,
        high_auto_dismiss_ms=settings.HIGH_PRIORITY_TOAST_MS,
    )
    if plan is None:
        return None
    return {
        "notification_id": str(notification.id),
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "action_url": notification.action_url,
        **plan.as_payload(),
    }


async def push_notification(
    notification: Notification,
    unread_count: int,
    prefs: NotificationPreferences,
    pusher: EventPusher,
) -> bool:
    """Push one notification (and its escalation, if any) to the recipient's live session."""
    recipient_id = notification.recipient_id
    pushed = await pusher.push_to_user(
        recipient_id,
        OutboundEvent.NEW_NOTIFICATION,
        {"notification": notification_payload(notification), "unread_count": unread_count},
    )
    if not pushed:
        return False
    escalation = escalation_payload(notification, prefs)
    if escalation is not None:
        logger.info(
            "Escalating %s notification %s to user %s via %s",
            notification.priority, notification.id, recipient_id, escalation["channels"],
        )
        await pusher.push_to_user(recipient_id, OutboundEvent.NOTIFICATION_ESCALATION, escalation)
    return True


async def notify(
    recipient_id: int,
    type_: str,
    title: str,
    message: str,
    priority: str,
    uow: UnitOfWork,
    presence: PresenceReader,
    pusher: EventPusher,
    queue: OfflineQueue,
    *,
    action_url: str | None = None,
    data: dict[str, Any] | None = None,
    clock: Clock | None = None,
) -> Notification:
    """Persist a notification and fan it out to the recipient.

    The row is committed before anything is pushed, so the notification is
    retrievable through `list_notifications` whether or not the recipient is
    connected. Escalating notifications for an offline recipient are held in
    the offline queue so the escalation fires on reconnect.
    """
    n_type, n_priority = _validate(type_, title, message, priority)
    notification = Notification(
        id=uuid.uuid4(),
        recipient_id=recipient_id,
        type=n_type,
        title=title.strip(),
        message=message.strip(),
        priority=n_priority,
        action_url=action_url,
        read=False,
        created_at=(clock or SystemClock()).now(),
        data=dict(data or {}),
    )
    notification = await uow.notifications_w.create(notification)
    await uow.commit()

    prefs = await get_preferences(recipient_id, uow)
    unread = await uow.notifications.count_unread(recipient_id)

    async with queue.locked(recipient_id):
        pushed = False
        if presence.is_online(recipient_id):
            pushed = await push_notification(notification, unread, prefs, pusher)
        if not pushed and n_priority.escalates:
            queue.enqueue(recipient_id, notification)

    logger.debug(
        "Notification %s (%s/%s) for user %s %s",
        notification.id, n_type, n_priority, recipient_id,
        "pushed" if pushed else "stored",
    )
    return notification


async def list_notifications(
    principal: Principal,
    filters: NotificationFilterDTO,
    uow: UnitOfWork,
) -> NotificationPageDTO:
    items, total = await uow.notifications.list_for_recipient(principal.user_id, filters)
    return NotificationPageDTO(items=items, total=total, page=filters.page, limit=filters.limit)


async def unread_count(principal: Principal, uow: UnitOfWork) -> int:
    return await uow.notifications.count_unread(principal.user_id)


async def mark_as_read(
    principal: Principal,
    notification_id: uuid.UUID,
    uow: UnitOfWork,
    *,
    clock: Clock | None = None,
) -> Notification:
    notification = assert_notification_owner(
        principal, await uow.notifications.get_by_id(notification_id),
    )
    if notification.read:
        return notification
    now = (clock or SystemClock()).now()
    await uow.notifications_w.mark_read(notification_id, now)
    await uow.commit()
    return replace(notification, read=True, read_at=now)


async def mark_all_read(
    principal: Principal,
    uow: UnitOfWork,
    *,
    clock: Clock | None = None,
) -> int:
    count = await uow.notifications_w.mark_all_read(
        principal.user_id, (clock or SystemClock()).now(),
    )
    await uow.commit()
    return count


async def delete_notification(
    principal: Principal,
    notification_id: uuid.UUID,
    uow: UnitOfWork,
) -> None:
    assert_notification_owner(principal, await uow.notifications.get_by_id(notification_id))
    await uow.notifications_w.delete(notification_id)
    await uow.commit()
