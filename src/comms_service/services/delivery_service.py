"""Flush-on-reconnect for the offline message queue."""
from __future__ import annotations

import logging
from dataclasses import replace

from comms_service.application.dto.payloads import message_payload
from comms_service.application.ports.clock import Clock, SystemClock
from comms_service.application.ports.realtime import EventPusher, OfflineQueue, QueuePayload
from comms_service.application.uow import UnitOfWork
from comms_service.domain.entities.message import Message
from comms_service.domain.value_objects.enums import DeliveryStatus
from comms_service.infrastructure.ws.protocol import OutboundEvent
from comms_service.services import notification_service

logger = logging.getLogger(__name__)


async def _drop_handled_notifications(
    items: list[QueuePayload], uow: UnitOfWork,
) -> list[QueuePayload]:
    """Re-read queued notifications, dropping any read or deleted since they were queued."""
    fresh: list[QueuePayload] = []
    for item in items:
        if not isinstance(item, Message):
            current = await uow.notifications.get_by_id(item.id)
            if current is None or current.read:
                logger.debug("Skipping handled notification %s for user %s", item.id, item.recipient_id)
                continue
            item = current
        fresh.append(item)
    return fresh


async def deliver_queued(
    user_id: int,
    uow: UnitOfWork,
    queue: OfflineQueue,
    pusher: EventPusher,
    *,
    clock: Clock | None = None,
) -> int:
    """Push everything held for `user_id`, oldest first.

    Must run while the caller holds the user's queue lock, before any live
    event reaches the new session. Persisted `queued` messages that are not
    in memory (the process restarted since they were queued) go out first.
    On the first failed push the remainder is re-queued untouched. Returns
    the number of items pushed.
    """
    persisted = await uow.messages.list_queued_for_recipient(user_id)
    pending = queue.flush(user_id)
    in_memory = {item.id for item in pending}
    items: list[QueuePayload] = [m for m in persisted if m.id not in in_memory]
    items.extend(pending)
    items = await _drop_handled_notifications(items, uow)
    if not items:
        return 0

    now = (clock or SystemClock()).now()
    prefs = None
    unread = 0
    if any(not isinstance(item, Message) for item in items):
        prefs = await notification_service.get_preferences(user_id, uow)
        unread = await uow.notifications.count_unread(user_id)

    delivered: list[Message] = []
    pushed = 0
    for index, item in enumerate(items):
        if isinstance(item, Message):
            ok = await pusher.push_to_user(
                user_id,
                OutboundEvent.NEW_MESSAGE,
                message_payload(
                    replace(item, delivery_status=DeliveryStatus.DELIVERED, delivered_at=now)
                ),
            )
            if ok:
                delivered.append(item)
        else:
            ok = await notification_service.push_notification(item, unread, prefs, pusher)
        if not ok:
            queue.requeue(user_id, items[index:])
            logger.warning(
                "Flush for user %s stopped after %d/%d items, re-queued the rest",
                user_id, pushed, len(items),
            )
            break
        pushed += 1

    if delivered:
        changed = await uow.messages_w.transition(
            [m.id for m in delivered], DeliveryStatus.DELIVERED, now,
        )
        await uow.commit()
        logger.debug("Marked %d/%d flushed messages delivered", len(changed), len(delivered))

    logger.info("Flushed %d queued items to user %s", pushed, user_id)
    return pushed
