"""Consumer for platform domain events via Redis Streams."""
from __future__ import annotations

import logging
import uuid
from typing import Any

import redis.asyncio as aioredis

from comms_service.application.ports.realtime import EventPusher, OfflineQueue, PresenceReader
from comms_service.application.uow import UoWFactory
from comms_service.config import settings
from comms_service.infrastructure.bus.redis_streams import RedisStreamConsumer
from comms_service.services import event_intake, notification_service

logger = logging.getLogger(__name__)


class PlatformEventHandler:
    """Stream callback: one notification per recognised event."""

    def __init__(
        self,
        uow_factory: UoWFactory,
        presence: PresenceReader,
        pusher: EventPusher,
        queue: OfflineQueue,
    ) -> None:
        self._uow_factory = uow_factory
        self._presence = presence
        self._pusher = pusher
        self._queue = queue

    async def __call__(self, event_type: str, fields: dict[str, Any]) -> None:
        request = event_intake.to_notification(event_type, fields)
        if request is None:
            return
        async with self._uow_factory() as uow:
            notification = await notification_service.notify(
                request.recipient_id,
                request.type,
                request.title,
                request.message,
                request.priority,
                uow,
                self._presence,
                self._pusher,
                self._queue,
                action_url=request.action_url,
                data=request.data,
            )
        logger.info(
            "Event %s -> notification %s for user %s",
            event_type, notification.id, request.recipient_id,
        )


def build_consumer(redis: aioredis.Redis, handler: PlatformEventHandler) -> RedisStreamConsumer:
    return RedisStreamConsumer(
        redis=redis,
        stream=settings.EVENTS_STREAM,
        group=settings.EVENTS_GROUP,
        consumer=f"consumer-{uuid.uuid4().hex[:8]}",
        callback=handler,
    )
