"""Redis Streams consumer for platform domain events."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from comms_service.application.exceptions import PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)

OnStreamEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]

# malformed events are acknowledged and dropped; anything else stays pending
_POISON = (KeyError, ValueError, ValidationError)


class RedisStreamConsumer:
    """XREADGROUP-based consumer for a single stream + consumer group.

    Events that fail with a transient store error are left unacknowledged so
    the group redelivers them; events that can never succeed are acked and
    logged.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnStreamEventCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
        retry_delay: float = 5.0,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._retry_delay = retry_delay
        self._task: asyncio.Task[None] | None = None
        self.processed = 0
        self.dropped = 0

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                self._stream, self._group, id="$", mkstream=True
            )
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("Consumer group %s already exists", self._group)
            else:
                raise

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._consume(), name="platform-events-consumer")
        logger.info("Stream consumer started: stream=%s group=%s", self._stream, self._group)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Stream consumer stopped")

    async def handle(self, msg_id: str, fields: dict[str, Any]) -> bool:
        """Process one entry. Returns True when it was acknowledged."""
        event_type = fields.get("event_type", "unknown")
        try:
            await self._callback(event_type, fields)
        except _POISON:
            logger.warning(
                "Dropping malformed %s event %s", event_type, msg_id, exc_info=True,
            )
            self.dropped += 1
        except PersistenceFailure:
            logger.warning("Store unavailable, leaving %s pending for redelivery", msg_id)
            return False
        else:
            self.processed += 1
        await self._redis.xack(self._stream, self._group, msg_id)
        return True

    async def _consume(self) -> None:
        while True:
            try:
                entries = await self._redis.xreadgroup(
                    groupname=self._group,
                    consumername=self._consumer,
                    streams={self._stream: ">"},
                    count=self._batch_size,
                    block=self._block_ms,
                )
                if not entries:
                    continue
                for _stream_name, messages in entries:
                    for msg_id, fields in messages:
                        await self.handle(msg_id, fields)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Stream consumer error, retrying in %.0fs", self._retry_delay)
                await asyncio.sleep(self._retry_delay)
