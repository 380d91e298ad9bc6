"""Per-user FIFO of payloads that could not be delivered live.

This is a cache over the store: messages held here are also persisted with
delivery_status=queued, and reconnect delivery rehydrates from the store.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Sequence

from comms_service.application.ports.clock import Clock, SystemClock
from comms_service.application.ports.realtime import QueuePayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QueueEntry:
    target_user_id: int
    payload: QueuePayload
    enqueued_at: datetime


class OfflineMessageQueue:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: dict[int, list[QueueEntry]] = {}
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def locked(self, user_id: int) -> AsyncIterator[None]:
        """Serialize deliver-or-queue decisions for one recipient."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        async with lock:
            yield

    def enqueue(self, user_id: int, payload: QueuePayload) -> None:
        entries = self._entries.setdefault(user_id, [])
        entries.append(QueueEntry(user_id, payload, self._clock.now()))
        logger.debug("Queued %s for offline user %s (%d total)", payload.id, user_id, len(entries))

    def flush(self, user_id: int) -> list[QueuePayload]:
        """Drain the user's entries in insertion order."""
        entries = self._entries.pop(user_id, [])
        return [e.payload for e in entries]

    def requeue(self, user_id: int, payloads: Sequence[QueuePayload]) -> None:
        """Put undelivered payloads back ahead of anything queued since the flush."""
        if not payloads:
            return
        now = self._clock.now()
        restored = [QueueEntry(user_id, p, now) for p in payloads]
        self._entries[user_id] = restored + self._entries.get(user_id, [])

    def size(self, user_id: int) -> int:
        return len(self._entries.get(user_id, []))

    def clear(self, user_id: int) -> None:
        """Moderation / cleanup only. Never called on a reconnect path."""
        dropped = len(self._entries.pop(user_id, []))
        logger.info("Cleared offline queue for user %s (%d entries)", user_id, dropped)

    def stats(self) -> dict[str, int]:
        total = sum(len(v) for v in self._entries.values())
        users = len(self._entries)
        return {
            "total_users": users,
            "total_entries": total,
            "average_per_user": round(total / users) if users else 0,
        }
