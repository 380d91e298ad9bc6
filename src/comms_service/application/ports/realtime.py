"""Narrow interfaces the services use to reach live connections."""
from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, Sequence, Union
from uuid import UUID

from comms_service.domain.entities.message import Message
from comms_service.domain.entities.notification import Notification

QueuePayload = Union[Message, Notification]


class Connection(Protocol):
    """Non-owning handle on a transport connection (a WebSocket in production)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class PresenceReader(Protocol):
    def is_online(self, user_id: int) -> bool: ...


class EventPusher(Protocol):
    async def push_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        """Return False (never raise) when the user has no usable connection."""
        ...

    async def push_to_conversation(
        self,
        conversation_id: UUID,
        event: str,
        data: dict[str, Any],
        exclude_user_id: int | None = None,
    ) -> None: ...


class OfflineQueue(Protocol):
    def enqueue(self, user_id: int, payload: QueuePayload) -> None: ...

    def flush(self, user_id: int) -> list[QueuePayload]: ...

    def requeue(self, user_id: int, payloads: Sequence[QueuePayload]) -> None: ...

    def size(self, user_id: int) -> int: ...

    def clear(self, user_id: int) -> None: ...

    def locked(self, user_id: int) -> AbstractAsyncContextManager[None]: ...
