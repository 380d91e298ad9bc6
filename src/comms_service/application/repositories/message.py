from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from comms_service.domain.entities.message import Message
from comms_service.domain.value_objects.enums import DeliveryStatus


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]: ...

    async def list_queued_for_recipient(self, recipient_id: int) -> list[Message]:
        """All messages addressed to recipient with status=queued, oldest first."""
        ...

    async def count_unread(
        self, recipient_id: int, conversation_id: UUID | None = None
    ) -> int: ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def transition(
        self,
        message_ids: list[UUID],
        target: DeliveryStatus,
        ts: datetime,
    ) -> list[UUID]:
        """Atomically move messages forward to `target`.

        Only rows whose current status precedes `target` are updated.
        Returns the ids that actually changed.
        """
        ...

    async def mark_conversation_read(
        self, conversation_id: UUID, recipient_id: int, ts: datetime
    ) -> list[UUID]:
        """Move recipient's sent/delivered messages in a conversation to read."""
        ...
