from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from comms_service.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_between(self, user_a: int, user_b: int) -> Conversation | None:
        """Find the conversation for an unordered pair of users."""
        ...

    async def list_for_user(
        self, user_id: int, *, limit: int = 20, offset: int = 0
    ) -> list[Conversation]: ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def touch_last_message(
        self, conversation_id: UUID, summary: str, ts: datetime
    ) -> None: ...
