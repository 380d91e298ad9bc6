from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from comms_service.domain.entities.conversation import Conversation


class StartConversationRequest(BaseModel):
    participant_id: int = Field(gt=0)


class ConversationResponse(BaseModel):
    id: UUID
    participant_ids: list[int]
    last_message_summary: str | None
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, conv: Conversation) -> ConversationResponse:
        return cls(
            id=conv.id,
            participant_ids=sorted(conv.participant_ids),
            last_message_summary=conv.last_message_summary,
            last_message_at=conv.last_message_at,
            created_at=conv.created_at,
            updated_at=conv.updated_at,
        )


class ReadResponse(BaseModel):
    conversation_id: UUID
    marked_read: int
