from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from comms_service.domain.value_objects.enums import MessageType


class SendMessageRequest(BaseModel):
    content: str
    type: MessageType = MessageType.TEXT


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: int
    recipient_id: int
    type: str
    content: str
    delivery_status: str
    created_at: datetime
    delivered_at: datetime | None
    read_at: datetime | None

    model_config = {"from_attributes": True}
