from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: int
    recipient_id: int
    type: str
    content: str
    delivery_status: str
    created_at: datetime
    delivered_at: datetime | None = None
    read_at: datetime | None = None
