"""JSON-ready representations of entities for outbound realtime events."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from comms_service.domain.entities.conversation import Conversation
from comms_service.domain.entities.message import Message
from comms_service.domain.entities.notification import Notification


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


def message_payload(msg: Message) -> dict[str, Any]:
    return {
        "id": str(msg.id),
        "conversation_id": str(msg.conversation_id),
        "sender_id": msg.sender_id,
        "recipient_id": msg.recipient_id,
        "type": msg.type,
        "content": msg.content,
        "delivery_status": msg.delivery_status,
        "created_at": msg.created_at.isoformat(),
        "delivered_at": _iso(msg.delivered_at),
        "read_at": _iso(msg.read_at),
    }


def conversation_payload(conv: Conversation) -> dict[str, Any]:
    return {
        "id": str(conv.id),
        "participant_ids": sorted(conv.participant_ids),
        "last_message_summary": conv.last_message_summary,
        "last_message_at": _iso(conv.last_message_at),
        "created_at": conv.created_at.isoformat(),
    }


def notification_payload(n: Notification) -> dict[str, Any]:
    return {
        "id": str(n.id),
        "recipient_id": n.recipient_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "priority": n.priority,
        "action_url": n.action_url,
        "data": n.data,
        "read": n.read,
        "read_at": _iso(n.read_at),
        "created_at": n.created_at.isoformat(),
    }
