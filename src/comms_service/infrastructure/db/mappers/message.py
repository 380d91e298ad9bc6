from __future__ import annotations

from comms_service.domain.entities.message import Message
from comms_service.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        type=model.type,
        content=model.content,
        delivery_status=model.delivery_status,
        created_at=model.created_at,
        delivered_at=model.delivered_at,
        read_at=model.read_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        conversation_id=entity.conversation_id,
        sender_id=entity.sender_id,
        recipient_id=entity.recipient_id,
        type=entity.type,
        content=entity.content,
        delivery_status=entity.delivery_status,
        created_at=entity.created_at,
        delivered_at=entity.delivered_at,
        read_at=entity.read_at,
    )
