from __future__ import annotations

from comms_service.domain.entities.conversation import Conversation
from comms_service.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        participant_ids=frozenset((model.user_low_id, model.user_high_id)),
        last_message_summary=model.last_message_summary,
        last_message_at=model.last_message_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    low, high = sorted(entity.participant_ids)
    return ConversationModel(
        id=entity.id,
        user_low_id=low,
        user_high_id=high,
        last_message_summary=entity.last_message_summary,
        last_message_at=entity.last_message_at,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )
