from __future__ import annotations

import logging
import uuid

from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import ValidationError
from comms_service.application.policies.permissions import assert_participant
from comms_service.application.ports.clock import Clock, SystemClock
from comms_service.application.uow import UnitOfWork
from comms_service.domain.entities.conversation import Conversation

logger = logging.getLogger(__name__)


async def start_conversation(
    principal: Principal,
    other_user_id: int,
    uow: UnitOfWork,
    *,
    clock: Clock | None = None,
) -> Conversation:
    """Return the conversation between the caller and `other_user_id`, creating it lazily."""
    if other_user_id == principal.user_id:
        raise ValidationError("Cannot start a conversation with yourself")
    if other_user_id <= 0:
        raise ValidationError("Invalid recipient")

    existing = await uow.conversations.get_between(principal.user_id, other_user_id)
    if existing is not None:
        return existing

    now = (clock or SystemClock()).now()
    conversation = Conversation(
        id=uuid.uuid4(),
        participant_ids=frozenset((principal.user_id, other_user_id)),
        last_message_summary=None,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )
    conversation = await uow.conversations_w.create(conversation)
    await uow.commit()
    logger.info(
        "Conversation %s between %s and %s ready",
        conversation.id, principal.user_id, other_user_id,
    )
    return conversation


async def list_user_conversations(
    principal: Principal,
    limit: int,
    offset: int,
    uow: UnitOfWork,
) -> list[Conversation]:
    return await uow.conversations.list_for_user(
        principal.user_id, limit=limit, offset=offset,
    )


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_participant(principal, conversation)
