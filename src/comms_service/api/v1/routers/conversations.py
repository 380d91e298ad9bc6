from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from comms_service.api.deps import CurrentPrincipal, UoWDep
from comms_service.api.v1.schemas.conversation import (
    ConversationResponse,
    StartConversationRequest,
)
from comms_service.services import conversation_service

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.post("", response_model=ConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.start_conversation(principal, body.participant_id, uow)
    return ConversationResponse.from_entity(conv)


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> list[ConversationResponse]:
    convs = await conversation_service.list_user_conversations(principal, limit, offset, uow)
    return [ConversationResponse.from_entity(c) for c in convs]


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.from_entity(conv)
