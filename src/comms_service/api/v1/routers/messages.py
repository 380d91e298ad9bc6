from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from comms_service.api.deps import CurrentPrincipal, ManagerDep, QueueDep, UoWDep
from comms_service.api.v1.schemas.conversation import ReadResponse
from comms_service.api.v1.schemas.message import MessageResponse, SendMessageRequest
from comms_service.services import message_service

router = APIRouter(prefix="/api/v1/conversations", tags=["messages"])


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[MessageResponse]:
    messages = await message_service.list_messages(
        principal, conversation_id, limit, offset, uow,
    )
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    manager: ManagerDep,
    queue: QueueDep,
) -> MessageResponse:
    msg = await message_service.send_message(
        principal,
        conversation_id,
        body.content,
        body.type,
        uow,
        manager.presence,
        manager,
        queue,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.post("/{conversation_id}/read", response_model=ReadResponse)
async def mark_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    manager: ManagerDep,
) -> ReadResponse:
    count = await message_service.mark_conversation_read(
        principal, conversation_id, uow, manager,
    )
    return ReadResponse(conversation_id=conversation_id, marked_read=count)
