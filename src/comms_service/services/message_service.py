from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from comms_service.application.dto.payloads import message_payload
from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import PersistenceFailure, ValidationError
from comms_service.application.policies.permissions import assert_participant
from comms_service.application.ports.clock import Clock, SystemClock
from comms_service.application.ports.realtime import EventPusher, OfflineQueue, PresenceReader
from comms_service.application.uow import UnitOfWork
from comms_service.config import settings
from comms_service.domain.entities.conversation import Conversation
from comms_service.domain.entities.message import Message
from comms_service.domain.value_objects.enums import (
    DeliveryStatus,
    MessageType,
    NotificationPriority,
    NotificationType,
)
from comms_service.infrastructure.ws.protocol import OutboundEvent
from comms_service.services import conversation_service, notification_service

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 100


def _validate_content(content: str, msg_type: str) -> tuple[str, MessageType]:
    try:
        m_type = MessageType(msg_type)
    except ValueError:
        raise ValidationError(f"Unsupported message type: {msg_type}") from None
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message content cannot be empty")
    if len(text) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message content exceeds {settings.MESSAGE_MAX_LENGTH} characters"
        )
    return text, m_type


def _summary(text: str) -> str:
    return text if len(text) <= SUMMARY_LENGTH else text[: SUMMARY_LENGTH - 3] + "..."


async def send_message(
    principal: Principal,
    conversation_id: uuid.UUID,
    content: str,
    msg_type: str,
    uow: UnitOfWork,
    presence: PresenceReader,
    pusher: EventPusher,
    queue: OfflineQueue,
    *,
    clock: Clock | None = None,
) -> Message:
    """Persist a message and deliver it live or park it for the recipient.

    Nothing is written when validation fails. Once the commit succeeds the
    message is never lost: it reaches the recipient either by push now or by
    the reconnect flush later.
    """
    text, m_type = _validate_content(content, msg_type)
    conversation = assert_participant(
        principal, await uow.conversations.get_by_id(conversation_id),
    )
    return await _persist_and_route(
        principal, conversation, text, m_type, uow, presence, pusher, queue,
        clock or SystemClock(),
    )


async def send_to_user(
    principal: Principal,
    recipient_id: int,
    content: str,
    msg_type: str,
    uow: UnitOfWork,
    presence: PresenceReader,
    pusher: EventPusher,
    queue: OfflineQueue,
    *,
    clock: Clock | None = None,
) -> Message:
    """Send to a user directly; the conversation is created on the first message."""
    text, m_type = _validate_content(content, msg_type)
    clock = clock or SystemClock()
    conversation = await conversation_service.start_conversation(
        principal, recipient_id, uow, clock=clock,
    )
    return await _persist_and_route(
        principal, conversation, text, m_type, uow, presence, pusher, queue, clock,
    )


async def _persist_and_route(
    principal: Principal,
    conversation: Conversation,
    text: str,
    m_type: MessageType,
    uow: UnitOfWork,
    presence: PresenceReader,
    pusher: EventPusher,
    queue: OfflineQueue,
    clock: Clock,
) -> Message:
    sender_id = principal.user_id
    recipient_id = conversation.other_participant(sender_id)
    now = clock.now()

    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        type=m_type,
        content=text,
        delivery_status=DeliveryStatus.SENT,
        created_at=now,
    )
    msg = await uow.messages_w.create(msg)
    await uow.conversations_w.touch_last_message(conversation.id, _summary(text), now)
    await uow.commit()

    conversation_update = {
        "conversation_id": str(conversation.id),
        "last_message": message_payload(msg),
        "last_message_summary": _summary(text),
        "last_message_at": now.isoformat(),
    }

    delivered_live = False
    async with queue.locked(recipient_id):
        if presence.is_online(recipient_id):
            delivered_live = await pusher.push_to_user(
                recipient_id, OutboundEvent.NEW_MESSAGE, message_payload(msg),
            )
        if delivered_live:
            await pusher.push_to_user(
                recipient_id, OutboundEvent.CONVERSATION_UPDATED, conversation_update,
            )
        else:
            msg = replace(msg, delivery_status=DeliveryStatus.QUEUED)
            queue.enqueue(recipient_id, msg)
            try:
                await uow.messages_w.transition([msg.id], DeliveryStatus.QUEUED, now)
                await uow.commit()
            except PersistenceFailure:
                # the in-memory entry still delivers it; the row stays `sent`
                await uow.rollback()
                logger.exception("Could not mark message %s as queued", msg.id)

    await pusher.push_to_user(sender_id, OutboundEvent.CONVERSATION_UPDATED, conversation_update)

    if not delivered_live:
        # the message is already stored and queued, so the badge is best effort
        try:
            await notification_service.notify(
                recipient_id,
                NotificationType.NEW_MESSAGE,
                "New message",
                _summary(text),
                NotificationPriority.NORMAL,
                uow,
                presence,
                pusher,
                queue,
                action_url=f"/messages/{conversation.id}",
                data={"conversation_id": str(conversation.id), "sender_id": sender_id},
                clock=clock,
            )
        except PersistenceFailure:
            await uow.rollback()
            logger.exception("Could not store new_message notification for user %s", recipient_id)

    logger.debug(
        "Message %s from %s to %s %s",
        msg.id, sender_id, recipient_id, "delivered" if delivered_live else "queued",
    )
    return msg


async def relay_typing(
    principal: Principal,
    conversation_id: uuid.UUID,
    is_typing: bool,
    uow: UnitOfWork,
    presence: PresenceReader,
    pusher: EventPusher,
) -> bool:
    """Forward a typing indicator to a live recipient. Never stored or queued."""
    conversation = assert_participant(
        principal, await uow.conversations.get_by_id(conversation_id),
    )
    recipient_id = conversation.other_participant(principal.user_id)
    if not presence.is_online(recipient_id):
        return False
    data: dict[str, object] = {
        "conversation_id": str(conversation_id),
        "user_id": principal.user_id,
    }
    if is_typing:
        data["expires_in_ms"] = settings.TYPING_INDICATOR_TTL_MS
        return await pusher.push_to_user(recipient_id, OutboundEvent.USER_TYPING, data)
    return await pusher.push_to_user(recipient_id, OutboundEvent.USER_STOPPED_TYPING, data)


async def mark_conversation_read(
    principal: Principal,
    conversation_id: uuid.UUID,
    uow: UnitOfWork,
    pusher: EventPusher,
    *,
    clock: Clock | None = None,
) -> int:
    """Mark the caller's received messages in a conversation as read.

    Returns how many messages changed status. Messages already read are left
    alone, so repeating the call is harmless.
    """
    conversation = assert_participant(
        principal, await uow.conversations.get_by_id(conversation_id),
    )
    reader_id = principal.user_id
    now = (clock or SystemClock()).now()
    read_ids = await uow.messages_w.mark_conversation_read(conversation_id, reader_id, now)
    await uow.commit()

    total_unread = await uow.messages.count_unread(reader_id)
    await pusher.push_to_user(
        reader_id,
        OutboundEvent.UNREAD_COUNT_UPDATED,
        {
            "conversation_id": str(conversation_id),
            "conversation_unread": await uow.messages.count_unread(reader_id, conversation_id),
            "total_unread": total_unread,
        },
    )
    if read_ids:
        await pusher.push_to_user(
            conversation.other_participant(reader_id),
            OutboundEvent.MESSAGES_READ,
            {
                "conversation_id": str(conversation_id),
                "reader_id": reader_id,
                "message_ids": [str(mid) for mid in read_ids],
                "read_at": now.isoformat(),
            },
        )
    return len(read_ids)


async def list_messages(
    principal: Principal,
    conversation_id: uuid.UUID,
    limit: int,
    offset: int,
    uow: UnitOfWork,
) -> list[Message]:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_participant(principal, conversation)
    return await uow.messages.list_messages(conversation_id, limit=limit, offset=offset)
