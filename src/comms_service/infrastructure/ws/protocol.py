"""WebSocket message envelope models and typed inbound commands."""
from __future__ import annotations

from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from comms_service.domain.value_objects.enums import (
    MessageType,
    NotificationPriority,
    NotificationType,
)


class InboundEvent(StrEnum):
    JOIN_CONVERSATION = "join_conversation"
    LEAVE_CONVERSATION = "leave_conversation"
    SEND_MESSAGE = "send_message"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    CONVERSATION_READ = "conversation_read"
    GET_NOTIFICATIONS = "get_notifications"
    MARK_NOTIFICATION_READ = "mark_notification_read"
    MARK_ALL_READ = "mark_all_read"
    DELETE_NOTIFICATION = "delete_notification"
    PING = "ping"


class OutboundEvent(StrEnum):
    NEW_MESSAGE = "new_message"
    MESSAGE_SENT = "message_sent"
    MESSAGES_READ = "messages_read"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"
    CONVERSATION_UPDATED = "conversation_updated"
    CONVERSATION_JOINED = "conversation_joined"
    UNREAD_COUNT_UPDATED = "unread_count_updated"
    PRESENCE_CHANGED = "presence_changed"
    NOTIFICATIONS_LOADED = "notifications_loaded"
    NEW_NOTIFICATION = "new_notification"
    NOTIFICATION_ESCALATION = "notification_escalation"
    NOTIFICATION_MARKED_READ = "notification_marked_read"
    ALL_NOTIFICATIONS_MARKED_READ = "all_notifications_marked_read"
    NOTIFICATION_DELETED = "notification_deleted"
    ERROR = "error"
    PONG = "pong"


class WsInbound(BaseModel):
    """Client → Server."""

    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str
    data: dict[str, Any] = {}


# --- commands ---------------------------------------------------------------


class ConversationRef(BaseModel):
    conversation_id: UUID


class SendMessageCommand(BaseModel):
    conversation_id: UUID | None = None
    recipient_id: int | None = None
    content: str
    type: MessageType = MessageType.TEXT

    @model_validator(mode="after")
    def _target_required(self) -> SendMessageCommand:
        if self.conversation_id is None and self.recipient_id is None:
            raise ValueError("conversation_id or recipient_id is required")
        return self


class GetNotificationsCommand(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    type: NotificationType | None = None
    read: bool | None = None
    priority: NotificationPriority | None = None


class NotificationRef(BaseModel):
    notification_id: UUID


class EmptyCommand(BaseModel):
    pass


COMMANDS: dict[InboundEvent, type[BaseModel]] = {
    InboundEvent.JOIN_CONVERSATION: ConversationRef,
    InboundEvent.LEAVE_CONVERSATION: ConversationRef,
    InboundEvent.SEND_MESSAGE: SendMessageCommand,
    InboundEvent.TYPING_START: ConversationRef,
    InboundEvent.TYPING_STOP: ConversationRef,
    InboundEvent.CONVERSATION_READ: ConversationRef,
    InboundEvent.GET_NOTIFICATIONS: GetNotificationsCommand,
    InboundEvent.MARK_NOTIFICATION_READ: NotificationRef,
    InboundEvent.MARK_ALL_READ: EmptyCommand,
    InboundEvent.DELETE_NOTIFICATION: NotificationRef,
    InboundEvent.PING: EmptyCommand,
}


def parse_command(msg: WsInbound) -> tuple[InboundEvent, BaseModel]:
    """Turn an envelope into (event, typed command).

    Raises ValueError for an unknown event and pydantic.ValidationError for a
    payload that does not match the event's schema.
    """
    event = InboundEvent(msg.type)
    return event, COMMANDS[event].model_validate(msg.data)


def encode(event: str, data: dict[str, Any]) -> str:
    return WsOutbound(type=event, data=data).model_dump_json()
