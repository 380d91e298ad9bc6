from __future__ import annotations

from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from comms_service.domain.entities.conversation import Conversation
from comms_service.domain.entities.notification import Notification


def assert_participant(
    principal: Principal,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or the caller is not one of its two members."""
    if conversation is None:
        raise NotFoundError("Conversation not found")
    if not conversation.is_participant(principal.user_id):
        raise ValidationError("Not a participant of this conversation")
    return conversation


def assert_notification_owner(
    principal: Principal,
    notification: Notification | None,
) -> Notification:
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.recipient_id != principal.user_id:
        raise AuthorizationError("You are not authorized to modify this notification")
    return notification


def assert_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise AuthorizationError("Admin access required")
