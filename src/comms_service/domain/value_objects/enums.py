from __future__ import annotations

from enum import StrEnum


class PresenceStatus(StrEnum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class MessageType(StrEnum):
    TEXT = "text"
    FILE = "file"


class DeliveryStatus(StrEnum):
    """Message lifecycle. Transitions only ever move forward."""

    SENT = "sent"
    QUEUED = "queued"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _DELIVERY_ORDER.index(self)

    def predecessors(self) -> tuple[DeliveryStatus, ...]:
        """Statuses that may legally transition to this one."""
        return _DELIVERY_ORDER[: self.rank]

    def can_advance_to(self, target: DeliveryStatus) -> bool:
        return target.rank > self.rank


_DELIVERY_ORDER: tuple[DeliveryStatus, ...] = (
    DeliveryStatus.SENT,
    DeliveryStatus.QUEUED,
    DeliveryStatus.DELIVERED,
    DeliveryStatus.READ,
)


class NotificationType(StrEnum):
    NEW_MESSAGE = "new_message"
    JOB_APPLICATION = "job_application"
    APPLICATION_STATUS = "application_status"
    JOB_MATCH = "job_match"
    PROFILE_VIEW = "profile_view"
    REVIEW_RECEIVED = "review_received"
    SUBSCRIPTION_UPDATE = "subscription_update"
    VERIFICATION_STATUS = "verification_status"
    SYSTEM_ANNOUNCEMENT = "system_announcement"


class NotificationPriority(StrEnum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def escalates(self) -> bool:
        return self is not NotificationPriority.NORMAL


class EscalationChannel(StrEnum):
    TOAST = "toast"
    DESKTOP = "desktop"
