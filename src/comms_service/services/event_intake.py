"""Translate platform domain events from the Redis stream into notifications."""
from __future__ import annotations

import json
import logging
from typing import Any, Callable

from comms_service.application.dto.notification import NotifyRequestDTO
from comms_service.domain.value_objects.enums import (
    NotificationPriority,
    NotificationType,
)

logger = logging.getLogger(__name__)

EventMapper = Callable[[dict[str, Any]], NotifyRequestDTO]

_APPLICATION_STATUS_PRIORITY: dict[str, NotificationPriority] = {
    "accepted": NotificationPriority.HIGH,
    "rejected": NotificationPriority.NORMAL,
    "shortlisted": NotificationPriority.HIGH,
    "withdrawn": NotificationPriority.NORMAL,
}


def _recipient(fields: dict[str, Any]) -> int:
    return int(fields.get("recipient_id") or fields["user_id"])


def _data(fields: dict[str, Any]) -> dict[str, Any]:
    raw = fields.get("data")
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    return json.loads(raw)


def _application_submitted(fields: dict[str, Any]) -> NotifyRequestDTO:
    job_title = fields.get("job_title", "your job")
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.JOB_APPLICATION,
        title="New application received",
        message=f"A new application was submitted for {job_title}",
        priority=NotificationPriority.HIGH,
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _application_status_changed(fields: dict[str, Any]) -> NotifyRequestDTO:
    status = fields.get("status", "updated")
    job_title = fields.get("job_title", "a job")
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.APPLICATION_STATUS,
        title=f"Application {status}",
        message=f"Your application for {job_title} was {status}",
        priority=_APPLICATION_STATUS_PRIORITY.get(status, NotificationPriority.NORMAL),
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _job_matched(fields: dict[str, Any]) -> NotifyRequestDTO:
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.JOB_MATCH,
        title="New job match",
        message=f"{fields.get('job_title', 'A new job')} matches your profile",
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _profile_viewed(fields: dict[str, Any]) -> NotifyRequestDTO:
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.PROFILE_VIEW,
        title="Profile viewed",
        message=f"{fields.get('viewer_name', 'Someone')} viewed your profile",
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _review_received(fields: dict[str, Any]) -> NotifyRequestDTO:
    rating = fields.get("rating")
    message = f"You received a {rating}-star review" if rating else "You received a new review"
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.REVIEW_RECEIVED,
        title="New review",
        message=message,
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _subscription_updated(fields: dict[str, Any]) -> NotifyRequestDTO:
    status = fields.get("status", "updated")
    expiring = status in ("past_due", "expiring", "cancelled")
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.SUBSCRIPTION_UPDATE,
        title="Subscription update",
        message=f"Your subscription is now {status}",
        priority=NotificationPriority.HIGH if expiring else NotificationPriority.NORMAL,
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _verification_updated(fields: dict[str, Any]) -> NotifyRequestDTO:
    status = fields.get("status", "updated")
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.VERIFICATION_STATUS,
        title="Verification status",
        message=f"Your verification was {status}",
        priority=NotificationPriority.HIGH,
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


def _system_announcement(fields: dict[str, Any]) -> NotifyRequestDTO:
    return NotifyRequestDTO(
        recipient_id=_recipient(fields),
        type=NotificationType.SYSTEM_ANNOUNCEMENT,
        title=fields.get("title", "Announcement"),
        message=fields["message"],
        priority=NotificationPriority(fields.get("priority", NotificationPriority.URGENT)),
        action_url=fields.get("action_url"),
        data=_data(fields),
    )


EVENT_MAPPERS: dict[str, EventMapper] = {
    "application.submitted": _application_submitted,
    "application.status_changed": _application_status_changed,
    "job.matched": _job_matched,
    "profile.viewed": _profile_viewed,
    "review.received": _review_received,
    "subscription.updated": _subscription_updated,
    "verification.updated": _verification_updated,
    "system.announcement": _system_announcement,
}


def to_notification(event_type: str, fields: dict[str, Any]) -> NotifyRequestDTO | None:
    """Map a stream event to a notification request, or None for events we don't handle."""
    mapper = EVENT_MAPPERS.get(event_type)
    if mapper is None:
        logger.debug("Ignoring unknown event: %s", event_type)
        return None
    return mapper(fields)
