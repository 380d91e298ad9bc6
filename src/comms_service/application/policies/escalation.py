from __future__ import annotations

from comms_service.application.dto.events import EscalationPlan
from comms_service.domain.entities.notification import NotificationPreferences
from comms_service.domain.value_objects.enums import (
    EscalationChannel,
    NotificationPriority,
)


def plan_escalation(
    priority: NotificationPriority,
    prefs: NotificationPreferences,
    *,
    high_auto_dismiss_ms: int,
) -> EscalationPlan | None:
    """Decide the side-channel presentation for a notification.

    normal never escalates. high and urgent always raise the in-app toast;
    high dismisses itself, urgent stays until the user dismisses it. The
    desktop channel is added only for users who granted desktop permission.
    `toast_enabled` only asks the client to show the toast silently.
    """
    if not priority.escalates:
        return None

    channels = [EscalationChannel.TOAST]
    if prefs.desktop_enabled:
        channels.append(EscalationChannel.DESKTOP)

    urgent = priority is NotificationPriority.URGENT
    return EscalationPlan(
        channels=tuple(channels),
        require_interaction=urgent,
        auto_dismiss_ms=None if urgent else high_auto_dismiss_ms,
        silent=not prefs.toast_enabled,
    )
