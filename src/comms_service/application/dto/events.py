from __future__ import annotations

from dataclasses import dataclass

from comms_service.domain.value_objects.enums import EscalationChannel


@dataclass(frozen=True, slots=True)
class EscalationPlan:
    """How a high-priority notification is promoted beyond the unread badge."""

    channels: tuple[EscalationChannel, ...]
    require_interaction: bool
    auto_dismiss_ms: int | None
    silent: bool = False

    def as_payload(self) -> dict[str, object]:
        return {
            "channels": [c.value for c in self.channels],
            "require_interaction": self.require_interaction,
            "auto_dismiss_ms": self.auto_dismiss_ms,
            "silent": self.silent,
        }
