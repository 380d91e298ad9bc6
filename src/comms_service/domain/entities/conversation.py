from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    """Two-party thread. Membership never changes after creation."""

    id: UUID
    participant_ids: frozenset[int]
    last_message_summary: str | None
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

    def is_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_participant(self, user_id: int) -> int:
        others = [p for p in self.participant_ids if p != user_id]
        if len(others) != 1:
            raise ValueError(f"user {user_id} is not one of two participants")
        return others[0]

    @staticmethod
    def pair(user_a: int, user_b: int) -> tuple[int, int]:
        """Canonical (low, high) ordering used for the uniqueness key."""
        return (user_a, user_b) if user_a < user_b else (user_b, user_a)
