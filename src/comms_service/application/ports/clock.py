from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Authoritative UTC time for message, presence and notification timestamps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def seconds_since(clock: Clock, ts: datetime) -> float:
    return (clock.now() - ts).total_seconds()
