from __future__ import annotations

import logging
from collections import deque

from comms_service.application.ports.clock import Clock, SystemClock, seconds_since

logger = logging.getLogger(__name__)


class ConnectionRateLimiter:
    """Sliding-window limit on WebSocket connection attempts per client key."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Clock | None = None,
    ) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock or SystemClock()
        self._attempts: dict[str, deque] = {}

    def allow(self, key: str) -> bool:
        attempts = self._attempts.setdefault(key, deque())
        while attempts and seconds_since(self._clock, attempts[0]) >= self._window:
            attempts.popleft()
        if len(attempts) >= self._limit:
            logger.warning("Connection rate limit exceeded for %s", key)
            return False
        attempts.append(self._clock.now())
        return True

    def reset(self, key: str) -> None:
        self._attempts.pop(key, None)
