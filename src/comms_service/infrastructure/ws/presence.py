"""In-process presence registry: the single source of truth for who is connected."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from comms_service.application.ports.clock import Clock, SystemClock, seconds_since
from comms_service.application.ports.realtime import Connection
from comms_service.domain.value_objects.enums import PresenceStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class UserSession:
    user_id: int
    connection: Connection
    status: PresenceStatus
    connected_at: datetime
    last_active_at: datetime
    last_seen_at: datetime
    # serializes every write to this connection
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@dataclass(frozen=True, slots=True)
class PresenceTransition:
    user_id: int
    previous: PresenceStatus
    current: PresenceStatus
    last_active_at: datetime


class PresenceRegistry:
    """Tracks one live session per user.

    `last_active_at` follows user activity (any inbound event except ping),
    `last_seen_at` follows transport liveness (any inbound frame). The sweep
    demotes idle users to away and evicts sessions whose transport went
    silent.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        away_after_seconds: float = 300,
        offline_after_seconds: float = 90,
    ) -> None:
        self._clock = clock or SystemClock()
        self._away_after = away_after_seconds
        self._offline_after = offline_after_seconds
        self._sessions: dict[int, UserSession] = {}

    def online_count(self) -> int:
        return len(self._sessions)

    async def set_online(self, user_id: int, connection: Connection) -> UserSession:
        """Register a session, replacing and closing any previous one."""
        now = self._clock.now()
        session = UserSession(
            user_id=user_id,
            connection=connection,
            status=PresenceStatus.ONLINE,
            connected_at=now,
            last_active_at=now,
            last_seen_at=now,
        )
        previous = self._sessions.get(user_id)
        self._sessions[user_id] = session
        if previous is not None and previous.connection is not connection:
            logger.info("Replacing existing session for user %s", user_id)
            await _close_quietly(previous.connection, 4000, "Session replaced")
        return session

    def set_offline(
        self, user_id: int, connection: Connection | None = None
    ) -> UserSession | None:
        """Drop the user's session.

        When `connection` is given the session is removed only if it still
        belongs to that connection, so a late disconnect of a replaced socket
        leaves the newer session alone.
        """
        session = self._sessions.get(user_id)
        if session is None:
            return None
        if connection is not None and session.connection is not connection:
            return None
        del self._sessions[user_id]
        session.status = PresenceStatus.OFFLINE
        return session

    def get(self, user_id: int) -> UserSession | None:
        return self._sessions.get(user_id)

    def is_online(self, user_id: int) -> bool:
        return user_id in self._sessions

    def status_of(self, user_id: int) -> PresenceStatus:
        session = self._sessions.get(user_id)
        return session.status if session else PresenceStatus.OFFLINE

    def online_user_ids(self) -> list[int]:
        return list(self._sessions)

    def heartbeat(self, user_id: int) -> None:
        session = self._sessions.get(user_id)
        if session is not None:
            session.last_seen_at = self._clock.now()

    def touch(self, user_id: int) -> PresenceTransition | None:
        """Record user activity. Returns the away → online transition if one happened."""
        session = self._sessions.get(user_id)
        if session is None:
            return None
        now = self._clock.now()
        session.last_active_at = now
        session.last_seen_at = now
        if session.status is PresenceStatus.AWAY:
            session.status = PresenceStatus.ONLINE
            return PresenceTransition(user_id, PresenceStatus.AWAY, PresenceStatus.ONLINE, now)
        return None

    async def sweep(self) -> list[PresenceTransition]:
        transitions: list[PresenceTransition] = []
        stale: list[UserSession] = []
        for user_id, session in list(self._sessions.items()):
            if seconds_since(self._clock, session.last_seen_at) >= self._offline_after:
                del self._sessions[user_id]
                transitions.append(
                    PresenceTransition(
                        user_id, session.status, PresenceStatus.OFFLINE, session.last_active_at,
                    )
                )
                session.status = PresenceStatus.OFFLINE
                stale.append(session)
            elif (
                session.status is PresenceStatus.ONLINE
                and seconds_since(self._clock, session.last_active_at) >= self._away_after
            ):
                session.status = PresenceStatus.AWAY
                transitions.append(
                    PresenceTransition(
                        user_id, PresenceStatus.ONLINE, PresenceStatus.AWAY, session.last_active_at,
                    )
                )

        for session in stale:
            logger.info("Evicting silent session for user %s", session.user_id)
            await _close_quietly(session.connection, 4008, "Heartbeat timeout")
        return transitions


async def _close_quietly(connection: Connection, code: int, reason: str) -> None:
    try:
        await connection.close(code=code, reason=reason)
    except Exception:
        logger.debug("Closing connection failed (already closed?)", exc_info=True)
