"""In-process WebSocket connection manager (the connection multiplexer)."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import AppError, TransportUnavailable
from comms_service.application.ports.realtime import Connection, EventPusher, OfflineQueue
from comms_service.domain.entities.conversation import Conversation
from comms_service.domain.value_objects.enums import PresenceStatus
from comms_service.infrastructure.ws.presence import (
    PresenceRegistry,
    PresenceTransition,
    UserSession,
)
from comms_service.infrastructure.ws.protocol import (
    InboundEvent,
    OutboundEvent,
    WsInbound,
    encode,
    parse_command,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Principal, BaseModel], Awaitable[None]]
SessionOpenHook = Callable[[int, EventPusher], Awaitable[None]]

_KNOWN_EVENTS = frozenset(e.value for e in InboundEvent)


@dataclass
class ConnectionStats:
    total_connections: int = 0
    replaced_sessions: int = 0
    inbound_events: int = 0
    outbound_events: int = 0
    errors: int = 0


@dataclass
class _Room:
    participant_ids: frozenset[int]
    viewers: set[int] = field(default_factory=set)


class ConnectionManager:
    """Owns live connections and routes events in and out of them.

    Writes to one connection always go through that session's lock. Pushing
    to other users while holding a session lock is not allowed.
    """

    def __init__(
        self,
        presence: PresenceRegistry,
        queue: OfflineQueue,
        *,
        on_session_open: SessionOpenHook | None = None,
        sweep_interval: float = 15.0,
    ) -> None:
        self._presence = presence
        self._queue = queue
        self._on_session_open = on_session_open
        self._sweep_interval = sweep_interval
        self._handlers: dict[InboundEvent, Handler] = {}
        self._rooms: dict[UUID, _Room] = {}
        self._sweep_task: asyncio.Task[None] | None = None
        # ids of connections dropped by a failed write whose offline is not yet announced
        self._evicted: set[int] = set()
        self.counters = ConnectionStats()

    @property
    def presence(self) -> PresenceRegistry:
        return self._presence

    def set_session_open_hook(self, hook: SessionOpenHook) -> None:
        self._on_session_open = hook

    def register(self, event: InboundEvent, handler: Handler) -> None:
        self._handlers[event] = handler

    # --- lifecycle ----------------------------------------------------------

    async def on_connect(self, principal: Principal, connection: Connection) -> UserSession:
        """Register the session and deliver queued history before any live traffic."""
        user_id = principal.user_id
        async with self._queue.locked(user_id):
            replacing = self._presence.is_online(user_id)
            session = await self._presence.set_online(user_id, connection)
            self.counters.total_connections += 1
            if replacing:
                self.counters.replaced_sessions += 1
            if self._on_session_open is not None:
                async with session.lock:
                    try:
                        await self._on_session_open(user_id, _LockedSessionPusher(self, session))
                    except Exception:
                        self._presence.set_offline(user_id, connection)
                        self._evicted.discard(id(connection))
                        raise
        if self._presence.get(user_id) is not session:
            # evicted by a failed write during the flush, never announced online
            self._evicted.discard(id(connection))
            logger.info("WS session for user %s dropped during open", user_id)
            return session
        logger.info("WS connected: user %s (active=%d)", user_id, self._presence.online_count())
        await self._broadcast_presence(user_id, session.status.value, session.last_active_at.isoformat())
        return session

    async def on_disconnect(self, user_id: int, connection: Connection) -> None:
        removed = self._presence.set_offline(user_id, connection)
        evicted = id(connection) in self._evicted
        self._evicted.discard(id(connection))
        if (removed is None and not evicted) or self._presence.is_online(user_id):
            # replaced by a newer session, or already swept and announced
            return
        for room in self._rooms.values():
            room.viewers.discard(user_id)
        self._drop_empty_rooms()
        logger.info("WS disconnected: user %s (active=%d)", user_id, self._presence.online_count())
        await self._broadcast_presence(user_id, PresenceStatus.OFFLINE.value, None)

    # --- rooms --------------------------------------------------------------

    def join_conversation(self, user_id: int, conversation: Conversation) -> None:
        room = self._rooms.setdefault(conversation.id, _Room(conversation.participant_ids))
        room.viewers.add(user_id)

    def leave_conversation(self, user_id: int, conversation_id: UUID) -> None:
        room = self._rooms.get(conversation_id)
        if room is not None:
            room.viewers.discard(user_id)
        self._drop_empty_rooms()

    def viewers_of(self, conversation_id: UUID) -> set[int]:
        room = self._rooms.get(conversation_id)
        return set(room.viewers) if room else set()

    def _drop_empty_rooms(self) -> None:
        for cid in [cid for cid, room in self._rooms.items() if not room.viewers]:
            del self._rooms[cid]

    # --- inbound ------------------------------------------------------------

    async def route(self, principal: Principal, raw: str) -> None:
        """Parse one inbound frame and dispatch it to its handler."""
        user_id = principal.user_id
        self.counters.inbound_events += 1
        self._presence.heartbeat(user_id)

        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await self._reply_error(user_id, "invalid_payload")
            return

        if msg.type == InboundEvent.PING:
            await self.push_to_user(user_id, OutboundEvent.PONG, {})
            return

        transition = self._presence.touch(user_id)
        if transition is not None:
            await self._on_transition(transition)

        if msg.type not in _KNOWN_EVENTS:
            await self._reply_error(user_id, "unknown_type", type=msg.type)
            return
        try:
            event, command = parse_command(msg)
        except PydanticValidationError as exc:
            await self._reply_error(
                user_id, "invalid_data", type=msg.type, detail=str(exc),
            )
            return

        handler = self._handlers.get(event)
        if handler is None:
            await self._reply_error(user_id, "unknown_type", type=msg.type)
            return

        try:
            await handler(principal, command)
        except AppError as exc:
            await self._reply_error(user_id, exc.code, type=msg.type, detail=exc.detail)
        except Exception:
            self.counters.errors += 1
            logger.exception("Handler for %s failed (user %s)", event, user_id)
            await self._reply_error(user_id, "internal_error", type=msg.type)

    async def _reply_error(self, user_id: int, code: str, **extra: Any) -> None:
        await self.push_to_user(user_id, OutboundEvent.ERROR, {"code": code, **extra})

    # --- outbound -----------------------------------------------------------

    async def push_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        """Send to the user's live session. Returns False when there is none."""
        session = self._presence.get(user_id)
        if session is None:
            return False
        async with session.lock:
            return await self._write(session, event, data)

    async def keepalive(self, session: UserSession) -> bool:
        """Server-side keepalive frame on one specific session."""
        async with session.lock:
            return await self._write(session, OutboundEvent.PONG, {})

    async def push_to_conversation(
        self,
        conversation_id: UUID,
        event: str,
        data: dict[str, Any],
        exclude_user_id: int | None = None,
    ) -> None:
        """Send to every user currently viewing the conversation."""
        for user_id in self.viewers_of(conversation_id):
            if user_id != exclude_user_id:
                await self.push_to_user(user_id, event, data)

    async def _write(self, session: UserSession, event: str, data: dict[str, Any]) -> bool:
        """Caller must hold session.lock."""
        try:
            await self._send(session, encode(event, data))
        except TransportUnavailable:
            self.counters.errors += 1
            logger.debug("WS write failed for user %s, evicting session", session.user_id, exc_info=True)
            if self._presence.set_offline(session.user_id, session.connection) is not None:
                self._evicted.add(id(session.connection))
            return False
        self.counters.outbound_events += 1
        return True

    @staticmethod
    async def _send(session: UserSession, frame: str) -> None:
        try:
            await session.connection.send_text(frame)
        except Exception as exc:
            raise TransportUnavailable(f"connection of user {session.user_id} is gone") from exc

    # --- presence -----------------------------------------------------------

    async def _on_transition(self, transition: PresenceTransition) -> None:
        await self._broadcast_presence(
            transition.user_id,
            transition.current.value,
            transition.last_active_at.isoformat(),
        )

    async def _broadcast_presence(self, user_id: int, status: str, last_active_at: str | None) -> None:
        data = {"user_id": user_id, "status": status, "last_active_at": last_active_at}
        targets: set[int] = set()
        for room in self._rooms.values():
            if user_id in room.participant_ids:
                targets.update(room.viewers)
        targets.discard(user_id)
        for target in targets:
            await self.push_to_user(target, OutboundEvent.PRESENCE_CHANGED, data)

    async def start(self) -> None:
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="presence-sweep")
        logger.info("Presence sweep started (interval=%.1fs)", self._sweep_interval)

    async def stop(self) -> None:
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            logger.info("Presence sweep stopped")

    async def sweep_once(self) -> list[PresenceTransition]:
        transitions = await self._presence.sweep()
        for transition in transitions:
            if transition.current is PresenceStatus.OFFLINE:
                for room in self._rooms.values():
                    room.viewers.discard(transition.user_id)
            await self._on_transition(transition)
        self._drop_empty_rooms()
        return transitions

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Presence sweep failed")

    def stats(self) -> dict[str, Any]:
        return {
            **asdict(self.counters),
            "active_connections": self._presence.online_count(),
            "open_rooms": len(self._rooms),
        }


class _LockedSessionPusher:
    """EventPusher bound to one session whose lock the caller already holds.

    Used for the reconnect flush, which must run inside the session lock.
    """

    def __init__(self, manager: ConnectionManager, session: UserSession) -> None:
        self._manager = manager
        self._session = session

    async def push_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        if user_id != self._session.user_id:
            raise ValueError("flush pusher only writes to its own session")
        return await self._manager._write(self._session, event, data)

    async def push_to_conversation(
        self,
        conversation_id: UUID,
        event: str,
        data: dict[str, Any],
        exclude_user_id: int | None = None,
    ) -> None:
        raise NotImplementedError("flush pusher cannot broadcast")
