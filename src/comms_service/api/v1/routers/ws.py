from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from comms_service.api.deps import get_verifier
from comms_service.application.dto.notification import NotificationFilterDTO
from comms_service.application.dto.payloads import conversation_payload, message_payload, notification_payload
from comms_service.application.dto.principal import Principal
from comms_service.application.ports.realtime import EventPusher
from comms_service.application.uow import UoWFactory
from comms_service.config import settings
from comms_service.infrastructure.ws.manager import ConnectionManager
from comms_service.infrastructure.ws.offline_queue import OfflineMessageQueue
from comms_service.infrastructure.ws.presence import UserSession
from comms_service.infrastructure.ws.protocol import (
    ConversationRef,
    EmptyCommand,
    GetNotificationsCommand,
    InboundEvent,
    NotificationRef,
    OutboundEvent,
    SendMessageCommand,
)
from comms_service.services import (
    conversation_service,
    delivery_service,
    message_service,
    notification_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws")
async def ws_endpoint(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    manager: ConnectionManager = websocket.app.state.manager
    limiter = websocket.app.state.rate_limiter

    client_key = websocket.client.host if websocket.client else "unknown"
    if not limiter.allow(client_key):
        await websocket.close(code=4029, reason="Too many connection attempts")
        return

    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    await websocket.accept()
    try:
        session = await manager.on_connect(principal, websocket)
    except Exception:
        logger.exception("Queued delivery failed for user %s, closing", principal.user_id)
        await websocket.close(code=1011, reason="Delivery failed, please reconnect")
        return

    heartbeat_task = asyncio.create_task(
        _heartbeat(manager, session), name=f"ws-heartbeat-{principal.user_id}",
    )
    try:
        while True:
            raw = await websocket.receive_text()
            await manager.route(principal, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for user %s", principal.user_id)
    finally:
        heartbeat_task.cancel()
        await manager.on_disconnect(principal.user_id, websocket)


async def _heartbeat(manager: ConnectionManager, session: UserSession) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        if not await manager.keepalive(session):
            return


class WsHandlers:
    """Inbound event handlers. Each opens its own unit of work."""

    def __init__(
        self,
        manager: ConnectionManager,
        queue: OfflineMessageQueue,
        uow_factory: UoWFactory,
    ) -> None:
        self._manager = manager
        self._queue = queue
        self._uow_factory = uow_factory

    def register(self) -> None:
        m = self._manager
        m.set_session_open_hook(self.deliver_on_connect)
        m.register(InboundEvent.JOIN_CONVERSATION, self.join_conversation)
        m.register(InboundEvent.LEAVE_CONVERSATION, self.leave_conversation)
        m.register(InboundEvent.SEND_MESSAGE, self.send_message)
        m.register(InboundEvent.TYPING_START, self.typing_start)
        m.register(InboundEvent.TYPING_STOP, self.typing_stop)
        m.register(InboundEvent.CONVERSATION_READ, self.conversation_read)
        m.register(InboundEvent.GET_NOTIFICATIONS, self.get_notifications)
        m.register(InboundEvent.MARK_NOTIFICATION_READ, self.mark_notification_read)
        m.register(InboundEvent.MARK_ALL_READ, self.mark_all_read)
        m.register(InboundEvent.DELETE_NOTIFICATION, self.delete_notification)

    async def deliver_on_connect(self, user_id: int, pusher: EventPusher) -> None:
        async with self._uow_factory() as uow:
            await delivery_service.deliver_queued(user_id, uow, self._queue, pusher)

    async def join_conversation(self, principal: Principal, cmd: ConversationRef) -> None:
        async with self._uow_factory() as uow:
            conv = await conversation_service.get_conversation(cmd.conversation_id, principal, uow)
        self._manager.join_conversation(principal.user_id, conv)
        other_id = conv.other_participant(principal.user_id)
        await self._manager.push_to_user(
            principal.user_id,
            OutboundEvent.CONVERSATION_JOINED,
            {
                "conversation": conversation_payload(conv),
                "presence": {
                    "user_id": other_id,
                    "status": self._manager.presence.status_of(other_id).value,
                },
            },
        )

    async def leave_conversation(self, principal: Principal, cmd: ConversationRef) -> None:
        self._manager.leave_conversation(principal.user_id, cmd.conversation_id)

    async def send_message(self, principal: Principal, cmd: SendMessageCommand) -> None:
        m = self._manager
        async with self._uow_factory() as uow:
            if cmd.conversation_id is not None:
                msg = await message_service.send_message(
                    principal, cmd.conversation_id, cmd.content, cmd.type,
                    uow, m.presence, m, self._queue,
                )
            else:
                msg = await message_service.send_to_user(
                    principal, cmd.recipient_id, cmd.content, cmd.type,
                    uow, m.presence, m, self._queue,
                )
        await m.push_to_user(
            principal.user_id, OutboundEvent.MESSAGE_SENT, {"message": message_payload(msg)},
        )

    async def typing_start(self, principal: Principal, cmd: ConversationRef) -> None:
        await self._typing(principal, cmd, True)

    async def typing_stop(self, principal: Principal, cmd: ConversationRef) -> None:
        await self._typing(principal, cmd, False)

    async def _typing(self, principal: Principal, cmd: ConversationRef, is_typing: bool) -> None:
        async with self._uow_factory() as uow:
            await message_service.relay_typing(
                principal, cmd.conversation_id, is_typing,
                uow, self._manager.presence, self._manager,
            )

    async def conversation_read(self, principal: Principal, cmd: ConversationRef) -> None:
        async with self._uow_factory() as uow:
            await message_service.mark_conversation_read(
                principal, cmd.conversation_id, uow, self._manager,
            )

    async def get_notifications(self, principal: Principal, cmd: GetNotificationsCommand) -> None:
        filters = NotificationFilterDTO(
            type=cmd.type, read=cmd.read, priority=cmd.priority,
            page=cmd.page, limit=cmd.limit,
        )
        async with self._uow_factory() as uow:
            result = await notification_service.list_notifications(principal, filters, uow)
            unread = await notification_service.unread_count(principal, uow)
        await self._manager.push_to_user(
            principal.user_id,
            OutboundEvent.NOTIFICATIONS_LOADED,
            {
                "notifications": [notification_payload(n) for n in result.items],
                "total": result.total,
                "page": result.page,
                "limit": result.limit,
                "pages": result.pages,
                "unread_count": unread,
            },
        )

    async def mark_notification_read(self, principal: Principal, cmd: NotificationRef) -> None:
        async with self._uow_factory() as uow:
            await notification_service.mark_as_read(principal, cmd.notification_id, uow)
            unread = await notification_service.unread_count(principal, uow)
        await self._manager.push_to_user(
            principal.user_id,
            OutboundEvent.NOTIFICATION_MARKED_READ,
            {"notification_id": str(cmd.notification_id), "unread_count": unread},
        )

    async def mark_all_read(self, principal: Principal, cmd: EmptyCommand) -> None:
        async with self._uow_factory() as uow:
            count = await notification_service.mark_all_read(principal, uow)
        await self._manager.push_to_user(
            principal.user_id,
            OutboundEvent.ALL_NOTIFICATIONS_MARKED_READ,
            {"marked_read": count, "unread_count": 0},
        )

    async def delete_notification(self, principal: Principal, cmd: NotificationRef) -> None:
        async with self._uow_factory() as uow:
            await notification_service.delete_notification(principal, cmd.notification_id, uow)
            unread = await notification_service.unread_count(principal, uow)
        await self._manager.push_to_user(
            principal.user_id,
            OutboundEvent.NOTIFICATION_DELETED,
            {"notification_id": str(cmd.notification_id), "unread_count": unread},
        )
