"""Shared test fixtures."""
from __future__ import annotations

import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import jwt
import pytest

from comms_service.application.dto.notification import NotificationFilterDTO
from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import PersistenceFailure
from comms_service.config import settings
from comms_service.domain.entities.conversation import Conversation
from comms_service.domain.entities.message import Message
from comms_service.domain.entities.notification import (
    Notification,
    NotificationPreferences,
)
from comms_service.domain.value_objects.enums import (
    DeliveryStatus,
    MessageType,
    NotificationPriority,
    NotificationType,
)
from comms_service.infrastructure.ws.offline_queue import OfflineMessageQueue

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ALICE = 1
BOB = 2
CAROL = 3


@pytest.fixture
def alice() -> Principal:
    return Principal(user_id=ALICE, roles=[])


@pytest.fixture
def bob() -> Principal:
    return Principal(user_id=BOB, roles=[])


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(user_id=99, roles=["admin"])


def make_token(sub: int, roles: list[str] | None = None) -> str:
    return jwt.encode(
        {"sub": str(sub), "roles": roles or []},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now


class FakeConnection:
    """Stands in for a WebSocket: records frames, can be told to fail."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.closed: tuple[int, str | None] | None = None
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail or self.closed is not None:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason)

    def events(self) -> list[tuple[str, dict[str, Any]]]:
        frames = [json.loads(raw) for raw in self.sent]
        return [(f["type"], f["data"]) for f in frames]

    def types(self) -> list[str]:
        return [t for t, _ in self.events()]

    def of(self, event: str) -> list[dict[str, Any]]:
        return [d for t, d in self.events() if t == event]


class FakeRealtime:
    """Presence + pusher double for service tests."""

    def __init__(self, online: set[int] | None = None) -> None:
        self.online: set[int] = set(online or ())
        self.failing: set[int] = set()
        self.pushed: list[tuple[int, str, dict[str, Any]]] = []

    def is_online(self, user_id: int) -> bool:
        return user_id in self.online

    async def push_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        if user_id not in self.online:
            return False
        if user_id in self.failing:
            self.online.discard(user_id)
            return False
        self.pushed.append((user_id, str(event), data))
        return True

    async def push_to_conversation(
        self,
        conversation_id: UUID,
        event: str,
        data: dict[str, Any],
        exclude_user_id: int | None = None,
    ) -> None:
        raise AssertionError("services push per user")

    def events_for(self, user_id: int) -> list[tuple[str, dict[str, Any]]]:
        return [(e, d) for u, e, d in self.pushed if u == user_id]

    def types_for(self, user_id: int) -> list[str]:
        return [e for e, _ in self.events_for(user_id)]


def make_conversation(
    a: int = ALICE,
    b: int = BOB,
    *,
    conversation_id: UUID | None = None,
) -> Conversation:
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        participant_ids=frozenset((a, b)),
        last_message_summary=None,
        last_message_at=None,
        created_at=T0,
        updated_at=T0,
    )


def make_message(
    conversation: Conversation,
    sender_id: int = ALICE,
    *,
    content: str = "hello",
    status: DeliveryStatus = DeliveryStatus.SENT,
    created_at: datetime = T0,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=sender_id,
        recipient_id=conversation.other_participant(sender_id),
        type=MessageType.TEXT,
        content=content,
        delivery_status=status,
        created_at=created_at,
    )


def make_notification(
    recipient_id: int = BOB,
    *,
    priority: NotificationPriority = NotificationPriority.NORMAL,
    type_: NotificationType = NotificationType.JOB_MATCH,
    read: bool = False,
    created_at: datetime = T0,
) -> Notification:
    return Notification(
        id=uuid.uuid4(),
        recipient_id=recipient_id,
        type=type_,
        title="Title",
        message="Body",
        priority=priority,
        action_url=None,
        read=read,
        created_at=created_at,
    )


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def get_between(self, user_a: int, user_b: int) -> Conversation | None:
        pair = frozenset((user_a, user_b))
        for conv in self._store.values():
            if conv.participant_ids == pair:
                return conv
        return None

    async def list_for_user(
        self, user_id: int, *, limit: int = 20, offset: int = 0
    ) -> list[Conversation]:
        convs = [c for c in self._store.values() if c.is_participant(user_id)]
        convs.sort(key=lambda c: c.last_message_at or c.created_at, reverse=True)
        return convs[offset : offset + limit]


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader

    async def create(self, conversation: Conversation) -> Conversation:
        existing = await self._reader.get_between(*conversation.participant_ids)
        if existing is not None:
            return existing
        self._reader._store[conversation.id] = conversation
        return conversation

    async def touch_last_message(self, conversation_id: UUID, summary: str, ts: datetime) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = replace(
            conv, last_message_summary=summary, last_message_at=ts, updated_at=ts,
        )


@dataclass
class FakeMessageReader:
    _messages: dict[UUID, Message] = field(default_factory=dict)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return self._messages.get(message_id)

    async def list_messages(
        self, conversation_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> list[Message]:
        msgs = [m for m in self._messages.values() if m.conversation_id == conversation_id]
        return msgs[offset : offset + limit]

    async def list_queued_for_recipient(self, recipient_id: int) -> list[Message]:
        return [
            m for m in self._messages.values()
            if m.recipient_id == recipient_id and m.delivery_status == DeliveryStatus.QUEUED
        ]

    async def count_unread(self, recipient_id: int, conversation_id: UUID | None = None) -> int:
        return sum(
            1 for m in self._messages.values()
            if m.recipient_id == recipient_id
            and m.delivery_status != DeliveryStatus.READ
            and (conversation_id is None or m.conversation_id == conversation_id)
        )

    def status_of(self, message_id: UUID) -> str:
        return self._messages[message_id].delivery_status


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    fail: bool = False
    fail_transition: bool = False

    async def create(self, message: Message) -> Message:
        if self.fail:
            raise PersistenceFailure("Storage temporarily unavailable")
        self._reader._messages[message.id] = message
        return message

    async def transition(
        self, message_ids: list[UUID], target: DeliveryStatus, ts: datetime
    ) -> list[UUID]:
        if self.fail_transition:
            raise PersistenceFailure("Storage temporarily unavailable")
        changed = []
        for mid in message_ids:
            msg = self._reader._messages.get(mid)
            if msg is None or msg.delivery_status not in target.predecessors():
                continue
            updates: dict[str, Any] = {"delivery_status": target}
            if target is DeliveryStatus.DELIVERED:
                updates["delivered_at"] = ts
            elif target is DeliveryStatus.READ:
                updates["read_at"] = ts
            self._reader._messages[mid] = replace(msg, **updates)
            changed.append(mid)
        return changed

    async def mark_conversation_read(
        self, conversation_id: UUID, recipient_id: int, ts: datetime
    ) -> list[UUID]:
        ids = [
            m.id for m in self._reader._messages.values()
            if m.conversation_id == conversation_id
            and m.recipient_id == recipient_id
            and m.delivery_status in (DeliveryStatus.SENT, DeliveryStatus.DELIVERED)
        ]
        return await self.transition(ids, DeliveryStatus.READ, ts)


@dataclass
class FakeNotificationReader:
    _store: dict[UUID, Notification] = field(default_factory=dict)

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        return self._store.get(notification_id)

    async def list_for_recipient(
        self, recipient_id: int, filters: NotificationFilterDTO
    ) -> tuple[list[Notification], int]:
        items = [
            n for n in self._store.values()
            if n.recipient_id == recipient_id
            and (filters.type is None or n.type == filters.type)
            and (filters.read is None or n.read == filters.read)
            and (filters.priority is None or n.priority == filters.priority)
        ]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items[filters.offset : filters.offset + filters.limit], len(items)

    async def count_unread(self, recipient_id: int) -> int:
        return sum(1 for n in self._store.values() if n.recipient_id == recipient_id and not n.read)


@dataclass
class FakeNotificationWriter:
    _reader: FakeNotificationReader
    fail: bool = False

    async def create(self, notification: Notification) -> Notification:
        if self.fail:
            raise PersistenceFailure("Storage temporarily unavailable")
        self._reader._store[notification.id] = notification
        return notification

    async def mark_read(self, notification_id: UUID, ts: datetime) -> None:
        n = self._reader._store[notification_id]
        self._reader._store[notification_id] = replace(n, read=True, read_at=ts)

    async def mark_all_read(self, recipient_id: int, ts: datetime) -> int:
        count = 0
        for nid, n in list(self._reader._store.items()):
            if n.recipient_id == recipient_id and not n.read:
                self._reader._store[nid] = replace(n, read=True, read_at=ts)
                count += 1
        return count

    async def delete(self, notification_id: UUID) -> None:
        self._reader._store.pop(notification_id, None)


@dataclass
class FakePreferences:
    _store: dict[int, NotificationPreferences] = field(default_factory=dict)

    async def get(self, user_id: int) -> NotificationPreferences | None:
        return self._store.get(user_id)

    async def upsert(self, prefs: NotificationPreferences) -> NotificationPreferences:
        stored = replace(prefs, updated_at=T0)
        self._store[prefs.user_id] = stored
        return stored


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    notifications: FakeNotificationReader = field(default_factory=FakeNotificationReader)
    notifications_w: FakeNotificationWriter | None = None
    preferences: FakePreferences = field(default_factory=FakePreferences)
    commits: int = 0
    rollbacks: int = 0

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)
        if self.notifications_w is None:
            self.notifications_w = FakeNotificationWriter(self.notifications)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations._store[conversation.id] = conversation
        return conversation

    def add_message(self, message: Message) -> Message:
        self.messages._messages[message.id] = message
        return message

    def add_notification(self, notification: Notification) -> Notification:
        self.notifications._store[notification.id] = notification
        return notification


def uow_factory_for(uow: FakeUoW):
    """A UoW factory that always hands out the same in-memory store."""

    @asynccontextmanager
    async def _open():
        yield uow

    return _open


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue(clock: FakeClock) -> OfflineMessageQueue:
    return OfflineMessageQueue(clock)


@pytest.fixture
def realtime() -> FakeRealtime:
    return FakeRealtime()
