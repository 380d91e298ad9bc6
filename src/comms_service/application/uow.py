from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from comms_service.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from comms_service.application.repositories.message import MessageReader, MessageWriter
from comms_service.application.repositories.notification import (
    NotificationReader,
    NotificationWriter,
    PreferencesRepository,
)


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    notifications: NotificationReader
    notifications_w: NotificationWriter
    preferences: PreferencesRepository

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
