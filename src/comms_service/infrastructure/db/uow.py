from __future__ import annotations

from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from comms_service.infrastructure.db.errors import translate_errors
from comms_service.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from comms_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from comms_service.infrastructure.db.repositories.notification import (
    NotificationReaderRepo,
    NotificationWriterRepo,
    PreferencesRepo,
)


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.notifications = NotificationReaderRepo(session)
        self.notifications_w = NotificationWriterRepo(session)
        self.preferences = PreferencesRepo(session)

    @translate_errors
    async def flush(self) -> None:
        await self._session.flush()

    @translate_errors
    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()


def uow_factory(sessionmaker: async_sessionmaker[AsyncSession]):
    """Build a factory yielding a fresh UoW per unit of work (WS handlers, consumers)."""

    @asynccontextmanager
    async def _open() -> AsyncIterator[SqlAlchemyUoW]:
        async with sessionmaker() as session:
            async with SqlAlchemyUoW(session) as uow:
                yield uow

    return _open
