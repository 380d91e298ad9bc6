from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from comms_service.domain.entities.conversation import Conversation
from comms_service.infrastructure.db.errors import translate_errors
from comms_service.infrastructure.db.mappers import conversation as mapper
from comms_service.infrastructure.db.models.conversation import ConversationModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    @translate_errors
    async def get_between(self, user_a: int, user_b: int) -> Conversation | None:
        low, high = Conversation.pair(user_a, user_b)
        stmt = select(ConversationModel).where(
            ConversationModel.user_low_id == low,
            ConversationModel.user_high_id == high,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    @translate_errors
    async def list_for_user(
        self,
        user_id: int,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    ConversationModel.user_low_id == user_id,
                    ConversationModel.user_high_id == user_id,
                )
            )
            .order_by(
                ConversationModel.last_message_at.desc().nullslast(),
                ConversationModel.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def create(self, conversation: Conversation) -> Conversation:
        """Insert the pair's conversation, or return the row a concurrent insert won with."""
        model = mapper.entity_to_model(conversation)
        stmt = (
            pg_insert(ConversationModel)
            .values(
                id=model.id,
                user_low_id=model.user_low_id,
                user_high_id=model.user_high_id,
                last_message_summary=model.last_message_summary,
                last_message_at=model.last_message_at,
                created_at=model.created_at,
                updated_at=model.updated_at,
            )
            .on_conflict_do_nothing(constraint="uq_conversation_pair")
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row)

        existing = await self._session.execute(
            select(ConversationModel).where(
                ConversationModel.user_low_id == model.user_low_id,
                ConversationModel.user_high_id == model.user_high_id,
            )
        )
        return mapper.model_to_entity(existing.scalar_one())

    @translate_errors
    async def touch_last_message(
        self,
        conversation_id: UUID,
        summary: str,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_summary=summary, last_message_at=ts)
        )
        await self._session.execute(stmt)
