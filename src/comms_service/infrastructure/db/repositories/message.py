from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from comms_service.domain.entities.message import Message
from comms_service.domain.value_objects.enums import DeliveryStatus
from comms_service.infrastructure.db.errors import translate_errors
from comms_service.infrastructure.db.mappers import message as mapper
from comms_service.infrastructure.db.models.message import MessageModel

_UNREAD = (DeliveryStatus.SENT, DeliveryStatus.QUEUED, DeliveryStatus.DELIVERED)
_READABLE = (DeliveryStatus.SENT, DeliveryStatus.DELIVERED)


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def get_by_id(self, message_id: UUID) -> Message | None:
        result = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(result) if result else None

    @translate_errors
    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    @translate_errors
    async def list_queued_for_recipient(self, recipient_id: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.recipient_id == recipient_id,
                MessageModel.delivery_status == DeliveryStatus.QUEUED,
            )
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    @translate_errors
    async def count_unread(
        self,
        recipient_id: int,
        conversation_id: UUID | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(MessageModel).where(
            MessageModel.recipient_id == recipient_id,
            MessageModel.delivery_status.in_(_UNREAD),
        )
        if conversation_id is not None:
            stmt = stmt.where(MessageModel.conversation_id == conversation_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def create(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    @translate_errors
    async def transition(
        self,
        message_ids: list[UUID],
        target: DeliveryStatus,
        ts: datetime,
    ) -> list[UUID]:
        if not message_ids:
            return []
        values: dict[str, object] = {"delivery_status": target}
        if target is DeliveryStatus.DELIVERED:
            values["delivered_at"] = ts
        elif target is DeliveryStatus.READ:
            values["read_at"] = ts
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id.in_(message_ids),
                MessageModel.delivery_status.in_(target.predecessors()),
            )
            .values(**values)
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    @translate_errors
    async def mark_conversation_read(
        self,
        conversation_id: UUID,
        recipient_id: int,
        ts: datetime,
    ) -> list[UUID]:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.delivery_status.in_(_READABLE),
            )
            .values(delivery_status=DeliveryStatus.READ, read_at=ts)
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
