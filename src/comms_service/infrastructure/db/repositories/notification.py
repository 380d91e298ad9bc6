from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from comms_service.application.dto.notification import NotificationFilterDTO
from comms_service.domain.entities.notification import (
    Notification,
    NotificationPreferences,
)
from comms_service.infrastructure.db.errors import translate_errors
from comms_service.infrastructure.db.mappers import notification as mapper
from comms_service.infrastructure.db.models.notification import (
    NotificationModel,
    NotificationPreferencesModel,
)


class NotificationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        result = await self._session.get(NotificationModel, notification_id)
        return mapper.model_to_entity(result) if result else None

    @translate_errors
    async def list_for_recipient(
        self,
        recipient_id: int,
        filters: NotificationFilterDTO,
    ) -> tuple[list[Notification], int]:
        conditions = [NotificationModel.recipient_id == recipient_id]
        if filters.type is not None:
            conditions.append(NotificationModel.type == filters.type)
        if filters.read is not None:
            conditions.append(NotificationModel.read == filters.read)
        if filters.priority is not None:
            conditions.append(NotificationModel.priority == filters.priority)

        total = await self._session.execute(
            select(func.count()).select_from(NotificationModel).where(*conditions)
        )
        stmt = (
            select(NotificationModel)
            .where(*conditions)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id)
            .limit(filters.limit)
            .offset(filters.offset)
        )
        result = await self._session.execute(stmt)
        items = [mapper.model_to_entity(m) for m in result.scalars().all()]
        return items, int(total.scalar_one())

    @translate_errors
    async def count_unread(self, recipient_id: int) -> int:
        stmt = select(func.count()).select_from(NotificationModel).where(
            NotificationModel.recipient_id == recipient_id,
            NotificationModel.read.is_(False),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class NotificationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def create(self, notification: Notification) -> Notification:
        model = mapper.entity_to_model(notification)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    @translate_errors
    async def mark_read(self, notification_id: UUID, ts: datetime) -> None:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.read.is_(False),
            )
            .values(read=True, read_at=ts)
        )
        await self._session.execute(stmt)

    @translate_errors
    async def mark_all_read(self, recipient_id: int, ts: datetime) -> int:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.read.is_(False),
            )
            .values(read=True, read_at=ts)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    @translate_errors
    async def delete(self, notification_id: UUID) -> None:
        await self._session.execute(
            delete(NotificationModel).where(NotificationModel.id == notification_id)
        )


class PreferencesRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translate_errors
    async def get(self, user_id: int) -> NotificationPreferences | None:
        result = await self._session.get(NotificationPreferencesModel, user_id)
        return mapper.prefs_to_entity(result) if result else None

    @translate_errors
    async def upsert(self, prefs: NotificationPreferences) -> NotificationPreferences:
        stmt = (
            pg_insert(NotificationPreferencesModel)
            .values(
                user_id=prefs.user_id,
                toast_enabled=prefs.toast_enabled,
                desktop_enabled=prefs.desktop_enabled,
            )
            .on_conflict_do_update(
                index_elements=[NotificationPreferencesModel.user_id],
                set_={
                    "toast_enabled": prefs.toast_enabled,
                    "desktop_enabled": prefs.desktop_enabled,
                    "updated_at": func.now(),
                },
            )
            .returning(NotificationPreferencesModel)
        )
        result = await self._session.execute(stmt)
        return mapper.prefs_to_entity(result.scalar_one())
