from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, status

from comms_service.api.deps import CurrentPrincipal, UoWDep
from comms_service.api.v1.schemas.notification import (
    MarkAllReadResponse,
    NotificationPage,
    NotificationResponse,
    PreferencesResponse,
    UnreadCountResponse,
    UpdatePreferencesRequest,
)
from comms_service.application.dto.notification import NotificationFilterDTO
from comms_service.domain.value_objects.enums import NotificationPriority, NotificationType
from comms_service.services import notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
async def list_notifications(
    principal: CurrentPrincipal,
    uow: UoWDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: NotificationType | None = Query(None),
    read: bool | None = Query(None),
    priority: NotificationPriority | None = Query(None),
) -> NotificationPage:
    filters = NotificationFilterDTO(
        type=type, read=read, priority=priority, page=page, limit=limit,
    )
    result = await notification_service.list_notifications(principal, filters, uow)
    unread = await notification_service.unread_count(principal, uow)
    return NotificationPage(
        items=[NotificationResponse.model_validate(n, from_attributes=True) for n in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
        unread_count=unread,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(principal: CurrentPrincipal, uow: UoWDep) -> UnreadCountResponse:
    return UnreadCountResponse(
        unread_count=await notification_service.unread_count(principal, uow),
    )


@router.put("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_read(principal: CurrentPrincipal, uow: UoWDep) -> MarkAllReadResponse:
    count = await notification_service.mark_all_read(principal, uow)
    return MarkAllReadResponse(marked_read=count)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(principal: CurrentPrincipal, uow: UoWDep) -> PreferencesResponse:
    prefs = await notification_service.get_preferences(principal.user_id, uow)
    return PreferencesResponse.model_validate(prefs, from_attributes=True)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: UpdatePreferencesRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> PreferencesResponse:
    prefs = await notification_service.update_preferences(
        principal,
        uow,
        toast_enabled=body.toast_enabled,
        desktop_enabled=body.desktop_enabled,
    )
    return PreferencesResponse.model_validate(prefs, from_attributes=True)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> NotificationResponse:
    notification = await notification_service.mark_as_read(principal, notification_id, uow)
    return NotificationResponse.model_validate(notification, from_attributes=True)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> None:
    await notification_service.delete_notification(principal, notification_id, uow)
