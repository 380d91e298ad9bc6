from __future__ import annotations

import logging

from fastapi import APIRouter

from comms_service.api.deps import CurrentAdmin, ManagerDep, QueueDep
from comms_service.api.v1.schemas.admin import ClearQueueResponse, RealtimeStatsResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin/realtime", tags=["admin"])


@router.get("/stats", response_model=RealtimeStatsResponse)
async def realtime_stats(
    admin: CurrentAdmin,
    manager: ManagerDep,
    queue: QueueDep,
) -> RealtimeStatsResponse:
    return RealtimeStatsResponse(
        connections=manager.stats(),
        offline_queue=queue.stats(),
        online_users=manager.presence.online_count(),
    )


@router.delete("/queues/{user_id}", response_model=ClearQueueResponse)
async def clear_queue(
    user_id: int,
    admin: CurrentAdmin,
    queue: QueueDep,
) -> ClearQueueResponse:
    """Drop a user's in-memory offline queue (moderation). Persisted messages are untouched."""
    async with queue.locked(user_id):
        cleared = queue.size(user_id)
        queue.clear(user_id)
    logger.warning("Admin %s cleared offline queue of user %s", admin.user_id, user_id)
    return ClearQueueResponse(user_id=user_id, cleared=cleared)
