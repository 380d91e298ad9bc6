from __future__ import annotations

from pydantic import BaseModel


class QueueStats(BaseModel):
    total_users: int
    total_entries: int
    average_per_user: int


class ConnectionStatsResponse(BaseModel):
    total_connections: int
    active_connections: int
    replaced_sessions: int
    inbound_events: int
    outbound_events: int
    errors: int
    open_rooms: int


class RealtimeStatsResponse(BaseModel):
    connections: ConnectionStatsResponse
    offline_queue: QueueStats
    online_users: int


class ClearQueueResponse(BaseModel):
    user_id: int
    cleared: int
