from __future__ import annotations

import pytest

from comms_service.domain.value_objects.enums import PresenceStatus
from comms_service.infrastructure.ws.presence import PresenceRegistry
from tests.conftest import FakeClock, FakeConnection


@pytest.fixture
def registry(clock: FakeClock) -> PresenceRegistry:
    return PresenceRegistry(clock, away_after_seconds=300, offline_after_seconds=90)


@pytest.mark.asyncio
async def test_set_online_registers_session(registry, clock):
    conn = FakeConnection()
    session = await registry.set_online(1, conn)

    assert registry.is_online(1)
    assert registry.status_of(1) == PresenceStatus.ONLINE
    assert session.last_active_at == clock.now()
    assert registry.online_count() == 1


@pytest.mark.asyncio
async def test_new_session_replaces_and_closes_previous(registry):
    old, new = FakeConnection(), FakeConnection()
    await registry.set_online(1, old)
    await registry.set_online(1, new)

    assert registry.get(1).connection is new
    assert old.closed == (4000, "Session replaced")
    assert new.closed is None
    assert registry.online_count() == 1


@pytest.mark.asyncio
async def test_late_disconnect_of_replaced_socket_keeps_new_session(registry):
    old, new = FakeConnection(), FakeConnection()
    await registry.set_online(1, old)
    await registry.set_online(1, new)

    assert registry.set_offline(1, old) is None
    assert registry.is_online(1)

    removed = registry.set_offline(1, new)
    assert removed is not None
    assert removed.status == PresenceStatus.OFFLINE
    assert not registry.is_online(1)


def test_unknown_user_is_offline(registry):
    assert registry.status_of(42) == PresenceStatus.OFFLINE
    assert registry.touch(42) is None
    assert registry.set_offline(42) is None


@pytest.mark.asyncio
async def test_idle_user_goes_away_then_back_online(registry, clock):
    await registry.set_online(1, FakeConnection())
    # transport stays alive, user does nothing
    for _ in range(5):
        clock.advance(60)
        registry.heartbeat(1)

    transitions = await registry.sweep()

    assert [(t.previous, t.current) for t in transitions] == [
        (PresenceStatus.ONLINE, PresenceStatus.AWAY)
    ]
    assert registry.status_of(1) == PresenceStatus.AWAY

    back = registry.touch(1)
    assert back is not None
    assert back.current == PresenceStatus.ONLINE
    assert registry.status_of(1) == PresenceStatus.ONLINE


@pytest.mark.asyncio
async def test_silent_transport_is_evicted(registry, clock):
    conn = FakeConnection()
    await registry.set_online(1, conn)
    clock.advance(91)

    transitions = await registry.sweep()

    assert len(transitions) == 1
    assert transitions[0].current == PresenceStatus.OFFLINE
    assert not registry.is_online(1)
    assert conn.closed == (4008, "Heartbeat timeout")


@pytest.mark.asyncio
async def test_heartbeat_does_not_count_as_activity(registry, clock):
    await registry.set_online(1, FakeConnection())
    clock.advance(60)
    registry.heartbeat(1)

    session = registry.get(1)
    assert session.last_seen_at == clock.now()
    assert session.last_active_at < clock.now()
