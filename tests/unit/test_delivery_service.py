from __future__ import annotations

import pytest

from comms_service.domain.value_objects.enums import DeliveryStatus, NotificationPriority
from comms_service.infrastructure.ws.protocol import OutboundEvent
from comms_service.services import delivery_service, message_service, notification_service
from tests.conftest import ALICE, BOB, FakeRealtime, make_conversation, make_message


class FlakyPusher(FakeRealtime):
    """Accepts the first `budget` pushes, then fails."""

    def __init__(self, online: set[int], budget: int) -> None:
        super().__init__(online)
        self.budget = budget

    async def push_to_user(self, user_id, event, data):
        if self.budget <= 0:
            return False
        self.budget -= 1
        return await super().push_to_user(user_id, event, data)


@pytest.fixture
def conv(uow):
    return uow.add_conversation(make_conversation(ALICE, BOB))


async def _send_offline(alice, conv, uow, realtime, queue, clock, contents):
    sent = []
    for text in contents:
        clock.advance(1)
        sent.append(await message_service.send_message(
            alice, conv.id, text, "text", uow, realtime, realtime, queue, clock=clock,
        ))
    return sent


@pytest.mark.asyncio
async def test_reconnect_flushes_queued_messages_in_order(alice, conv, uow, realtime, queue, clock):
    sent = await _send_offline(alice, conv, uow, realtime, queue, clock, ["one", "two", "three"])
    realtime.online.add(BOB)

    count = await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock)

    assert count == 3
    delivered = [d for e, d in realtime.events_for(BOB) if e == OutboundEvent.NEW_MESSAGE]
    assert [d["content"] for d in delivered] == ["one", "two", "three"]
    assert {d["delivery_status"] for d in delivered} == {DeliveryStatus.DELIVERED}
    for msg in sent:
        assert uow.messages.status_of(msg.id) == DeliveryStatus.DELIVERED
    assert queue.size(BOB) == 0


@pytest.mark.asyncio
async def test_second_flush_sends_nothing(alice, conv, uow, realtime, queue, clock):
    await _send_offline(alice, conv, uow, realtime, queue, clock, ["only"])
    realtime.online.add(BOB)

    assert await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock) == 1
    assert await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock) == 0
    assert len(realtime.events_for(BOB)) == 1


@pytest.mark.asyncio
async def test_persisted_queued_messages_survive_restart(conv, uow, realtime, queue, clock):
    # queued before a restart: in the store, not in memory
    msg = uow.add_message(make_message(conv, ALICE, status=DeliveryStatus.QUEUED))
    realtime.online.add(BOB)

    count = await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock)

    assert count == 1
    assert realtime.events_for(BOB)[0][1]["id"] == str(msg.id)
    assert uow.messages.status_of(msg.id) == DeliveryStatus.DELIVERED


@pytest.mark.asyncio
async def test_failed_push_requeues_remainder(alice, conv, uow, realtime, queue, clock):
    sent = await _send_offline(alice, conv, uow, realtime, queue, clock, ["a", "b", "c"])
    flaky = FlakyPusher({BOB}, budget=1)

    count = await delivery_service.deliver_queued(BOB, uow, queue, flaky, clock=clock)

    assert count == 1
    assert uow.messages.status_of(sent[0].id) == DeliveryStatus.DELIVERED
    assert uow.messages.status_of(sent[1].id) == DeliveryStatus.QUEUED
    assert [m.id for m in queue.flush(BOB)] == [sent[1].id, sent[2].id]


@pytest.mark.asyncio
async def test_requeued_items_go_out_on_next_connect(alice, conv, uow, realtime, queue, clock):
    await _send_offline(alice, conv, uow, realtime, queue, clock, ["a", "b"])
    await delivery_service.deliver_queued(BOB, uow, queue, FlakyPusher({BOB}, budget=0), clock=clock)
    realtime.online.add(BOB)

    count = await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock)

    assert count == 2
    assert [d["content"] for _, d in realtime.events_for(BOB)] == ["a", "b"]


@pytest.mark.asyncio
async def test_high_priority_notification_escalates_on_reconnect(uow, realtime, queue, clock):
    note = await notification_service.notify(
        BOB, "verification_status", "Verified", "Your account is verified",
        NotificationPriority.HIGH, uow, realtime, realtime, queue, clock=clock,
    )
    assert queue.size(BOB) == 1
    realtime.online.add(BOB)

    count = await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock)

    assert count == 1
    assert realtime.types_for(BOB) == [
        OutboundEvent.NEW_NOTIFICATION,
        OutboundEvent.NOTIFICATION_ESCALATION,
    ]
    pushed, escalation = (d for _, d in realtime.events_for(BOB))
    assert pushed["notification"]["id"] == str(note.id)
    assert pushed["unread_count"] == 1
    assert escalation["channels"] == ["toast"]
    assert escalation["auto_dismiss_ms"] == 4000
    assert escalation["require_interaction"] is False


@pytest.mark.asyncio
async def test_messages_and_notifications_keep_queue_order(alice, conv, uow, realtime, queue, clock):
    await _send_offline(alice, conv, uow, realtime, queue, clock, ["before"])
    await notification_service.notify(
        BOB, "system_announcement", "Maintenance", "Down at noon",
        NotificationPriority.URGENT, uow, realtime, realtime, queue, clock=clock,
    )
    await _send_offline(alice, conv, uow, realtime, queue, clock, ["after"])
    realtime.online.add(BOB)

    await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock)

    assert realtime.types_for(BOB) == [
        OutboundEvent.NEW_MESSAGE,
        OutboundEvent.NEW_NOTIFICATION,
        OutboundEvent.NOTIFICATION_ESCALATION,
        OutboundEvent.NEW_MESSAGE,
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("handled", ["read", "deleted"])
async def test_notification_handled_while_offline_is_not_replayed(
    bob, uow, realtime, queue, clock, handled,
):
    note = await notification_service.notify(
        BOB, "system_announcement", "Maintenance", "Down at noon",
        NotificationPriority.URGENT, uow, realtime, realtime, queue, clock=clock,
    )
    if handled == "read":
        await notification_service.mark_as_read(bob, note.id, uow, clock=clock)
    else:
        await notification_service.delete_notification(bob, note.id, uow)
    realtime.online.add(BOB)

    count = await delivery_service.deliver_queued(BOB, uow, queue, realtime, clock=clock)

    assert count == 0
    assert realtime.pushed == []
    assert queue.size(BOB) == 0
