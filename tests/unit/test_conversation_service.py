from __future__ import annotations

import uuid

import pytest

from comms_service.application.dto.principal import Principal
from comms_service.application.exceptions import NotFoundError, ValidationError
from comms_service.services import conversation_service
from tests.conftest import ALICE, BOB, CAROL, T0, make_conversation


@pytest.mark.asyncio
async def test_start_creates_new_conversation(alice, uow, clock):
    conv = await conversation_service.start_conversation(alice, BOB, uow, clock=clock)

    assert conv.participant_ids == frozenset({ALICE, BOB})
    assert conv.created_at == T0
    assert conv.last_message_at is None
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_start_returns_existing_in_either_direction(alice, bob, uow, clock):
    first = await conversation_service.start_conversation(alice, BOB, uow, clock=clock)
    second = await conversation_service.start_conversation(bob, ALICE, uow, clock=clock)

    assert second.id == first.id
    assert uow.commits == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("other", [ALICE, 0, -5])
async def test_start_rejects_self_and_invalid_ids(alice, uow, other):
    with pytest.raises(ValidationError):
        await conversation_service.start_conversation(alice, other, uow)
    assert uow.conversations._store == {}


@pytest.mark.asyncio
async def test_list_user_conversations_most_recent_first(alice, uow, clock):
    older = make_conversation(ALICE, BOB)
    newer = make_conversation(ALICE, CAROL)
    unrelated = make_conversation(BOB, CAROL)
    for conv in (older, newer, unrelated):
        uow.add_conversation(conv)
    await uow.conversations_w.touch_last_message(newer.id, "hi", clock.advance(10))

    result = await conversation_service.list_user_conversations(alice, 20, 0, uow)

    assert [c.id for c in result] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_list_user_conversations_paginates(alice, uow):
    for other in (BOB, CAROL, 4):
        uow.add_conversation(make_conversation(ALICE, other))

    page = await conversation_service.list_user_conversations(alice, 2, 2, uow)

    assert len(page) == 1


@pytest.mark.asyncio
async def test_get_conversation_checks_membership(alice, uow):
    conv = uow.add_conversation(make_conversation(ALICE, BOB))

    assert (await conversation_service.get_conversation(conv.id, alice, uow)).id == conv.id
    with pytest.raises(ValidationError):
        await conversation_service.get_conversation(conv.id, Principal(user_id=CAROL), uow)


@pytest.mark.asyncio
async def test_get_missing_conversation(alice, uow):
    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation(uuid.uuid4(), alice, uow)
