"""WebSocket endpoint tests: auth, ping, live and deferred delivery."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from comms_service.app import create_app
from comms_service.domain.value_objects.enums import DeliveryStatus
from tests.conftest import ALICE, BOB, FakeUoW, make_conversation, make_token, uow_factory_for


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def client(uow):
    app = create_app(uow_factory=uow_factory_for(uow))
    with TestClient(app) as client:
        yield client


def _connect(client: TestClient, user_id: int):
    return client.websocket_connect(f"/ws?token={make_token(user_id)}")


def test_missing_token_closes_4001(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws"):
            pass
    assert exc.value.code == 4001


def test_invalid_token_closes_4001(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=garbage"):
            pass
    assert exc.value.code == 4001


def test_ping_pong(client):
    with _connect(client, ALICE) as ws:
        ws.send_json({"type": "ping", "data": {}})
        assert ws.receive_json() == {"type": "pong", "data": {}}


def test_unknown_event_gets_error_frame(client):
    with _connect(client, ALICE) as ws:
        ws.send_json({"type": "teleport", "data": {}})
        frame = ws.receive_json()
    assert frame["type"] == "error"
    assert frame["data"]["code"] == "unknown_type"


def test_message_to_offline_user_is_delivered_on_connect(client, uow):
    with _connect(client, ALICE) as alice:
        alice.send_json({"type": "send_message", "data": {"recipient_id": BOB, "content": "are you there?"}})
        assert alice.receive_json()["type"] == "conversation_updated"
        sent = alice.receive_json()
    assert sent["type"] == "message_sent"
    message_id = sent["data"]["message"]["id"]
    assert sent["data"]["message"]["delivery_status"] == DeliveryStatus.QUEUED

    with _connect(client, BOB) as bob:
        frame = bob.receive_json()

    assert frame["type"] == "new_message"
    assert frame["data"]["id"] == message_id
    assert frame["data"]["content"] == "are you there?"
    assert frame["data"]["delivery_status"] == DeliveryStatus.DELIVERED
    (stored,) = uow.messages._messages.values()
    assert stored.delivery_status == DeliveryStatus.DELIVERED


def test_live_message_reaches_connected_recipient(client, uow):
    conv = uow.add_conversation(make_conversation(ALICE, BOB))

    with _connect(client, BOB) as bob, _connect(client, ALICE) as alice:
        alice.send_json({
            "type": "send_message",
            "data": {"conversation_id": str(conv.id), "content": "hi bob"},
        })
        first = bob.receive_json()
        second = bob.receive_json()
        alice.receive_json()
        ack = alice.receive_json()

    assert first["type"] == "new_message"
    assert first["data"]["content"] == "hi bob"
    assert second["type"] == "conversation_updated"
    assert ack["data"]["message"]["delivery_status"] == DeliveryStatus.SENT


def test_join_conversation_reports_partner_presence(client, uow):
    conv = uow.add_conversation(make_conversation(ALICE, BOB))

    with _connect(client, ALICE) as alice:
        alice.send_json({"type": "join_conversation", "data": {"conversation_id": str(conv.id)}})
        joined = alice.receive_json()

    assert joined["type"] == "conversation_joined"
    assert joined["data"]["conversation"]["id"] == str(conv.id)
    assert joined["data"]["presence"] == {"user_id": BOB, "status": "offline"}
