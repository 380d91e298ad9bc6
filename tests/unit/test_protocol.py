from __future__ import annotations

import json
import uuid

import pydantic
import pytest

from comms_service.infrastructure.ws.protocol import (
    GetNotificationsCommand,
    InboundEvent,
    OutboundEvent,
    SendMessageCommand,
    WsInbound,
    encode,
    parse_command,
)


def test_every_inbound_event_has_a_command_schema():
    for event in InboundEvent:
        parsed_event, _ = parse_command(WsInbound(type=event.value, data=_minimal(event)))
        assert parsed_event is event


def _minimal(event: InboundEvent) -> dict:
    ref = str(uuid.uuid4())
    if event is InboundEvent.SEND_MESSAGE:
        return {"recipient_id": 2, "content": "hi"}
    if event in (InboundEvent.MARK_NOTIFICATION_READ, InboundEvent.DELETE_NOTIFICATION):
        return {"notification_id": ref}
    if event in (InboundEvent.GET_NOTIFICATIONS, InboundEvent.MARK_ALL_READ, InboundEvent.PING):
        return {}
    return {"conversation_id": ref}


def test_unknown_event_raises_value_error():
    with pytest.raises(ValueError):
        parse_command(WsInbound(type="teleport"))


def test_send_message_needs_a_target():
    with pytest.raises(pydantic.ValidationError):
        SendMessageCommand.model_validate({"content": "hi"})


def test_send_message_defaults_to_text():
    _, cmd = parse_command(
        WsInbound(type="send_message", data={"conversation_id": str(uuid.uuid4()), "content": "hi"})
    )
    assert cmd.type == "text"
    assert cmd.recipient_id is None


def test_get_notifications_bounds():
    assert GetNotificationsCommand().limit == 20
    with pytest.raises(pydantic.ValidationError):
        GetNotificationsCommand(limit=101)
    with pytest.raises(pydantic.ValidationError):
        GetNotificationsCommand(page=0)


def test_encode_produces_type_data_envelope():
    frame = json.loads(encode(OutboundEvent.PONG, {}))
    assert frame == {"type": "pong", "data": {}}
