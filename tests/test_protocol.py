import base64
import json

import pytest

from tankarena.model import GameState, HitPayload, NoticePayload, OperatePayload, RequestPayload, RespawnPayload
from tankarena.protocol import MessageType, ProtocolError, pack_message, unpack_message


def test_pack_notice():
    data = pack_message(MessageType.NOTICE, NoticePayload("websocket connect success"), "perpartext")
    assert json.loads(data) == {
        "type": 0,
        "id": "perpartext",
        "payload": {"notice": "websocket connect success"},
    }


def test_pack_bytes_payload_is_base64():
    data = pack_message(MessageType.REJECT, b"No available spawn point", "alice")
    decoded = json.loads(data)
    assert decoded["type"] == 4
    assert base64.b64decode(decoded["payload"]) == b"No available spawn point"


def test_pack_escapes_html():
    data = pack_message(MessageType.NOTICE, NoticePayload("<a&b>"), "")
    assert b"<" not in data and b"&" not in data
    assert json.loads(data)["payload"]["notice"] == "<a&b>"


def test_pack_empty_game_state():
    decoded = json.loads(pack_message(MessageType.GAME_STATE, GameState(), "x"))
    assert decoded["payload"] == {"tanks": None}


def test_pack_rejects_large_type():
    with pytest.raises(ValueError):
        pack_message(256, None, "")


def test_unpack_operate_case_insensitive():
    raw = json.dumps({"type": 15, "id": "alice", "payload": {"up": True, "Right": True, "Action": "fire"}})
    message = unpack_message(raw.encode())
    assert message.type == MessageType.OPERATE
    assert message.id == "alice"
    assert message.payload == OperatePayload(up=True, right=True, action="fire")


def test_unpack_request_respawn_and_hit():
    req = unpack_message(json.dumps({"type": 16, "payload": {"username": "bob", "success": True}}))
    assert req.payload == RequestPayload(username="bob", success=True)
    assert req.id == ""
    res = unpack_message(json.dumps({"type": 18, "payload": {"username": "bob"}}))
    assert res.payload == RespawnPayload(username="bob", success=False)
    hit = unpack_message(json.dumps({"type": 17, "payload": {"username": "a", "victim": "b"}}))
    assert hit.payload == HitPayload(username="a", victim="b")


def test_round_trip_hit():
    hit = HitPayload(username="a", victim="b")
    message = unpack_message(pack_message(MessageType.HIT_REPORT, hit, "id1"))
    assert message.payload == hit
    assert message.id == "id1"


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[1, 2]",
        b'{"type": 3, "payload": {}}',
        b'{"payload": {}}',
        b'{"type": 300, "payload": {}}',
        b'{"type": 15.5, "payload": {}}',
        b'{"type": 17, "payload": "text"}',
        b'{"type": 15, "payload": {"Up": "yes"}}',
        b'{"type": 16, "id": 5, "payload": {}}',
    ],
)
def test_unpack_errors(raw):
    with pytest.raises(ProtocolError):
        unpack_message(raw)