"""JSON envelope used on the game websocket."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Union

from .model import HitPayload, OperatePayload, RequestPayload, RespawnPayload


class MessageType(IntEnum):
    NOTICE = 0
    CONFIG = 1
    GAME_STATE = 2
    SHOT = 3
    REJECT = 4
    TANK_CHANGE = 5
    HIT = 7
    OPERATE = 15
    REQUEST = 16
    HIT_REPORT = 17
    RESPAWN = 18


class ProtocolError(ValueError):
    """A message could not be decoded."""


@dataclass
class Message:
    type: int
    id: str
    payload: Any


_PAYLOAD_TYPES = {
    MessageType.OPERATE: OperatePayload,
    MessageType.REQUEST: RequestPayload,
    MessageType.HIT_REPORT: HitPayload,
    MessageType.RESPAWN: RespawnPayload,
}

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _to_json(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return _to_json(value.to_dict())
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, IntEnum):
        return int(value)
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return value


def pack_message(msg_type: int, payload: Any, message_id: str = "") -> bytes:
    """Wrap a payload in the envelope and encode it as compact JSON."""
    if not 0 <= int(msg_type) <= 255:
        raise ValueError("message type must fit in a byte")
    envelope = {"type": int(msg_type), "id": message_id, "payload": _to_json(payload)}
    text = json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))
    for char, escaped in _ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def _field(data: dict[str, Any], name: str) -> Any:
    if name in data:
        return data[name]
    for key, value in data.items():
        if key.lower() == name:
            return value
    return None


def unpack_message(data: Union[bytes, str]) -> Message:
    """Decode an envelope sent by a client and parse its payload."""
    try:
        envelope = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"invalid JSON: {exc}") from exc
    if envelope is None:
        envelope = {}
    if not isinstance(envelope, dict):
        raise ProtocolError("message must be a JSON object")

    raw_type = _field(envelope, "type")
    if raw_type is None:
        raw_type = 0
    if isinstance(raw_type, bool) or not isinstance(raw_type, int) or not 0 <= raw_type <= 255:
        raise ProtocolError(f"invalid message type: {raw_type!r}")

    message_id = _field(envelope, "id")
    if message_id is None:
        message_id = ""
    if not isinstance(message_id, str):
        raise ProtocolError("message id must be a string")

    try:
        msg_type = MessageType(raw_type)
        payload_cls = _PAYLOAD_TYPES[msg_type]
    except (ValueError, KeyError):
        raise ProtocolError(f"unknown message type: {raw_type}") from None

    try:
        payload = payload_cls.from_dict(_field(envelope, "payload"))
    except ValueError as exc:
        raise ProtocolError(str(exc)) from exc
    return Message(type=msg_type, id=message_id, payload=payload)