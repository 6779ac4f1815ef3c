"""Game constants, the map grid and the messages exchanged with clients."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

MAP_SIZE_X = 1542
MAP_SIZE_Y = 512
TICK_INTERVAL_MS = 50
MAP_RENDER_MS = 50
WAIT_REPLY_TIME = 60
TANK_RELOAD_SECONDS = 3
TANK_RELOAD_VALUE = TANK_RELOAD_SECONDS * 1000 // MAP_RENDER_MS * 5


class Direction(IntEnum):
    """Eight compass directions, numbered like a numeric keypad."""

    UP = 8
    UP_RIGHT = 9
    RIGHT = 6
    DOWN_RIGHT = 3
    DOWN = 2
    DOWN_LEFT = 1
    LEFT = 4
    UP_LEFT = 7
    NONE = 5


class TankStatus(IntEnum):
    FREE = 0
    TAKEN = 1


class GameMap:
    """A width x height grid of byte cells: 0 empty, 1 tank, 2 water, 3 forest."""

    def __init__(self, width: int = MAP_SIZE_X, height: int = MAP_SIZE_Y) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("map dimensions must be positive")
        self.width = width
        self.height = height
        self.cells = bytearray(width * height)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _index(self, x: int, y: int) -> int:
        if not self.in_bounds(x, y):
            raise IndexError(f"cell ({x}, {y}) is outside the map")
        return y * self.width + x

    def get(self, x: int, y: int) -> int:
        return self.cells[self._index(x, y)]

    def set(self, x: int, y: int, value: int) -> None:
        self.cells[self._index(x, y)] = value

    def clear(self) -> None:
        self.cells[:] = bytes(len(self.cells))

    def to_bytes(self) -> bytes:
        """Return the cells row by row."""
        return bytes(self.cells)


def _payload_dict(data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("payload must be a JSON object")
    return data


def _lookup(data: dict[str, Any], name: str) -> Any:
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _bool(data: dict[str, Any], name: str) -> bool:
    value = _lookup(data, name)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"payload field {name!r} must be a boolean")
    return value


def _str(data: dict[str, Any], name: str) -> str:
    value = _lookup(data, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"payload field {name!r} must be a string")
    return value


def _encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass(eq=False)
class Tank:
    """A tank on the map; compared by identity."""

    x: int
    y: int
    reload: int = 0
    trigger: bool = False
    gun_facing: int = Direction.DOWN
    status: int = TankStatus.FREE
    orientation: int = Direction.NONE
    username: str = ""
    point: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "reload": self.reload,
            "trigger": self.trigger,
            "gunfacing": int(self.gun_facing),
            "status": int(self.status),
            "orientation": int(self.orientation),
            "username": self.username,
            "point": self.point,
        }


@dataclass
class ShotEvent:
    username: str
    x: int
    y: int
    facing: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "x": self.x,
            "y": self.y,
            "orientation": int(self.facing),
        }


def _tanks_json(tanks: list[Tank]) -> Optional[list[dict[str, Any]]]:
    return [tank.to_dict() for tank in tanks] if tanks else None


@dataclass
class GameState:
    tanks: list[Tank] = field(default_factory=list)
    shot_events: list[ShotEvent] = field(default_factory=list)
    map: bytes = b""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"tanks": _tanks_json(self.tanks)}
        if self.shot_events:
            result["ShotEvents"] = [event.to_dict() for event in self.shot_events]
        if self.map:
            result["map"] = _encode_bytes(self.map)
        return result


@dataclass
class MapConfig:
    """Everything a client needs when it joins."""

    map: bytes
    map_size_x: int
    map_size_y: int
    tank_coord_x: int
    tank_coord_y: int
    tank_facing: int
    tick_interval_ms: int
    map_render_ms: int
    username: str
    tanks: list[Tank] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "map": _encode_bytes(self.map),
            "map_size_x": self.map_size_x,
            "map_size_y": self.map_size_y,
            "tank_coord_x": self.tank_coord_x,
            "tank_coord_y": self.tank_coord_y,
            "tank_facing": int(self.tank_facing),
            "tick_interval_ms": self.tick_interval_ms,
            "map_render_ms": self.map_render_ms,
            "username": self.username,
            "tanks": _tanks_json(self.tanks),
        }


@dataclass
class OperatePayload:
    up: bool = False
    down: bool = False
    left: bool = False
    right: bool = False
    action: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "OperatePayload":
        data = _payload_dict(data)
        return cls(
            up=_bool(data, "Up"),
            down=_bool(data, "Down"),
            left=_bool(data, "Left"),
            right=_bool(data, "Right"),
            action=_str(data, "Action"),
        )


@dataclass
class HitPayload:
    username: str = ""
    victim: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "HitPayload":
        data = _payload_dict(data)
        return cls(username=_str(data, "username"), victim=_str(data, "victim"))

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username, "victim": self.victim}


@dataclass
class RequestPayload:
    username: str = ""
    success: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "RequestPayload":
        data = _payload_dict(data)
        return cls(username=_str(data, "username"), success=_bool(data, "success"))


@dataclass
class RespawnPayload:
    username: str = ""
    success: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "RespawnPayload":
        data = _payload_dict(data)
        return cls(username=_str(data, "username"), success=_bool(data, "success"))


@dataclass
class NoticePayload:
    notice: str

    def to_dict(self) -> dict[str, Any]:
        return {"notice": self.notice}


@dataclass
class TankChangePayload:
    username: str
    turn_to: bool
    x: int
    y: int

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username, "turnto": self.turn_to, "x": self.x, "y": self.y}