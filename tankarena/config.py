"""Server configuration loaded from a JSON file."""

from __future__ import annotations

import json
from dataclasses import dataclass
from os import PathLike
from typing import Any, Union

DEFAULT_CONFIG_PATH = "config.json"


@dataclass
class Config:
    """Listening port and the websocket endpoints of the server."""

    server_port: int = 0
    websocket_path: str = ""
    map_websocket_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration in its JSON form."""
        return {
            "server_port": self.server_port,
            "websocket_path": self.websocket_path,
            "map_websocket_path": self.map_websocket_path,
        }


def _expect(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int and isinstance(value, bool):
        raise ValueError(f"config field {key!r} must be an integer")
    if not isinstance(value, kind):
        raise ValueError(f"config field {key!r} must be of type {kind.__name__}")
    return value


def load_config(path: Union[str, PathLike] = DEFAULT_CONFIG_PATH) -> Config:
    """Read a configuration file; unknown fields are ignored, missing ones default."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        server_port=_expect(data, "server_port", int, 0),
        websocket_path=_expect(data, "websocket_path", str, ""),
        map_websocket_path=_expect(data, "map_websocket_path", str, ""),
    )