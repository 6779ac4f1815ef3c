import json

import pytest

from tankarena.config import Config, load_config


def _write(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    return path


def test_load_full_config(tmp_path):
    path = _write(
        tmp_path,
        json.dumps(
            {"server_port": 8080, "websocket_path": "/ws", "map_websocket_path": "/map"}
        ),
    )
    config = load_config(path)
    assert config == Config(server_port=8080, websocket_path="/ws", map_websocket_path="/map")


def test_missing_fields_default(tmp_path):
    path = _write(tmp_path, json.dumps({"server_port": 9000}))
    config = load_config(path)
    assert config.server_port == 9000
    assert config.websocket_path == ""
    assert config.map_websocket_path == ""


def test_unknown_fields_ignored(tmp_path):
    path = _write(tmp_path, json.dumps({"websocket_path": "/ws", "extra": 1}))
    assert load_config(path).websocket_path == "/ws"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.json")


def test_wrong_type_raises(tmp_path):
    path = _write(tmp_path, json.dumps({"server_port": "8080"}))
    with pytest.raises(ValueError):
        load_config(path)


def test_bool_port_rejected(tmp_path):
    path = _write(tmp_path, json.dumps({"server_port": True}))
    with pytest.raises(ValueError):
        load_config(path)


def test_non_object_rejected(tmp_path):
    path = _write(tmp_path, "[1, 2]")
    with pytest.raises(ValueError):
        load_config(path)


def test_invalid_json_raises(tmp_path):
    path = _write(tmp_path, "{not json")
    with pytest.raises(json.JSONDecodeError):
        load_config(path)


def test_to_dict_round_trip(tmp_path):
    original = Config(server_port=8080, websocket_path="/ws", map_websocket_path="/map")
    path = _write(tmp_path, json.dumps(original.to_dict()))
    assert load_config(path) == original