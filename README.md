# tankarena

A multiplayer tank arena game server. At startup it generates a random map of
rivers and forests and saves a PNG preview of it. The map is regenerated until
all open ground forms one connected region. The server then serves players over
WebSocket. Each player registers a username and gets a tank on a random free
cell. The server moves the tanks every 50 ms and broadcasts the game state to
every client every 50 ms. It also handles fire, hit and respawn events.

## Installation

```
pip install .
```

To install the test tools as well:

```
pip install ".[test]"
```

## Configuration

By default the server reads `config.json` from the current directory:

```json
{
  "server_port": 8080,
  "websocket_path": "/ws",
  "map_websocket_path": "/map"
}
```

- `server_port`: the TCP port to listen on.
- `websocket_path`: the game WebSocket endpoint.
- `map_websocket_path`: an endpoint that streams the whole map as text, one
  line per row. `□` marks an empty cell and `■` marks an occupied one.

Unknown fields are ignored. A missing field takes its default: `0` for the port
and an empty string for the paths. A field of the wrong type is an error. The
configuration in use is also served as JSON at `GET /config`.

## Running

```
tankarena
```

Options:

- `--config PATH`: the configuration file (default `config.json`).
- `--map-image PATH`: where to save the map preview (default `grid_points.png`).
  Ground is white, water blue and forest green.
- `--host ADDR`: the address to listen on (default `0.0.0.0`).

If the configuration cannot be loaded, the command exits with an error message.

## Protocol

Every message is a JSON object of the form
`{"type": n, "id": "...", "payload": {...}}`. Byte fields such as the map are
sent base64-encoded.

Messages a client sends:

| type | payload |
|------|---------|
| 15 | `{"Up": bool, "Down": bool, "Left": bool, "Right": bool, "Action": "fire" or ""}` |
| 16 | `{"username": str, "success": bool}`: register a username |
| 17 | `{"username": shooter, "victim": name}`: report a hit |
| 18 | `{"username": str, "success": bool}`: request a respawn |

Messages the server sends:

| type | meaning |
|------|---------|
| 0 | connection notice |
| 1 | map configuration, sent after registration |
| 2 | game state broadcast: the active tanks |
| 3 | shot event |
| 4 | rejection notice, for example for an empty or taken username |
| 5 | a tank appeared (`turnto: true`) or was knocked out (`turnto: false`) |
| 7 | hit event |

A client must register within 60 seconds of connecting, or the server closes
the connection. A tank can fire again once its reload has counted down, about
three seconds after a shot. A respawned tank keeps its owner's score.

Map cells hold `0` for empty ground, `1` for a tank, `2` for water and `3` for
forest.

## Library use

The map generator and the game rules can be used without the server:

```python
import random
from tankarena.model import GameMap
from tankarena.gamemap import generate_map, map_as_string, render_png
from tankarena.logic import World

grid = GameMap(1542, 512)
generate_map(grid, random.Random(1))
render_png(grid, "map.png")

world = World(grid, random.Random(2))
tank = world.spawn_tank("alice")
print(tank.to_dict())
world.render_tick()
```

`tankarena.protocol` provides `pack_message` and `unpack_message` for the JSON
envelope. `unpack_message` raises `ProtocolError` on malformed input or an
unknown message type.

## What it does not do

- There is no game client. Players need their own client that speaks the
  protocol above.
- The server does not track shells or detect collisions. It trusts the hits
  that clients report.
- Nothing is stored. Usernames, scores and the map last only while the server
  runs.