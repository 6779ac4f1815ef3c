"""Websocket game server: client handshake, message dispatch and broadcasts."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Union

from aiohttp import WSMsgType, web

from .config import DEFAULT_CONFIG_PATH, Config, load_config
from .gamemap import generate_map, map_as_string, render_png
from .logic import World, open_fire, parse_direction
from .model import (
    MAP_RENDER_MS,
    TICK_INTERVAL_MS,
    WAIT_REPLY_TIME,
    Direction,
    GameMap,
    HitPayload,
    MapConfig,
    NoticePayload,
    OperatePayload,
    RequestPayload,
    RespawnPayload,
    Tank,
    TankChangePayload,
    TankStatus,
)
from .protocol import MessageType, ProtocolError, pack_message, unpack_message

logger = logging.getLogger(__name__)

BROADCAST_ID = "broadcast message gamer"
CONNECT_NOTICE = "websocket connect success"
CONNECT_NOTICE_ID = "perpartext"
USERNAME_REJECTED = "username is empty or already exists"
NO_SPAWN = b"No available spawn point"
MAP_IMAGE_PATH = "grid_points.png"

_SEND_ERRORS = (ConnectionError, RuntimeError)


@dataclass(eq=False)
class Client:
    """A connected player and the websocket that reaches it."""

    ws: Any
    id: str = ""
    tank: Optional[Tank] = None
    last_active: float = field(default_factory=time.monotonic)
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def send(self, data: bytes) -> None:
        """Send one text frame; writes from concurrent tasks never interleave."""
        async with self.write_lock:
            await self.ws.send_str(data.decode("utf-8"))


class GameServer:
    """Holds the connected clients and runs the game over websockets."""

    def __init__(self, config: Config, world: World) -> None:
        self.config = config
        self.world = world
        self.clients: dict[str, Client] = {}
        self.username_timeout: float = WAIT_REPLY_TIME

    def build_app(self) -> web.Application:
        """Create the web application with its routes and background loops."""
        app = web.Application()
        app.router.add_get(self.config.websocket_path, self.handle_game)
        app.router.add_get(self.config.map_websocket_path, self.handle_map)
        app.router.add_get("/config", self.handle_config)
        app.cleanup_ctx.append(self._background_tasks)
        return app

    async def _background_tasks(self, app: web.Application) -> AsyncIterator[None]:
        tasks = [
            asyncio.create_task(self.render_loop()),
            asyncio.create_task(self.broadcast_loop()),
        ]
        yield
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def handle_config(self, request: web.Request) -> web.Response:
        return web.json_response(self.config.to_dict())

    async def handle_map(self, request: web.Request) -> web.WebSocketResponse:
        """Stream the map as text to a viewer at the tick rate."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        try:
            while not ws.closed:
                await ws.send_str(map_as_string(self.world.grid))
                await asyncio.sleep(TICK_INTERVAL_MS / 1000)
        except _SEND_ERRORS as exc:
            logger.info("write map error: %s", exc)
        finally:
            await ws.close()
        return ws

    async def handle_game(self, request: web.Request) -> web.WebSocketResponse:
        """Run one player's connection from handshake to disconnect."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        client = Client(ws=ws)

        try:
            await client.send(
                pack_message(MessageType.NOTICE, NoticePayload(CONNECT_NOTICE), CONNECT_NOTICE_ID)
            )
        except _SEND_ERRORS as exc:
            logger.info("failed to send connect notice: %s", exc)
            await ws.close()
            return ws

        username = await self._wait_for_username(client)
        if username is None:
            logger.info("timed out or failed waiting for a username")
            await ws.close()
            return ws
        logger.info("got username: %s", username)
        client.id = username
        self.clients[username] = client

        tank = await self._allocate_tank(username)
        if tank is None:
            logger.info("no available spawn point for %s", username)
            try:
                await client.send(pack_message(MessageType.REJECT, NO_SPAWN, username))
            except _SEND_ERRORS:
                pass
            await ws.close()
            if self.clients.get(username) is client:
                del self.clients[username]
            self.world.remove_username(username)
            return ws

        client.tank = tank
        await self.send_config(client)
        logger.info(
            "new connection: %s at (%d,%d) facing %d",
            username, tank.x, tank.y, int(tank.orientation),
        )
        await self._serve_client(client)
        return ws

    async def _wait_for_username(self, client: Client) -> Optional[str]:
        try:
            return await asyncio.wait_for(self._read_username(client), self.username_timeout)
        except asyncio.TimeoutError:
            return None

    async def _read_username(self, client: Client) -> Optional[str]:
        while True:
            msg = await client.ws.receive()
            if msg.type not in (WSMsgType.TEXT, WSMsgType.BINARY):
                return None
            username = await self.register_username(client, msg.data)
            if username is not None:
                return username

    async def register_username(self, client: Client, raw: Union[bytes, str]) -> Optional[str]:
        """Handle a registration message; return the accepted username or None.

        A well-formed request with a bad username is answered with a reject notice.
        """
        try:
            message = unpack_message(raw)
        except ProtocolError as exc:
            logger.info("failed to parse registration message: %s", exc)
            return None
        request = message.payload
        if not isinstance(request, RequestPayload):
            logger.info("payload is not a registration request but %s", type(request).__name__)
            return None
        if request.success and self.world.is_username_legal(request.username):
            self.world.add_username(request.username)
            return request.username
        try:
            await client.send(
                pack_message(MessageType.REJECT, NoticePayload(USERNAME_REJECTED), request.username)
            )
        except _SEND_ERRORS as exc:
            logger.info("failed to send reject notice: %s", exc)
        return None

    async def _serve_client(self, client: Client) -> None:
        ws = client.ws
        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.info("connection %s error: %s", client.id, ws.exception())
                    break
                if msg.type not in (WSMsgType.TEXT, WSMsgType.BINARY):
                    continue
                try:
                    message = unpack_message(msg.data)
                except ProtocolError as exc:
                    logger.info("failed to parse JSON from %s: %s", client.id, exc)
                    continue
                payload = message.payload
                if isinstance(payload, OperatePayload):
                    await self.process_operate(client, payload)
                elif isinstance(payload, HitPayload):
                    await self.process_hit(payload)
                elif isinstance(payload, RespawnPayload):
                    await self.process_respawn(payload)
                else:
                    logger.info("unexpected payload %s", type(payload).__name__)
        finally:
            await self._release(client)

    async def _release(self, client: Client) -> None:
        await client.ws.close()
        if self.clients.get(client.id) is client:
            del self.clients[client.id]
        self.world.remove_username(client.id)
        if client.tank is not None:
            self.world.free_tank(client.tank)
            logger.info("freed spawn for %s", client.id)
        logger.info("connection %s closed", client.id)

    async def _allocate_tank(self, username: str) -> Optional[Tank]:
        tank = self.world.spawn_tank(username)
        if tank is None:
            return None
        change = TankChangePayload(username=username, turn_to=True, x=tank.x, y=tank.y)
        await self.broadcast(pack_message(MessageType.TANK_CHANGE, change, ""), "Broadcast change")
        return tank

    async def broadcast(self, data: bytes, log_prefix: str) -> None:
        """Send a frame to every client; a failing client does not stop the others."""
        for client in list(self.clients.values()):
            try:
                await client.send(data)
            except _SEND_ERRORS as exc:
                logger.info("%s error sending to %s: %s", log_prefix, client.id, exc)

    async def broadcast_game_state(self) -> None:
        data = pack_message(MessageType.GAME_STATE, self.world.build_game_state(), BROADCAST_ID)
        await self.broadcast(data, "Broadcast map")

    async def send_config(self, client: Client) -> None:
        """Send the joining client the map and everything it needs to play."""
        tank = client.tank
        if tank is None:
            raise ValueError("client has no tank")
        grid = self.world.grid
        config = MapConfig(
            map=grid.to_bytes(),
            map_size_x=grid.width,
            map_size_y=grid.height,
            tank_coord_x=tank.x,
            tank_coord_y=tank.y,
            tank_facing=tank.gun_facing,
            tick_interval_ms=TICK_INTERVAL_MS,
            map_render_ms=MAP_RENDER_MS,
            username=client.id,
            tanks=self.world.active_tanks(),
        )
        try:
            await client.send(pack_message(MessageType.CONFIG, config, client.id))
        except _SEND_ERRORS as exc:
            logger.info("write message error: %s", exc)

    async def process_operate(self, client: Client, op: OperatePayload) -> None:
        """Steer the client's tank and fire if asked and reloaded."""
        tank = client.tank
        if tank is None:
            return
        direction = parse_direction(op.up, op.down, op.left, op.right)
        client.last_active = time.monotonic()
        tank.orientation = direction
        if direction != Direction.NONE:
            tank.gun_facing = direction
        logger.debug(
            "[move event] tank %s at (%d,%d) facing %d",
            client.id, tank.x, tank.y, int(tank.orientation),
        )
        if op.action == "fire" and tank.reload == 0:
            shot = open_fire(tank)
            logger.info("[shot event] tank %s fires", client.id)
            await self.broadcast(pack_message(MessageType.SHOT, shot, BROADCAST_ID), "Broadcast fire")

    async def process_hit(self, hit: HitPayload) -> None:
        """Knock out the victim's tank and tell everyone."""
        victim: Optional[Client] = None
        for client in self.clients.values():
            if client.tank is None:
                continue
            if client.tank.username == hit.victim:
                victim = client
                break
            if client.tank.username == hit.username:
                client.tank.point += 1
        if victim is None or victim.tank is None:
            logger.info("victim tank %s not found, hit by %s", hit.victim, hit.username)
            return

        victim.tank.status = TankStatus.FREE
        change = TankChangePayload(
            username=victim.id, turn_to=False, x=victim.tank.x, y=victim.tank.y
        )
        await self.broadcast(pack_message(MessageType.TANK_CHANGE, change, ""), "Broadcast change")
        logger.info("[hit event] tank %s hit by %s", hit.victim, hit.username)
        await self.broadcast(pack_message(MessageType.HIT, hit, BROADCAST_ID), "Broadcast victim")

    async def process_respawn(self, respawn: RespawnPayload) -> None:
        """Give the player a fresh tank, keeping their score."""
        target = next(
            (
                client
                for client in self.clients.values()
                if client.tank is not None and client.tank.username == respawn.username
            ),
            None,
        )
        if target is None:
            logger.info("[respawn event] user %s not found", respawn.username)
            return
        new_tank = await self._allocate_tank(respawn.username)
        if new_tank is None:
            logger.info("[respawn event] no tank available for %s", respawn.username)
            return
        old_tank = target.tank
        if old_tank is not None and old_tank.username == respawn.username:
            new_tank.point = old_tank.point
            self.world.free_tank(old_tank)
            target.tank = new_tank
        else:
            logger.info("[respawn event] user %s disconnected meanwhile", respawn.username)
            self.world.free_tank(new_tank)

    async def render_loop(self) -> None:
        while True:
            await asyncio.sleep(MAP_RENDER_MS / 1000)
            self.world.render_tick()

    async def broadcast_loop(self) -> None:
        while True:
            await asyncio.sleep(TICK_INTERVAL_MS / 1000)
            await self.broadcast_game_state()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the tank arena game server.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="configuration file")
    parser.add_argument("--map-image", default=MAP_IMAGE_PATH, help="where to save the map PNG")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s.%(msecs)03d %(message)s",
                        datefmt="%H:%M:%S")
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"cannot load configuration: {exc}") from exc

    rng = random.Random()
    grid = GameMap()
    generate_map(grid, rng)
    render_png(grid, args.map_image)
    logger.info("map generated and saved as %s", args.map_image)

    server = GameServer(config, World(grid, rng))
    logger.info("WebSocket server started on %s:%d", args.host, config.server_port)
    web.run_app(server.build_app(), host=args.host, port=config.server_port, print=None)


if __name__ == "__main__":
    main()