"""Tank movement, firing and the shared world state of a running game."""

from __future__ import annotations

import logging
import random
from typing import Optional

from .gamemap import EMPTY, TANK, direction_delta, mark_tank
from .model import (
    TANK_RELOAD_VALUE,
    Direction,
    GameMap,
    GameState,
    ShotEvent,
    Tank,
    TankStatus,
)

logger = logging.getLogger(__name__)

RELOAD_STEP = 5

_DIRECTION_SYMBOLS = {
    Direction.UP: "↑",
    Direction.UP_RIGHT: "↗",
    Direction.RIGHT: "→",
    Direction.DOWN_RIGHT: "↘",
    Direction.DOWN: "↓",
    Direction.DOWN_LEFT: "↙",
    Direction.LEFT: "←",
    Direction.UP_LEFT: "↖",
    Direction.NONE: "o",
}


def parse_direction(up: bool, down: bool, left: bool, right: bool) -> Direction:
    """Turn the four pressed keys into a movement direction."""
    if up and left and not down and not right:
        return Direction.UP_LEFT
    if up and right and not down and not left:
        return Direction.UP_RIGHT
    if down and left and not up and not right:
        return Direction.DOWN_LEFT
    if down and right and not up and not left:
        return Direction.DOWN_RIGHT
    if up and not down:
        return Direction.UP
    if down and not up:
        return Direction.DOWN
    if left and not right:
        return Direction.LEFT
    if right and not left:
        return Direction.RIGHT
    return Direction.NONE


def open_fire(tank: Tank) -> ShotEvent:
    """Fire the tank's gun: start its reload and describe the shot."""
    shot = ShotEvent(username=tank.username, x=tank.x, y=tank.y, facing=tank.gun_facing)
    tank.reload = TANK_RELOAD_VALUE
    tank.trigger = False
    return shot


def move_tank(grid: GameMap, tank: Tank) -> bool:
    """Step the tank one cell along its orientation if the way is free.

    A diagonal step needs a free target and at least one free side cell.
    Returns whether the tank moved.
    """
    if tank.orientation == Direction.NONE:
        return False
    dx, dy = direction_delta(tank.orientation)
    if (dx, dy) == (0, 0):
        return False
    nx, ny = tank.x + dx, tank.y + dy
    if not grid.in_bounds(nx, ny):
        return False

    def free(x: int, y: int) -> bool:
        return grid.get(x, y) == EMPTY

    if not free(nx, ny):
        return False
    if dx != 0 and dy != 0 and not free(nx, tank.y) and not free(tank.x, ny):
        return False
    tank.x, tank.y = nx, ny
    return True


def tank_shape(tank: Tank) -> str:
    """Draw the tank as a 3x3 block with its heading in the middle."""
    try:
        symbol = _DIRECTION_SYMBOLS[Direction(tank.orientation)]
    except ValueError:
        symbol = ""
    return f"###\n#{symbol}#\n###\n"


class World:
    """The map together with the tanks, shots and usernames in play."""

    def __init__(self, grid: GameMap, rng: Optional[random.Random] = None) -> None:
        self.grid = grid
        self.rng = rng or random.Random()
        self.tanks: list[Tank] = []
        self.shot_events: list[ShotEvent] = []
        self.usernames: list[str] = []

    def render_tick(self) -> None:
        """Advance every taken tank one step and count down reloads."""
        for tank in self.tanks:
            if tank.status == TankStatus.TAKEN:
                mark_tank(self.grid, tank, EMPTY)
                move_tank(self.grid, tank)
                mark_tank(self.grid, tank, TANK)
            if tank.reload:
                tank.reload = max(0, tank.reload - RELOAD_STEP)

    def active_tanks(self) -> list[Tank]:
        return [tank for tank in self.tanks if tank.status != TankStatus.FREE]

    def build_game_state(self) -> GameState:
        return GameState(tanks=self.active_tanks(), shot_events=list(self.shot_events))

    def init_spawn_tanks(self) -> list[Tank]:
        """Place eight free tanks at the corners and edge midpoints."""
        w, h = self.grid.width, self.grid.height
        coords = [
            (1, 1),
            (w // 2, 1),
            (w - 2, 1),
            (w - 2, h // 2),
            (w - 2, h - 2),
            (w // 2, h - 2),
            (1, h - 2),
            (1, h // 2),
        ]
        created = [
            Tank(x=x, y=y, gun_facing=Direction.DOWN, status=TankStatus.FREE, orientation=Direction.NONE)
            for x, y in coords
        ]
        self.tanks.extend(created)
        return created

    def spawn_tank(self, username: str) -> Optional[Tank]:
        """Put a new tank for the user on a random empty cell.

        Returns None when the map has no empty cell left.
        """
        if EMPTY not in self.grid.cells:
            return None
        while True:
            x = self.rng.randrange(self.grid.width)
            y = self.rng.randrange(self.grid.height)
            if self.grid.get(x, y) == EMPTY:
                break
        tank = Tank(
            x=x,
            y=y,
            gun_facing=Direction.DOWN,
            status=TankStatus.TAKEN,
            orientation=Direction.NONE,
            username=username,
        )
        self.tanks.append(tank)
        mark_tank(self.grid, tank, TANK)
        return tank

    def free_tank(self, tank: Tank) -> None:
        """Clear the tank from the map and drop it from play."""
        mark_tank(self.grid, tank, EMPTY)
        for index, candidate in enumerate(self.tanks):
            if candidate is tank:
                self.tanks[index] = self.tanks[-1]
                self.tanks.pop()
                return

    def is_username_legal(self, username: str) -> bool:
        """A username is legal when it is non-empty and not yet in use."""
        return bool(username) and username not in self.usernames

    def add_username(self, username: str) -> None:
        self.usernames.append(username)

    def remove_username(self, username: str) -> None:
        self.usernames = [name for name in self.usernames if name != username]
        logger.info("removed username %s", username)