"""Random terrain generation, connectivity checking and map rendering."""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from os import PathLike
from typing import Optional, Sequence, Union

from PIL import Image

from .model import Direction, GameMap, Tank

logger = logging.getLogger(__name__)

EMPTY = 0
TANK = 1
WATER = 2
FOREST = 3

SEED_RADIUS = 175.0
SEED_ATTEMPTS = 100
RIVER_WEIGHTS = (8.0, 5.0, 5.0)
RIVER_TURN_EVERY = 15

_DELTAS = {
    Direction.UP: (0, -1),
    Direction.UP_RIGHT: (1, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN_RIGHT: (1, 1),
    Direction.DOWN: (0, 1),
    Direction.DOWN_LEFT: (-1, 1),
    Direction.LEFT: (-1, 0),
    Direction.UP_LEFT: (-1, -1),
}

# For each heading: itself, its two neighbours, then the two one step further out.
ALLOWED_DIRS = {
    Direction.UP: (Direction.UP, Direction.UP_RIGHT, Direction.UP_LEFT, Direction.RIGHT, Direction.LEFT),
    Direction.DOWN: (Direction.DOWN, Direction.DOWN_RIGHT, Direction.DOWN_LEFT, Direction.RIGHT, Direction.LEFT),
    Direction.LEFT: (Direction.LEFT, Direction.UP_LEFT, Direction.DOWN_LEFT, Direction.UP, Direction.DOWN),
    Direction.RIGHT: (Direction.RIGHT, Direction.UP_RIGHT, Direction.DOWN_RIGHT, Direction.UP, Direction.DOWN),
    Direction.UP_RIGHT: (Direction.UP_RIGHT, Direction.UP, Direction.RIGHT, Direction.UP_LEFT, Direction.DOWN_RIGHT),
    Direction.UP_LEFT: (Direction.UP_LEFT, Direction.UP, Direction.LEFT, Direction.UP_RIGHT, Direction.DOWN_LEFT),
    Direction.DOWN_RIGHT: (Direction.DOWN_RIGHT, Direction.DOWN, Direction.RIGHT, Direction.UP_RIGHT, Direction.DOWN_LEFT),
    Direction.DOWN_LEFT: (Direction.DOWN_LEFT, Direction.DOWN, Direction.LEFT, Direction.UP_LEFT, Direction.DOWN_RIGHT),
}

_RIVER_START_DIRS = tuple(_DELTAS)
_NEIGHBOURS = ((1, 0), (-1, 0), (0, 1), (0, -1))

Point = tuple[int, int]


def direction_delta(direction: int) -> Point:
    """Return the (dx, dy) step of a direction; (0, 0) for none or unknown."""
    try:
        return _DELTAS[Direction(direction)]
    except (ValueError, KeyError):
        return (0, 0)


def random_dir(weights: Sequence[float], rng: random.Random) -> int:
    """Pick an index with probability proportional to its weight."""
    remaining = rng.random() * sum(weights)
    for index, weight in enumerate(weights):
        remaining -= weight
        if remaining < 0:
            return index
    return 0


def generate_river(
    grid: GameMap, x: int, y: int, steps: int, rng: random.Random
) -> list[Point]:
    """Lay a meandering line of water from (x, y).

    A river blocked by the edge or by terrain during its first half is removed
    entirely. Returns the cells that remain painted.
    """
    built = [(x, y)]
    grid.set(x, y, WATER)
    preferred = rng.choice(_RIVER_START_DIRS)
    options = ALLOWED_DIRS[preferred]
    for step in range(steps):
        if step % RIVER_TURN_EVERY == 0:
            preferred = options[random_dir(RIVER_WEIGHTS, rng)]
            options = ALLOWED_DIRS[preferred]
        dx, dy = direction_delta(preferred)
        nx, ny = x + dx, y + dy
        if not grid.in_bounds(nx, ny) or grid.get(nx, ny) != EMPTY:
            if step < steps // 2:
                for px, py in built:
                    grid.set(px, py, EMPTY)
                return []
            break
        grid.set(nx, ny, WATER)
        built.append((nx, ny))
        x, y = nx, ny
    return built


def generate_tree(grid: GameMap, x: int, y: int, steps: int) -> list[Point]:
    """Grow forest outward from (x, y) for a number of breadth-first levels.

    Growth stops at once when it touches water. Returns the painted cells.
    """
    grid.set(x, y, FOREST)
    built = [(x, y)]
    visited = {(x, y)}
    queue = deque(built)
    for _ in range(steps):
        if not queue:
            break
        for _ in range(len(queue)):
            cx, cy = queue.popleft()
            for dx, dy in _NEIGHBOURS:
                nx, ny = cx + dx, cy + dy
                if not grid.in_bounds(nx, ny):
                    continue
                cell = grid.get(nx, ny)
                if cell == WATER:
                    return built
                if (nx, ny) in visited or cell != EMPTY:
                    continue
                grid.set(nx, ny, FOREST)
                built.append((nx, ny))
                visited.add((nx, ny))
                queue.append((nx, ny))
    return built


def generate_circle(grid: GameMap, center_x: int, center_y: int, radius: int) -> list[Point]:
    """Fill a disc of forest reachable from the centre; stops on touching water."""
    grid.set(center_x, center_y, FOREST)
    built = [(center_x, center_y)]
    visited = {(center_x, center_y)}
    queue = deque(built)
    limit = radius * radius
    while queue:
        cx, cy = queue.popleft()
        for dx, dy in _NEIGHBOURS:
            nx, ny = cx + dx, cy + dy
            if not grid.in_bounds(nx, ny):
                continue
            cell = grid.get(nx, ny)
            if cell == WATER:
                return built
            if (nx, ny) in visited or cell != EMPTY:
                continue
            ox, oy = nx - center_x, ny - center_y
            if ox * ox + oy * oy <= limit:
                grid.set(nx, ny, FOREST)
                built.append((nx, ny))
                visited.add((nx, ny))
                queue.append((nx, ny))
    return built


def poisson_sample(
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    r: float,
    k: int,
    rng: Optional[random.Random] = None,
) -> list[tuple[float, float]]:
    """Poisson-disc sample the rectangle: no two points closer than r."""
    if r <= 0:
        raise ValueError("minimum distance must be positive")
    if x1 <= x0 or y1 <= y0:
        raise ValueError("sampling rectangle is empty")
    rng = rng or random.Random()
    cell_size = r / math.sqrt(2)
    occupied: dict[tuple[int, int], tuple[float, float]] = {}

    def cell_of(p: tuple[float, float]) -> tuple[int, int]:
        return int((p[0] - x0) / cell_size), int((p[1] - y0) / cell_size)

    def fits(p: tuple[float, float]) -> bool:
        cx, cy = cell_of(p)
        for gx in range(cx - 2, cx + 3):
            for gy in range(cy - 2, cy + 3):
                other = occupied.get((gx, gy))
                if other is not None and math.dist(p, other) < r:
                    return False
        return True

    first = (rng.uniform(x0, x1), rng.uniform(y0, y1))
    points = [first]
    active = [first]
    occupied[cell_of(first)] = first
    while active:
        index = rng.randrange(len(active))
        px, py = active[index]
        for _ in range(k):
            angle = rng.uniform(0.0, 2 * math.pi)
            distance = rng.uniform(r, 2 * r)
            candidate = (px + distance * math.cos(angle), py + distance * math.sin(angle))
            if not (x0 <= candidate[0] < x1 and y0 <= candidate[1] < y1):
                continue
            if fits(candidate):
                points.append(candidate)
                active.append(candidate)
                occupied[cell_of(candidate)] = candidate
                break
        else:
            active[index] = active[-1]
            active.pop()
    return points


def check_zero_connectivity(grid: GameMap) -> bool:
    """Return True when all empty cells form one 4-connected region."""
    cells = grid.cells
    width = grid.width
    size = len(cells)
    start = cells.find(EMPTY)
    if start < 0:
        return True
    visited = bytearray(size)
    visited[start] = 1
    queue = deque([start])
    reached = 1
    while queue:
        index = queue.popleft()
        x = index % width
        neighbours = []
        if x + 1 < width:
            neighbours.append(index + 1)
        if x > 0:
            neighbours.append(index - 1)
        if index + width < size:
            neighbours.append(index + width)
        if index >= width:
            neighbours.append(index - width)
        for other in neighbours:
            if not visited[other] and cells[other] == EMPTY:
                visited[other] = 1
                queue.append(other)
                reached += 1
    return reached == cells.count(EMPTY)


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def generate_map(grid: GameMap, rng: Optional[random.Random] = None) -> dict[Point, int]:
    """Fill the grid with rivers and forests until the open ground is connected.

    Returns the seed points of the accepted map with their terrain type.
    """
    rng = rng or random.Random()
    while True:
        grid.clear()
        seeds: dict[Point, int] = {}
        samples = poisson_sample(
            0.0, 0.0, float(grid.width), float(grid.height), SEED_RADIUS, SEED_ATTEMPTS, rng
        )
        for sx, sy in samples:
            x, y = _round_half_away(sx), _round_half_away(sy)
            if grid.in_bounds(x, y):
                value = WATER if rng.random() < 0.7 else FOREST
                grid.set(x, y, value)
                seeds[(x, y)] = value
        for (x, y), value in seeds.items():
            if value == FOREST:
                if rng.random() < 0.5:
                    generate_tree(grid, x, y, rng.randrange(10) + 50)
                else:
                    generate_circle(grid, x, y, rng.randrange(10) + 50)
            else:
                generate_river(grid, x, y, rng.randrange(200) + 100, rng)
        if check_zero_connectivity(grid):
            return seeds
        logger.info("generated map is not connected, generating again")


def render_png(grid: GameMap, path: Union[str, PathLike]) -> None:
    """Save the map as a PNG: white ground, blue water, green forest."""
    image = Image.frombytes("P", (grid.width, grid.height), grid.to_bytes())
    palette = [255] * (256 * 3)
    palette[WATER * 3 : WATER * 3 + 3] = [0, 0, 255]
    palette[FOREST * 3 : FOREST * 3 + 3] = [0, 255, 0]
    image.putpalette(palette)
    image.convert("RGB").save(path, format="PNG")


def mark_tank(grid: GameMap, tank: Tank, value: int) -> None:
    grid.set(tank.x, tank.y, value)


def map_as_string(grid: GameMap) -> str:
    """Draw the grid as text, one line per row: □ for empty, ■ for occupied."""
    data = grid.to_bytes()
    lines = []
    for start in range(0, len(data), grid.width):
        row = data[start : start + grid.width]
        lines.append("".join("□" if cell == EMPTY else "■" for cell in row) + "\n")
    return "".join(lines)