import math
import random

from PIL import Image

from tankarena.gamemap import (
    check_zero_connectivity,
    direction_delta,
    generate_circle,
    generate_map,
    generate_river,
    generate_tree,
    map_as_string,
    mark_tank,
    poisson_sample,
    random_dir,
    render_png,
)
from tankarena.model import Direction, GameMap, Tank


class _FixedRandom:
    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


def test_direction_delta():
    assert direction_delta(Direction.UP) == (0, -1)
    assert direction_delta(Direction.UP_RIGHT) == (1, -1)
    assert direction_delta(Direction.RIGHT) == (1, 0)
    assert direction_delta(Direction.DOWN_RIGHT) == (1, 1)
    assert direction_delta(Direction.DOWN) == (0, 1)
    assert direction_delta(Direction.DOWN_LEFT) == (-1, 1)
    assert direction_delta(Direction.LEFT) == (-1, 0)
    assert direction_delta(Direction.UP_LEFT) == (-1, -1)
    assert direction_delta(Direction.NONE) == (0, 0)
    assert direction_delta(42) == (0, 0)


def test_random_dir_picks_by_weight():
    weights = [8, 5, 5]
    assert random_dir(weights, _FixedRandom(0.0)) == 0
    assert random_dir(weights, _FixedRandom(0.5)) == 1
    assert random_dir(weights, _FixedRandom(0.99)) == 2


def test_river_on_tiny_map_is_removed():
    grid = GameMap(1, 1)
    assert generate_river(grid, 0, 0, 10, random.Random(1)) == []
    assert grid.get(0, 0) == 0


def test_river_is_a_connected_line():
    for seed in range(5):
        grid = GameMap(60, 60)
        points = generate_river(grid, 30, 30, 20, random.Random(seed))
        assert grid.to_bytes().count(2) == len(points)
        assert all(grid.get(x, y) == 2 for x, y in points)
        for (ax, ay), (bx, by) in zip(points, points[1:]):
            assert max(abs(ax - bx), abs(ay - by)) == 1


def test_tree_one_level():
    grid = GameMap(5, 5)
    built = generate_tree(grid, 2, 2, 1)
    assert set(built) == {(2, 2), (3, 2), (1, 2), (2, 3), (2, 1)}
    assert grid.to_bytes().count(3) == len(built)


def test_tree_stops_at_water():
    grid = GameMap(5, 5)
    grid.set(3, 2, 2)
    built = generate_tree(grid, 2, 2, 3)
    assert built == [(2, 2)]
    assert grid.get(2, 2) == 3


def test_circle_stays_within_radius():
    grid = GameMap(9, 9)
    radius = 2
    built = set(generate_circle(grid, 4, 4, radius))
    inside = {
        (x, y)
        for x in range(9)
        for y in range(9)
        if (x - 4) ** 2 + (y - 4) ** 2 <= radius * radius
    }
    assert built == inside
    assert all(grid.get(x, y) == 3 for x, y in built)


def test_circle_stops_at_water():
    grid = GameMap(9, 9)
    grid.set(4, 3, 2)
    assert generate_circle(grid, 4, 4, 3) == [(4, 4)]


def test_poisson_sample_spacing():
    points = poisson_sample(0.0, 0.0, 100.0, 60.0, 10.0, 30, random.Random(3))
    assert points
    assert all(0 <= x < 100 and 0 <= y < 60 for x, y in points)
    for i, p in enumerate(points):
        for q in points[i + 1 :]:
            assert math.dist(p, q) >= 10.0


def test_connectivity_checks():
    grid = GameMap(5, 5)
    assert check_zero_connectivity(grid)
    for y in range(5):
        grid.set(2, y, 2)
    assert not check_zero_connectivity(grid)
    grid.cells[:] = bytes([3]) * 25
    assert check_zero_connectivity(grid)


def test_generate_map_is_connected():
    grid = GameMap(400, 200)
    seeds = generate_map(grid, random.Random(7))
    assert seeds
    assert set(seeds.values()) <= {2, 3}
    assert set(grid.to_bytes()) <= {0, 2, 3}
    assert check_zero_connectivity(grid)


def test_mark_tank():
    grid = GameMap(4, 4)
    tank = Tank(x=1, y=2)
    mark_tank(grid, tank, 1)
    assert grid.get(1, 2) == 1
    mark_tank(grid, tank, 0)
    assert grid.get(1, 2) == 0


def test_map_as_string():
    grid = GameMap(2, 2)
    grid.set(1, 0, 2)
    assert map_as_string(grid) == "□■\n□□\n"


def test_render_png(tmp_path):
    grid = GameMap(4, 3)
    grid.set(1, 1, 2)
    grid.set(2, 2, 3)
    grid.set(0, 0, 1)
    path = tmp_path / "map.png"
    render_png(grid, path)
    with Image.open(path) as image:
        rgb = image.convert("RGB")
        assert rgb.size == (4, 3)
        assert rgb.getpixel((1, 1)) == (0, 0, 255)
        assert rgb.getpixel((2, 2)) == (0, 255, 0)
        assert rgb.getpixel((0, 0)) == (255, 255, 255)
        assert rgb.getpixel((3, 0)) == (255, 255, 255)