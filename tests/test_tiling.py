import math

import pytest

from watermark.layout import rotate_point
from watermark.tiling import compute_tile_pitch, generate_tiles
from watermark.utils.exceptions import ConfigurationError


def _covered(grid, local_x, local_y):
    start_x, start_y = grid.start
    column = math.floor((local_x - start_x) / grid.tile_w)
    row = math.floor((local_y - start_y) / grid.tile_h)
    return 0 <= column < grid.columns and 0 <= row < grid.rows


def test_grid_bounds():
    grid = generate_tiles(300, 400, 100, 100)
    assert grid.diagonal == pytest.approx(500)
    assert grid.start == (-250, -250)
    assert grid.end == (550, 650)
    origins = list(grid)
    assert origins[0] == (-250, -250)
    assert all(-250 <= x < 550 and -250 <= y < 650 for x, y in origins)
    assert len(origins) == len(grid) == 8 * 9


def test_grid_is_restartable():
    grid = generate_tiles(640, 480, 120, 90)
    assert list(grid) == list(grid)


@pytest.mark.parametrize("size", [(1, 1), (10, 3000), (800, 600), (4000, 3000)])
def test_at_least_one_tile(size):
    for pitch in ((1, 1), (50, 20), (10_000, 10_000)):
        grid = generate_tiles(size[0], size[1], *pitch)
        assert len(grid) >= 1
        assert next(iter(grid)) == grid.start


@pytest.mark.parametrize("pitch", [(0, 10), (10, 0), (-5, 10), (float("nan"), 10), (float("inf"), 10)])
def test_invalid_pitch_is_rejected(pitch):
    with pytest.raises(ConfigurationError):
        generate_tiles(800, 600, *pitch)


@pytest.mark.parametrize("degrees", [-180, -135, -45, 0, 30, 90, 179])
def test_rotated_grid_covers_surface(degrees):
    width, height = 800, 600
    grid = generate_tiles(width, height, 170, 95)
    samples = [(x, y) for x in range(0, width + 1, 50) for y in range(0, height + 1, 50)]
    samples += [(0, 0), (width, 0), (0, height), (width, height)]
    for x, y in samples:
        # The pattern frame is rotated around the surface center
        local_x, local_y = rotate_point(x, y, width / 2, height / 2, -degrees)
        assert _covered(grid, local_x, local_y), (degrees, x, y)


def test_tile_pitch_scales_spacing_only():
    assert compute_tile_pitch(200, 60, 100, 80, 1.0) == (300, 140)
    assert compute_tile_pitch(200, 60, 100, 80, 2.0) == (400, 220)
