import math
from dataclasses import dataclass
from typing import Iterator, Tuple

from watermark.utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class TileGrid:
    """
    Lattice of tile origins covering a surface in any rotation.

    Origins span ``[-diagonal/2, surface + diagonal/2)`` on both axes with
    pitch ``(tile_w, tile_h)``. The pattern is drawn in a frame that is
    rotated as a whole around the surface center, and the margin keeps the
    visible surface covered whatever the angle.

    Iterating yields ``(x, y)`` origins row by row. The grid holds no
    iteration state, so it can be iterated any number of times.
    """

    surface_w: float
    surface_h: float
    tile_w: float
    tile_h: float

    @property
    def diagonal(self) -> float:
        return math.sqrt(self.surface_w**2 + self.surface_h**2)

    @property
    def start(self) -> Tuple[float, float]:
        half = self.diagonal / 2
        return -half, -half

    @property
    def end(self) -> Tuple[float, float]:
        half = self.diagonal / 2
        return self.surface_w + half, self.surface_h + half

    @property
    def columns(self) -> int:
        return _step_count(self.start[0], self.end[0], self.tile_w)

    @property
    def rows(self) -> int:
        return _step_count(self.start[1], self.end[1], self.tile_h)

    def __len__(self) -> int:
        return self.columns * self.rows

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        start_x, start_y = self.start
        columns = self.columns
        for row in range(self.rows):
            y = start_y + row * self.tile_h
            for column in range(columns):
                yield start_x + column * self.tile_w, y


def _step_count(start: float, end: float, step: float) -> int:
    # Number of values start + i*step that are < end
    if end <= start:
        return 0
    count = int(math.ceil((end - start) / step))
    # Guard float rounding at the boundary
    while count > 0 and start + (count - 1) * step >= end:
        count -= 1
    while start + count * step < end:
        count += 1
    return count


def generate_tiles(surface_w: float, surface_h: float, tile_w: float, tile_h: float) -> TileGrid:
    """
    Build the tile grid for a surface.

    Args:
        surface_w: Surface width in pixels
        surface_h: Surface height in pixels
        tile_w: Horizontal pitch (content width plus scaled spacing)
        tile_h: Vertical pitch (content height plus scaled spacing)

    Returns:
        TileGrid: Restartable sequence of tile origins

    Raises:
        ConfigurationError: If either pitch is not positive
    """
    if not (tile_w > 0 and tile_h > 0) or math.isinf(tile_w) or math.isinf(tile_h):
        raise ConfigurationError(
            f"Tile pitch must be positive and finite (got {tile_w}x{tile_h}). "
            "Check tile spacing and watermark size."
        )
    return TileGrid(float(surface_w), float(surface_h), float(tile_w), float(tile_h))


def compute_tile_pitch(
    content_w: float,
    content_h: float,
    spacing_x: float,
    spacing_y: float,
    multiplier: float,
) -> Tuple[float, float]:
    """Tile pitch = content size plus spacing scaled by the responsive multiplier."""
    return content_w + spacing_x * multiplier, content_h + spacing_y * multiplier
