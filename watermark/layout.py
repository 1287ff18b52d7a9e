import math
from enum import Enum
from typing import NamedTuple, Tuple, Union

import skia

from watermark.utils.exceptions import ConfigurationError


class Anchor(str, Enum):
    """Nine named placement anchors for single-shot watermarks."""

    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    TOP_RIGHT = "top-right"
    CENTER_LEFT = "center-left"
    CENTER = "center"
    CENTER_RIGHT = "center-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"


class LayoutResult(NamedTuple):
    """Top-left origin of a watermark box in surface pixels."""

    x: float
    y: float


def parse_anchor(position: Union[str, Anchor]) -> Anchor:
    """
    Normalizes a position name into an Anchor.

    Raises:
        ConfigurationError: If the name is not one of the nine anchors.
    """
    if isinstance(position, Anchor):
        return position
    try:
        return Anchor(str(position).strip().lower())
    except ValueError as e:
        valid = ", ".join(a.value for a in Anchor)
        raise ConfigurationError(f"Invalid position '{position}'. Use one of: {valid}.") from e


def calculate_position(
    surface_w: float,
    surface_h: float,
    box_w: float,
    box_h: float,
    position: Union[str, Anchor] = Anchor.BOTTOM_RIGHT,
    padding: float = 20,
    offset_x: float = 0,
    offset_y: float = 0,
) -> LayoutResult:
    """
    Calculate the (x, y) origin of a watermark box on a surface.

    Padding applies only on edge-anchored axes; centered axes ignore it.
    The offsets are added without clamping, so the result may lie partly or
    fully outside the surface.

    Args:
        surface_w: Surface width in pixels
        surface_h: Surface height in pixels
        box_w: Watermark box width in pixels
        box_h: Watermark box height in pixels
        position: Named anchor
        padding: Distance from the anchored edges in pixels
        offset_x: Additional horizontal offset
        offset_y: Additional vertical offset

    Returns:
        LayoutResult: Top-left origin of the box
    """
    name = parse_anchor(position).value

    # ----- Horizontal -----
    if "left" in name:
        x = padding
    elif "right" in name:
        x = surface_w - box_w - padding
    else:
        x = (surface_w - box_w) / 2

    # ----- Vertical -----
    if name.startswith("top"):
        y = padding
    elif name.startswith("bottom"):
        y = surface_h - box_h - padding
    else:
        y = (surface_h - box_h) / 2

    return LayoutResult(x + offset_x, y + offset_y)


def degrees_to_radians(degrees: float) -> float:
    return degrees * math.pi / 180.0


def rotate_point(
    x: float, y: float, center_x: float, center_y: float, degrees: float
) -> Tuple[float, float]:
    """Rotates a point around a center, using the surface's clockwise y-down convention."""
    theta = degrees_to_radians(degrees)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    dx = x - center_x
    dy = y - center_y
    return center_x + dx * cos_t - dy * sin_t, center_y + dx * sin_t + dy * cos_t


def apply_rotation(canvas: skia.Canvas, degrees: float, center_x: float, center_y: float) -> None:
    """
    Rotates the canvas around (center_x, center_y).

    Expressed as translate-to-center, rotate, translate-back. Single-shot
    watermarks pass their own box center; tiled patterns pass the surface center.
    """
    if abs(degrees) < 1e-9:
        return
    canvas.translate(float(center_x), float(center_y))
    canvas.rotate(float(degrees))
    canvas.translate(-float(center_x), -float(center_y))
