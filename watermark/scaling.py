from typing import Optional, Tuple

from watermark.config import MIN_SCALED_FONT_SIZE

BASELINE_WIDTH = 1920.0


def get_responsive_multiplier(surface_width: float, scale: Optional[float] = None) -> float:
    """
    Calculate the responsive size multiplier for a surface.

    On a 1920px wide surface the multiplier equals ``scale``; on a 3840px (4K)
    surface it is twice ``scale``. Applied to font size, logo width and tile
    spacing, never to padding or position.

    Args:
        surface_width: Width of the working surface in pixels.
        scale: Responsive scale factor. None or <= 0 disables scaling.

    Returns:
        float: Multiplier, 1.0 when no scaling was requested.
    """
    if scale is None or scale <= 0:
        return 1.0
    return (surface_width / BASELINE_WIDTH) * float(scale)


def scale_font_size(
    value: float,
    multiplier: float,
    *,
    minimum: int = MIN_SCALED_FONT_SIZE,
) -> int:
    """
    Scale a font size by the responsive multiplier, rounding to whole pixels.
    """
    return max(minimum, int(round(value * multiplier)))


def scale_logo_size(
    surface_width: float,
    width_fraction: float,
    multiplier: float,
    logo_width: int,
    logo_height: int,
) -> Tuple[int, int]:
    """
    Compute the drawn logo size from a fraction of the surface width.

    The aspect ratio of the logo is preserved.
    """
    target_width = surface_width * width_fraction * multiplier
    aspect_ratio = logo_height / logo_width if logo_width > 0 else 1.0
    return max(1, int(round(target_width))), max(1, int(round(target_width * aspect_ratio)))
