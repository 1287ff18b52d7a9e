"""
Logo watermark renderers: a single logo at an anchor, and the tiled pattern.
"""

import asyncio
from typing import Tuple

import skia

from watermark.config import ImageWatermarkOptions
from watermark.image.image_utils import load_logo_image
from watermark.layout import apply_rotation, calculate_position
from watermark.scaling import get_responsive_multiplier, scale_logo_size
from watermark.surface import WatermarkSurface
from watermark.tiling import compute_tile_pitch, generate_tiles
from watermark.utils.exceptions import AssetLoadError
from watermark.utils.logging import log_message

LOGO_SAMPLING = skia.SamplingOptions(skia.FilterMode.kLinear, skia.MipmapMode.kLinear)


async def _load_sized_logo(
    surface: WatermarkSurface,
    options: ImageWatermarkOptions,
    verbose: bool = False,
) -> Tuple[skia.Image, float, float]:
    """Loads the logo off the event loop and computes its drawn size."""
    try:
        logo = await asyncio.to_thread(load_logo_image, options.source, options.image_element)
    except AssetLoadError as e:
        log_message(f"ERROR: {e}", always_print=True)
        raise

    multiplier = get_responsive_multiplier(surface.width, options.scale)
    logo_w, logo_h = scale_logo_size(
        surface.width,
        options.resolved_width_fraction(),
        multiplier,
        logo.width(),
        logo.height(),
    )
    log_message(
        f"Logo {logo.width()}x{logo.height()} drawn at {logo_w:.0f}x{logo_h:.0f} (multiplier {multiplier:.3f})",
        verbose=verbose,
    )
    return logo, logo_w, logo_h


async def draw_image_watermark(
    surface: WatermarkSurface,
    options: ImageWatermarkOptions,
    verbose: bool = False,
) -> None:
    """
    Draws a logo at its anchor, rotated around the logo's own center.

    Raises:
        AssetLoadError: If the logo cannot be loaded
    """
    logo, logo_w, logo_h = await _load_sized_logo(surface, options, verbose=verbose)
    x, y = calculate_position(
        surface.width,
        surface.height,
        logo_w,
        logo_h,
        options.position,
        options.padding,
        options.offset_x,
        options.offset_y,
    )

    with surface.canvas_state(options.resolved_opacity()) as canvas:
        apply_rotation(canvas, options.resolved_rotation(), x + logo_w / 2, y + logo_h / 2)
        canvas.drawImageRect(logo, skia.Rect.MakeXYWH(x, y, logo_w, logo_h), LOGO_SAMPLING)

    log_message(f"Drew logo watermark at ({x:.0f}, {y:.0f})", verbose=verbose)


async def draw_tiled_image(
    surface: WatermarkSurface,
    options: ImageWatermarkOptions,
    verbose: bool = False,
) -> int:
    """
    Repeats the logo over a grid rotated around the surface center.

    Returns:
        int: Number of tiles drawn

    Raises:
        AssetLoadError: If the logo cannot be loaded
        ConfigurationError: If the computed tile pitch is not positive
    """
    logo, logo_w, logo_h = await _load_sized_logo(surface, options, verbose=verbose)
    multiplier = get_responsive_multiplier(surface.width, options.scale)
    tile_w, tile_h = compute_tile_pitch(
        logo_w,
        logo_h,
        options.tile_spacing_x,
        options.tile_spacing_y,
        multiplier,
    )
    grid = generate_tiles(surface.width, surface.height, tile_w, tile_h)

    count = 0
    with surface.canvas_state(options.resolved_opacity()) as canvas:
        apply_rotation(canvas, options.resolved_rotation(), surface.width / 2, surface.height / 2)
        for tile_x, tile_y in grid:
            canvas.drawImageRect(logo, skia.Rect.MakeXYWH(tile_x, tile_y, logo_w, logo_h), LOGO_SAMPLING)
            count += 1

    log_message(f"Drew {count} logo tiles ({tile_w:.0f}x{tile_h:.0f} pitch)", verbose=verbose)
    return count
