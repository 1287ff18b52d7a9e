"""
Text watermark renderers: single-shot placement at an anchor, and the tiled
anti-crop pattern. Both resolve the script-appropriate font first.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from watermark.config import LINE_HEIGHT_FACTOR, TextWatermarkOptions
from watermark.layout import apply_rotation, calculate_position
from watermark.scaling import get_responsive_multiplier, scale_font_size
from watermark.surface import WatermarkSurface
from watermark.text.drawing_engine import TextPaints, draw_text_blob, draw_text_line, make_text_paints
from watermark.text.font_loader import FontResolver
from watermark.text.font_manager import FontRegistry, FontRun, match_font
from watermark.text.shaping import make_text_blob, measure_line
from watermark.tiling import compute_tile_pitch, generate_tiles
from watermark.utils.logging import log_message

# First baseline sits this far down a box that is one font size tall
BASELINE_RATIO = 0.85


@dataclass
class TextLayout:
    """Measured text block: font, lines, per-line widths and line height."""

    run: FontRun
    lines: List[str]
    line_widths: List[float]
    font_size: int
    line_height: float

    @property
    def width(self) -> float:
        return max(self.line_widths, default=0.0)


def split_lines(text: str) -> List[str]:
    return text.replace("\r\n", "\n").split("\n")


async def prepare_text_layout(
    surface: WatermarkSurface,
    options: TextWatermarkOptions,
    resolver: FontResolver,
    verbose: bool = False,
) -> TextLayout:
    """
    Resolves the font for the options' text and measures every line.

    The font size is scaled by the responsive multiplier; line height is
    the explicit override or 1.3 x the scaled font size.
    """
    weight = options.weight_value()
    font_family_value = await resolver.resolve(options.text, options.font_family, weight)

    multiplier = get_responsive_multiplier(surface.width, options.scale)
    font_size = scale_font_size(options.font_size, multiplier)
    line_height = float(options.line_height) if options.line_height else font_size * LINE_HEIGHT_FACTOR

    run = match_font(
        font_family_value,
        font_size,
        weight=weight,
        font_style=options.font_style,
        registry=resolver.registry,
        sample_text=options.text,
        verbose=verbose,
    )
    lines = split_lines(options.text)
    widths = [measure_line(run, line) for line in lines]
    log_message(
        f"Text layout: {len(lines)} line(s), size {font_size}px, family '{run.family}', multiplier {multiplier:.3f}",
        verbose=verbose,
    )
    return TextLayout(run=run, lines=lines, line_widths=widths, font_size=font_size, line_height=line_height)


def _paints_for(options: TextWatermarkOptions) -> TextPaints:
    shadow_color, shadow_blur, shadow_dx, shadow_dy = options.resolved_shadow()
    return make_text_paints(
        options.color,
        stroke_color=options.stroke_color,
        stroke_width=options.stroke_width,
        shadow_color=shadow_color,
        shadow_blur=shadow_blur,
        shadow_offset_x=shadow_dx,
        shadow_offset_y=shadow_dy,
    )


async def draw_text_watermark(
    surface: WatermarkSurface,
    options: TextWatermarkOptions,
    resolver: FontResolver,
    verbose: bool = False,
) -> None:
    """
    Measures and draws a text watermark at its anchor.

    Rotation is applied around the text box's own center.
    """
    layout = await prepare_text_layout(surface, options, resolver, verbose=verbose)
    box_w = layout.width
    box_h = layout.font_size + (len(layout.lines) - 1) * layout.line_height

    x, y = calculate_position(
        surface.width,
        surface.height,
        box_w,
        box_h,
        options.position,
        options.padding,
        options.offset_x,
        options.offset_y,
    )
    center_x = x + box_w / 2
    center_y = y + box_h / 2
    paints = _paints_for(options)

    with surface.canvas_state(options.resolved_opacity()) as canvas:
        apply_rotation(canvas, options.resolved_rotation(), center_x, center_y)
        first_baseline = y + layout.font_size * BASELINE_RATIO
        for i, line in enumerate(layout.lines):
            draw_text_line(canvas, layout.run, line, x, first_baseline + i * layout.line_height, paints, verbose=verbose)

    log_message(f"Drew text watermark at ({x:.0f}, {y:.0f}) size {box_w:.0f}x{box_h:.0f}", verbose=verbose)


async def draw_tiled_text(
    surface: WatermarkSurface,
    options: TextWatermarkOptions,
    resolver: FontResolver,
    verbose: bool = False,
) -> int:
    """
    Draws a rotated grid of text tiles across the whole surface.

    The grid frame is rotated around the surface center. Each tile draws its
    lines top-aligned at ``tile_y + i * line_height``.

    Returns:
        int: Number of tiles drawn

    Raises:
        ConfigurationError: If the computed tile pitch is not positive
    """
    layout = await prepare_text_layout(surface, options, resolver, verbose=verbose)
    multiplier = get_responsive_multiplier(surface.width, options.scale)
    tile_w, tile_h = compute_tile_pitch(
        layout.width,
        layout.line_height * len(layout.lines),
        options.tile_spacing_x,
        options.tile_spacing_y,
        multiplier,
    )
    grid = generate_tiles(surface.width, surface.height, tile_w, tile_h)
    paints = _paints_for(options)
    # Baseline offset for top-aligned lines (ascent is negative)
    ascent_offset = -layout.run.make_font().getMetrics().fAscent

    # Shape each line once and reuse the blobs for every tile
    blobs = [(i, make_text_blob(layout.run, line)) for i, line in enumerate(layout.lines)]
    blobs = [(i, blob) for i, blob in blobs if blob is not None]

    count = 0
    with surface.canvas_state(options.resolved_opacity()) as canvas:
        apply_rotation(canvas, options.resolved_rotation(), surface.width / 2, surface.height / 2)
        for tile_x, tile_y in grid:
            for i, blob in blobs:
                draw_text_blob(canvas, blob, tile_x, tile_y + i * layout.line_height + ascent_offset, paints)
            count += 1

    log_message(f"Drew {count} text tiles ({tile_w:.0f}x{tile_h:.0f} pitch)", verbose=verbose)
    return count


def measure_text(
    text: str,
    font_family_value: str,
    font_size: float,
    weight: str = "400",
    font_style: str = "normal",
    registry: Optional[FontRegistry] = None,
) -> Tuple[float, float]:
    """Measures (width, height) of single-line text with an already resolved font-family value."""
    run = match_font(
        font_family_value,
        font_size,
        weight=weight,
        font_style=font_style,
        registry=registry,
        sample_text=text,
    )
    return measure_line(run, text), float(font_size)
