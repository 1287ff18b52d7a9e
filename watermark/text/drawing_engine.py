import re
from dataclasses import dataclass
from typing import Optional, Tuple

import skia
from PIL import ImageColor

from watermark.text.font_manager import FontRun
from watermark.text.shaping import make_text_blob
from watermark.utils.exceptions import ConfigurationError
from watermark.utils.logging import log_message

RGBA_PATTERN = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)$",
    re.IGNORECASE,
)


def parse_css_color(value: str) -> Tuple[int, int, int, int]:
    """
    Parses a CSS colour string into an (r, g, b, a) tuple with 0-255 channels.

    Handles ``rgb()``/``rgba()`` with fractional alpha directly; hex, named
    and ``hsl()`` colours go through Pillow's ImageColor.

    Raises:
        ConfigurationError: If the colour cannot be parsed
    """
    text = str(value).strip()
    match = RGBA_PATTERN.match(text)
    if match:
        r, g, b = (max(0, min(255, int(round(float(c))))) for c in match.group(1, 2, 3))
        alpha_text = match.group(4)
        if alpha_text is None:
            alpha = 1.0
        elif alpha_text.endswith("%"):
            alpha = float(alpha_text[:-1]) / 100.0
        else:
            alpha = float(alpha_text)
        return r, g, b, max(0, min(255, int(round(alpha * 255))))
    try:
        rgb = ImageColor.getrgb(text)
    except ValueError as e:
        raise ConfigurationError(f"Invalid color value: {value!r}") from e
    if len(rgb) == 4:
        return rgb
    return rgb[0], rgb[1], rgb[2], 255


def to_skia_color(value: str) -> int:
    r, g, b, a = parse_css_color(value)
    return skia.Color(r, g, b, a)


@dataclass
class TextPaints:
    """Fill and optional stroke paints sharing one drop shadow."""

    fill: skia.Paint
    stroke: Optional[skia.Paint] = None


def make_text_paints(
    color: str,
    stroke_color: Optional[str] = None,
    stroke_width: float = 2.0,
    shadow_color: Optional[str] = None,
    shadow_blur: float = 0.0,
    shadow_offset_x: float = 0.0,
    shadow_offset_y: float = 0.0,
) -> TextPaints:
    """
    Builds the paints for a text watermark.

    The shadow blur is a CSS-style radius; Skia's drop shadow takes a sigma
    of half that radius.
    """
    shadow_filter = None
    if shadow_color:
        shadow_rgba = parse_css_color(shadow_color)
        has_extent = shadow_blur > 0 or shadow_offset_x or shadow_offset_y
        if shadow_rgba[3] > 0 and has_extent:
            sigma = max(0.0, shadow_blur / 2.0)
            shadow_filter = skia.ImageFilters.DropShadow(
                float(shadow_offset_x), float(shadow_offset_y), sigma, sigma, skia.Color(*shadow_rgba)
            )

    fill = skia.Paint(AntiAlias=True, Color=to_skia_color(color))
    if shadow_filter is not None:
        fill.setImageFilter(shadow_filter)

    stroke = None
    if stroke_color and stroke_width > 0:
        stroke = skia.Paint(
            AntiAlias=True,
            Color=to_skia_color(stroke_color),
            Style=skia.Paint.kStroke_Style,
            StrokeWidth=float(stroke_width),
            StrokeJoin=skia.Paint.kRound_Join,
        )
        if shadow_filter is not None:
            stroke.setImageFilter(shadow_filter)

    return TextPaints(fill=fill, stroke=stroke)


def draw_text_line(
    canvas: skia.Canvas,
    run: FontRun,
    text_line: str,
    x: float,
    baseline_y: float,
    paints: TextPaints,
    verbose: bool = False,
) -> bool:
    """
    Draws one line of text with its baseline at ``baseline_y``.

    The stroke is drawn first so the fill sits on top of it.

    Returns:
        False if nothing could be drawn for the line
    """
    blob = make_text_blob(run, text_line)
    if blob is None:
        log_message(f"No glyphs for line '{text_line[:30]}'", verbose=verbose)
        return False
    draw_text_blob(canvas, blob, x, baseline_y, paints)
    return True


def draw_text_blob(canvas: skia.Canvas, blob: skia.TextBlob, x: float, baseline_y: float, paints: TextPaints) -> None:
    """Draws a prepared blob, stroke first."""
    if paints.stroke is not None:
        canvas.drawTextBlob(blob, float(x), float(baseline_y), paints.stroke)
    canvas.drawTextBlob(blob, float(x), float(baseline_y), paints.fill)
