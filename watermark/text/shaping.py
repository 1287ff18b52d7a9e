from typing import Dict, List, Optional, Tuple

import skia
import uharfbuzz as hb

from watermark.text.font_manager import FontRun
from watermark.utils.logging import log_message

# HarfBuzz positions are in 26.6 fixed point (64 units per pixel)
HB_26_6_SCALE_FACTOR = 64.0


def shape_line(
    text_line: str, hb_font: hb.Font, features: Optional[Dict[str, bool]] = None
) -> Tuple[List[hb.GlyphInfo], List[hb.GlyphPosition]]:
    """Shapes a line of text with HarfBuzz."""
    hb_buffer = hb.Buffer()
    hb_buffer.add_str(text_line)
    hb_buffer.guess_segment_properties()
    try:
        hb.shape(hb_font, hb_buffer, features or {})
        return hb_buffer.glyph_infos, hb_buffer.glyph_positions
    except Exception as e:
        log_message(f"ERROR: HarfBuzz shaping failed for line '{text_line[:30]}...': {e}", always_print=True)
        return [], []


def _make_hb_font(run: FontRun) -> hb.Font:
    hb_font = hb.Font(run.hb_face)
    hb_font.ptem = float(run.size)
    hb_scale = int(run.size * HB_26_6_SCALE_FACTOR)
    hb_font.scale = (hb_scale, hb_scale)
    return hb_font


def measure_line(run: FontRun, text_line: str) -> float:
    """Advance width of one line in pixels."""
    if not text_line:
        return 0.0
    if run.hb_face is not None:
        _, positions = shape_line(text_line, _make_hb_font(run))
        return float(sum(pos.x_advance for pos in positions) / HB_26_6_SCALE_FACTOR)
    return float(run.make_font().measureText(text_line))


def make_text_blob(run: FontRun, text_line: str) -> Optional[skia.TextBlob]:
    """
    Builds a text blob for one line with its baseline origin at (0, 0).

    Registered fonts are shaped with HarfBuzz so complex scripts (Arabic,
    Devanagari, Thai...) get their contextual forms; system typefaces go
    through Skia's simple glyph mapping. Returns None for empty output.
    """
    if not text_line:
        return None
    font = run.make_font()

    if run.hb_face is None:
        return skia.TextBlob.MakeFromString(text_line, font)

    infos, positions = shape_line(text_line, _make_hb_font(run))
    if not infos:
        return None

    glyph_ids = [info.codepoint for info in infos]
    points = []
    cursor_x = 0.0
    for pos in positions:
        glyph_x = cursor_x + pos.x_offset / HB_26_6_SCALE_FACTOR
        glyph_y = -pos.y_offset / HB_26_6_SCALE_FACTOR
        points.append(skia.Point(glyph_x, glyph_y))
        cursor_x += pos.x_advance / HB_26_6_SCALE_FACTOR

    builder = skia.TextBlobBuilder()
    builder.allocRunPos(font, glyph_ids, points)
    return builder.make()
