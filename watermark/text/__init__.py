"""
Text watermarks: script detection, font resolution and installation, shaping,
and the single-shot and tiled text renderers.
"""

from .font_loader import FontInstallResult, FontResolver, get_font_resolver
from .font_manager import FontRegistry, FontRun, get_font_registry, match_font
from .script_detection import LATIN_DEFAULT, SCRIPT_TABLE, ScriptInfo, detect_script
from .text_renderer import draw_text_watermark, draw_tiled_text, measure_text

__all__ = [
    "FontInstallResult",
    "FontResolver",
    "get_font_resolver",
    "FontRegistry",
    "FontRun",
    "get_font_registry",
    "match_font",
    "LATIN_DEFAULT",
    "SCRIPT_TABLE",
    "ScriptInfo",
    "detect_script",
    "draw_text_watermark",
    "draw_tiled_text",
    "measure_text",
]
