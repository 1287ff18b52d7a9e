"""
skia-watermark

Composites text or logo watermarks onto raster images through a Skia drawing
surface. Text is rendered with a script-appropriate font (installed on demand
from Google Fonts), placed at one of nine anchors or repeated as a rotated
anti-crop pattern, and the result is re-encoded.
"""

from .config import FontConfig, ImageWatermarkOptions, TextWatermarkOptions, WatermarkOptions
from .layout import Anchor, calculate_position
from .scaling import get_responsive_multiplier
from .pipeline import render, render_batch, render_sync
from .surface import MAX_SURFACE_AREA, SafeSize, get_safe_surface_size, release_surface
from .text import FontInstallResult, FontResolver, ScriptInfo, detect_script
from .tiling import generate_tiles
from .utils.exceptions import (AssetLoadError, ConfigurationError, DecodeError,
                               DrawingEnvironmentError, ExportFailure)
from .validation import coerce_options, validate_options

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)
__license__ = "Apache-2.0"
__description__ = "Text and logo watermarking for raster images on a Skia surface"
__all__ = [
    'render',
    'render_batch',
    'render_sync',
    'WatermarkOptions',
    'TextWatermarkOptions',
    'ImageWatermarkOptions',
    'FontConfig',
    'coerce_options',
    'validate_options',
    'detect_script',
    'ScriptInfo',
    'FontResolver',
    'FontInstallResult',
    'Anchor',
    'calculate_position',
    'get_responsive_multiplier',
    'generate_tiles',
    'get_safe_surface_size',
    'release_surface',
    'SafeSize',
    'MAX_SURFACE_AREA',
    'ConfigurationError',
    'DrawingEnvironmentError',
    'DecodeError',
    'ExportFailure',
    'AssetLoadError',
]
