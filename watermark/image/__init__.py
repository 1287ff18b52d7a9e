"""
Image handling: source decoding, logo loading, and the logo watermark renderers.
"""

from .image_utils import (DecodedImage, create_surface_from_image, decode_source_image,
                          load_logo_image, pil_to_skia_image, surface_to_pil)
from .logo_renderer import draw_image_watermark, draw_tiled_image

__all__ = [
    "DecodedImage",
    "create_surface_from_image",
    "decode_source_image",
    "load_logo_image",
    "pil_to_skia_image",
    "surface_to_pil",
    "draw_image_watermark",
    "draw_tiled_image",
]
