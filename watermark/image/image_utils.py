import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np
import requests
import skia
from PIL import Image, ImageOps, UnidentifiedImageError

from watermark.config import SUPPORTED_OUTPUT_TYPES, normalize_output_type
from watermark.surface import WatermarkSurface, get_safe_surface_size, notify_downscale
from watermark.utils.exceptions import AssetLoadError, DecodeError, RenderingError
from watermark.utils.logging import log_message

LOGO_FETCH_TIMEOUT = 15

# DecompressionBombError derives from Exception, not OSError
IMAGE_LOAD_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, TypeError)


@dataclass
class DecodedImage:
    """A decoded source bitmap and the MIME type it was stored in."""

    image: Image.Image
    mime_type: Optional[str]

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


def _open_image(data: Any) -> Image.Image:
    """Opens bytes, a path, or a file-like object with Pillow and forces decoding."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        data = io.BytesIO(bytes(data))
    elif isinstance(data, Path):
        data = str(data)
    image = Image.open(data)
    image.load()
    return image


def _upright(image: Image.Image) -> Image.Image:
    """Applies the EXIF orientation tag so the pixels are stored upright."""
    return ImageOps.exif_transpose(image)


def decode_source_image(source: Any) -> DecodedImage:
    """
    Decodes the source image into a Pillow bitmap.

    Args:
        source: Encoded bytes, a file path, a binary file-like object, or an
                already decoded PIL image

    Returns:
        DecodedImage: The bitmap plus its MIME type (None if unknown)

    Raises:
        DecodeError: If the data is missing or cannot be decoded
    """
    if source is None:
        raise DecodeError("No source image provided.")
    try:
        image = source if isinstance(source, Image.Image) else _open_image(source)
        mime_type = Image.MIME.get(image.format or "")
        image = _upright(image)
    except IMAGE_LOAD_ERRORS as e:
        raise DecodeError(f"Failed to decode source image: {e}") from e
    return DecodedImage(image, mime_type)


def pil_to_skia_image(pil_image: Image.Image) -> skia.Image:
    """Converts a PIL image to a Skia image.

    Raises:
        RenderingError: If conversion fails
    """
    if pil_image.mode != "RGBA":
        pil_image = pil_image.convert("RGBA")
    skia_image = skia.Image.frombytes(pil_image.tobytes(), pil_image.size, skia.kRGBA_8888_ColorType)
    if skia_image is None:
        log_message("PIL to Skia conversion failed", always_print=True)
        raise RenderingError("Failed to create Skia image from PIL")
    return skia_image


def surface_to_pil(surface: WatermarkSurface) -> Image.Image:
    """Converts the current contents of a surface to an RGBA PIL image.

    Raises:
        RenderingError: If the snapshot fails
    """
    skia_image = surface.snapshot()
    if skia_image is None:
        raise RenderingError("Failed to create Skia image snapshot")
    skia_image = skia_image.convert(alphaType=skia.kUnpremul_AlphaType, colorType=skia.kRGBA_8888_ColorType)
    pixels = np.asarray(skia_image)
    return Image.fromarray(pixels)


def create_surface_from_image(decoded: DecodedImage, on_downscale=None) -> WatermarkSurface:
    """
    Allocates a working surface for the decoded image and draws it in.

    The surface is clamped to the pixel budget first; an oversized image is
    drawn scaled down and the caller is notified.
    """
    safe_size = get_safe_surface_size(decoded.width, decoded.height)
    notify_downscale(safe_size, on_downscale)
    # Convert before allocating so a failed conversion leaves nothing to release
    skia_image = pil_to_skia_image(decoded.image)
    surface = WatermarkSurface(safe_size.width, safe_size.height)
    surface.draw_image(skia_image)
    return surface


def resolve_output_type(requested: Optional[str], source_mime: Optional[str], verbose: bool = False) -> str:
    """Picks the output MIME type: the requested one, else the source's, else PNG."""
    if requested:
        return normalize_output_type(requested)
    if source_mime and normalize_output_type(source_mime) in SUPPORTED_OUTPUT_TYPES:
        return normalize_output_type(source_mime)
    if source_mime:
        log_message(f"Cannot encode {source_mime}; writing image/png instead", verbose=verbose)
    return "image/png"


def _fetch_image_bytes(url: str) -> bytes:
    try:
        response = requests.get(url, timeout=LOGO_FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise AssetLoadError(f"Failed to load watermark image: {url} ({e})") from e
    return response.content


def load_logo_image(source: Union[str, Path, None] = None, image_element: Any = None) -> skia.Image:
    """
    Resolves a logo source into a ready-to-draw Skia image.

    ``image_element`` wins over ``source`` when both are given.

    Args:
        source: Local path or http(s) URL of the logo
        image_element: bytes, file-like, path, PIL image or skia.Image

    Returns:
        skia.Image: The decoded logo

    Raises:
        AssetLoadError: If the logo cannot be loaded or decoded
    """
    if image_element is not None:
        if isinstance(image_element, skia.Image):
            return image_element
        if isinstance(image_element, Image.Image):
            return pil_to_skia_image(_upright(image_element))
        try:
            return pil_to_skia_image(_upright(_open_image(image_element)))
        except IMAGE_LOAD_ERRORS as e:
            raise AssetLoadError(f"Provided watermark image failed to load: {e}") from e

    if source:
        source = str(source)
        if source.startswith(("http://", "https://")):
            data = _fetch_image_bytes(source)
        else:
            data = Path(source).expanduser()
        try:
            return pil_to_skia_image(_upright(_open_image(data)))
        except IMAGE_LOAD_ERRORS as e:
            raise AssetLoadError(f"Failed to load watermark image: {source} ({e})") from e

    raise AssetLoadError('No image source provided. Set "source" (path or URL) or "image_element".')
