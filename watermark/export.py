import asyncio

import skia

from watermark.config import DEFAULT_OUTPUT_QUALITY, normalize_output_type
from watermark.surface import WatermarkSurface
from watermark.utils.exceptions import ExportFailure
from watermark.utils.logging import log_message

ENCODED_FORMATS = {
    "image/png": skia.EncodedImageFormat.kPNG,
    "image/jpeg": skia.EncodedImageFormat.kJPEG,
    "image/webp": skia.EncodedImageFormat.kWEBP,
}


def quality_to_int(quality: float) -> int:
    """Maps a 0-1 quality to the encoder's 0-100 scale."""
    return max(0, min(100, int(round(float(quality) * 100))))


def encode_surface_sync(
    surface: WatermarkSurface,
    mime_type: str = "image/png",
    quality: float = DEFAULT_OUTPUT_QUALITY,
) -> bytes:
    """
    Encodes the surface contents.

    Raises:
        ExportFailure: If the encoder produces nothing or raises. The error
                       carries the MIME type and the surface size.
    """
    width, height = surface.width, surface.height
    encoded_format = ENCODED_FORMATS.get(normalize_output_type(mime_type))
    if encoded_format is None:
        raise ExportFailure(mime_type, width, height, "No encoder for this type.")

    try:
        image = surface.snapshot()
        data = image.encodeToData(encoded_format, quality_to_int(quality)) if image is not None else None
    except Exception as e:
        log_message(f"ERROR: Surface export threw for {mime_type}: {e}", always_print=True)
        raise ExportFailure(mime_type, width, height, f"Encoder error: {e}") from e

    if data is None:
        log_message(f"ERROR: Surface export produced no data for {mime_type} ({width}x{height})", always_print=True)
        raise ExportFailure(
            mime_type,
            width,
            height,
            "The encoder returned no data; the surface may exceed the backend's size or memory limits.",
        )
    return bytes(data)


async def encode_surface(
    surface: WatermarkSurface,
    mime_type: str = "image/png",
    quality: float = DEFAULT_OUTPUT_QUALITY,
) -> bytes:
    """Asynchronously encodes the surface; see encode_surface_sync."""
    return await asyncio.to_thread(encode_surface_sync, surface, mime_type, quality)
