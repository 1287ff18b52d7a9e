"""
Render pipeline: decode -> clamp size -> draw -> encode -> release.
"""

import asyncio
import time
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from watermark.config import ImageWatermarkOptions, TextWatermarkOptions
from watermark.export import encode_surface
from watermark.image.image_utils import create_surface_from_image, decode_source_image, resolve_output_type
from watermark.image.logo_renderer import draw_image_watermark, draw_tiled_image
from watermark.surface import SafeSize, WatermarkSurface, check_drawing_environment, release_surface
from watermark.text.font_loader import FontResolver, get_font_resolver
from watermark.text.text_renderer import draw_text_watermark, draw_tiled_text
from watermark.utils.exceptions import ConfigurationError
from watermark.utils.logging import log_message
from watermark.validation import OptionsType, coerce_options, validate_options

OptionsInput = Union[OptionsType, Mapping[str, Any]]
DownscaleCallback = Callable[[SafeSize], None]


async def draw_watermark(
    surface: WatermarkSurface,
    options: OptionsType,
    resolver: FontResolver,
    verbose: bool = False,
) -> None:
    """Draws the watermark variant selected by the options' type and mode."""
    tiled = options.mode == "tiled"
    if isinstance(options, TextWatermarkOptions):
        if tiled:
            await draw_tiled_text(surface, options, resolver, verbose=verbose)
        else:
            await draw_text_watermark(surface, options, resolver, verbose=verbose)
    elif isinstance(options, ImageWatermarkOptions):
        if tiled:
            await draw_tiled_image(surface, options, verbose=verbose)
        else:
            await draw_image_watermark(surface, options, verbose=verbose)
    else:
        raise ConfigurationError(f"Unsupported watermark options: {type(options).__name__}")


async def render(
    source: Any,
    options: OptionsInput,
    *,
    resolver: Optional[FontResolver] = None,
    on_downscale: Optional[DownscaleCallback] = None,
    verbose: bool = False,
) -> bytes:
    """
    Applies a text or logo watermark to an image and returns the encoded result.

    Args:
        source: Encoded image bytes, a file path, a binary file-like object, or a PIL image
        options: An options dataclass, or a mapping with a ``type`` of "text" or "image"
        resolver: Font resolver to use (defaults to the process-wide resolver)
        on_downscale: Called with the SafeSize when the image exceeds the pixel budget
        verbose: Whether to print detailed logs

    Returns:
        bytes: The encoded watermarked image

    Raises:
        ConfigurationError: Invalid or missing options (before any surface is allocated)
        DrawingEnvironmentError: No drawing surface can be created in this process
        DecodeError: The source image could not be decoded
        AssetLoadError: The logo could not be loaded
        ExportFailure: The surface could not be encoded
    """
    start_time = time.time()
    options = coerce_options(options)
    validate_options(options)
    check_drawing_environment()

    decoded = await asyncio.to_thread(decode_source_image, source)
    log_message(
        f"Decoded source {decoded.width}x{decoded.height} ({decoded.mime_type or 'unknown type'})",
        verbose=verbose,
    )

    surface = await asyncio.to_thread(create_surface_from_image, decoded, on_downscale)
    try:
        await draw_watermark(surface, options, resolver or get_font_resolver(), verbose=verbose)
        mime_type = resolve_output_type(options.output_type, decoded.mime_type, verbose=verbose)
        data = await encode_surface(surface, mime_type, options.output_quality)
    finally:
        release_surface(surface)

    log_message(
        f"Rendered {options.type}/{options.mode} watermark: {len(data)} bytes as {mime_type} "
        f"in {time.time() - start_time:.2f}s",
        verbose=verbose,
    )
    return data


async def render_batch(
    sources: Sequence[Any],
    options: OptionsInput,
    *,
    resolver: Optional[FontResolver] = None,
    on_downscale: Optional[DownscaleCallback] = None,
    verbose: bool = False,
) -> List[bytes]:
    """
    Renders the same watermark onto several images concurrently.

    Each image gets its own surface; the font cache is shared, so a script
    font is installed once for the whole batch. The first failure propagates.

    Returns:
        list[bytes]: Encoded images in the order of ``sources``
    """
    options = coerce_options(options)
    validate_options(options)
    resolver = resolver or get_font_resolver()
    log_message(f"Rendering batch of {len(sources)} image(s)", verbose=verbose)
    if isinstance(options, TextWatermarkOptions):
        # Install the script font once before the renders race for it
        await resolver.resolve(options.text, options.font_family, options.weight_value())
    results = await asyncio.gather(
        *(
            render(source, options, resolver=resolver, on_downscale=on_downscale, verbose=verbose)
            for source in sources
        )
    )
    return list(results)


def render_sync(
    source: Any,
    options: OptionsInput,
    *,
    resolver: Optional[FontResolver] = None,
    on_downscale: Optional[DownscaleCallback] = None,
    verbose: bool = False,
) -> bytes:
    """Blocking wrapper around render() for callers without an event loop."""
    return asyncio.run(render(source, options, resolver=resolver, on_downscale=on_downscale, verbose=verbose))
