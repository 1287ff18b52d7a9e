"""
Drawing-surface lifecycle: pixel-budget clamping, scoped canvas state, and
memory release after export.
"""

import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import skia

from watermark.utils.exceptions import DrawingEnvironmentError, RenderingError
from watermark.utils.logging import log_message

# Mobile WebKit-class rendering backends fail silently above ~16.7 megapixels.
# 4K (3840x2160 = 8.3MP) fits; a 24MP camera photo does not.
MAX_SURFACE_AREA = 16_777_216


@dataclass(frozen=True)
class SafeSize:
    """Working surface size after applying the pixel-area ceiling."""

    width: int
    height: int
    was_scaled: bool
    original_width: int
    original_height: int


def get_safe_surface_size(width: int, height: int) -> SafeSize:
    """
    Clamp surface dimensions to the platform pixel budget.

    Images above the budget are downscaled uniformly (aspect ratio kept,
    dimensions floored), so width x height never exceeds MAX_SURFACE_AREA.

    Args:
        width: Source width in pixels
        height: Source height in pixels

    Returns:
        SafeSize: Dimensions to allocate and whether they were reduced
    """
    area = width * height
    if area <= MAX_SURFACE_AREA:
        return SafeSize(width, height, False, width, height)
    ratio = math.sqrt(MAX_SURFACE_AREA / area)
    safe_w = max(1, math.floor(width * ratio))
    safe_h = max(1, math.floor(height * ratio))
    # sqrt rounding, or a side clamped up to 1px, can leave the product over the budget
    if safe_w * safe_h > MAX_SURFACE_AREA:
        if safe_w >= safe_h:
            safe_w = MAX_SURFACE_AREA // safe_h
        else:
            safe_h = MAX_SURFACE_AREA // safe_w
    return SafeSize(safe_w, safe_h, True, width, height)


def notify_downscale(
    safe_size: SafeSize,
    on_downscale: Optional[Callable[[SafeSize], None]] = None,
) -> None:
    """Reports an auto-downscale through the log and the caller's callback."""
    if not safe_size.was_scaled:
        return
    megapixels = safe_size.original_width * safe_size.original_height / 1e6
    log_message(
        f"Warning: Image ({safe_size.original_width}x{safe_size.original_height} = {megapixels:.1f}MP) "
        f"exceeds the {MAX_SURFACE_AREA / 1e6:.1f}MP surface limit. "
        f"Auto-downscaled to {safe_size.width}x{safe_size.height}.",
        always_print=True,
    )
    if on_downscale is not None:
        on_downscale(safe_size)


def check_drawing_environment() -> None:
    """
    Verifies that a raster drawing surface can be created in this process.

    Raises:
        DrawingEnvironmentError: If Skia cannot allocate a surface
    """
    try:
        scratch = skia.Surface(1, 1)
    except Exception as e:
        raise DrawingEnvironmentError(
            "No drawing surface is available in this environment (Skia raster backend failed to initialize)."
        ) from e
    if scratch is None:
        raise DrawingEnvironmentError("No drawing surface is available in this environment.")


class WatermarkSurface:
    """A Skia raster surface with scoped state handling and explicit release.

    After ``release()`` the surface is a blank 1x1 surface: drawing still
    works and encoding yields a 1x1 image.
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise RenderingError(f"Invalid surface size {width}x{height}")
        surface = skia.Surface(int(width), int(height))
        if surface is None:
            raise RenderingError(f"Failed to allocate a {width}x{height} surface")
        self._surface = surface
        self._released = False

    @property
    def width(self) -> int:
        return self._surface.width()

    @property
    def height(self) -> int:
        return self._surface.height()

    @property
    def released(self) -> bool:
        return self._released

    @contextmanager
    def canvas_state(self, opacity: float = 1.0) -> Iterator[skia.Canvas]:
        """
        Yields the canvas with its transform and style state saved.

        The state, including any opacity layer, is restored on every exit path.
        """
        with self._surface as canvas:
            save_count = canvas.getSaveCount()
            canvas.save()
            if opacity < 1.0:
                canvas.saveLayerAlpha(None, max(0, min(255, int(round(opacity * 255)))))
            try:
                yield canvas
            finally:
                canvas.restoreToCount(save_count)

    def draw_image(self, image: skia.Image) -> None:
        """Draws an image scaled to fill the whole surface."""
        with self._surface as canvas:
            canvas.drawImageRect(
                image,
                skia.Rect.MakeWH(self.width, self.height),
                skia.SamplingOptions(skia.FilterMode.kLinear),
            )

    def snapshot(self) -> Optional[skia.Image]:
        return self._surface.makeImageSnapshot()

    def release(self) -> None:
        """Shrinks the surface to 1x1 and clears it so the backing memory can be freed."""
        self._surface = skia.Surface(1, 1)
        with self._surface as canvas:
            canvas.clear(skia.ColorTRANSPARENT)
        self._released = True


def release_surface(surface: Optional[WatermarkSurface]) -> None:
    """Releases a surface if there is one; safe to call more than once."""
    if surface is not None:
        surface.release()
