import os
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from watermark.utils.logging import log_message

ANCHORS = (
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
)
WATERMARK_TYPES = ("text", "image")
WATERMARK_MODES = ("single", "tiled")
FONT_WEIGHTS = {"normal": "400", "bold": "700", "lighter": "300", "bolder": "800"}
FONT_STYLES = ("normal", "italic", "oblique")
SUPPORTED_OUTPUT_TYPES = ("image/png", "image/jpeg", "image/webp")
OUTPUT_TYPE_ALIASES = {"image/jpg": "image/jpeg"}

DEFAULT_OUTPUT_QUALITY = 0.92
MIN_SCALED_FONT_SIZE = 12
LINE_HEIGHT_FACTOR = 1.3

# Values that differ between single-shot and tiled placement
MODE_DEFAULTS = {
    "single": {
        "opacity": 1.0,
        "rotate": 0.0,
        "shadow_color": "rgba(0, 0, 0, 0.5)",
        "shadow_blur": 4.0,
        "shadow_offset_x": 2.0,
        "shadow_offset_y": 2.0,
        "width": 0.15,
    },
    "tiled": {
        "opacity": 0.3,
        "rotate": -45.0,
        "shadow_color": "rgba(0, 0, 0, 0.3)",
        "shadow_blur": 2.0,
        "shadow_offset_x": 1.0,
        "shadow_offset_y": 1.0,
        "width": 0.1,
    },
}


def normalize_output_type(mime_type: str) -> str:
    """Lower-cases a MIME type and maps aliases such as image/jpg to their canonical name."""
    mime_type = str(mime_type).strip().lower()
    return OUTPUT_TYPE_ALIASES.get(mime_type, mime_type)


@dataclass
class WatermarkOptions:
    """Options shared by text and image watermarks."""

    mode: str = "single"
    position: str = "bottom-right"
    opacity: Optional[float] = None  # None = mode default
    rotate: Optional[float] = None  # degrees, None = mode default
    padding: float = 20.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    tile_spacing_x: float = 100.0
    tile_spacing_y: float = 80.0
    scale: Optional[float] = None  # responsive factor relative to a 1920px wide image
    output_type: Optional[str] = None  # None = keep the source MIME type
    output_quality: float = DEFAULT_OUTPUT_QUALITY

    def mode_default(self, name: str) -> Any:
        return MODE_DEFAULTS.get(self.mode, MODE_DEFAULTS["single"])[name]

    def resolved_opacity(self) -> float:
        return float(self.opacity) if self.opacity is not None else self.mode_default("opacity")

    def resolved_rotation(self) -> float:
        return float(self.rotate) if self.rotate is not None else self.mode_default("rotate")


@dataclass
class TextWatermarkOptions(WatermarkOptions):
    """Options for text watermarks."""

    text: str = ""
    font_family: Optional[str] = None
    font_size: float = 48.0
    font_weight: str = "bold"
    font_style: str = "normal"
    color: str = "rgba(255, 255, 255, 0.5)"
    stroke_color: Optional[str] = None
    stroke_width: float = 2.0
    shadow_color: Optional[str] = None
    shadow_blur: Optional[float] = None
    shadow_offset_x: Optional[float] = None
    shadow_offset_y: Optional[float] = None
    line_height: Optional[float] = None  # px, None = 1.3 x scaled font size
    type: str = field(default="text", init=False)

    def resolved_shadow(self):
        """Returns (color, blur, offset_x, offset_y) with mode defaults filled in."""
        return (
            self.shadow_color if self.shadow_color is not None else self.mode_default("shadow_color"),
            float(self.shadow_blur if self.shadow_blur is not None else self.mode_default("shadow_blur")),
            float(self.shadow_offset_x if self.shadow_offset_x is not None else self.mode_default("shadow_offset_x")),
            float(self.shadow_offset_y if self.shadow_offset_y is not None else self.mode_default("shadow_offset_y")),
        )

    def weight_value(self) -> str:
        """Numeric weight string used for font installs and typeface matching."""
        weight = str(self.font_weight).strip().lower()
        return FONT_WEIGHTS.get(weight, weight)


@dataclass
class ImageWatermarkOptions(WatermarkOptions):
    """Options for image/logo watermarks."""

    source: Optional[Union[str, os.PathLike]] = None  # local path or http(s) URL
    image_element: Any = None  # bytes, file-like, path, PIL image or skia.Image
    width: Optional[float] = None  # fraction of the surface width, None = mode default
    type: str = field(default="image", init=False)

    def resolved_width_fraction(self) -> float:
        return float(self.width) if self.width is not None else self.mode_default("width")


@dataclass
class FontConfig:
    """Configuration for font installation and lookup."""

    auto_install: bool = True
    install_timeout: float = 10.0
    google_fonts_css_url: str = "https://fonts.googleapis.com/css2"
    user_agent: str = "skia-watermark"
    font_dirs: List[str] = field(default_factory=list)

    def __post_init__(self):
        # Environment overrides
        if os.environ.get("WATERMARK_OFFLINE", "").strip().lower() in ("1", "true", "yes"):
            self.auto_install = False
        timeout = os.environ.get("WATERMARK_FONT_TIMEOUT")
        if timeout:
            try:
                self.install_timeout = float(timeout)
            except ValueError:
                log_message(
                    f"Warning: Ignoring invalid WATERMARK_FONT_TIMEOUT value: {timeout!r}",
                    always_print=True,
                )
        extra_dirs = os.environ.get("WATERMARK_FONT_DIRS", "")
        for font_dir in extra_dirs.split(os.pathsep):
            if font_dir and font_dir not in self.font_dirs:
                self.font_dirs.append(font_dir)
