import dataclasses
import math
import re
from typing import Any, Dict, Mapping, Type, Union

from watermark.config import (
    FONT_STYLES,
    FONT_WEIGHTS,
    SUPPORTED_OUTPUT_TYPES,
    WATERMARK_MODES,
    WATERMARK_TYPES,
    ImageWatermarkOptions,
    TextWatermarkOptions,
    normalize_output_type,
)
from watermark.layout import parse_anchor
from watermark.text.drawing_engine import parse_css_color
from watermark.utils.exceptions import ConfigurationError

OptionsType = Union[TextWatermarkOptions, ImageWatermarkOptions]

OPTION_CLASSES: Dict[str, Type] = {
    "text": TextWatermarkOptions,
    "image": ImageWatermarkOptions,
}

CAMEL_CASE_PATTERN = re.compile(r"(?<!^)(?=[A-Z])")

# Names accepted from callers that use a different vocabulary for the same field
FIELD_ALIASES = {
    "content": "text",
    "image": "image_element",
    "element": "image_element",
}


def to_snake_case(name: str) -> str:
    return CAMEL_CASE_PATTERN.sub("_", name).lower()


def coerce_options(raw: Any) -> OptionsType:
    """
    Turns caller-supplied options into the matching options dataclass.

    Args:
        raw: A TextWatermarkOptions/ImageWatermarkOptions instance, or a mapping
             with snake_case or camelCase keys and a ``type`` of "text" or "image".

    Returns:
        The options dataclass selected by ``type``.

    Raises:
        ConfigurationError: If ``raw`` is not a mapping, ``type`` is missing or
                            unknown, or a key is not a recognized option.
    """
    if isinstance(raw, (TextWatermarkOptions, ImageWatermarkOptions)):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Watermark options must be a mapping or an options object, got {type(raw).__name__}."
        )

    values = {}
    for key, value in raw.items():
        name = to_snake_case(str(key))
        values[FIELD_ALIASES.get(name, name)] = value

    watermark_type = str(values.pop("type", "") or "").strip().lower()
    if watermark_type not in OPTION_CLASSES:
        valid = ", ".join(WATERMARK_TYPES)
        raise ConfigurationError(f"Invalid watermark type '{watermark_type}'. Must be one of: {valid}.")

    options_cls = OPTION_CLASSES[watermark_type]
    known = {f.name for f in dataclasses.fields(options_cls) if f.init}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {watermark_type} watermark option(s): {', '.join(unknown)}")
    return options_cls(**values)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_color(value: Any, label: str) -> None:
    if value is None:
        return
    try:
        parse_css_color(value)
    except ConfigurationError as e:
        raise ConfigurationError(f"{label}: {e}") from e


def validate_options(options: OptionsType) -> None:
    """
    Validates watermark options before any surface is allocated.

    Raises:
        ConfigurationError: On the first invalid or missing value found.
    """
    # --- Common ---
    if options.type not in WATERMARK_TYPES:
        raise ConfigurationError(f"Invalid watermark type '{options.type}'.")
    if options.mode not in WATERMARK_MODES:
        raise ConfigurationError(f"Invalid mode '{options.mode}'. Must be one of: {', '.join(WATERMARK_MODES)}.")
    parse_anchor(options.position)

    for name in ("padding", "offset_x", "offset_y", "tile_spacing_x", "tile_spacing_y", "output_quality"):
        if not _is_number(getattr(options, name)):
            raise ConfigurationError(f"{name} must be a finite number.")
    for name in ("opacity", "rotate", "scale"):
        value = getattr(options, name)
        if value is not None and not _is_number(value):
            raise ConfigurationError(f"{name} must be a finite number.")

    if options.opacity is not None and not 0.0 <= options.opacity <= 1.0:
        raise ConfigurationError("Opacity must be between 0 and 1.")
    if not 0.0 <= options.output_quality <= 1.0:
        raise ConfigurationError("Output quality must be between 0 and 1.")
    if options.output_type is not None and normalize_output_type(options.output_type) not in SUPPORTED_OUTPUT_TYPES:
        raise ConfigurationError(
            f"Unsupported output type '{options.output_type}'. Supported: {', '.join(SUPPORTED_OUTPUT_TYPES)}."
        )
    if options.tile_spacing_x < 0 or options.tile_spacing_y < 0:
        raise ConfigurationError("Tile spacing cannot be negative.")

    # --- Text ---
    if isinstance(options, TextWatermarkOptions):
        if not isinstance(options.text, str) or not options.text.strip():
            raise ConfigurationError("Text watermark requires non-empty text content.")
        if not _is_number(options.font_size) or options.font_size <= 0:
            raise ConfigurationError("Font size must be a positive number.")
        weight = str(options.font_weight).strip().lower()
        if weight not in FONT_WEIGHTS and not weight.isdigit():
            raise ConfigurationError(
                f"Invalid font weight '{options.font_weight}'. Use normal, bold, lighter, bolder or a number."
            )
        if options.font_style not in FONT_STYLES:
            raise ConfigurationError(f"Invalid font style '{options.font_style}'. Must be one of: {', '.join(FONT_STYLES)}.")
        if not _is_number(options.stroke_width) or options.stroke_width < 0:
            raise ConfigurationError("Stroke width cannot be negative.")
        if options.line_height is not None and (not _is_number(options.line_height) or options.line_height <= 0):
            raise ConfigurationError("Line height must be a positive number.")
        for name in ("shadow_blur", "shadow_offset_x", "shadow_offset_y"):
            value = getattr(options, name)
            if value is not None and not _is_number(value):
                raise ConfigurationError(f"{name} must be a finite number.")
        if options.shadow_blur is not None and options.shadow_blur < 0:
            raise ConfigurationError("Shadow blur cannot be negative.")
        _check_color(options.color, "color")
        _check_color(options.stroke_color, "stroke_color")
        _check_color(options.shadow_color, "shadow_color")

    # --- Image ---
    elif isinstance(options, ImageWatermarkOptions):
        if not options.source and options.image_element is None:
            raise ConfigurationError('Image watermark requires "source" (path or URL) or "image_element".')
        if options.width is not None and (not _is_number(options.width) or not 0.0 < options.width <= 1.0):
            raise ConfigurationError("Image width must be a fraction of the image width in (0, 1].")
