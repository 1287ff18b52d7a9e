"""
Shared helpers for the watermark package: the exception taxonomy and console logging.
"""

from .exceptions import (AssetLoadError, ConfigurationError, DecodeError,
                         DrawingEnvironmentError, ExportFailure, FontError,
                         ImageProcessingError, RenderingError)
from .logging import log_message

__all__ = [
    "AssetLoadError",
    "ConfigurationError",
    "DecodeError",
    "DrawingEnvironmentError",
    "ExportFailure",
    "FontError",
    "ImageProcessingError",
    "RenderingError",
    "log_message",
]
