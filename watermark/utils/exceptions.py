class ConfigurationError(ValueError):
    """Custom exception for invalid or missing watermark options."""

    pass


class DrawingEnvironmentError(RuntimeError):
    """Custom exception raised when no drawing surface can be created in this process."""

    pass


class FontError(RuntimeError):
    """Custom exception for font loading and resource failures."""

    pass


class RenderingError(RuntimeError):
    """Custom exception for watermark drawing failures."""

    pass


class ImageProcessingError(Exception):
    """Custom exception for image operations failures."""

    pass


class DecodeError(ImageProcessingError):
    """Custom exception for source images that cannot be decoded."""

    pass


class AssetLoadError(RuntimeError):
    """Custom exception for logo images or font assets that fail to load."""

    pass


class ExportFailure(RuntimeError):
    """Raised when a surface cannot be encoded.

    Carries the requested MIME type and the surface dimensions at the time of
    the attempt so the failure can be told apart from a generic error.
    """

    def __init__(self, mime_type: str, width: int, height: int, detail: str = ""):
        self.mime_type = mime_type
        self.width = width
        self.height = height
        self.detail = detail
        message = (
            f'Surface export failed for type "{mime_type}" '
            f"(surface size: {width}x{height})."
        )
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
