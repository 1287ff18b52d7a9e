import asyncio
import io

import pytest
from PIL import Image

from watermark.export import encode_surface, encode_surface_sync, quality_to_int
from watermark.surface import WatermarkSurface
from watermark.utils.exceptions import ExportFailure


class RefusingImage:
    def encodeToData(self, *args):
        return None


class ThrowingImage:
    def encodeToData(self, *args):
        raise MemoryError("backing store exhausted")


def test_quality_mapping():
    assert quality_to_int(0.92) == 92
    assert quality_to_int(1.0) == 100
    assert quality_to_int(0) == 0


@pytest.mark.parametrize(
    "mime_type,fmt",
    [("image/png", "PNG"), ("image/jpeg", "JPEG"), ("image/jpg", "JPEG"), ("IMAGE/WEBP", "WEBP")],
)
def test_encodes_supported_types(mime_type, fmt):
    surface = WatermarkSurface(64, 32)
    data = asyncio.run(encode_surface(surface, mime_type, 0.8))
    image = Image.open(io.BytesIO(data))
    assert image.format == fmt
    assert image.size == (64, 32)


def test_backend_refusal_raises_export_failure(monkeypatch):
    surface = WatermarkSurface(640, 480)
    monkeypatch.setattr(surface, "snapshot", lambda: RefusingImage())

    with pytest.raises(ExportFailure) as exc_info:
        encode_surface_sync(surface, "image/png")

    error = exc_info.value
    assert (error.mime_type, error.width, error.height) == ("image/png", 640, 480)
    assert "image/png" in str(error)
    assert "640x480" in str(error)


def test_encoder_exception_is_wrapped(monkeypatch):
    surface = WatermarkSurface(100, 50)
    monkeypatch.setattr(surface, "snapshot", lambda: ThrowingImage())

    with pytest.raises(ExportFailure) as exc_info:
        encode_surface_sync(surface, "image/webp")

    assert "backing store exhausted" in str(exc_info.value)
    assert "100x50" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, MemoryError)


def test_unknown_type_raises_export_failure():
    surface = WatermarkSurface(10, 10)
    with pytest.raises(ExportFailure) as exc_info:
        encode_surface_sync(surface, "image/gif")
    assert exc_info.value.mime_type == "image/gif"
