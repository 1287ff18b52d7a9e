import io

import pytest
from PIL import Image

from watermark.caching import FontCache
from watermark.config import FontConfig
from watermark.text.font_loader import FontResolver
from watermark.text.font_manager import FontRegistry


class FakeInstaller:
    """Records install calls instead of fetching anything."""

    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def __call__(self, family, locator, weight):
        self.calls.append((family, locator, weight))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(autouse=True)
def clean_font_env(monkeypatch):
    for name in ("WATERMARK_OFFLINE", "WATERMARK_FONT_TIMEOUT", "WATERMARK_FONT_DIRS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def installer():
    return FakeInstaller()


@pytest.fixture
def resolver(installer):
    return FontResolver(
        cache=FontCache(),
        registry=FontRegistry(),
        installer=installer,
        config=FontConfig(install_timeout=2.0),
    )


def make_image_bytes(width=800, height=600, fmt="PNG", color=(40, 90, 160)):
    mode = "RGB" if fmt == "JPEG" else "RGBA"
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes(fmt="JPEG")


@pytest.fixture
def logo_bytes():
    return make_image_bytes(200, 100, color=(255, 0, 0, 255))
