import asyncio
import io
from pathlib import Path

import pytest
from PIL import Image

from watermark import pipeline
from watermark.caching import FontCache
from watermark.config import FontConfig, ImageWatermarkOptions, TextWatermarkOptions
from watermark.image import image_utils
from watermark.image.image_utils import (DecodedImage, create_surface_from_image, decode_source_image,
                                         load_logo_image, resolve_output_type)
from watermark.pipeline import render, render_batch, render_sync
from watermark.surface import SafeSize, WatermarkSurface
from watermark.text.font_loader import FontResolver
from watermark.text.font_manager import FontRegistry
from watermark.utils.exceptions import (AssetLoadError, ConfigurationError, DecodeError,
                                        DrawingEnvironmentError, ExportFailure, RenderingError)

from conftest import FakeInstaller, make_image_bytes

FONT_DIR = Path(__file__).parent / "fonts"
EXIF_ORIENTATION = 0x0112


def _open(data):
    return Image.open(io.BytesIO(data))


def test_text_watermark_end_to_end(png_bytes, resolver, installer):
    options = {"type": "text", "text": "© Test", "position": "bottom-right", "padding": 20}
    data = asyncio.run(render(png_bytes, options, resolver=resolver))

    assert data
    image = _open(data)
    assert image.format == "PNG"
    assert image.size == (800, 600)
    assert installer.calls and installer.calls[0][0] == "Noto Sans"


def test_tiled_multiline_text(png_bytes, resolver):
    options = TextWatermarkOptions(text="CONFIDENTIAL\nDo not copy", mode="tiled", scale=1.0)
    data = asyncio.run(render(png_bytes, options, resolver=resolver))
    assert _open(data).size == (800, 600)


def test_non_latin_text(png_bytes, resolver, installer):
    options = TextWatermarkOptions(text="水印测试", font_family="Brand Sans", stroke_color="black")
    asyncio.run(render(png_bytes, options, resolver=resolver))
    assert installer.calls[0][0] == "Noto Sans SC"


def test_output_type_follows_source(jpeg_bytes, resolver):
    options = TextWatermarkOptions(text="© Test")
    data = asyncio.run(render(jpeg_bytes, options, resolver=resolver))
    assert _open(data).format == "JPEG"


def test_explicit_output_type(png_bytes, resolver):
    options = TextWatermarkOptions(text="© Test", output_type="image/webp", output_quality=0.8)
    data = asyncio.run(render(png_bytes, options, resolver=resolver))
    assert _open(data).format == "WEBP"


def test_image_watermark_single_and_tiled(png_bytes, logo_bytes):
    single = asyncio.run(render(png_bytes, ImageWatermarkOptions(image_element=logo_bytes, position="top-left")))
    tiled = asyncio.run(render(png_bytes, ImageWatermarkOptions(image_element=logo_bytes, mode="tiled", rotate=30)))

    single_image = _open(single).convert("RGB")
    # 0.15 x 800 = 120px wide logo at padding 20
    assert single_image.getpixel((60, 40)) == (255, 0, 0)
    assert single_image.getpixel((400, 300)) == (40, 90, 160)
    assert _open(tiled).size == (800, 600)


def test_logo_from_path(tmp_path, png_bytes, logo_bytes):
    logo_path = tmp_path / "logo.png"
    logo_path.write_bytes(logo_bytes)
    data = asyncio.run(render(png_bytes, {"type": "image", "source": str(logo_path), "opacity": 0.5}))
    assert data


def test_missing_logo_aborts(png_bytes, tmp_path):
    options = ImageWatermarkOptions(source=str(tmp_path / "missing.png"))
    with pytest.raises(AssetLoadError):
        asyncio.run(render(png_bytes, options))


def test_invalid_type_rejected_before_surface_allocation(png_bytes, monkeypatch):
    allocated = []
    monkeypatch.setattr(pipeline, "create_surface_from_image", lambda *args: allocated.append(args))

    with pytest.raises(ConfigurationError):
        asyncio.run(render(png_bytes, {"type": "video"}))
    with pytest.raises(ConfigurationError):
        asyncio.run(render(png_bytes, {"type": "text", "text": ""}))
    assert allocated == []


def test_environment_error_before_decode(monkeypatch):
    def no_surface():
        raise DrawingEnvironmentError("headless")

    decoded = []
    monkeypatch.setattr(pipeline, "check_drawing_environment", no_surface)
    monkeypatch.setattr(pipeline, "decode_source_image", lambda source: decoded.append(source))

    with pytest.raises(DrawingEnvironmentError):
        asyncio.run(render(b"anything", {"type": "text", "text": "x"}))
    assert decoded == []


def test_undecodable_source(resolver):
    with pytest.raises(DecodeError):
        asyncio.run(render(b"not an image", TextWatermarkOptions(text="x"), resolver=resolver))


def test_surface_released_after_export_failure(png_bytes, resolver, monkeypatch):
    released = []
    original_release = pipeline.release_surface

    async def failing_encode(surface, mime_type, quality):
        raise ExportFailure(mime_type, surface.width, surface.height, "refused")

    def tracking_release(surface):
        original_release(surface)
        released.append(surface)

    monkeypatch.setattr(pipeline, "encode_surface", failing_encode)
    monkeypatch.setattr(pipeline, "release_surface", tracking_release)

    with pytest.raises(ExportFailure, match="800x600"):
        asyncio.run(render(png_bytes, TextWatermarkOptions(text="© Test"), resolver=resolver))

    assert len(released) == 1
    assert isinstance(released[0], WatermarkSurface)
    assert released[0].released
    assert (released[0].width, released[0].height) == (1, 1)


def test_surface_released_after_success(png_bytes, resolver, monkeypatch):
    released = []
    original_release = pipeline.release_surface

    def tracking_release(surface):
        original_release(surface)
        released.append(surface)

    monkeypatch.setattr(pipeline, "release_surface", tracking_release)
    asyncio.run(render(png_bytes, TextWatermarkOptions(text="© Test"), resolver=resolver))
    assert len(released) == 1 and released[0].released


def _tiny_budget(width, height):
    return SafeSize(width // 2, height // 2, True, width, height)


def test_oversized_source_is_downscaled(resolver, monkeypatch):
    monkeypatch.setattr("watermark.image.image_utils.get_safe_surface_size", _tiny_budget)
    events = []
    data = asyncio.run(
        render(make_image_bytes(400, 300), TextWatermarkOptions(text="x"), resolver=resolver, on_downscale=events.append)
    )
    assert len(events) == 1
    assert events[0].original_width == 400
    assert _open(data).size == (events[0].width, events[0].height)


def test_render_batch(resolver, installer):
    sources = [make_image_bytes(320, 240), make_image_bytes(640, 480), make_image_bytes(100, 100)]
    results = asyncio.run(render_batch(sources, {"type": "text", "text": "© Batch"}, resolver=resolver))
    assert [_open(data).size for data in results] == [(320, 240), (640, 480), (100, 100)]
    # One install for the shared script font, cache hits afterwards
    assert len(installer.calls) == 1


def test_render_sync(png_bytes, resolver):
    assert render_sync(png_bytes, TextWatermarkOptions(text="sync"), resolver=resolver)


def test_decode_source_variants(tmp_path, png_bytes):
    path = tmp_path / "source.png"
    path.write_bytes(png_bytes)
    assert decode_source_image(png_bytes).mime_type == "image/png"
    assert decode_source_image(path).width == 800
    assert decode_source_image(io.BytesIO(png_bytes)).height == 600
    with pytest.raises(DecodeError):
        decode_source_image(None)


def test_resolve_output_type():
    assert resolve_output_type(None, "image/jpeg") == "image/jpeg"
    assert resolve_output_type(None, "image/gif") == "image/png"
    assert resolve_output_type(None, None) == "image/png"
    assert resolve_output_type("IMAGE/WEBP", "image/jpeg") == "image/webp"


def _rotated_jpeg(orientation=6):
    """A 400x200 JPEG, red on the left and blue on the right, tagged to display rotated."""
    image = Image.new("RGB", (400, 200), (0, 0, 255))
    image.paste((255, 0, 0), (0, 0, 200, 200))
    exif = Image.Exif()
    exif[EXIF_ORIENTATION] = orientation
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", exif=exif.tobytes(), quality=95)
    return buffer.getvalue()


def test_exif_orientation_is_applied_on_decode():
    decoded = decode_source_image(_rotated_jpeg())

    assert (decoded.width, decoded.height) == (200, 400)
    assert decoded.mime_type == "image/jpeg"
    # Orientation 6 turns the left half into the top half
    top = decoded.image.convert("RGB").getpixel((100, 50))
    bottom = decoded.image.convert("RGB").getpixel((100, 350))
    assert top[0] > 200 and top[2] < 60
    assert bottom[2] > 200 and bottom[0] < 60


def test_exif_orientation_applies_to_pil_sources():
    decoded = decode_source_image(Image.open(io.BytesIO(_rotated_jpeg())))
    assert decoded.image.size == (200, 400)
    assert decoded.mime_type == "image/jpeg"


def test_render_keeps_display_orientation(resolver):
    data = asyncio.run(render(_rotated_jpeg(), TextWatermarkOptions(text="© Test"), resolver=resolver))
    image = _open(data)
    assert image.format == "JPEG"
    assert image.size == (200, 400)


def test_rotated_logo_is_drawn_upright():
    logo = load_logo_image(image_element=_rotated_jpeg())
    assert (logo.width(), logo.height()) == (200, 400)


def test_decompression_bomb_is_a_decode_error(monkeypatch):
    data = make_image_bytes(100, 100)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(DecodeError):
        decode_source_image(data)
    with pytest.raises(AssetLoadError):
        load_logo_image(image_element=data)


def test_decompression_bomb_aborts_render(resolver, monkeypatch):
    data = make_image_bytes(100, 100)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(DecodeError):
        asyncio.run(render(data, TextWatermarkOptions(text="© Test"), resolver=resolver))


def test_failed_conversion_allocates_no_surface(monkeypatch):
    allocated = []

    class RecordingSurface(WatermarkSurface):
        def __init__(self, width, height):
            allocated.append((width, height))
            super().__init__(width, height)

    def failing_conversion(pil_image):
        raise RenderingError("Failed to create Skia image from PIL")

    monkeypatch.setattr(image_utils, "WatermarkSurface", RecordingSurface)
    monkeypatch.setattr(image_utils, "pil_to_skia_image", failing_conversion)

    decoded = DecodedImage(Image.new("RGB", (40, 30)), "image/png")
    with pytest.raises(RenderingError):
        create_surface_from_image(decoded)
    assert allocated == []


def test_logo_from_pathlib_path(tmp_path, png_bytes, logo_bytes):
    logo_path = tmp_path / "logo.png"
    logo_path.write_bytes(logo_bytes)

    logo = load_logo_image(source=logo_path)
    assert (logo.width(), logo.height()) == (200, 100)

    data = asyncio.run(render(png_bytes, ImageWatermarkOptions(source=logo_path, position="top-left")))
    assert _open(data).convert("RGB").getpixel((60, 40)) == (255, 0, 0)


def test_missing_pathlib_logo_aborts(png_bytes, tmp_path):
    options = ImageWatermarkOptions(source=tmp_path / "missing.png")
    with pytest.raises(AssetLoadError):
        asyncio.run(render(png_bytes, options))


def test_jpg_alias_output_type(png_bytes, resolver):
    options = TextWatermarkOptions(text="© Test", output_type="image/jpg")
    data = asyncio.run(render(png_bytes, options, resolver=resolver))
    assert _open(data).format == "JPEG"


def test_resolve_output_type_aliases():
    assert resolve_output_type("image/jpg", "image/png") == "image/jpeg"
    assert resolve_output_type(" Image/JPG ", None) == "image/jpeg"
    assert resolve_output_type(None, "image/jpg") == "image/jpeg"


def test_text_drawn_with_registered_font():
    background = (0, 0, 0)
    source = make_image_bytes(400, 200, color=background + (255,))
    resolver = FontResolver(
        cache=FontCache(),
        registry=FontRegistry(),
        installer=FakeInstaller(),
        config=FontConfig(font_dirs=[str(FONT_DIR)]),
    )
    assert "Lato" in resolver.registry

    options = TextWatermarkOptions(
        text="Hello", font_family="Lato", font_size=48, color="white", opacity=1.0, position="center"
    )
    image = _open(asyncio.run(render(source, options, resolver=resolver))).convert("RGB")

    changed = sum(1 for pixel in image.getdata() if pixel != background)
    assert changed > 100
