"""
Pytest configuration and fixtures for magick-bridge tests
"""

import io

import pytest
from PIL import Image, ImageDraw

from magick_bridge.core import engine as magick_engine
from magick_bridge.core.image import MagickImage


@pytest.fixture(scope="session", autouse=True)
def engine(tmp_path_factory):
    """Initialize the process-wide engine once for the whole test session"""
    working_dir = tmp_path_factory.mktemp("engine")
    yield magick_engine.initialize(str(working_dir))


def _encode(image: Image.Image, fmt: str) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def test_image():
    """Create a 200x100 RGBA test image with a transparent margin"""
    image = Image.new("RGBA", (200, 100), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    draw.rectangle((20, 20, 179, 79), fill=(200, 30, 30, 255))
    return image


@pytest.fixture
def png_bytes(test_image):
    """Test image encoded as PNG"""
    return _encode(test_image, "PNG")


@pytest.fixture
def jpeg_bytes(test_image):
    """Test image encoded as JPEG (no alpha)"""
    return _encode(test_image.convert("RGB"), "JPEG")


@pytest.fixture
def pcx_bytes(test_image):
    """Test image encoded as PCX, a format without an alpha channel"""
    return _encode(test_image.convert("RGB"), "PCX")


@pytest.fixture
def png_file(tmp_path, png_bytes):
    """Test image written to a temporary PNG file"""
    path = tmp_path / "source.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def image(png_bytes):
    """Open image handle, destroyed after the test"""
    handle = MagickImage.open_blob(png_bytes, "png")
    yield handle
    if not handle.destroyed:
        handle.destroy()
