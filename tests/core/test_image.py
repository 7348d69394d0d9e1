"""
Tests for the MagickImage handle
"""

import io
import sys
import threading

import pytest
from PIL import Image

from magick_bridge.core import image as image_module
from magick_bridge.core import native
from magick_bridge.core.engine import MagickEngine
from magick_bridge.core.enums import Severity
from magick_bridge.core.exceptions import (
    BlobUnsupportedError,
    ColorError,
    DecodeError,
    EngineStateError,
    GeometryError,
    HandleDestroyedError,
    TransformError,
    WriteError,
)
from magick_bridge.core.image import MagickImage


def _decoded(blob: bytes) -> Image.Image:
    return Image.open(io.BytesIO(blob))


class TestOpen:
    """Test decoding files and blobs"""

    def test_open_file(self, png_file):
        with MagickImage.open(png_file) as image:
            assert (image.width, image.height) == (200, 100)
            assert image.format == "PNG"

    def test_open_blob(self, png_bytes):
        with MagickImage.open_blob(png_bytes, "png") as image:
            assert (image.width, image.height) == (200, 100)

    def test_open_blob_with_dot(self, jpeg_bytes):
        with MagickImage.open_blob(jpeg_bytes, ".jpg") as image:
            assert image.format == "JPEG"

    def test_file_and_blob_agree(self, png_file, png_bytes):
        with MagickImage.open(png_file) as from_file, MagickImage.open_blob(
            png_bytes, "png"
        ) as from_blob:
            assert (from_file.width, from_file.height) == (from_blob.width, from_blob.height)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError) as exc_info:
            MagickImage.open(tmp_path / "missing.png")

        assert exc_info.value.reason == "UnableToOpenBlob"

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"definitely not an image")

        with pytest.raises(DecodeError):
            MagickImage.open(path)

    def test_empty_blob(self):
        with pytest.raises(DecodeError) as exc_info:
            MagickImage.open_blob(b"", "png")

        assert exc_info.value.reason == "ZeroLengthBlobNotPermitted"

    def test_garbage_blob(self):
        with pytest.raises(DecodeError):
            MagickImage.open_blob(b"definitely not an image", "png")

    @pytest.mark.parametrize("extension", ["pdf", "xyz"])
    def test_blob_unsupported(self, png_bytes, extension):
        """Test format hints without an in-memory decoder are refused"""
        with pytest.raises(BlobUnsupportedError) as exc_info:
            MagickImage.open_blob(png_bytes, extension)

        error = exc_info.value
        assert error.severity == Severity.FATAL
        assert error.reason == "BlobNotSupported"
        assert extension in error.description

    def test_blob_without_extension(self, png_bytes):
        with pytest.raises(BlobUnsupportedError):
            MagickImage.open_blob(png_bytes, "")

    def test_engine_not_ready(self, monkeypatch, png_bytes):
        """Test opening fails cleanly before the engine is initialized"""
        monkeypatch.setattr(image_module, "get_engine", lambda: MagickEngine())

        with pytest.raises(EngineStateError):
            MagickImage.open_blob(png_bytes, "png")


class TestLifecycle:
    """Test handle ownership rules"""

    def test_destroy(self, image):
        exception = image.exception
        image.destroy()

        assert image.destroyed
        assert exception.destroyed
        assert image.info is None

    def test_destroy_twice(self, image):
        image.destroy()
        image.destroy()

        assert image.destroyed

    def test_use_after_destroy(self, image):
        image.destroy()

        with pytest.raises(HandleDestroyedError):
            image.width
        with pytest.raises(HandleDestroyedError):
            image.resize("50%")
        with pytest.raises(HandleDestroyedError):
            image.to_blob()

    def test_context_manager(self, png_bytes):
        with MagickImage.open_blob(png_bytes, "png") as image:
            pass

        assert image.destroyed

    def test_record_replaced_per_operation(self, image):
        """Test every operation gets a fresh diagnostic record"""
        first = image.exception
        image.parse_geometry("50%")
        second = image.exception

        assert second is not first
        assert first.destroyed
        assert not second.destroyed

    def test_record_replaced_on_failure(self, image):
        first = image.exception
        with pytest.raises(GeometryError):
            image.parse_geometry("abc")

        assert image.exception is not first
        assert image.exception.has_failed()

    def test_repr(self, image):
        assert repr(image) == "<MagickImage PNG 200x100>"
        image.destroy()
        assert repr(image) == "<MagickImage destroyed>"


class TestGeometry:
    """Test geometry parsing against the handle"""

    def test_parse_geometry(self, image):
        geometry = image.parse_geometry("50%")

        assert geometry.to_dict() == {"width": 100, "height": 50, "x_offset": 0, "y_offset": 0}

    def test_invalid_geometry(self, image):
        with pytest.raises(GeometryError) as exc_info:
            image.parse_geometry("abc")

        assert exc_info.value.reason == "InvalidGeometry"

    def test_zero_geometry(self, image):
        with pytest.raises(GeometryError) as exc_info:
            image.parse_geometry("0x0!")

        assert exc_info.value.reason == "NegativeOrZeroImageSize"


class TestResize:
    """Test in-place resizing"""

    def test_resize_fits_box(self, image):
        image.resize("100x100")

        assert image.width <= 100
        assert image.height <= 100
        assert (image.width, image.height) == (100, 50)

    def test_resize_percent(self, image):
        image.resize("50%")

        assert (image.width, image.height) == (100, 50)

    def test_resize_exact(self, image):
        image.resize("30x40!")

        assert (image.width, image.height) == (30, 40)

    def test_resize_releases_previous_pixels(self, image):
        previous = image.image
        image.resize("50%")

        assert image.image is not previous

    def test_resize_invalid(self, image):
        with pytest.raises(GeometryError):
            image.resize("not-a-size")

        assert (image.width, image.height) == (200, 100)


class TestCrop:
    """Test cropping into a new handle"""

    def test_crop(self, image):
        with image.crop("100x50+10+10") as cropped:
            assert (cropped.width, cropped.height) == (100, 50)

        assert (image.width, image.height) == (200, 100)

    def test_crop_clipped(self, image):
        """Test a region hanging over the edge is clipped"""
        with image.crop("100x50+150+80") as cropped:
            assert (cropped.width, cropped.height) == (50, 20)

    def test_crop_outside(self, image):
        with pytest.raises(TransformError) as exc_info:
            image.crop("50x25+500+500")

        assert exc_info.value.reason == "GeometryDoesNotContainImage"

    def test_crop_keeps_format_override(self, image):
        image.set_format("jpg")
        with image.crop("50%") as cropped:
            assert cropped.info.format == "JPEG"
            assert _decoded(cropped.to_blob()).format == "JPEG"


class TestShadow:
    """Test drop shadows"""

    def test_shadow_size(self, image):
        """Test the canvas grows by the shadow border and offset"""
        with image.shadow("black", 80, 2, 4, 4) as shadowed:
            assert (shadowed.width, shadowed.height) == (208, 108)

        assert (image.width, image.height) == (200, 100)

    def test_shadow_negative_offset(self, image):
        with image.shadow("black", 80, 3) as shadowed:
            assert (shadowed.width, shadowed.height) == (212, 112)

    def test_shadow_without_blur(self, image):
        with image.shadow("gray", 100, 0, 5, 5) as shadowed:
            assert (shadowed.width, shadowed.height) == (205, 105)

    def test_shadow_is_colored(self, image):
        """Test the shadow shows through the transparent margin"""
        with image.shadow("blue", 100, 0, 10, 10) as shadowed:
            pixels = _decoded(shadowed.to_blob()).convert("RGBA")

            # Under the shadow of the opaque rectangle, outside the rectangle itself
            assert pixels.getpixel((185, 85)) == (0, 0, 255, 255)
            # Transparent margin with no shadow behind it
            assert pixels.getpixel((2, 2))[3] == 0

    def test_shadow_bad_color(self, image):
        with pytest.raises(ColorError) as exc_info:
            image.shadow("not-a-color", 80, 2)

        assert exc_info.value.reason == "UnrecognizedColor"

    def test_shadow_negative_opacity(self, image):
        with pytest.raises(TransformError) as exc_info:
            image.shadow("black", -5, 2)

        assert not isinstance(exc_info.value, ColorError)


class TestFillBackgroundColor:
    """Test flattening onto a solid background"""

    @pytest.mark.parametrize("color", ["white", "none", "#00ff00", "rgb(10, 20, 30)"])
    def test_keeps_size(self, image, color):
        with image.fill_background_color(color) as flattened:
            assert (flattened.width, flattened.height) == (200, 100)

    def test_fills_transparent_pixels(self, image):
        with image.fill_background_color("white") as flattened:
            pixels = _decoded(flattened.to_blob()).convert("RGBA")

            assert pixels.getpixel((2, 2)) == (255, 255, 255, 255)
            assert pixels.getpixel((100, 50)) == (200, 30, 30, 255)

    def test_source_untouched(self, image):
        with image.fill_background_color("white"):
            pass

        assert image.image.pixels.getpixel((2, 2))[3] == 0

    def test_chained_fills(self, image):
        """Test flattening an already flattened image"""
        with image.fill_background_color("none") as cleared:
            with cleared.fill_background_color("white") as flattened:
                assert (flattened.width, flattened.height) == (200, 100)
                pixels = _decoded(flattened.to_blob()).convert("RGBA")
                assert pixels.getpixel((2, 2)) == (255, 255, 255, 255)

    def test_bad_color(self, image):
        with pytest.raises(ColorError):
            image.fill_background_color("not-a-color")

    def test_opaque_format(self, pcx_bytes):
        """Test a flattened RGBA result still encodes to a format without alpha"""
        with MagickImage.open_blob(pcx_bytes, "pcx") as source:
            with source.fill_background_color("white") as flattened:
                result = _decoded(flattened.to_blob())

        assert result.format == "PCX"
        assert result.size == (200, 100)


class TestEncode:
    """Test encoding to blobs and files"""

    def test_to_blob_keeps_source_format(self, image):
        blob = image.to_blob()

        assert _decoded(blob).format == "PNG"
        assert _decoded(blob).size == (200, 100)

    def test_blob_round_trip(self, image):
        """Test encoded bytes decode back to the same size"""
        blob = image.to_blob()

        with MagickImage.open_blob(blob, "png") as reopened:
            assert (reopened.width, reopened.height) == (image.width, image.height)
            assert reopened.format == image.format

    def test_to_blob_format_override(self, image):
        image.set_format("jpeg")
        image.set_quality(70)

        assert _decoded(image.to_blob()).format == "JPEG"

    def test_to_blob_unsupported_format(self, image):
        image.set_format("xyz")

        with pytest.raises(BlobUnsupportedError):
            image.to_blob()

    @pytest.mark.parametrize("filename, expected", [("out.png", "PNG"), ("out.jpg", "JPEG")])
    def test_to_file(self, image, tmp_path, filename, expected):
        path = tmp_path / filename
        image.to_file(path)

        assert path.exists()
        with Image.open(path) as written:
            assert written.format == expected
            assert written.size == (200, 100)

    def test_to_file_opaque_format(self, image, tmp_path):
        """Test an RGBA image written to a format without alpha"""
        path = tmp_path / "out.pcx"
        image.to_file(path)

        with Image.open(path) as written:
            assert written.format == "PCX"
            assert written.size == (200, 100)

    def test_to_file_records_filename(self, image, tmp_path):
        path = tmp_path / "out.png"
        image.to_file(path)

        assert image.info.filename == str(path)

    def test_to_file_round_trip(self, image, tmp_path):
        path = tmp_path / "copy.png"
        image.to_file(path)

        with MagickImage.open(path) as reopened:
            assert (reopened.width, reopened.height) == (image.width, image.height)

    def test_to_file_unknown_extension(self, image, tmp_path):
        with pytest.raises(WriteError) as exc_info:
            image.to_file(tmp_path / "out.xyz")

        assert exc_info.value.reason == "NoEncodeDelegateForThisImageFormat"

    def test_to_file_missing_directory(self, image, tmp_path):
        with pytest.raises(WriteError) as exc_info:
            image.to_file(tmp_path / "missing" / "out.png")

        assert exc_info.value.reason == "UnableToOpenBlob"
        assert image.info.filename == "image.png"

    def test_to_file_unknown_reason(self, image, tmp_path, monkeypatch):
        """Test a failed write with no diagnostic still raises"""
        monkeypatch.setattr(native, "write_image", lambda *args, **kwargs: False)

        with pytest.raises(WriteError) as exc_info:
            image.to_file(tmp_path / "out.png")

        assert exc_info.value.severity == Severity.FATAL
        assert "unknown reason" in exc_info.value.description


class TestConcurrentDiagnostics:
    """Test diagnostics stay with the operation that produced them"""

    @pytest.fixture
    def oversized_png(self, monkeypatch):
        """PNG just over a lowered pixel limit, so decoding it only warns"""
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)
        buffer = io.BytesIO()
        Image.new("RGB", (150, 100)).save(buffer, format="PNG")
        return buffer.getvalue()

    @pytest.fixture
    def small_png(self):
        buffer = io.BytesIO()
        Image.new("RGB", (10, 10)).save(buffer, format="PNG")
        return buffer.getvalue()

    def test_warning_only_fails_its_own_decode(self, oversized_png, small_png):
        """Test parallel decodes never see each other's warnings"""
        results = {"oversized_ok": 0, "wrong_reason": 0, "small_failed": 0}
        lock = threading.Lock()

        def worker():
            for i in range(100):
                if i % 2:
                    try:
                        MagickImage.open_blob(oversized_png, "png").destroy()
                    except DecodeError as e:
                        if e.reason != "ResourceLimit":
                            with lock:
                                results["wrong_reason"] += 1
                    else:
                        with lock:
                            results["oversized_ok"] += 1
                else:
                    try:
                        MagickImage.open_blob(small_png, "png").destroy()
                    except DecodeError:
                        with lock:
                            results["small_failed"] += 1

        interval = sys.getswitchinterval()
        sys.setswitchinterval(1e-6)
        try:
            threads = [threading.Thread(target=worker) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
        finally:
            sys.setswitchinterval(interval)

        assert results == {"oversized_ok": 0, "wrong_reason": 0, "small_failed": 0}
