"""
Engine capability calls.

Thin calls into the imaging engine (Pillow for codecs and compositing, OpenCV
and NumPy for alpha blurring). None of these raise on engine failures: each
one reports problems into the ExceptionInfo it is given and signals the
outcome through its return value (None or False). Callers must inspect the
diagnostic record afterwards.
"""

import io
import logging
import math
import os
import threading
import warnings
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageColor, UnidentifiedImageError

from magick_bridge.core.constants import ColorConstants, EngineConstants, ReasonConstants
from magick_bridge.core.engine import get_engine
from magick_bridge.core.enums import Severity
from magick_bridge.core.exceptions import ExceptionInfo
from magick_bridge.schemas.geometry import Geometry

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int, int]

# Warning filters are process-wide; one capture at a time
_warnings_lock = threading.Lock()


@dataclass
class NativeImage:
    """Decoded pixel data plus the metadata the engine tracks with it"""

    pixels: Image.Image
    magick: str = ""
    page_x: int = 0
    page_y: int = 0
    background_color: Color = ColorConstants.DEFAULT_BACKGROUND

    @property
    def columns(self) -> int:
        return self.pixels.width

    @property
    def rows(self) -> int:
        return self.pixels.height

    def destroy(self) -> None:
        self.pixels.close()


@dataclass
class ImageInfo:
    """Configuration record governing decode/encode"""

    filename: str = ""
    magick: str = ""
    format: str = ""
    quality: Optional[int] = None

    def clone(self) -> "ImageInfo":
        return replace(self)


@contextmanager
def _capture_warnings(exception: ExceptionInfo) -> Iterator[None]:
    """Route engine warnings raised inside the block into the diagnostic record."""
    with _warnings_lock:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            yield

        for warning in caught:
            if issubclass(warning.category, Image.DecompressionBombWarning):
                reason = ReasonConstants.RESOURCE_LIMIT
            else:
                reason = ReasonConstants.CODER_WARNING
            exception.throw(Severity.WARNING, reason, str(warning.message))


def set_image_info(info: ImageInfo, exception: ExceptionInfo) -> bool:
    """Resolve the configuration's format from its filename."""
    if not info.filename:
        exception.throw(Severity.ERROR, ReasonConstants.INVALID_ARGUMENT, "filename is empty")
        return False

    magick = get_engine().resolve_magick(info.filename)
    if not magick:
        exception.throw(
            Severity.ERROR,
            ReasonConstants.NO_DECODE_DELEGATE,
            f"`{info.filename}' has no format extension",
        )
        return False

    info.magick = magick
    return True


def get_blob_support(info: ImageInfo) -> bool:
    """Whether the configuration's format can be decoded from memory."""
    magick_info = get_engine().get_magick_info(info.magick)
    return magick_info is not None and magick_info.blob_support


def _decode(
    source: Union[str, io.BytesIO], label: str, exception: ExceptionInfo
) -> Optional[NativeImage]:
    try:
        with _capture_warnings(exception):
            with Image.open(source) as decoded:
                decoded.load()
                magick = decoded.format or ""
                pixels = decoded.copy()
    except FileNotFoundError as e:
        exception.throw(
            Severity.ERROR, ReasonConstants.UNABLE_TO_OPEN_BLOB, f"`{label}': {e.strerror}"
        )
        return None
    except UnidentifiedImageError:
        exception.throw(Severity.ERROR, ReasonConstants.NO_DECODE_DELEGATE, f"`{label}'")
        return None
    except Image.DecompressionBombError as e:
        exception.throw(Severity.ERROR, ReasonConstants.RESOURCE_LIMIT, str(e))
        return None
    except (OSError, SyntaxError, ValueError) as e:
        exception.throw(Severity.ERROR, ReasonConstants.CORRUPT_IMAGE, f"`{label}': {e}")
        return None

    return NativeImage(pixels=pixels, magick=magick)


def read_image(info: ImageInfo, exception: ExceptionInfo) -> Optional[NativeImage]:
    """Decode the file named by the configuration record."""
    return _decode(info.filename, info.filename, exception)


def read_image_blob(
    info: ImageInfo, blob: bytes, exception: ExceptionInfo
) -> Optional[NativeImage]:
    """Decode an in-memory image; the format is detected from the content."""
    if not blob:
        exception.throw(Severity.ERROR, ReasonConstants.ZERO_LENGTH_BLOB, "blob is empty")
        return None

    return _decode(io.BytesIO(blob), f"{len(blob)} byte blob", exception)


def clone_image(image: NativeImage) -> NativeImage:
    return replace(image, pixels=image.pixels.copy())


def query_color(name: str, exception: ExceptionInfo) -> Optional[Color]:
    """Look a color up in the engine's color database."""
    text = (name or "").strip()
    if text.lower() in ColorConstants.TRANSPARENT_NAMES:
        return ColorConstants.TRANSPARENT

    try:
        rgb = ImageColor.getrgb(text)
    except ValueError:
        exception.throw(Severity.WARNING, ReasonConstants.UNRECOGNIZED_COLOR, f"`{name}'")
        return None

    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    return tuple(rgb)


def set_background_color(image: NativeImage, name: str, exception: ExceptionInfo) -> bool:
    color = query_color(name, exception)
    if color is None:
        return False
    image.background_color = color
    return True


def set_image_background_color(image: NativeImage) -> bool:
    """Fill every pixel of the image with its background color."""
    previous = image.pixels
    image.pixels = Image.new("RGBA", previous.size, image.background_color)
    previous.close()
    return True


def thumbnail_image(
    image: NativeImage, columns: int, rows: int, exception: ExceptionInfo
) -> Optional[NativeImage]:
    """Resample to exactly columns x rows, dropping ancillary metadata."""
    if columns <= 0 or rows <= 0:
        exception.throw(
            Severity.ERROR,
            ReasonConstants.NEGATIVE_OR_ZERO_IMAGE_SIZE,
            f"{columns}x{rows}",
        )
        return None

    try:
        resized = image.pixels.resize((columns, rows), Image.Resampling.LANCZOS)
    except (OSError, ValueError) as e:
        exception.throw(Severity.ERROR, ReasonConstants.CORRUPT_IMAGE, f"resize failed: {e}")
        return None

    resized.info = {}
    return NativeImage(
        pixels=resized, magick=image.magick, background_color=image.background_color
    )


def crop_image(
    image: NativeImage, geometry: Geometry, exception: ExceptionInfo
) -> Optional[NativeImage]:
    """Extract a region, clipped to the image bounds."""
    left = max(geometry.x_offset, 0)
    top = max(geometry.y_offset, 0)
    right = min(geometry.x2, image.columns)
    bottom = min(geometry.y2, image.rows)

    if right <= left or bottom <= top:
        exception.throw(
            Severity.WARNING,
            ReasonConstants.GEOMETRY_DOES_NOT_CONTAIN_IMAGE,
            f"{geometry.width}x{geometry.height}{geometry.x_offset:+d}{geometry.y_offset:+d} "
            f"outside {image.columns}x{image.rows}",
        )
        return None

    cropped = image.pixels.crop((left, top, right, bottom))
    return NativeImage(
        pixels=cropped, magick=image.magick, background_color=image.background_color
    )


def shadow_image(
    image: NativeImage,
    opacity: float,
    sigma: float,
    x_offset: int,
    y_offset: int,
    exception: ExceptionInfo,
) -> Optional[NativeImage]:
    """
    Build a drop shadow of the image in its background color.

    The shadow canvas grows by a border of round(2*sigma) on every side and its
    page offset is shifted so it lines up under the source when merged.
    """
    if opacity < 0 or sigma < 0:
        exception.throw(
            Severity.ERROR,
            ReasonConstants.INVALID_ARGUMENT,
            f"opacity {opacity} and sigma {sigma} must be non-negative",
        )
        return None

    border = int(math.floor(2.0 * sigma + 0.5))
    alpha = np.asarray(image.pixels.convert("RGBA"))[:, :, 3].astype(np.float32)
    alpha = np.pad(alpha, border, mode="constant", constant_values=0)
    alpha *= opacity / 100.0

    if sigma > 0:
        alpha = cv2.GaussianBlur(
            alpha, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_CONSTANT
        )

    shadow = np.empty(alpha.shape + (4,), dtype=np.uint8)
    shadow[:, :, :3] = image.background_color[:3]
    shadow[:, :, 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)

    return NativeImage(
        pixels=Image.fromarray(shadow, "RGBA"),
        magick=image.magick,
        page_x=image.page_x + x_offset - border,
        page_y=image.page_y + y_offset - border,
        background_color=image.background_color,
    )


def merge_image_layers(
    layers: List[NativeImage], exception: ExceptionInfo
) -> Optional[NativeImage]:
    """
    Merge a layer list onto one canvas.

    The canvas covers every layer's page and starts filled with the first
    layer's background color; layers are composited in list order.
    """
    if not layers:
        exception.throw(Severity.ERROR, ReasonConstants.INVALID_ARGUMENT, "no images defined")
        return None

    left = min(layer.page_x for layer in layers)
    top = min(layer.page_y for layer in layers)
    right = max(layer.page_x + layer.columns for layer in layers)
    bottom = max(layer.page_y + layer.rows for layer in layers)

    first = layers[0]
    canvas = Image.new("RGBA", (right - left, bottom - top), first.background_color)
    for layer in layers:
        canvas.alpha_composite(
            layer.pixels.convert("RGBA"), dest=(layer.page_x - left, layer.page_y - top)
        )

    return NativeImage(pixels=canvas, magick=first.magick, background_color=first.background_color)


def _encodable(image: NativeImage, magick: str) -> Image.Image:
    mode = image.pixels.mode
    if magick in EngineConstants.OPAQUE_FORMATS and mode not in EngineConstants.OPAQUE_MODES:
        return image.pixels.convert("RGB")
    return image.pixels


def _save_params(magick: str, quality: Optional[int]) -> Dict[str, Any]:
    params: Dict[str, Any] = {"format": magick}
    if quality is not None and magick in ("JPEG", "WEBP", "MPO"):
        params["quality"] = quality
    return params


def _save(
    image: NativeImage, target: Union[str, io.BytesIO], magick: str, quality: Optional[int]
) -> None:
    """Encode to target, dropping the alpha channel if the format rejects it."""
    pixels = _encodable(image, magick)
    params = _save_params(magick, quality)
    try:
        pixels.save(target, **params)
    except (FileNotFoundError, PermissionError, IsADirectoryError, NotADirectoryError):
        raise
    except (OSError, ValueError, KeyError) as e:
        if pixels.mode not in EngineConstants.ALPHA_MODES:
            raise
        logger.debug(f"{magick} rejected {pixels.mode} ({e}), encoding without alpha")
        if isinstance(target, io.BytesIO):
            target.seek(0)
            target.truncate()
        pixels.convert("RGB").save(target, **params)


def image_to_blob(
    info: ImageInfo, image: NativeImage, magick: str, exception: ExceptionInfo
) -> Optional[bytes]:
    """Encode the image in memory."""
    buffer = io.BytesIO()
    try:
        with _capture_warnings(exception):
            _save(image, buffer, magick, info.quality)
    except (OSError, ValueError, KeyError) as e:
        exception.throw(Severity.ERROR, ReasonConstants.UNABLE_TO_WRITE_BLOB, f"{magick}: {e}")
        return None

    return buffer.getvalue()


def write_image(
    info: ImageInfo, image: NativeImage, filename: str, magick: str, exception: ExceptionInfo
) -> bool:
    """Encode the image to a file. Returns False when nothing was written."""
    magick_info = get_engine().get_magick_info(magick)
    if magick_info is None or not magick_info.encoder:
        exception.throw(
            Severity.ERROR, ReasonConstants.NO_ENCODE_DELEGATE, f"`{magick}' ({filename})"
        )
        return False

    try:
        with _capture_warnings(exception):
            _save(image, filename, magick, info.quality)
    except (FileNotFoundError, PermissionError, IsADirectoryError, NotADirectoryError) as e:
        exception.throw(
            Severity.ERROR, ReasonConstants.UNABLE_TO_OPEN_BLOB, f"`{filename}': {e.strerror}"
        )
        return False
    except OSError as e:
        exception.throw(Severity.ERROR, ReasonConstants.UNABLE_TO_WRITE_BLOB, f"`{filename}': {e}")
        return False
    except (ValueError, KeyError) as e:
        exception.throw(Severity.ERROR, ReasonConstants.CODER_WARNING, f"`{filename}': {e}")
        return False

    return os.path.exists(filename)
