"""
Image handle - one decoded image and the records the engine needs to work on it.

A MagickImage exclusively owns three resources: the pixel data, a diagnostic
record (ExceptionInfo) and a configuration record (ImageInfo). Handles are
single-owner; nothing here locks a handle against concurrent use.

resize() is destructive and mutates the receiver. crop(), shadow() and
fill_background_color() allocate and return a new, independent handle.
"""

import logging
from contextlib import ExitStack, contextmanager
from os import PathLike
from typing import Iterator, Optional, Type, Union

from magick_bridge.config import get_settings
from magick_bridge.core import compose, native
from magick_bridge.core.constants import EngineConstants, ReasonConstants
from magick_bridge.core.engine import get_engine
from magick_bridge.core.enums import Severity
from magick_bridge.core.exceptions import (
    BlobUnsupportedError,
    ColorError,
    DecodeError,
    ExceptionInfo,
    GeometryError,
    HandleDestroyedError,
    MagickError,
    TransformError,
    WriteError,
    has_failed,
    to_error,
)
from magick_bridge.core.geometry import parse_region_geometry
from magick_bridge.core.native import ImageInfo, NativeImage
from magick_bridge.schemas.geometry import Geometry

logger = logging.getLogger(__name__)


def _raise_if_failed(
    exception: ExceptionInfo, error_cls: Type[MagickError], operation: str
) -> None:
    if has_failed(exception):
        error = to_error(exception, error_cls)
        logger.warning(f"{operation} failed: {error}")
        raise error


def _transform_error_cls(exception: ExceptionInfo) -> Type[TransformError]:
    worst = exception.worst()
    if worst is not None and worst.reason == ReasonConstants.UNRECOGNIZED_COLOR:
        return ColorError
    return TransformError


def _checked(
    exception: ExceptionInfo,
    result: Optional[NativeImage],
    error_cls: Type[MagickError],
    operation: str,
) -> NativeImage:
    """Return the engine's result, or raise if the call left a diagnostic."""
    if has_failed(exception):
        if result is not None:
            result.destroy()
        _raise_if_failed(exception, error_cls, operation)
    if result is None:
        raise error_cls(Severity.ERROR, "Unknown", f"{operation} returned no image")
    return result


class MagickImage:
    """
    Handle over one engine image.

    Create with MagickImage.open() or MagickImage.open_blob(); release with
    destroy() exactly once, or use the handle as a context manager.
    """

    def __init__(self, image: NativeImage, exception: ExceptionInfo, info: ImageInfo):
        self.image: Optional[NativeImage] = image
        self.exception: Optional[ExceptionInfo] = exception
        self.info: Optional[ImageInfo] = info

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, filename: Union[str, PathLike]) -> "MagickImage":
        """
        Decode an image file.

        Args:
            filename: Path of the file to decode

        Returns:
            New image handle

        Raises:
            DecodeError: If the file is missing or not a valid image
        """
        get_engine().require_ready()
        filename = str(filename)

        with ExitStack() as guard:
            exception = ExceptionInfo()
            guard.callback(exception.destroy)
            info = ImageInfo(filename=filename)

            image = native.read_image(info, exception)
            if image is not None:
                guard.callback(image.destroy)

            _raise_if_failed(exception, DecodeError, f"open({filename})")
            if image is None:
                raise DecodeError(
                    Severity.ERROR, ReasonConstants.NO_DECODE_DELEGATE, f"unable to read {filename}"
                )
            guard.pop_all()

        logger.debug(f"Opened {filename}: {image.magick} {image.columns}x{image.rows}")
        return cls(image, exception, info)

    @classmethod
    def open_blob(cls, blob: bytes, extension: str) -> "MagickImage":
        """
        Decode an in-memory image.

        Args:
            blob: Encoded image bytes
            extension: Format hint, e.g. "png" or "jpg"

        Returns:
            New image handle

        Raises:
            BlobUnsupportedError: If the hinted format cannot be decoded from memory
            DecodeError: If the bytes are empty or not a valid image
        """
        get_engine().require_ready()
        extension = (extension or "").strip().lstrip(".")

        with ExitStack() as guard:
            exception = ExceptionInfo()
            guard.callback(exception.destroy)
            info = ImageInfo(filename=f"{EngineConstants.BLOB_FILENAME_STEM}.{extension}")

            if not native.set_image_info(info, exception):
                _raise_if_failed(exception, BlobUnsupportedError, f"open_blob({extension})")
            if not native.get_blob_support(info):
                error = BlobUnsupportedError(
                    Severity.FATAL,
                    ReasonConstants.BLOB_UNSUPPORTED,
                    f"image format {extension} does not support blobs",
                )
                logger.warning(f"open_blob failed: {error}")
                raise error

            image = native.read_image_blob(info, blob, exception)
            if image is not None:
                guard.callback(image.destroy)

            _raise_if_failed(exception, DecodeError, f"open_blob({extension})")
            if image is None:
                raise DecodeError(
                    Severity.ERROR, ReasonConstants.NO_DECODE_DELEGATE, "unable to read blob"
                )
            guard.pop_all()

        logger.debug(f"Opened {len(blob)} byte blob: {image.magick} {image.columns}x{image.rows}")
        return cls(image, exception, info)

    def _spawn(self, image: NativeImage) -> "MagickImage":
        """Wrap a newly allocated image in its own handle."""
        return MagickImage(image, ExceptionInfo(), self.info.clone())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def destroyed(self) -> bool:
        return self.image is None

    def _require_alive(self) -> None:
        if self.image is None:
            raise HandleDestroyedError()

    @contextmanager
    def _operation(self) -> Iterator[ExceptionInfo]:
        """
        Run one engine operation against a fresh diagnostic record.

        The record becomes the handle's record afterwards, success or not,
        and the previous one is released.
        """
        self._require_alive()
        get_engine().require_ready()
        exception = ExceptionInfo()
        try:
            yield exception
        finally:
            previous, self.exception = self.exception, exception
            if previous is not None:
                previous.destroy()

    def destroy(self) -> None:
        """Release the configuration record, the diagnostic record and the pixels."""
        if self.image is None:
            logger.warning("destroy() called on an already destroyed image handle")
            return

        self.info = None
        self.exception.destroy()
        self.exception = None
        self.image.destroy()
        self.image = None

    def __enter__(self) -> "MagickImage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.destroyed:
            self.destroy()

    def __repr__(self) -> str:
        if self.image is None:
            return "<MagickImage destroyed>"
        return f"<MagickImage {self.image.magick or '?'} {self.width}x{self.height}>"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        self._require_alive()
        return self.image.columns

    @property
    def height(self) -> int:
        self._require_alive()
        return self.image.rows

    @property
    def format(self) -> str:
        """Format the pixels were decoded from"""
        self._require_alive()
        return self.image.magick

    def set_format(self, magick: str) -> None:
        """Override the encode format for to_blob() and to_file()."""
        self._require_alive()
        self.info.format = get_engine().canonical_format(magick)

    def set_quality(self, quality: Optional[int]) -> None:
        self._require_alive()
        self.info.quality = quality

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def _parse(self, spec: str, exception: ExceptionInfo) -> Geometry:
        geometry = parse_region_geometry(self.image.columns, self.image.rows, spec, exception)
        _raise_if_failed(exception, GeometryError, f"geometry {spec!r}")
        return geometry

    def parse_geometry(self, spec: str) -> Geometry:
        """
        Resolve a geometry string against this image's dimensions.

        Raises:
            GeometryError: If the string is malformed or resolves to an empty size
        """
        with self._operation() as exception:
            return self._parse(spec, exception)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def resize(self, spec: str) -> None:
        """
        Resize in place. The previous pixel data is released.

        Raises:
            GeometryError: If the geometry does not resolve
            TransformError: If resampling fails
        """
        with self._operation() as exception:
            geometry = self._parse(spec, exception)
            resized = native.thumbnail_image(self.image, geometry.width, geometry.height, exception)
            resized = _checked(exception, resized, TransformError, f"resize({spec})")

            previous, self.image = self.image, resized
            previous.destroy()

        logger.debug(f"Resized to {self.width}x{self.height} ({spec})")

    def crop(self, spec: str) -> "MagickImage":
        """
        Crop a region into a new handle.

        Raises:
            GeometryError: If the geometry does not resolve
            TransformError: If the region lies entirely outside the image
        """
        with self._operation() as exception:
            geometry = self._parse(spec, exception)
            cropped = native.crop_image(self.image, geometry, exception)
            cropped = _checked(exception, cropped, TransformError, f"crop({spec})")

        return self._spawn(cropped)

    def shadow(
        self,
        color: str,
        opacity: float,
        sigma: float,
        x_offset: int = 0,
        y_offset: int = 0,
    ) -> "MagickImage":
        """
        Composite this image over a drop shadow, as a new handle.

        Args:
            color: Shadow color
            opacity: Shadow opacity in percent
            sigma: Blur sigma
            x_offset: Horizontal shadow offset
            y_offset: Vertical shadow offset

        Raises:
            ColorError: If the color is not recognized
            TransformError: If the engine fails
        """
        with self._operation() as exception:
            shadowed = compose.add_shadow(
                self.image,
                color,
                float(opacity),
                float(sigma),
                int(x_offset),
                int(y_offset),
                exception,
            )
            shadowed = _checked(exception, shadowed, _transform_error_cls(exception), "shadow")

        return self._spawn(shadowed)

    def fill_background_color(self, color: str) -> "MagickImage":
        """
        Flatten this image onto a solid background, as a new handle.

        Raises:
            ColorError: If the color is not recognized
            TransformError: If the merge fails
        """
        with self._operation() as exception:
            flattened = compose.fill_background_color(self.image, color, exception)
            flattened = _checked(
                exception,
                flattened,
                _transform_error_cls(exception),
                f"fill_background_color({color})",
            )

        return self._spawn(flattened)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _encode_info(self) -> ImageInfo:
        info = self.info.clone()
        if info.quality is None:
            info.quality = get_settings().engine.default_quality
        return info

    def to_blob(self) -> bytes:
        """
        Encode to bytes in the override format, else the source format.

        Raises:
            BlobUnsupportedError: If the format has no encoder
            WriteError: If encoding fails
        """
        with self._operation() as exception:
            magick = self.info.format or self.image.magick or get_settings().engine.default_format
            magick_info = get_engine().get_magick_info(magick)
            if magick_info is None or not magick_info.encoder:
                error = BlobUnsupportedError(
                    Severity.FATAL,
                    ReasonConstants.BLOB_UNSUPPORTED,
                    f"image format {magick} does not support blobs",
                )
                logger.warning(f"to_blob failed: {error}")
                raise error

            blob = native.image_to_blob(self._encode_info(), self.image, magick, exception)
            _raise_if_failed(exception, WriteError, "to_blob")
            if blob is None:
                raise WriteError(
                    Severity.ERROR,
                    ReasonConstants.UNABLE_TO_WRITE_BLOB,
                    f"{magick} encoder returned nothing",
                )

        return blob

    def to_file(self, filename: Union[str, PathLike]) -> None:
        """
        Encode to a file. The format follows the override, else the extension.

        Raises:
            WriteError: If the file could not be written
        """
        with self._operation() as exception:
            filename = str(filename)
            engine = get_engine()
            magick = (
                self.info.format
                or engine.resolve_magick(filename)
                or self.image.magick
                or get_settings().engine.default_format
            )

            success = native.write_image(
                self._encode_info(), self.image, filename, magick, exception
            )
            _raise_if_failed(exception, WriteError, f"to_file({filename})")
            if not success:
                error = WriteError(
                    Severity.FATAL, "", f"could not write to {filename} for unknown reason"
                )
                logger.warning(f"to_file failed: {error}")
                raise error
            self.info.filename = filename

        logger.debug(f"Wrote {magick} to {filename}")
