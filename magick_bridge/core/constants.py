"""
Constants and configuration values for the imaging engine binding.
Centralizes all magic numbers and engine reason tags.
"""


class EngineConstants:
    """Constants related to the engine and its codecs."""

    # Encoding defaults
    DEFAULT_FORMAT = "PNG"
    DEFAULT_QUALITY = 92
    MIN_QUALITY = 1
    MAX_QUALITY = 100

    # Formats that cannot carry an alpha channel
    OPAQUE_FORMATS = ("JPEG", "MPO")
    OPAQUE_MODES = ("1", "L", "RGB", "CMYK")
    ALPHA_MODES = ("RGBA", "RGBa", "LA", "La", "PA")

    # Decompression bomb guard (pixels), None disables it
    DEFAULT_MAX_IMAGE_PIXELS = 89_478_485

    # Sub-directories searched for engine configuration files
    CONFIG_SEARCH_DIRS = (".", "config", "etc")

    # Filename used to resolve a format hint for in-memory decoding
    BLOB_FILENAME_STEM = "image"


class ColorConstants:
    """Color database sentinels."""

    TRANSPARENT_NAMES = ("none", "transparent")
    TRANSPARENT = (0, 0, 0, 0)
    DEFAULT_BACKGROUND = (255, 255, 255, 255)


class ReasonConstants:
    """Reason tags reported by the engine into diagnostic records."""

    INVALID_GEOMETRY = "InvalidGeometry"
    NEGATIVE_OR_ZERO_IMAGE_SIZE = "NegativeOrZeroImageSize"
    GEOMETRY_DOES_NOT_CONTAIN_IMAGE = "GeometryDoesNotContainImage"
    UNRECOGNIZED_COLOR = "UnrecognizedColor"
    INVALID_ARGUMENT = "InvalidArgument"
    UNABLE_TO_OPEN_BLOB = "UnableToOpenBlob"
    UNABLE_TO_WRITE_BLOB = "UnableToWriteBlob"
    ZERO_LENGTH_BLOB = "ZeroLengthBlobNotPermitted"
    NO_DECODE_DELEGATE = "NoDecodeDelegateForThisImageFormat"
    NO_ENCODE_DELEGATE = "NoEncodeDelegateForThisImageFormat"
    CORRUPT_IMAGE = "CorruptImage"
    RESOURCE_LIMIT = "ResourceLimit"
    CODER_WARNING = "Coder"
    BLOB_UNSUPPORTED = "BlobNotSupported"


class ApiConstants:
    """Constants for the HTTP transform service."""

    DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024
    PROCESSING_TIME_HEADER = "X-Processing-Time-Ms"
    DEFAULT_SHADOW_COLOR = "black"
    DEFAULT_SHADOW_OPACITY = 80.0
    DEFAULT_SHADOW_SIGMA = 3.0
