"""
Core modules for magick-bridge
"""

from .engine import MagickEngine, get_engine, initialize, shutdown
from .exceptions import (
    BlobUnsupportedError,
    ColorError,
    DecodeError,
    EngineStateError,
    ExceptionInfo,
    GeometryError,
    HandleDestroyedError,
    MagickError,
    TransformError,
    WriteError,
    has_failed,
    to_error,
)
from .image import MagickImage

__all__ = [
    "MagickEngine",
    "get_engine",
    "initialize",
    "shutdown",
    "MagickImage",
    "ExceptionInfo",
    "has_failed",
    "to_error",
    "MagickError",
    "GeometryError",
    "DecodeError",
    "BlobUnsupportedError",
    "TransformError",
    "ColorError",
    "WriteError",
    "EngineStateError",
    "HandleDestroyedError",
]
