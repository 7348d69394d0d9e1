"""
magick-bridge - a safe binding layer over an imaging engine.

Call initialize() once per process before opening images:

    from magick_bridge import MagickImage, initialize

    initialize()
    with MagickImage.open("photo.jpg") as image:
        image.resize("50%")
        image.to_file("thumb.png")
"""

from magick_bridge.core import (
    BlobUnsupportedError,
    ColorError,
    DecodeError,
    EngineStateError,
    GeometryError,
    HandleDestroyedError,
    MagickError,
    MagickImage,
    TransformError,
    WriteError,
    get_engine,
    initialize,
    shutdown,
)
from magick_bridge.schemas import Geometry

__version__ = "1.0.0"

__all__ = [
    "MagickImage",
    "Geometry",
    "initialize",
    "shutdown",
    "get_engine",
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
