"""
Schemas Package

Pydantic models for values passed across the binding and the HTTP service.
"""

from .geometry import Geometry
from .image import ErrorDetail, ErrorResponse, ImageDescription, ShadowParams, TransformParams

__all__ = [
    "Geometry",
    "ImageDescription",
    "ShadowParams",
    "TransformParams",
    "ErrorDetail",
    "ErrorResponse",
]
