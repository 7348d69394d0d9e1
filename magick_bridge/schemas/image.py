"""
Image service API models.

This module contains models for the transform service:
- image description responses
- transform parameters
- structured error payloads
"""

from typing import Optional

from pydantic import BaseModel, Field

from magick_bridge.core.constants import ApiConstants


class ImageDescription(BaseModel):
    """Decoded image summary"""

    width: int
    height: int
    format: Optional[str] = None


class ShadowParams(BaseModel):
    """Drop shadow parameters"""

    color: str = Field(default=ApiConstants.DEFAULT_SHADOW_COLOR)
    opacity: float = Field(default=ApiConstants.DEFAULT_SHADOW_OPACITY, ge=0.0, le=100.0)
    sigma: float = Field(default=ApiConstants.DEFAULT_SHADOW_SIGMA, ge=0.0)
    x_offset: int = 0
    y_offset: int = 0


class TransformParams(BaseModel):
    """
    Transform pipeline parameters.

    Steps run in fixed order: crop, resize, shadow, background.
    """

    class Config:
        extra = "forbid"

    crop: Optional[str] = Field(default=None, description="Crop region geometry")
    resize: Optional[str] = Field(default=None, description="Resize geometry")
    shadow: Optional[ShadowParams] = Field(default=None, description="Drop shadow")
    background: Optional[str] = Field(default=None, description="Flatten onto color")
    output_format: Optional[str] = Field(default=None, description="Encode format override")


class ErrorDetail(BaseModel):
    """Structured engine error"""

    severity: str
    reason: str
    description: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
