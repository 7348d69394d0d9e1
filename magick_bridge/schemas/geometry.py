"""
Geometry value model.

Resolved region geometry: a size plus an offset, relative to the image the
geometry string was parsed against.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class Geometry(BaseModel):
    """Rectangle resolved from a geometry string"""

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=0, description="Region width in pixels")
    height: int = Field(..., ge=0, description="Region height in pixels")
    x_offset: int = Field(default=0, description="Horizontal offset (may be negative)")
    y_offset: int = Field(default=0, description="Vertical offset (may be negative)")

    @property
    def x2(self) -> int:
        return self.x_offset + self.width

    @property
    def y2(self) -> int:
        return self.y_offset + self.height

    def to_dict(self) -> Dict[str, int]:
        return {
            "width": self.width,
            "height": self.height,
            "x_offset": self.x_offset,
            "y_offset": self.y_offset,
        }
