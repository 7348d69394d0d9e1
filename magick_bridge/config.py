"""
Configuration for magick-bridge.

Settings are read from environment variables prefixed with MAGICK_BRIDGE_;
nested groups use a double underscore, e.g. MAGICK_BRIDGE_ENGINE__DEFAULT_FORMAT=JPEG.
"""

import os
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from magick_bridge.core.constants import ApiConstants, EngineConstants


class EngineSettings(BaseModel):
    """Imaging engine settings"""

    working_directory: str = Field(
        default_factory=os.getcwd, description="Base directory for engine configuration lookup"
    )
    default_format: str = Field(
        default=EngineConstants.DEFAULT_FORMAT, description="Encode format when none is known"
    )
    default_quality: int = Field(
        default=EngineConstants.DEFAULT_QUALITY,
        ge=EngineConstants.MIN_QUALITY,
        le=EngineConstants.MAX_QUALITY,
    )
    max_image_pixels: Optional[int] = Field(
        default=EngineConstants.DEFAULT_MAX_IMAGE_PIXELS,
        ge=1,
        description="Decompression bomb limit in pixels (None disables it)",
    )

    @field_validator("default_format")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class SystemSettings(BaseModel):
    """Process settings"""

    environment: str = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class ApiSettings(BaseModel):
    """HTTP transform service settings"""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_enabled: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    max_upload_bytes: int = Field(default=ApiConstants.DEFAULT_MAX_UPLOAD_BYTES, ge=1)


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="MAGICK_BRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    engine: EngineSettings = Field(default_factory=EngineSettings)
    system: SystemSettings = Field(default_factory=SystemSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @property
    def environment(self) -> str:
        return self.system.environment

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
