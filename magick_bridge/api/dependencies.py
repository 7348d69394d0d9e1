"""
Shared FastAPI dependencies for the transform service.
"""

import logging
from pathlib import PurePath
from typing import Optional

from fastapi import HTTPException, Request, UploadFile

from magick_bridge.config import Settings, get_settings
from magick_bridge.core.engine import MagickEngine

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    """Get settings stored in app state, falling back to the cached settings."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_engine_dependency(request: Request) -> MagickEngine:
    """
    Get the engine from app state.

    Raises:
        HTTPException: If the engine is missing or not initialized
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_ready:
        logger.error("Engine not initialized in app state")
        raise HTTPException(status_code=503, detail="Imaging engine not initialized")
    return engine


async def read_upload(file: UploadFile, limit: int) -> bytes:
    """
    Read an uploaded image, enforcing the upload size limit.

    Raises:
        HTTPException: 413 if the upload is too large
    """
    contents = await file.read(limit + 1)
    if len(contents) > limit:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {limit} bytes")
    return contents


def upload_extension(file: UploadFile, extension: Optional[str]) -> str:
    """Format hint: explicit extension, else the uploaded filename's suffix."""
    if extension:
        return extension.strip().lstrip(".")
    if file.filename:
        return PurePath(file.filename).suffix.lstrip(".")
    return ""
