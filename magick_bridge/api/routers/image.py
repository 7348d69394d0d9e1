"""
Image API Router - decode, inspect and transform uploaded images
"""

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import ValidationError

from magick_bridge.api.dependencies import (
    get_app_settings,
    get_engine_dependency,
    read_upload,
    upload_extension,
)
from magick_bridge.api.exceptions import safe_endpoint
from magick_bridge.config import Settings
from magick_bridge.core.constants import ApiConstants
from magick_bridge.core.engine import MagickEngine
from magick_bridge.core.image import MagickImage
from magick_bridge.core.utils.decorators import timer
from magick_bridge.schemas import Geometry, ImageDescription, ShadowParams, TransformParams

logger = logging.getLogger(__name__)

router = APIRouter()


def _swap(previous: MagickImage, current: MagickImage) -> MagickImage:
    """Release the previous handle once a transform produced a new one."""
    previous.destroy()
    return current


def _describe(blob: bytes, extension: str) -> ImageDescription:
    with MagickImage.open_blob(blob, extension) as image:
        return ImageDescription(width=image.width, height=image.height, format=image.format)


def _geometry(blob: bytes, extension: str, spec: str) -> Geometry:
    with MagickImage.open_blob(blob, extension) as image:
        return image.parse_geometry(spec)


def _transform(blob: bytes, extension: str, params: TransformParams) -> Tuple[bytes, str]:
    """
    Run the transform pipeline: crop, resize, shadow, background.

    Returns:
        Tuple of (encoded bytes, output format)
    """
    image = MagickImage.open_blob(blob, extension)
    try:
        if params.crop:
            image = _swap(image, image.crop(params.crop))
        if params.resize:
            image.resize(params.resize)
        if params.shadow:
            shadow = params.shadow
            image = _swap(
                image,
                image.shadow(
                    shadow.color, shadow.opacity, shadow.sigma, shadow.x_offset, shadow.y_offset
                ),
            )
        if params.background:
            image = _swap(image, image.fill_background_color(params.background))
        if params.output_format:
            image.set_format(params.output_format)

        data = image.to_blob()
        return data, image.info.format or image.format
    finally:
        image.destroy()


@router.post("/info")
@safe_endpoint
async def describe_image(
    file: UploadFile = File(..., description="Encoded image"),
    extension: Optional[str] = Form(None, description="Format hint, e.g. png"),
    engine: MagickEngine = Depends(get_engine_dependency),
    settings: Settings = Depends(get_app_settings),
) -> ImageDescription:
    """Decode an uploaded image and report its size and format."""
    blob = await read_upload(file, settings.api.max_upload_bytes)
    return await run_in_threadpool(_describe, blob, upload_extension(file, extension))


@router.post("/geometry")
@safe_endpoint
async def parse_geometry(
    file: UploadFile = File(..., description="Encoded image"),
    geometry: str = Form(..., description="Geometry string, e.g. 50% or 100x100+10+10"),
    extension: Optional[str] = Form(None, description="Format hint, e.g. png"),
    engine: MagickEngine = Depends(get_engine_dependency),
    settings: Settings = Depends(get_app_settings),
) -> Geometry:
    """Resolve a geometry string against an uploaded image."""
    blob = await read_upload(file, settings.api.max_upload_bytes)
    return await run_in_threadpool(_geometry, blob, upload_extension(file, extension), geometry)


@router.post("/transform")
@safe_endpoint
async def transform_image(
    file: UploadFile = File(..., description="Encoded image"),
    extension: Optional[str] = Form(None, description="Format hint, e.g. png"),
    crop: Optional[str] = Form(None),
    resize: Optional[str] = Form(None),
    background: Optional[str] = Form(None),
    shadow_color: Optional[str] = Form(None, description="Enables the drop shadow"),
    shadow_opacity: float = Form(ApiConstants.DEFAULT_SHADOW_OPACITY),
    shadow_sigma: float = Form(ApiConstants.DEFAULT_SHADOW_SIGMA),
    shadow_x: int = Form(0),
    shadow_y: int = Form(0),
    output_format: Optional[str] = Form(None),
    engine: MagickEngine = Depends(get_engine_dependency),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """
    Transform an uploaded image and return the encoded result.

    Steps run in fixed order: crop, resize, shadow, background.
    """
    try:
        params = TransformParams(
            crop=crop,
            resize=resize,
            background=background,
            output_format=output_format,
            shadow=(
                ShadowParams(
                    color=shadow_color,
                    opacity=shadow_opacity,
                    sigma=shadow_sigma,
                    x_offset=shadow_x,
                    y_offset=shadow_y,
                )
                if shadow_color
                else None
            ),
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    blob = await read_upload(file, settings.api.max_upload_bytes)

    with timer() as t:
        data, magick = await run_in_threadpool(
            _transform, blob, upload_extension(file, extension), params
        )

    magick_info = engine.get_magick_info(magick)
    media_type = (magick_info.mime_type if magick_info else None) or "application/octet-stream"

    logger.info(f"Transformed {len(blob)} bytes into {len(data)} bytes of {magick} in {t['ms']}ms")

    return Response(
        content=data,
        media_type=media_type,
        headers={ApiConstants.PROCESSING_TIME_HEADER: str(t["ms"])},
    )
