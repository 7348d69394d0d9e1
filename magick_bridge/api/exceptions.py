"""
Exception handling for the HTTP service.

Maps structured engine errors onto HTTP responses and provides the
safe_endpoint decorator for route handlers.
"""

import functools
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from magick_bridge.core.exceptions import (
    BlobUnsupportedError,
    ColorError,
    DecodeError,
    EngineStateError,
    GeometryError,
    MagickError,
)
from magick_bridge.schemas import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

# Checked in order, first match wins
_STATUS_CODES = (
    (GeometryError, 400),
    (ColorError, 400),
    (BlobUnsupportedError, 400),
    (DecodeError, 422),
    (EngineStateError, 503),
)


def status_for(error: MagickError) -> int:
    """HTTP status code for an engine error."""
    for error_cls, status_code in _STATUS_CODES:
        if isinstance(error, error_cls):
            return status_code
    return 500


def error_response(error: MagickError) -> JSONResponse:
    payload = ErrorResponse(error=ErrorDetail(**error.to_dict()))
    return JSONResponse(status_code=status_for(error), content=payload.model_dump())


def safe_endpoint(func):
    """
    Wrap an async endpoint so unexpected exceptions become HTTP 500.

    HTTPException and MagickError pass through to their own handlers.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (HTTPException, MagickError):
            raise
        except Exception as e:
            logger.error(f"Unhandled error in {func.__name__}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    return wrapper


def register_exception_handlers(app: FastAPI) -> None:
    """Register engine error handlers on the app."""

    @app.exception_handler(MagickError)
    async def magick_error_handler(request: Request, exc: MagickError):
        logger.warning(f"{request.method} {request.url.path}: {exc}")
        return error_response(exc)
