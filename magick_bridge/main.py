"""
magick-bridge - HTTP transform service
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from magick_bridge import __version__
from magick_bridge.api.exceptions import register_exception_handlers
from magick_bridge.api.routers import image
from magick_bridge.config import get_settings
from magick_bridge.core import engine as magick_engine

# Get configuration
settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.system.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Startup
    logger.info("Starting magick-bridge server...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.system.debug}")

    engine = magick_engine.initialize(
        settings.engine.working_directory,
        max_image_pixels=settings.engine.max_image_pixels,
    )

    app.state.engine = engine
    app.state.settings = settings

    yield

    # Shutdown
    logger.info("Shutting down magick-bridge server...")
    try:
        engine.shutdown()
    except Exception as e:
        logger.error(f"Error during engine shutdown: {e}")

    logger.info("Server shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="magick-bridge",
    description="Decode, resize, crop, shadow, flatten and re-encode images",
    version=__version__,
    lifespan=lifespan,
)

if settings.api.cors_enabled:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Register exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(image.router, prefix="/api/image", tags=["Image"])


# Root endpoint
@app.get("/")
async def root():
    return {
        "name": "magick-bridge",
        "status": "running",
        "version": __version__,
        "endpoints": {
            "image": "/api/image",
            "docs": "/docs",
        },
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    engine = getattr(app.state, "engine", None)
    return {
        "status": "healthy",
        "services": {
            "engine": engine is not None and engine.is_ready,
        },
    }


# Error handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": f"Internal server error: {str(exc)}"})


def run() -> None:
    """Run the server with uvicorn."""
    uvicorn.run(
        "magick_bridge.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.system.debug,
        log_level=settings.system.log_level.lower(),
    )


if __name__ == "__main__":
    run()
