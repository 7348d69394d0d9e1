"""
API Routers for magick-bridge
"""

from . import image

__all__ = ["image"]
