"""
Layer compositing sequences.

Both composites follow the same order: clone the source, recolor the clone's
background, apply the effect, append the untouched source as the next layer,
then merge the layer list into one image. The source is never modified.
"""

import logging
from typing import Optional

from magick_bridge.core import native
from magick_bridge.core.exceptions import ExceptionInfo
from magick_bridge.core.native import NativeImage

logger = logging.getLogger(__name__)


def fill_background_color(
    image: NativeImage, color: str, exception: ExceptionInfo
) -> Optional[NativeImage]:
    """
    Flatten the image onto a solid background.

    Args:
        image: Source image (unchanged)
        color: Background color name or spec
        exception: Diagnostic record

    Returns:
        New merged image, or None on failure
    """
    backdrop = native.clone_image(image)
    try:
        if not native.set_background_color(backdrop, color, exception):
            return None
        if not native.set_image_background_color(backdrop):
            return None
        return native.merge_image_layers([backdrop, image], exception)
    finally:
        backdrop.destroy()


def add_shadow(
    image: NativeImage,
    color: str,
    opacity: float,
    sigma: float,
    x_offset: int,
    y_offset: int,
    exception: ExceptionInfo,
) -> Optional[NativeImage]:
    """
    Composite the image over its own drop shadow.

    Args:
        image: Source image (unchanged)
        color: Shadow color
        opacity: Shadow opacity in percent
        sigma: Gaussian blur sigma
        x_offset: Shadow horizontal offset
        y_offset: Shadow vertical offset
        exception: Diagnostic record

    Returns:
        New merged image, or None on failure
    """
    source = native.clone_image(image)
    try:
        if not native.set_background_color(source, color, exception):
            return None
        shadow = native.shadow_image(source, opacity, sigma, x_offset, y_offset, exception)
    finally:
        source.destroy()

    if shadow is None:
        return None

    logger.debug(
        f"Shadow layer {shadow.columns}x{shadow.rows} at {shadow.page_x:+d}{shadow.page_y:+d}"
    )

    try:
        if not native.set_background_color(shadow, "none", exception):
            return None
        return native.merge_image_layers([shadow, image], exception)
    finally:
        shadow.destroy()
