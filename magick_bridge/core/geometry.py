"""
Geometry parser.

Turns geometry strings ("WxH+X+Y" with %, !, <, >, ^ and @ modifiers) into
rectangles resolved against an image's current dimensions. Size modifiers:

    50%         scale both axes by a percentage (50x25% scales them separately)
    100x100     fit inside the box, preserving aspect ratio
    100x100^    fill the box, preserving aspect ratio
    100x100!    exact size, aspect ratio ignored
    100x100>    only shrink images larger than the box
    100x100<    only enlarge images smaller than the box
    10000@      limit the pixel area, preserving aspect ratio

Problems are reported into a diagnostic record, never raised here.
"""

import logging
import math
import re
from typing import NamedTuple, Optional, Tuple

from magick_bridge.core.constants import ReasonConstants
from magick_bridge.core.enums import GeometryFlags, Severity
from magick_bridge.core.exceptions import ExceptionInfo
from magick_bridge.schemas.geometry import Geometry

logger = logging.getLogger(__name__)

_MODIFIERS = {
    "%": GeometryFlags.PERCENT,
    "!": GeometryFlags.ASPECT,
    "<": GeometryFlags.LESS,
    ">": GeometryFlags.GREATER,
    "^": GeometryFlags.MINIMUM,
    "@": GeometryFlags.AREA,
}

_NUMBER = r"\d+(?:\.\d*)?"

_GEOMETRY_RE = re.compile(
    rf"^(?P<width>{_NUMBER})?"
    rf"(?:[xX](?P<height>{_NUMBER})?)?"
    rf"(?P<x>[+-]{_NUMBER})?"
    rf"(?P<y>[+-]{_NUMBER})?$"
)


class GeometryTokens(NamedTuple):
    """Raw values of a geometry string, before resolution"""

    flags: GeometryFlags
    width: Optional[float]
    height: Optional[float]
    x: Optional[float]
    y: Optional[float]


_EMPTY = GeometryTokens(GeometryFlags.NO_VALUE, None, None, None, None)


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_geometry(spec: Optional[str]) -> GeometryTokens:
    """
    Tokenize a geometry string.

    Returns tokens with NO_VALUE flags when the string is empty or malformed.
    """
    if not spec or not spec.strip():
        return _EMPTY

    text = "".join(spec.split())
    flags = GeometryFlags.NO_VALUE
    for char, flag in _MODIFIERS.items():
        if char in text:
            flags |= flag
            text = text.replace(char, "")

    match = _GEOMETRY_RE.match(text)
    if match is None:
        return _EMPTY

    width = match.group("width")
    height = match.group("height")
    x = match.group("x")
    y = match.group("y")
    if width is None and height is None and x is None and y is None:
        return _EMPTY

    if width is not None:
        flags |= GeometryFlags.WIDTH
    if height is not None:
        flags |= GeometryFlags.HEIGHT
    if x is not None:
        flags |= GeometryFlags.X
        if x.startswith("-"):
            flags |= GeometryFlags.X_NEGATIVE
    if y is not None:
        flags |= GeometryFlags.Y
        if y.startswith("-"):
            flags |= GeometryFlags.Y_NEGATIVE

    return GeometryTokens(
        flags,
        float(width) if width is not None else None,
        float(height) if height is not None else None,
        float(x) if x is not None else None,
        float(y) if y is not None else None,
    )


def parse_meta_geometry(
    spec: Optional[str], columns: int, rows: int
) -> Tuple[GeometryFlags, int, int, int, int]:
    """
    Resolve a geometry string against image dimensions.

    Args:
        spec: Geometry string
        columns: Current image width
        rows: Current image height

    Returns:
        Tuple of (flags, width, height, x, y)
    """
    tokens = get_geometry(spec)
    flags = tokens.flags
    if flags == GeometryFlags.NO_VALUE:
        return flags, columns, rows, 0, 0

    x = _round(tokens.x) if tokens.x is not None else 0
    y = _round(tokens.y) if tokens.y is not None else 0
    width = _round(tokens.width) if tokens.width is not None else columns
    height = _round(tokens.height) if tokens.height is not None else rows

    former_width, former_height = columns, rows

    if flags & GeometryFlags.PERCENT:
        x_scale = tokens.width if tokens.width is not None else 100.0
        y_scale = tokens.height if tokens.height is not None else x_scale
        width = _round(x_scale * former_width / 100.0)
        height = _round(y_scale * former_height / 100.0)
        former_width, former_height = width, height

    if flags & GeometryFlags.AREA:
        area = (tokens.width or 0.0) + math.sqrt(2.2204460492503131e-16)
        distance = math.sqrt(float(former_width) * former_height)
        if distance > 0:
            factor = math.sqrt(area) / distance
            scaled_width = former_width * factor
            scaled_height = former_height * factor
            if scaled_width < width or scaled_height < height:
                width = int(scaled_width)
                height = int(scaled_height)
        former_width, former_height = width, height

    if (flags & GeometryFlags.ASPECT) or (width == former_width and height == former_height):
        if not flags & GeometryFlags.WIDTH:
            width = former_width
        if not flags & GeometryFlags.HEIGHT:
            height = former_height
    else:
        # Respect aspect ratio of the image
        if former_width == 0 or former_height == 0:
            scale_factor = 1.0
        elif (flags & GeometryFlags.WIDTH) and (flags & GeometryFlags.HEIGHT):
            scale_factor = width / former_width
            if not flags & GeometryFlags.MINIMUM:
                scale_factor = min(scale_factor, height / former_height)
            else:
                scale_factor = max(scale_factor, height / former_height)
        elif flags & GeometryFlags.WIDTH:
            scale_factor = width / former_width
            if (flags & GeometryFlags.MINIMUM) and scale_factor < width / former_height:
                scale_factor = width / former_height
        else:
            scale_factor = height / former_height
            if (flags & GeometryFlags.MINIMUM) and scale_factor < height / former_width:
                scale_factor = height / former_width
        width = max(_round(scale_factor * former_width), 1)
        height = max(_round(scale_factor * former_height), 1)

    if flags & GeometryFlags.GREATER:
        width = min(width, former_width)
        height = min(height, former_height)

    if flags & GeometryFlags.LESS:
        width = max(width, former_width)
        height = max(height, former_height)

    return flags, width, height, x, y


def parse_region_geometry(
    columns: int, rows: int, spec: Optional[str], exception: ExceptionInfo
) -> Geometry:
    """
    Parse a region geometry relative to an image.

    Always returns a rectangle; callers must check the diagnostic record
    before using it.

    Args:
        columns: Image width
        rows: Image height
        spec: Geometry string
        exception: Diagnostic record receiving parse problems

    Returns:
        Resolved Geometry
    """
    flags, width, height, x, y = parse_meta_geometry(spec, columns, rows)

    if flags == GeometryFlags.NO_VALUE:
        exception.throw(Severity.ERROR, ReasonConstants.INVALID_GEOMETRY, f"`{spec}'")
    elif width <= 0 or height <= 0:
        exception.throw(
            Severity.ERROR,
            ReasonConstants.NEGATIVE_OR_ZERO_IMAGE_SIZE,
            f"`{spec}' resolves to {width}x{height}",
        )

    return Geometry(width=max(width, 0), height=max(height, 0), x_offset=x, y_offset=y)
