"""Region resolution between raw/AI rectangles and the transform engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from . import Rectangle
from .errors import InvalidRegionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """A validated rectangle that fits the frame."""

    rect: Rectangle


@dataclass(frozen=True)
class NoRegion:
    """Nothing to edit; the pipeline passes the input through."""

    reason: str = "no region selected"


RegionResolution = Union[Region, NoRegion]


class BoxLike(Protocol):
    x: float
    y: float
    width: float
    height: float


def validate_rectangle(rect: Rectangle, frame_width: int, frame_height: int) -> Rectangle:
    """Return ``rect`` unchanged or raise :class:`InvalidRegionError`."""

    if not rect.fits(frame_width, frame_height):
        raise InvalidRegionError(
            f"Region (x={rect.x}, y={rect.y}, w={rect.width}, h={rect.height}) "
            f"is outside the {frame_width}x{frame_height} frame"
        )
    return rect


def resolve_manual(
    x: int,
    y: int,
    width: int,
    height: int,
    frame_width: Optional[int] = None,
    frame_height: Optional[int] = None,
) -> RegionResolution:
    """Resolve a user-drawn rectangle.

    A zero width or height means nothing was selected. Negative sizes are
    rejected. Bounds are checked when the frame size is known.
    """

    if width < 0 or height < 0:
        raise InvalidRegionError(f"Region size must not be negative (w={width}, h={height})")
    if width == 0 or height == 0:
        return NoRegion("empty selection")
    rect = Rectangle(int(x), int(y), int(width), int(height))
    if frame_width is not None and frame_height is not None:
        validate_rectangle(rect, frame_width, frame_height)
    return Region(rect)


def resolve_detection(
    box: Optional[BoxLike],
    frame_width: int,
    frame_height: int,
) -> RegionResolution:
    """Resolve a detector answer into a region.

    Detectors say "nothing found" with ``None`` or with a box whose width or
    height is not positive. Coordinates are rounded to whole pixels.
    """

    if box is None:
        return NoRegion("detector returned no region")
    if box.width <= 0 or box.height <= 0:
        return NoRegion("detector returned an empty box")
    rect = Rectangle(round(box.x), round(box.y), round(box.width), round(box.height))
    logger.debug("Detector proposed %s for a %sx%s frame", rect, frame_width, frame_height)
    return Region(validate_rectangle(rect, frame_width, frame_height))
