"""Per-frame raster transforms.

Every transform takes a :class:`DecodedFrame` and returns a new one; the
input array is never written to. Rectangles are checked against the frame
and a mismatch raises :class:`GeometryError` instead of being clamped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

import numpy as np
from PIL import Image, ImageDraw
from skimage import color as skcolor

from . import WHITE, ColorMetric, ColorSpec, ColorSubstitutionRule, DecodedFrame, Rectangle
from .errors import GeometryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformSpec:
    """A named frame transform with its parameters already bound."""

    name: str
    apply: Callable[[DecodedFrame], DecodedFrame]
    rect: Optional[Rectangle] = None

    def __call__(self, frame: DecodedFrame) -> DecodedFrame:
        return self.apply(frame)


def _require_fit(frame: DecodedFrame, rect: Rectangle) -> None:
    if not rect.fits(frame.width, frame.height):
        raise GeometryError(
            f"Rectangle (x={rect.x}, y={rect.y}, w={rect.width}, h={rect.height}) "
            f"does not fit frame {frame.index} of {frame.width}x{frame.height}"
        )


def _as_rgba(pixels: np.ndarray) -> np.ndarray:
    """Return an RGBA copy, adding an opaque alpha channel to RGB input."""

    if pixels.shape[2] == 4:
        return pixels.copy()
    alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([pixels, alpha], axis=2)


def opaque_replace(frame: DecodedFrame, rect: Rectangle, fill: ColorSpec = WHITE) -> DecodedFrame:
    """Paint ``rect`` with an opaque solid color."""

    _require_fit(frame, rect)
    left, top, right, bottom = rect.box
    pixels = frame.pixels.copy()
    pixels[top:bottom, left:right, :3] = fill.as_tuple()
    if frame.channels == 4:
        pixels[top:bottom, left:right, 3] = 255
    return frame.with_pixels(pixels)


def cutout_transparent(frame: DecodedFrame, rect: Rectangle) -> DecodedFrame:
    """Zero the alpha inside ``rect``; color channels are kept as they were."""

    _require_fit(frame, rect)
    left, top, right, bottom = rect.box
    pixels = _as_rgba(frame.pixels)
    pixels[top:bottom, left:right, 3] = 0
    return frame.with_pixels(pixels)


def alpha_punch(frame: DecodedFrame, rect: Rectangle) -> DecodedFrame:
    """Cut a hole by compositing a transparent patch through a rectangle mask.

    Destination pixels survive only where the mask is absent. Unlike
    :func:`cutout_transparent` the punched pixels come out as ``(0, 0, 0, 0)``.
    """

    _require_fit(frame, rect)
    left, top, right, bottom = rect.box
    image = Image.fromarray(_as_rgba(frame.pixels), "RGBA")
    mask = Image.new("L", image.size, 0)
    # ImageDraw treats the lower-right corner as inclusive
    ImageDraw.Draw(mask).rectangle((left, top, right - 1, bottom - 1), fill=255)
    hole = Image.new("RGBA", image.size, (0, 0, 0, 0))
    punched = Image.composite(hole, image, mask)
    return frame.with_pixels(np.array(punched, dtype=np.uint8))


def crop(frame: DecodedFrame, rect: Rectangle) -> DecodedFrame:
    """Keep only the pixels inside ``rect``."""

    _require_fit(frame, rect)
    left, top, right, bottom = rect.box
    return frame.with_pixels(frame.pixels[top:bottom, left:right].copy())


def color_distance(
    colors: np.ndarray,
    reference: ColorSpec,
    metric: ColorMetric = ColorMetric.CIEDE2000,
) -> np.ndarray:
    """Return the perceptual distance of each ``(N, 3)`` RGB row to ``reference``."""

    lab = skcolor.rgb2lab(colors.astype(np.float64) / 255.0)
    reference_lab = skcolor.rgb2lab(np.array([reference.as_tuple()], dtype=np.float64) / 255.0)
    if metric == ColorMetric.CIE76:
        return skcolor.deltaE_cie76(lab, reference_lab)
    return skcolor.deltaE_ciede2000(lab, reference_lab)


def color_substitute(
    frame: DecodedFrame,
    rule: ColorSubstitutionRule,
    metric: ColorMetric = ColorMetric.CIEDE2000,
) -> DecodedFrame:
    """Rewrite every pixel within ``rule.tolerance`` of the source color.

    The distance is computed once per distinct color in the frame and then
    mapped back onto the pixels. Alpha is left untouched. A rule whose
    source equals its target changes nothing, whatever the tolerance.
    """

    if rule.source == rule.target:
        return frame.with_pixels(frame.pixels.copy())
    rgb = frame.pixels[..., :3]
    codes = (
        (rgb[..., 0].astype(np.uint32) << 16)
        | (rgb[..., 1].astype(np.uint32) << 8)
        | rgb[..., 2].astype(np.uint32)
    )
    unique_codes, inverse = np.unique(codes.ravel(), return_inverse=True)
    palette = np.stack(
        [(unique_codes >> 16) & 0xFF, (unique_codes >> 8) & 0xFF, unique_codes & 0xFF],
        axis=-1,
    ).astype(np.uint8)

    hits = color_distance(palette, rule.source, metric) < rule.tolerance
    pixels = frame.pixels.copy()
    if hits.any():
        mask = hits[inverse.reshape(-1)].reshape(rgb.shape[:2])
        pixels[mask, :3] = rule.target.as_tuple()
        logger.debug(
            "Frame %s: %s of %s colors matched, %s pixels rewritten",
            frame.index,
            int(hits.sum()),
            len(palette),
            int(mask.sum()),
        )
    return frame.with_pixels(pixels)


def replace_spec(rect: Rectangle, fill: ColorSpec = WHITE) -> TransformSpec:
    return TransformSpec("opaque_replace", partial(opaque_replace, rect=rect, fill=fill), rect)


def cutout_spec(rect: Rectangle) -> TransformSpec:
    return TransformSpec("cutout_transparent", partial(cutout_transparent, rect=rect), rect)


def punch_spec(rect: Rectangle) -> TransformSpec:
    return TransformSpec("alpha_punch", partial(alpha_punch, rect=rect), rect)


def crop_spec(rect: Rectangle) -> TransformSpec:
    return TransformSpec("crop", partial(crop, rect=rect), rect)


def color_spec(rule: ColorSubstitutionRule, metric: ColorMetric = ColorMetric.CIEDE2000) -> TransformSpec:
    return TransformSpec("color_substitute", partial(color_substitute, rule=rule, metric=metric))
