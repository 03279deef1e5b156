"""Animated GIF re-encoding using Pillow.

Frames are quantized one by one and written through Pillow's frame-level
GIF writers (``getheader``/``getdata``) rather than ``save_all``, because
``save_all`` folds consecutive identical frames into one and would change
the frame count.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from PIL import GifImagePlugin, Image

from . import DecodedFrame, EncoderSettings, FrameSequence, QuantizeMethod
from .errors import EncodeError

logger = logging.getLogger(__name__)

TRANSPARENT_INDEX = 255
GIF_TRAILER = b";"
CENTISECONDS_TO_MS = 10

_QUANTIZE_METHODS = {
    QuantizeMethod.MEDIANCUT: Image.Quantize.MEDIANCUT,
    QuantizeMethod.MAXCOVERAGE: Image.Quantize.MAXCOVERAGE,
    QuantizeMethod.FASTOCTREE: Image.Quantize.FASTOCTREE,
}


def encode(sequence: FrameSequence, settings: Optional[EncoderSettings] = None) -> bytes:
    """Encode ``sequence`` into GIF bytes, one image block per frame."""

    settings = settings or EncoderSettings()
    for frame in sequence.frames:
        _check_raster(frame, sequence.width, sequence.height)

    chunks: list[bytes] = []
    for position, frame in enumerate(sequence.frames):
        paletted, transparency = quantize_frame(frame, settings)
        if position == 0:
            chunks.extend(_global_header(paletted, sequence.loop))
        params = {
            "duration": frame.delay_cs * CENTISECONDS_TO_MS,
            "disposal": settings.disposal,
            "include_color_table": True,
        }
        if transparency is not None:
            params["transparency"] = transparency
        try:
            chunks.extend(GifImagePlugin.getdata(paletted, **params))
        except (OSError, ValueError) as exc:
            raise EncodeError(f"Failed to encode frame {frame.index}: {exc}") from exc
    chunks.append(GIF_TRAILER)

    data = b"".join(chunks)
    logger.debug("Encoded %s frame(s) into %s bytes", len(sequence), len(data))
    return data


def quantize_frame(frame: DecodedFrame, settings: EncoderSettings) -> tuple[Image.Image, Optional[int]]:
    """Reduce a frame to a padded 256-entry palette.

    Returns the paletted image and the transparent index, or ``None`` when
    the frame has no pixels below the alpha threshold.
    """

    mode = "RGBA" if frame.channels == 4 else "RGB"
    image = Image.fromarray(frame.pixels, mode)
    paletted = image.convert("RGB").quantize(
        colors=settings.colors,
        method=_QUANTIZE_METHODS[settings.method],
        kmeans=settings.quality,
    )
    palette = (paletted.getpalette() or [])[: settings.colors * 3]
    palette += [0] * (256 * 3 - len(palette))
    paletted.putpalette(palette)

    transparency = None
    if mode == "RGBA":
        threshold = settings.alpha_threshold
        mask = image.getchannel("A").point(lambda v: 255 if v < threshold else 0)
        if mask.getbbox():
            paletted.paste(TRANSPARENT_INDEX, mask=mask)
            transparency = TRANSPARENT_INDEX
    return paletted, transparency


def _global_header(first: Image.Image, loop: Optional[int]) -> list[bytes]:
    # per-frame control blocks need the 89a header
    first.info["version"] = b"89a"
    info = {} if loop is None else {"loop": loop}
    try:
        header, _ = GifImagePlugin.getheader(first, info=info)
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Failed to build GIF header: {exc}") from exc
    return header


def _check_raster(frame: DecodedFrame, width: int, height: int) -> None:
    pixels = frame.pixels
    if not isinstance(pixels, np.ndarray) or pixels.dtype != np.uint8:
        raise EncodeError(f"Frame {frame.index} must be a uint8 array")
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise EncodeError(f"Frame {frame.index} has unsupported raster shape {pixels.shape}")
    expected = width * height * pixels.shape[2]
    if pixels.size != expected or pixels.shape[:2] != (height, width):
        raise EncodeError(
            f"Frame {frame.index} raster holds {pixels.size} values, expected {expected} "
            f"for {width}x{height}x{pixels.shape[2]}"
        )
