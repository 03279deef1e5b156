"""Frame extraction from animated GIFs using Pillow."""

from __future__ import annotations

import io
import logging
from enum import Enum
from typing import Iterator, Optional

import numpy as np
from PIL import Image, ImageSequence, UnidentifiedImageError

from . import DecodedFrame, EncodedImage, FrameSequence, GifInfo
from .errors import DecodeError

logger = logging.getLogger(__name__)
MAX_FRAME_CAP = 2000


class ExtractMode(str, Enum):
    """How much of the animation to decode."""

    FIRST_FRAME_ONLY = "first_frame_only"
    ALL_FRAMES_CUMULATIVE = "all_frames_cumulative"


def extract(data: bytes, mode: ExtractMode = ExtractMode.ALL_FRAMES_CUMULATIVE) -> FrameSequence:
    """Decode ``data`` into a frame sequence.

    ``FIRST_FRAME_ONLY`` decodes frame 0 and nothing else. It is meant for
    building a still for region detection. ``ALL_FRAMES_CUMULATIVE`` returns
    every frame as the fully composited canvas at that point of the
    animation, so disposal and partial-frame patches are already resolved.
    """

    with _open_gif(data) as image:
        loop = _loop_count(image)
        if mode == ExtractMode.FIRST_FRAME_ONLY:
            frames = [_decode_frame(image, 0)]
        else:
            frames = list(iter_frames(image))

    if not frames:
        raise DecodeError("GIF contains no frames")
    sequence = FrameSequence(frames=frames, loop=loop)
    logger.info(
        "Extracted %s frame(s) at %sx%s (mode=%s, loop=%s)",
        len(sequence),
        sequence.width,
        sequence.height,
        mode.value,
        loop,
    )
    return sequence


def iter_frames(image: Image.Image) -> Iterator[DecodedFrame]:
    """Yield composited frames one by one from an opened GIF."""

    try:
        for index, frame in enumerate(ImageSequence.Iterator(image)):
            if index >= MAX_FRAME_CAP:
                raise DecodeError(f"GIF has more than {MAX_FRAME_CAP} frames")
            yield _decode_frame(frame, index)
    except (OSError, ValueError) as exc:
        raise DecodeError(f"Failed to decode GIF frames: {exc}") from exc


def first_frame_png(data: bytes) -> EncodedImage:
    """Render frame 0 as a PNG still for AI region detection."""

    sequence = extract(data, ExtractMode.FIRST_FRAME_ONLY)
    return frame_to_png(sequence.frames[0])


def frame_to_png(frame: DecodedFrame) -> EncodedImage:
    mode = "RGBA" if frame.channels == 4 else "RGB"
    buffer = io.BytesIO()
    Image.fromarray(frame.pixels, mode).save(buffer, format="PNG")
    return EncodedImage(data=buffer.getvalue(), mime_type="image/png")


def probe(data: bytes) -> GifInfo:
    """Read dimensions, timing and loop count without keeping any pixels."""

    with _open_gif(data) as image:
        loop = _loop_count(image)
        width, height = image.size
        delays: list[int] = []
        try:
            for frame in ImageSequence.Iterator(image):
                delays.append(_delay_cs(frame))
        except (OSError, ValueError) as exc:
            raise DecodeError(f"Failed to read GIF frames: {exc}") from exc
    if not delays:
        raise DecodeError("GIF contains no frames")
    return GifInfo(width=width, height=height, frame_count=len(delays), loop=loop, delays_cs=delays)


def _open_gif(data: bytes) -> Image.Image:
    """Open ``data`` and make sure it really is a GIF container."""

    if not data:
        raise DecodeError("Empty image data")
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError(f"Not a decodable image: {exc}") from exc
    if image.format != "GIF":
        found = image.format or "unknown"
        image.close()
        raise DecodeError(f"Expected a GIF container, got {found}")
    return image


def _decode_frame(image: Image.Image, index: int) -> DecodedFrame:
    try:
        pixels = np.array(image.convert("RGBA"), dtype=np.uint8)
    except (OSError, ValueError) as exc:
        raise DecodeError(f"Failed to decode frame {index}: {exc}") from exc
    return DecodedFrame(pixels=pixels, delay_cs=_delay_cs(image), index=index)


def _delay_cs(image: Image.Image) -> int:
    # Pillow reports the GIF delay in milliseconds
    duration = image.info.get("duration") or 0
    return int(round(float(duration) / 10))


def _loop_count(image: Image.Image) -> Optional[int]:
    # must be read before seeking; later frames drop the key
    loop = image.info.get("loop")
    return int(loop) if loop is not None else None
