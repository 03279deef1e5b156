"""Core data model for the GIF editing pipeline."""

__all__ = [
    "EncodedImage",
    "DecodedFrame",
    "FrameSequence",
    "Rectangle",
    "ColorSpec",
    "ColorSubstitutionRule",
    "GifInfo",
    "ColorMetric",
    "QuantizeMethod",
    "EncoderSettings",
    "PipelineSettings",
]

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from .errors import GeometryError, ValidationError


@dataclass(frozen=True)
class EncodedImage:
    """Raw encoded bytes plus their declared MIME type."""

    data: bytes
    mime_type: str = "image/gif"


@dataclass(frozen=True, eq=False)
class DecodedFrame:
    """One fully composited animation frame.

    ``pixels`` is an ``(height, width, channels)`` uint8 array with 3 (RGB) or
    4 (RGBA) channels. ``delay_cs`` is the display time in GIF centiseconds.
    Transforms never write into ``pixels``; they build a new frame.
    """

    pixels: np.ndarray
    delay_cs: int = 0
    index: int = 0

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2]) if self.pixels.ndim == 3 else 1

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def with_pixels(self, pixels: np.ndarray) -> "DecodedFrame":
        """Return a new frame with the same timing and index."""

        return DecodedFrame(pixels=pixels, delay_cs=self.delay_cs, index=self.index)


@dataclass(eq=False)
class FrameSequence:
    """Ordered frames of one animation plus its loop count.

    ``loop`` follows the NETSCAPE extension: 0 repeats forever, ``None`` means
    the source had no looping extension and plays once.
    """

    frames: list[DecodedFrame] = field(default_factory=list)
    loop: Optional[int] = 0

    def __post_init__(self) -> None:
        if not self.frames:
            raise GeometryError("A frame sequence needs at least one frame")
        first = self.frames[0].size
        for frame in self.frames[1:]:
            if frame.size != first:
                raise GeometryError(
                    f"Frame {frame.index} is {frame.width}x{frame.height}, expected {first[0]}x{first[1]}"
                )

    @property
    def width(self) -> int:
        return self.frames[0].width

    @property
    def height(self) -> int:
        return self.frames[0].height

    @property
    def delays_cs(self) -> list[int]:
        return [frame.delay_cs for frame in self.frames]

    def __len__(self) -> int:
        return len(self.frames)


@dataclass(frozen=True)
class Rectangle:
    """Pixel rectangle relative to the frame's top-left corner."""

    x: int
    y: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Return a Pillow-style ``(left, upper, right, lower)`` box."""

        return self.x, self.y, self.x + self.width, self.y + self.height

    def fits(self, frame_width: int, frame_height: int) -> bool:
        return (
            self.width > 0
            and self.height > 0
            and self.x >= 0
            and self.y >= 0
            and self.x + self.width <= frame_width
            and self.y + self.height <= frame_height
        )


@dataclass(frozen=True)
class ColorSpec:
    """An opaque RGB color."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        if any(not 0 <= v <= 255 for v in (self.r, self.g, self.b)):
            raise ValidationError("Color values must be between 0 and 255")

    def as_tuple(self) -> tuple[int, int, int]:
        return self.r, self.g, self.b


WHITE = ColorSpec(255, 255, 255)


@dataclass(frozen=True)
class ColorSubstitutionRule:
    """Rewrite pixels closer than ``tolerance`` to ``source`` into ``target``."""

    source: ColorSpec
    target: ColorSpec
    tolerance: float = 20.0

    def __post_init__(self) -> None:
        if not 0 <= self.tolerance <= 100:
            raise ValidationError("Tolerance must be between 0 and 100")


@dataclass
class GifInfo:
    """Summary of a GIF without its pixel data."""

    width: int
    height: int
    frame_count: int
    loop: Optional[int]
    delays_cs: list[int]


class ColorMetric(str, Enum):
    """Distance metric used by color substitution."""

    CIEDE2000 = "ciede2000"
    CIE76 = "cie76"


class QuantizeMethod(str, Enum):
    """Palette reduction strategy handed to ``Image.quantize``."""

    MEDIANCUT = "mediancut"
    MAXCOVERAGE = "maxcoverage"
    FASTOCTREE = "fastoctree"


@dataclass
class EncoderSettings:
    """Fixed re-encoding parameters; not exposed to end users."""

    colors: int = 255
    method: QuantizeMethod = QuantizeMethod.MEDIANCUT
    quality: int = 0  # k-means refinement passes over the palette
    alpha_threshold: int = 128
    disposal: int = 2

    def __post_init__(self) -> None:
        # index 255 is reserved for the transparent key
        if not 2 <= self.colors <= 255:
            raise ValidationError("Encoder colors must be between 2 and 255")
        if self.quality < 0:
            raise ValidationError("Encoder quality must be zero or greater")
        if not 0 <= self.alpha_threshold <= 255:
            raise ValidationError("Alpha threshold must be between 0 and 255")


@dataclass
class PipelineSettings:
    """Per-process pipeline configuration."""

    max_workers: Optional[int] = None
    color_metric: ColorMetric = ColorMetric.CIEDE2000
    encoder: EncoderSettings = field(default_factory=EncoderSettings)

    def __post_init__(self) -> None:
        if self.max_workers is None:
            self.max_workers = min(32, os.cpu_count() or 1)
        self.max_workers = max(1, self.max_workers)
        self.color_metric = ColorMetric(self.color_metric)

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        """Build settings from ``MEDIASIFTER_*`` environment variables."""

        workers = os.environ.get("MEDIASIFTER_MAX_WORKERS")
        metric = os.environ.get("MEDIASIFTER_COLOR_METRIC", ColorMetric.CIEDE2000.value)
        try:
            max_workers = int(workers) if workers else None
        except ValueError as exc:
            raise ValidationError("MEDIASIFTER_MAX_WORKERS must be an integer") from exc
        try:
            color_metric = ColorMetric(metric.lower())
        except ValueError as exc:
            raise ValidationError(f"Unknown color metric: {metric}") from exc
        return cls(max_workers=max_workers, color_metric=color_metric)
