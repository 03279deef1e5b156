import io

import numpy as np
import pytest
from PIL import Image

from mediasifter.core import data_uri

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


def solid_frame(size, color, marker=None, marker_color=GREEN):
    """Build an RGB array filled with ``color`` and an optional 2x2 marker."""

    width, height = size
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :] = color
    if marker is not None:
        mx, my = marker
        pixels[my:my + 2, mx:mx + 2] = marker_color
    return pixels


def build_gif(frames, durations_ms, loop=0):
    """Encode RGB arrays into GIF bytes with Pillow."""

    images = [Image.fromarray(frame, "RGB") for frame in frames]
    buffer = io.BytesIO()
    params = {
        "format": "GIF",
        "save_all": True,
        "append_images": images[1:],
        "duration": list(durations_ms),
    }
    if loop is not None:
        params["loop"] = loop
    images[0].save(buffer, **params)
    return buffer.getvalue()


def as_uri(data):
    return data_uri.encode(data, "image/gif")


def decode_frames(data):
    """Return every composited frame of ``data`` as an RGBA array."""

    with Image.open(io.BytesIO(data)) as image:
        frames = []
        for index in range(image.n_frames):
            image.seek(index)
            frames.append(np.array(image.convert("RGBA")))
    return frames


def close_to(pixel, color, tolerance=3):
    return all(abs(int(a) - int(b)) <= tolerance for a, b in zip(pixel[:3], color))


@pytest.fixture
def three_frame_gif():
    """Red 100x100 animation whose frames differ only by a green marker."""

    frames = [solid_frame((100, 100), RED, marker=(10 + 20 * i, 80)) for i in range(3)]
    return build_gif(frames, [100, 50, 200], loop=0)


@pytest.fixture
def small_gif():
    """Four 20x12 frames of different colors, looping forever."""

    colors = [RED, GREEN, BLUE, WHITE]
    frames = [solid_frame((20, 12), color) for color in colors]
    return build_gif(frames, [40, 40, 40, 40], loop=0)


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), RED).save(buffer, format="PNG")
    return buffer.getvalue()
