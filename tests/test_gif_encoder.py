import io

import numpy as np
import pytest
from PIL import Image

from conftest import RED, close_to, decode_frames, solid_frame
from mediasifter.core import DecodedFrame, EncoderSettings, FrameSequence, frame_extractor, gif_encoder
from mediasifter.core.errors import EncodeError, GeometryError, ValidationError


def _sequence(frames, delays, loop=0):
    return FrameSequence(
        frames=[DecodedFrame(pixels=p, delay_cs=d, index=i) for i, (p, d) in enumerate(zip(frames, delays))],
        loop=loop,
    )


def test_decode_encode_keeps_frames_delays_and_loop(three_frame_gif):
    sequence = frame_extractor.extract(three_frame_gif)
    info = frame_extractor.probe(gif_encoder.encode(sequence))
    assert info.frame_count == 3
    assert info.delays_cs == [10, 5, 20]
    assert info.loop == 0
    assert (info.width, info.height) == (100, 100)


def test_delays_are_written_in_milliseconds():
    frames = [solid_frame((4, 4), (i * 60, 0, 0)) for i in range(3)]
    data = gif_encoder.encode(_sequence(frames, [10, 5, 20]))
    with Image.open(io.BytesIO(data)) as image:
        durations = []
        for index in range(image.n_frames):
            image.seek(index)
            durations.append(image.info["duration"])
    assert durations == [100, 50, 200]


def test_identical_frames_are_not_merged():
    frame = solid_frame((5, 5), RED)
    data = gif_encoder.encode(_sequence([frame, frame.copy(), frame.copy()], [4, 4, 4]))
    info = frame_extractor.probe(data)
    assert info.frame_count == 3
    assert info.delays_cs == [4, 4, 4]


def test_missing_loop_writes_no_looping_extension():
    data = gif_encoder.encode(_sequence([solid_frame((3, 3), RED)], [5], loop=None))
    assert b"NETSCAPE2.0" not in data
    assert frame_extractor.probe(data).loop is None


def test_finite_loop_count_is_kept():
    data = gif_encoder.encode(_sequence([solid_frame((3, 3), RED)], [5], loop=3))
    assert frame_extractor.probe(data).loop == 3


def test_colors_survive_quantization():
    frame = solid_frame((8, 8), (200, 40, 90), marker=(2, 2), marker_color=(10, 220, 30))
    data = gif_encoder.encode(_sequence([frame], [10]))
    decoded = decode_frames(data)[0]
    assert close_to(decoded[0, 0], (200, 40, 90))
    assert close_to(decoded[3, 3], (10, 220, 30))


def test_transparent_pixels_stay_transparent_in_every_frame():
    frames = []
    for i in range(3):
        pixels = np.zeros((6, 6, 4), dtype=np.uint8)
        pixels[:, :] = (50 * (i + 1), 0, 0, 255)
        pixels[0:2, 0:2, 3] = 0
        frames.append(pixels)
    data = gif_encoder.encode(_sequence(frames, [10, 10, 10]))
    for decoded in decode_frames(data):
        assert decoded[0, 0, 3] == 0
        assert decoded[1, 1, 3] == 0
        assert decoded[4, 4, 3] == 255


def test_non_uint8_raster_is_rejected():
    pixels = np.zeros((4, 4, 3), dtype=np.float32)
    with pytest.raises(EncodeError):
        gif_encoder.encode(_sequence([pixels], [1]))


def test_unsupported_channel_depth_is_rejected():
    pixels = np.zeros((4, 4, 2), dtype=np.uint8)
    with pytest.raises(EncodeError):
        gif_encoder.encode(_sequence([pixels], [1]))


def test_sequences_need_uniform_frame_sizes():
    with pytest.raises(GeometryError):
        _sequence([solid_frame((4, 4), RED), solid_frame((5, 4), RED)], [1, 1])


def test_encoder_settings_reserve_the_transparent_index():
    with pytest.raises(ValidationError):
        EncoderSettings(colors=256)
