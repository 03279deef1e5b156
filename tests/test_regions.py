import pytest

from mediasifter.ai.region_detector import BoundingBox
from mediasifter.core import Rectangle
from mediasifter.core.errors import InvalidRegionError
from mediasifter.core.regions import NoRegion, Region, resolve_detection, resolve_manual


def test_manual_zero_area_means_no_region():
    assert isinstance(resolve_manual(5, 5, 0, 10, 100, 100), NoRegion)
    assert isinstance(resolve_manual(5, 5, 10, 0), NoRegion)


def test_manual_rectangle_inside_frame_resolves():
    assert resolve_manual(10, 20, 30, 40, 100, 100) == Region(Rectangle(10, 20, 30, 40))


@pytest.mark.parametrize(
    "raw",
    [(90, 0, 20, 10), (0, 95, 10, 10), (-1, 0, 5, 5), (0, 0, -5, 5)],
)
def test_manual_rectangle_outside_frame_raises(raw):
    with pytest.raises(InvalidRegionError):
        resolve_manual(*raw, 100, 100)


def test_detection_none_or_empty_box_means_no_region():
    assert isinstance(resolve_detection(None, 100, 100), NoRegion)
    assert isinstance(resolve_detection(BoundingBox(x=0, y=0, width=0, height=0), 100, 100), NoRegion)
    assert isinstance(resolve_detection(BoundingBox(x=-1, y=-1, width=-1, height=-1), 100, 100), NoRegion)


def test_detection_rounds_to_whole_pixels():
    resolution = resolve_detection(BoundingBox(x=9.6, y=0.2, width=20.4, height=10), 100, 100)
    assert resolution == Region(Rectangle(10, 0, 20, 10))


def test_detection_outside_frame_raises():
    with pytest.raises(InvalidRegionError):
        resolve_detection(BoundingBox(x=50, y=50, width=60, height=10), 100, 100)
