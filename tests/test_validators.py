import pytest

from mediasifter.core import ColorSpec
from mediasifter.core.errors import ValidationError
from mediasifter.utils import validators


@pytest.mark.parametrize(
    "value",
    ["255,128,0", " 255 , 128 , 0 ", "#ff8000", "#FF8000", [255, 128, 0], (255, 128, 0), {"r": 255, "g": 128, "b": 0}],
)
def test_parse_color_accepts_supported_formats(value):
    assert validators.parse_color(value) == ColorSpec(255, 128, 0)


def test_parse_color_expands_short_hex():
    assert validators.parse_color("#f0a") == ColorSpec(255, 0, 170)


@pytest.mark.parametrize(
    "value",
    ["1,2", "1,2,3,4", "a,b,c", "#12345", "#gggggg", "256,0,0", [1, 2], {"r": 1, "g": 2}, 42],
)
def test_parse_color_rejects_bad_values(value):
    with pytest.raises(ValidationError):
        validators.parse_color(value)


def test_parse_optional_color_treats_blank_as_none():
    assert validators.parse_optional_color(None) is None
    assert validators.parse_optional_color("") is None
    assert validators.parse_optional_color("null") is None


@pytest.mark.parametrize("value", [0, 20, 100])
def test_validate_tolerance_accepts_range(value):
    assert validators.validate_tolerance(value) == float(value)


@pytest.mark.parametrize("value", [-1, 100.5, None])
def test_validate_tolerance_rejects_out_of_range(value):
    with pytest.raises(ValidationError):
        validators.validate_tolerance(value)


def test_parse_region():
    assert validators.parse_region("1, 2, 30, 40") == (1, 2, 30, 40)
    with pytest.raises(ValidationError):
        validators.parse_region("1,2,3")
    with pytest.raises(ValidationError):
        validators.parse_region("-1,0,3,3")


def test_parse_optional_int():
    assert validators.parse_optional_int(None, "Workers") is None
    assert validators.parse_optional_int("4", "Workers") == 4
    with pytest.raises(ValidationError):
        validators.parse_optional_int("0", "Workers")
