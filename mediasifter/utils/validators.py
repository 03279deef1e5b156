"""Validation helpers for user inputs."""

from __future__ import annotations

from typing import Any, Optional

from ..core import ColorSpec
from ..core.errors import ValidationError

MAX_TOLERANCE = 100.0


def parse_color(value: Any, field: str = "Color") -> ColorSpec:
    """Parse a color given as 'R,G,B', '#rrggbb', '#rgb', [R,G,B] or {r,g,b}."""

    if isinstance(value, ColorSpec):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("#"):
            return _parse_hex(text, field)
        parts = [p.strip() for p in text.split(",")]
    elif isinstance(value, dict):
        lowered = {str(k).lower(): v for k, v in value.items()}
        try:
            parts = [lowered["r"], lowered["g"], lowered["b"]]
        except KeyError as exc:
            raise ValidationError(f"{field} object needs r, g and b keys") from exc
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        raise ValidationError(f"{field} must be R,G,B, #rrggbb, a list or an object")

    if len(parts) != 3:
        raise ValidationError(f"{field} must have exactly three components")
    try:
        numbers = [int(p) for p in parts]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be numeric R,G,B") from exc
    if any(n < 0 or n > 255 for n in numbers):
        raise ValidationError(f"{field} values must be between 0 and 255")
    return ColorSpec(*numbers)


def parse_optional_color(value: Any, field: str = "Color") -> Optional[ColorSpec]:
    if value is None or (isinstance(value, str) and value.strip() in ("", "null")):
        return None
    return parse_color(value, field)


def _parse_hex(text: str, field: str) -> ColorSpec:
    digits = text[1:]
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) != 6:
        raise ValidationError(f"{field} hex value must be #rgb or #rrggbb")
    try:
        return ColorSpec(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    except ValueError as exc:
        raise ValidationError(f"{field} hex value is not valid: {text}") from exc


def validate_tolerance(value: Optional[float], field: str = "Tolerance") -> float:
    """Ensure a color tolerance lies within 0..100."""

    if value is None:
        raise ValidationError(f"{field} is required")
    if value < 0 or value > MAX_TOLERANCE:
        raise ValidationError(f"{field} must be between 0 and {MAX_TOLERANCE:g}")
    return float(value)


def parse_region(value: str | None, field: str = "Region") -> tuple[int, int, int, int]:
    """Parse an 'X,Y,W,H' rectangle string."""

    if value is None or value.strip() == "":
        raise ValidationError(f"{field} must be X,Y,W,H")
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise ValidationError(f"{field} must be X,Y,W,H")
    try:
        x, y, width, height = (int(p) for p in parts)
    except ValueError as exc:
        raise ValidationError(f"{field} must be numeric X,Y,W,H") from exc
    if x < 0 or y < 0:
        raise ValidationError(f"{field} position must be zero or greater")
    if width < 0 or height < 0:
        raise ValidationError(f"{field} size must be zero or greater")
    return x, y, width, height


def parse_optional_int(value: str | None, field: str) -> Optional[int]:
    """Parse a positive integer from a string value, if provided."""

    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be an integer") from exc
    if parsed <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return parsed
