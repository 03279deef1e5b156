"""Domain-specific exceptions for the GIF editing pipeline."""

from __future__ import annotations


class GifEditError(RuntimeError):
    """Base class for every failure the pipeline reports to callers."""


class MalformedInputError(GifEditError, ValueError):
    """Raised when a data URI is missing its base64 marker or payload."""

    def __init__(self, reason: str | None = None):
        message = "Invalid data URI"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class DecodeError(GifEditError):
    """Raised when the byte stream is not a decodable GIF or has no frames."""


class GeometryError(GifEditError):
    """Raised when a rectangle does not fit the frame it is applied to."""


class InvalidRegionError(GifEditError, ValueError):
    """Raised when a supplied or detected region is out of bounds."""


class EncodeError(GifEditError):
    """Raised when a frame cannot be handed to the GIF encoder."""


class ExternalCollaboratorError(GifEditError):
    """Raised when an AI call fails or returns an unusable shape."""


class ValidationError(ValueError):
    """Raised when user-provided settings fail validation."""
