"""Data-URI parsing and serialization."""

from __future__ import annotations

import base64
import binascii
import logging

from . import EncodedImage
from .errors import MalformedInputError

logger = logging.getLogger(__name__)

BASE64_MARKER = ";base64,"
DEFAULT_MIME = "application/octet-stream"


def decode(uri: str) -> EncodedImage:
    """Split ``data:<mime>;base64,<payload>`` into bytes and MIME type."""

    if not isinstance(uri, str) or BASE64_MARKER not in uri:
        raise MalformedInputError("missing ';base64,' marker")
    header, _, payload = uri.partition(BASE64_MARKER)
    payload = payload.strip()
    if not payload:
        raise MalformedInputError("empty payload")

    mime_type = header[len("data:"):] if header.startswith("data:") else header
    mime_type = mime_type.split(";", 1)[0].strip() or DEFAULT_MIME

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedInputError(f"payload is not valid base64: {exc}") from exc

    logger.debug("Decoded data URI: %s, %s bytes", mime_type, len(data))
    return EncodedImage(data=data, mime_type=mime_type)


def encode(data: bytes, mime_type: str = "image/gif") -> str:
    """Build a base64 data URI for ``data``."""

    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type}{BASE64_MARKER}{payload}"
