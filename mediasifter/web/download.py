"""Download proxy that fetches remote media on behalf of the browser."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = float(os.environ.get("MEDIASIFTER_DOWNLOAD_TIMEOUT", "30"))
DEFAULT_CONTENT_TYPE = "application/octet-stream"
ATTACHMENT_DISPOSITION = 'attachment; filename="download"'


class DownloadError(Exception):
    """Carries the HTTP status the proxy should answer with."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class FetchedMedia:
    content: bytes
    content_type: str


async def fetch_media(
    url: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> FetchedMedia:
    """Fetch ``url`` and return its body and content type.

    A missing URL is a 400, an upstream error status is passed through and a
    transport failure is a 500.
    """

    if not url:
        raise DownloadError(400, "URL is required")
    if urlparse(url).scheme not in ("http", "https"):
        raise DownloadError(400, "Only http and https URLs can be downloaded")

    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
    except httpx.HTTPError as exc:
        logger.error("Download proxy failed for %s: %s", url, exc)
        raise DownloadError(500, "Internal Server Error") from exc

    if not response.is_success:
        logger.warning("Upstream answered %s for %s", response.status_code, url)
        raise DownloadError(response.status_code, f"Failed to fetch image. Status: {response.status_code}")

    content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    logger.info("Proxied %s bytes (%s) from %s", len(response.content), content_type, url)
    return FetchedMedia(content=response.content, content_type=content_type)
