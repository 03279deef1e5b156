"""Extract image and GIF links from uploaded CSV text."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ExternalCollaboratorError
from . import gemini

logger = logging.getLogger(__name__)

EXTRACT_PROMPT = """You pull media links out of CSV data.
Go through every cell of the CSV below and collect each URL that points directly
to an image or an animated GIF. Leave out links to web pages, videos, documents or
anything else, and do not invent URLs that are not in the data.
Answer with a JSON object {{"media_urls": ["<url>", ...]}}.

CSV data:
{csv_data}"""


class MediaUrls(BaseModel):
    media_urls: list[str] = Field(default_factory=list)


class GeminiMediaUrlExtractor:
    """Single-request URL extractor; the model answers in JSON."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        model: Optional[Any] = None,
    ) -> None:
        self.model = model if model is not None else gemini.build_model(api_key, model_name)

    def extract(self, csv_data: str) -> list[str]:
        if not csv_data.strip():
            return []
        payload = gemini.generate_json(
            self.model, [EXTRACT_PROMPT.format(csv_data=csv_data)], "Media URL extraction"
        )
        try:
            result = MediaUrls.model_validate(payload)
        except PydanticValidationError as exc:
            raise ExternalCollaboratorError(f"Media URL extraction returned an unexpected shape: {exc}") from exc
        urls = _dedupe(url.strip() for url in result.media_urls if url.strip())
        logger.info("Extracted %s media URL(s) from %s bytes of CSV", len(urls), len(csv_data))
        return urls


def _dedupe(urls) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            ordered.append(url)
    return ordered
