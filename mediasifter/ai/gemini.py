"""Shared Gemini client setup and JSON response handling."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ..core.errors import ExternalCollaboratorError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = os.environ.get("MEDIASIFTER_GEMINI_MODEL", "gemini-2.0-flash")
JSON_GENERATION_CONFIG = {"response_mime_type": "application/json"}


def resolve_api_key(api_key: Optional[str] = None) -> Optional[str]:
    """Return the explicit key or the one found in the environment."""

    return api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")


def build_model(api_key: Optional[str] = None, model_name: Optional[str] = None) -> "genai.GenerativeModel":
    """Configure the SDK and return a model that answers in JSON."""

    key = resolve_api_key(api_key)
    if not key:
        raise ExternalCollaboratorError("No Gemini API key configured (set GEMINI_API_KEY)")
    genai.configure(api_key=key)
    return genai.GenerativeModel(
        model_name=model_name or DEFAULT_MODEL,
        generation_config=JSON_GENERATION_CONFIG,
    )


def generate_json(model: "genai.GenerativeModel", parts: Sequence[Any], purpose: str) -> Any:
    """Send ``parts`` to the model once and decode the JSON answer."""

    try:
        response = model.generate_content(list(parts))
        text = response.text
    except google_exceptions.GoogleAPIError as exc:
        raise ExternalCollaboratorError(f"{purpose} request failed: {exc}") from exc
    except ValueError as exc:
        # raised by ``response.text`` when the candidate was blocked or empty
        raise ExternalCollaboratorError(f"{purpose} returned no usable text: {exc}") from exc
    logger.debug("%s raw response: %s", purpose, text)
    return parse_json_response(text, purpose)


def parse_json_response(text: Optional[str], purpose: str = "Model") -> Any:
    """Decode a JSON answer, tolerating a surrounding markdown code fence."""

    text = (text or "").strip()
    if not text:
        raise ExternalCollaboratorError(f"{purpose} returned an empty response")
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if match:
        text = match.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExternalCollaboratorError(f"{purpose} returned invalid JSON: {exc}") from exc
