"""AI region detection on the first frame of a GIF."""

from __future__ import annotations

import io
import logging
from typing import Any, Literal, Optional, Protocol, Sequence

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..core import EncodedImage
from ..core.errors import ExternalCollaboratorError
from . import gemini

logger = logging.getLogger(__name__)

AUTO_DETECT_PROMPT = """You locate regions to erase in images.
Look at this frame taken from an animated GIF and find the single most prominent
logo, watermark or block of overlaid text.
Answer with a JSON object {{"x": int, "y": int, "width": int, "height": int}} giving
the top-left corner and size of that region in pixels. The frame is {width}x{height}.
If nothing like that is present, answer with width and height set to 0."""

PROMPTED_DETECT_PROMPT = """You locate regions in images from a user's description.
Look at this frame taken from an animated GIF. The user wants to remove the part
described below.
Answer with a JSON object {{"x": int, "y": int, "width": int, "height": int}} giving
the top-left corner and size of that part in pixels. The frame is {width}x{height}.
If the description matches nothing, answer with width and height set to 0.

Description: {prompt}"""

CHAT_PROMPT = """You help a user edit a frame of an animated GIF through conversation.
Talk with the user about what should be removed. Only when the user has clearly
confirmed which area to replace, return its bounding box; until then the box must
be null. The frame is {width}x{height} pixels.
Answer with a JSON object:
{{"response": "<your reply to the user>",
  "boundingBox": {{"x": int, "y": int, "width": int, "height": int}} or null}}

Conversation so far:
{history}"""


class BoundingBox(BaseModel):
    """Rectangle proposed by a detector, in frame pixels."""

    x: float
    y: float
    width: float
    height: float


class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    content: str


class ChatTurnResult(BaseModel):
    """One model turn: the reply and an optional region to replace."""

    model_config = ConfigDict(populate_by_name=True)

    response: str
    bounding_box: Optional[BoundingBox] = Field(None, alias="boundingBox")


class RegionDetector(Protocol):
    """Anything that can propose an edit region for a PNG still."""

    def detect(self, still: EncodedImage, prompt: Optional[str] = None) -> Optional[BoundingBox]:
        ...

    def converse(self, still: EncodedImage, messages: Sequence[ChatMessage]) -> ChatTurnResult:
        ...


class GeminiRegionDetector:
    """Region detector backed by a Gemini multimodal model.

    Each call is a single request; failures surface as
    :class:`ExternalCollaboratorError` and are never retried.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        model: Optional[Any] = None,
    ) -> None:
        self.model = model if model is not None else gemini.build_model(api_key, model_name)

    def detect(self, still: EncodedImage, prompt: Optional[str] = None) -> Optional[BoundingBox]:
        width, height = _still_size(still)
        if prompt:
            instruction = PROMPTED_DETECT_PROMPT.format(width=width, height=height, prompt=prompt)
        else:
            instruction = AUTO_DETECT_PROMPT.format(width=width, height=height)
        payload = gemini.generate_json(self.model, [_blob(still), instruction], "Region detection")
        if payload is None:
            return None
        try:
            box = BoundingBox.model_validate(payload)
        except PydanticValidationError as exc:
            raise ExternalCollaboratorError(f"Region detection returned an unexpected shape: {exc}") from exc
        logger.info("Detector proposed x=%s y=%s w=%s h=%s", box.x, box.y, box.width, box.height)
        return box

    def converse(self, still: EncodedImage, messages: Sequence[ChatMessage]) -> ChatTurnResult:
        width, height = _still_size(still)
        history = "\n".join(f"{message.role}: {message.content}" for message in messages)
        instruction = CHAT_PROMPT.format(width=width, height=height, history=history)
        payload = gemini.generate_json(self.model, [_blob(still), instruction], "Region chat")
        try:
            return ChatTurnResult.model_validate(payload)
        except PydanticValidationError as exc:
            raise ExternalCollaboratorError(f"Region chat returned an unexpected shape: {exc}") from exc


def _blob(still: EncodedImage) -> dict:
    return {"mime_type": still.mime_type, "data": still.data}


def _still_size(still: EncodedImage) -> tuple[int, int]:
    with Image.open(io.BytesIO(still.data)) as image:
        return image.size
