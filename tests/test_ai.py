import pytest
from google.api_core import exceptions as google_exceptions

from mediasifter.ai import gemini
from mediasifter.ai.media_urls import GeminiMediaUrlExtractor
from mediasifter.ai.region_detector import ChatMessage, GeminiRegionDetector
from mediasifter.core import frame_extractor
from mediasifter.core.errors import ExternalCollaboratorError


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for ``genai.GenerativeModel`` and records each request."""

    def __init__(self, text=None, error=None):
        self._text = text
        self._error = error
        self.requests = []

    def generate_content(self, parts):
        self.requests.append(parts)
        if self._error:
            raise self._error
        return FakeResponse(self._text)


@pytest.fixture
def still(three_frame_gif):
    return frame_extractor.first_frame_png(three_frame_gif)


def test_parse_json_response_strips_code_fences():
    assert gemini.parse_json_response('```json\n{"x": 1}\n```') == {"x": 1}


@pytest.mark.parametrize("text", ["", "   ", "not json"])
def test_parse_json_response_rejects_unusable_text(text):
    with pytest.raises(ExternalCollaboratorError):
        gemini.parse_json_response(text)


def test_build_model_without_key_fails(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    with pytest.raises(ExternalCollaboratorError):
        gemini.build_model()


def test_detect_sends_png_blob_and_parses_box(still):
    model = FakeModel('{"x": 4, "y": 5, "width": 30, "height": 12}')
    box = GeminiRegionDetector(model=model).detect(still)
    assert (box.x, box.y, box.width, box.height) == (4, 5, 30, 12)
    blob, instruction = model.requests[0]
    assert blob == {"mime_type": "image/png", "data": still.data}
    assert "100x100" in instruction


def test_detect_includes_user_prompt(still):
    model = FakeModel('{"x": 0, "y": 0, "width": 0, "height": 0}')
    GeminiRegionDetector(model=model).detect(still, "the red banner")
    assert "the red banner" in model.requests[0][1]


def test_detect_accepts_null_answer(still):
    assert GeminiRegionDetector(model=FakeModel("null")).detect(still) is None


def test_detect_rejects_wrong_shape(still):
    with pytest.raises(ExternalCollaboratorError):
        GeminiRegionDetector(model=FakeModel('{"left": 1}')).detect(still)


def test_detect_wraps_api_errors(still):
    model = FakeModel(error=google_exceptions.ServiceUnavailable("down"))
    with pytest.raises(ExternalCollaboratorError):
        GeminiRegionDetector(model=model).detect(still)


def test_converse_forwards_history_and_reads_box(still):
    model = FakeModel('{"response": "Removing it.", "boundingBox": {"x": 1, "y": 2, "width": 3, "height": 4}}')
    messages = [
        ChatMessage(role="user", content="remove the watermark"),
        ChatMessage(role="model", content="The one bottom right?"),
        ChatMessage(role="user", content="yes"),
    ]
    turn = GeminiRegionDetector(model=model).converse(still, messages)
    assert turn.response == "Removing it."
    assert turn.bounding_box.width == 3
    instruction = model.requests[0][1]
    assert "user: remove the watermark\nmodel: The one bottom right?\nuser: yes" in instruction


def test_converse_with_null_box(still):
    model = FakeModel('{"response": "Which part?", "boundingBox": null}')
    turn = GeminiRegionDetector(model=model).converse(still, [ChatMessage(role="user", content="hi")])
    assert turn.bounding_box is None


def test_media_url_extraction_dedupes_and_keeps_order():
    model = FakeModel('{"media_urls": ["https://a/1.gif", " https://a/2.png ", "https://a/1.gif", ""]}')
    urls = GeminiMediaUrlExtractor(model=model).extract("id,link\n1,https://a/1.gif")
    assert urls == ["https://a/1.gif", "https://a/2.png"]


def test_media_url_extraction_skips_empty_csv():
    model = FakeModel("{}")
    assert GeminiMediaUrlExtractor(model=model).extract("  ") == []
    assert model.requests == []


def test_media_url_extraction_rejects_wrong_shape():
    with pytest.raises(ExternalCollaboratorError):
        GeminiMediaUrlExtractor(model=FakeModel('{"media_urls": "nope"}')).extract("a,b")
