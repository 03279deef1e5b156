"""FastAPI surface for Media Sifter GIF editing."""

from __future__ import annotations

import dataclasses
import logging
import os
from functools import lru_cache
from typing import Any, Callable, Literal, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, field_validator
from starlette.concurrency import run_in_threadpool

from ..ai import gemini
from ..ai.media_urls import GeminiMediaUrlExtractor
from ..ai.region_detector import ChatMessage, GeminiRegionDetector, RegionDetector
from ..core import WHITE, ColorSpec, ColorSubstitutionRule, PipelineSettings
from ..core import data_uri, frame_extractor
from ..core.errors import (
    DecodeError,
    EncodeError,
    ExternalCollaboratorError,
    GeometryError,
    GifEditError,
    InvalidRegionError,
    MalformedInputError,
    ValidationError,
)
from ..core.pipeline import GifEditPipeline
from ..utils import validators
from . import download

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = int(os.environ.get("MEDIASIFTER_MAX_UPLOAD_MB", "50")) * 1024 * 1024
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "MEDIASIFTER_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:8000"
    ).split(",")
    if origin.strip()
]

CLIENT_ERRORS = (MalformedInputError, DecodeError, GeometryError, InvalidRegionError, ValidationError)


class Area(BaseModel):
    """Rectangle in frame pixels; zero width or height selects nothing."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


class GifRequest(BaseModel):
    gif_data_uri: str = Field(..., min_length=1)


class ReplaceSectionRequest(GifRequest):
    replacement_area: Area
    fill_color: Optional[tuple[int, int, int]] = None

    @field_validator("fill_color", mode="before")
    @classmethod
    def _parse_color(cls, value):
        color = validators.parse_optional_color(value, "Fill color")
        return color.as_tuple() if color else None


class CutoutRequest(GifRequest):
    area: Area
    mode: Literal["cutout", "punch"] = "cutout"


class CropRequest(GifRequest):
    crop: Area


class ReplaceColorRequest(GifRequest):
    """Incoming color replacement options; ``fuzz`` is a 0..100 distance."""

    source_color: tuple[int, int, int]
    target_color: tuple[int, int, int]
    fuzz: float = Field(20.0, ge=0, le=100)

    @field_validator("source_color", "target_color", mode="before")
    @classmethod
    def _parse_color(cls, value):
        return validators.parse_color(value).as_tuple()


class DetectRequest(GifRequest):
    prompt: str = Field(..., min_length=1)


class ChatRequest(GifRequest):
    messages: list[ChatMessage] = Field(..., min_length=1)


class ExtractUrlsRequest(BaseModel):
    csv_data: str


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    return PipelineSettings.from_env()


def get_region_detector() -> RegionDetector:
    """Dependency providing the AI detector; 503 when no key is configured."""

    if not gemini.resolve_api_key():
        raise HTTPException(status_code=503, detail="AI region detection is not configured")
    try:
        return GeminiRegionDetector()
    except ExternalCollaboratorError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def get_media_url_extractor() -> GeminiMediaUrlExtractor:
    if not gemini.resolve_api_key():
        raise HTTPException(status_code=503, detail="AI media URL extraction is not configured")
    try:
        return GeminiMediaUrlExtractor()
    except ExternalCollaboratorError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def get_download_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for the download proxy; ``None`` uses the network."""

    return None


def create_app() -> FastAPI:
    app = FastAPI(title="Media Sifter", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/gif/info")
    async def gif_info(payload: GifRequest, request: Request) -> dict[str, Any]:
        _enforce_size_limit(request)
        info = await _run_stage("info", _probe, payload.gif_data_uri)
        return dataclasses.asdict(info)

    @app.post("/api/gif/replace-section")
    async def replace_section(
        payload: ReplaceSectionRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
    ) -> dict[str, Any]:
        _enforce_size_limit(request)
        area = payload.replacement_area
        fill = ColorSpec(*payload.fill_color) if payload.fill_color else WHITE
        result = await _run_stage(
            "replace-section",
            GifEditPipeline(settings).replace_section,
            payload.gif_data_uri,
            area.x,
            area.y,
            area.width,
            area.height,
            fill,
        )
        return {"processed_gif_data_uri": result.data_uri, "changed": result.changed}

    @app.post("/api/gif/cutout")
    async def cutout(
        payload: CutoutRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
    ) -> dict[str, Any]:
        _enforce_size_limit(request)
        pipeline = GifEditPipeline(settings)
        operation = pipeline.punch_section if payload.mode == "punch" else pipeline.cutout_section
        area = payload.area
        result = await _run_stage(
            payload.mode, operation, payload.gif_data_uri, area.x, area.y, area.width, area.height
        )
        return {"processed_gif_data_uri": result.data_uri, "changed": result.changed}

    @app.post("/api/gif/crop")
    async def crop(
        payload: CropRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
    ) -> dict[str, Any]:
        _enforce_size_limit(request)
        area = payload.crop
        result = await _run_stage(
            "crop",
            GifEditPipeline(settings).crop,
            payload.gif_data_uri,
            area.x,
            area.y,
            area.width,
            area.height,
        )
        return {"cropped_gif_data_uri": result.data_uri}

    @app.post("/api/gif/replace-color")
    async def replace_color(
        payload: ReplaceColorRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
    ) -> dict[str, str]:
        _enforce_size_limit(request)
        try:
            rule = ColorSubstitutionRule(
                source=ColorSpec(*payload.source_color),
                target=ColorSpec(*payload.target_color),
                tolerance=validators.validate_tolerance(payload.fuzz, "Fuzz"),
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        result = await _run_stage(
            "replace-color", GifEditPipeline(settings).replace_color, payload.gif_data_uri, rule
        )
        return {"processed_gif_data_uri": result.data_uri}

    @app.post("/api/gif/detect-and-replace")
    async def detect_and_replace(
        payload: DetectRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
        detector: RegionDetector = Depends(get_region_detector),
    ) -> dict[str, Any]:
        _enforce_size_limit(request)
        pipeline = GifEditPipeline(settings, detector)
        result = await _run_stage(
            "detect-and-replace", pipeline.detect_and_replace, payload.gif_data_uri, payload.prompt
        )
        return {"processed_gif_data_uri": result.data_uri, "changed": result.changed}

    @app.post("/api/gif/auto-replace")
    async def auto_replace(
        payload: GifRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
        detector: RegionDetector = Depends(get_region_detector),
    ) -> dict[str, Any]:
        _enforce_size_limit(request)
        pipeline = GifEditPipeline(settings, detector)
        result = await _run_stage("auto-replace", pipeline.auto_replace, payload.gif_data_uri)
        return {"processed_gif_data_uri": result.data_uri, "changed": result.changed}

    @app.post("/api/gif/chat-replace")
    async def chat_replace(
        payload: ChatRequest,
        request: Request,
        settings: PipelineSettings = Depends(get_pipeline_settings),
        detector: RegionDetector = Depends(get_region_detector),
    ) -> dict[str, Optional[str]]:
        _enforce_size_limit(request)
        pipeline = GifEditPipeline(settings, detector)
        outcome = await _run_stage(
            "chat-replace", pipeline.chat_and_replace, payload.gif_data_uri, payload.messages
        )
        return {"processed_gif_data_uri": outcome.data_uri, "model_response": outcome.reply}

    @app.post("/api/media/extract-urls")
    async def extract_urls(
        payload: ExtractUrlsRequest,
        request: Request,
        extractor: GeminiMediaUrlExtractor = Depends(get_media_url_extractor),
    ) -> dict[str, list[str]]:
        _enforce_size_limit(request)
        urls = await _run_stage("extract-urls", extractor.extract, payload.csv_data)
        return {"media_urls": urls}

    @app.get("/api/download")
    async def download_media(
        url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = Depends(get_download_transport),
    ) -> Response:
        try:
            media = await download.fetch_media(url, transport=transport)
        except download.DownloadError as exc:
            return PlainTextResponse(exc.message, status_code=exc.status_code)
        return Response(
            content=media.content,
            media_type=media.content_type,
            headers={"Content-Disposition": download.ATTACHMENT_DISPOSITION},
        )

    return app


async def _run_stage(name: str, func: Callable[..., Any], *args: Any) -> Any:
    """Run blocking pipeline work off the event loop and map its errors to HTTP."""

    try:
        return await run_in_threadpool(func, *args)
    except CLIENT_ERRORS as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExternalCollaboratorError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (EncodeError, GifEditError) as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected failure during %s", name)
        raise HTTPException(status_code=500, detail="Unexpected error") from exc


def _probe(uri: str):
    return frame_extractor.probe(data_uri.decode(uri).data)


def _enforce_size_limit(request: Request) -> None:
    """Simple guardrail on body size based on Content-Length."""

    content_length = request.headers.get("content-length")
    if not content_length:
        return
    try:
        size = int(content_length)
    except ValueError:
        return
    if size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Upload exceeds limit")


app = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("mediasifter.web.server:app", host="0.0.0.0", port=8000, reload=True)
