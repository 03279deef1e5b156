"""Pipeline orchestration: data URI in, edited GIF data URI out."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from . import WHITE, ColorSpec, ColorSubstitutionRule, EncodedImage, FrameSequence, PipelineSettings, Rectangle
from . import data_uri, frame_extractor, gif_encoder, regions, transforms
from .errors import EncodeError, ExternalCollaboratorError
from .frame_extractor import ExtractMode
from .regions import NoRegion, RegionResolution
from .transforms import TransformSpec

if TYPE_CHECKING:
    from ..ai.region_detector import ChatMessage, RegionDetector

logger = logging.getLogger(__name__)

GIF_MIME = "image/gif"


class PipelineState(str, Enum):
    IDLE = "idle"
    DECODING = "decoding"
    PREVIEWING = "previewing"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    ENCODING = "encoding"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """State history of a single invocation."""

    operation: str
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    failure: Optional[str] = None

    @property
    def state(self) -> PipelineState:
        return self.history[-1]

    def advance(self, state: PipelineState) -> None:
        logger.debug("%s: %s -> %s", self.operation, self.state.value, state.value)
        self.history.append(state)

    def fail(self, exc: BaseException) -> None:
        self.failure = str(exc)
        self.advance(PipelineState.FAILED)


@dataclass
class PipelineResult:
    data_uri: str
    run: PipelineRun
    changed: bool = True


@dataclass
class ChatOutcome:
    """Model reply plus the edited GIF, if the model proposed a region."""

    reply: str
    data_uri: Optional[str]
    run: PipelineRun


class GifEditPipeline:
    """Runs decode, transform and re-encode for one GIF per call.

    Nothing is shared between calls except the immutable settings and the
    optional region detector.
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        detector: Optional["RegionDetector"] = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.detector = detector

    # -- manual region operations -------------------------------------------------

    def apply(self, uri: str, spec: TransformSpec) -> PipelineResult:
        """Apply a prepared transform to every frame of the GIF in ``uri``."""

        run = PipelineRun(spec.name)
        return self._guarded(run, lambda: self._transform(run, uri, spec))

    def replace_section(
        self, uri: str, x: int, y: int, width: int, height: int, fill: ColorSpec = WHITE
    ) -> PipelineResult:
        return self._manual(uri, (x, y, width, height), "opaque_replace", lambda r: transforms.replace_spec(r, fill))

    def cutout_section(self, uri: str, x: int, y: int, width: int, height: int) -> PipelineResult:
        return self._manual(uri, (x, y, width, height), "cutout_transparent", transforms.cutout_spec)

    def punch_section(self, uri: str, x: int, y: int, width: int, height: int) -> PipelineResult:
        return self._manual(uri, (x, y, width, height), "alpha_punch", transforms.punch_spec)

    def crop(self, uri: str, x: int, y: int, width: int, height: int) -> PipelineResult:
        return self._manual(uri, (x, y, width, height), "crop", transforms.crop_spec)

    def replace_color(self, uri: str, rule: ColorSubstitutionRule) -> PipelineResult:
        """Swap every pixel close to ``rule.source`` for ``rule.target``."""

        return self.apply(uri, transforms.color_spec(rule, self.settings.color_metric))

    # -- detector driven operations -----------------------------------------------

    def detect_and_replace(self, uri: str, prompt: Optional[str]) -> PipelineResult:
        """Ask the detector for a region on frame 0 and white it out."""

        run = PipelineRun("detect_and_replace" if prompt else "auto_replace")

        def _work() -> PipelineResult:
            detector = self._require_detector()
            source, still, info = self._preview(run, uri)
            box = detector.detect(still, prompt)
            resolution = regions.resolve_detection(box, info.width, info.height)
            return self._resolved(run, source, resolution, transforms.replace_spec)

        return self._guarded(run, _work)

    def auto_replace(self, uri: str) -> PipelineResult:
        """Detect the most prominent logo, watermark or text and white it out."""

        return self.detect_and_replace(uri, None)

    def chat_and_replace(self, uri: str, messages: Sequence["ChatMessage"]) -> ChatOutcome:
        """Forward the conversation and apply a white box if the model asks for one.

        The history is passed through unmodified; nothing is kept between
        turns.
        """

        run = PipelineRun("chat_and_replace")

        def _work() -> ChatOutcome:
            detector = self._require_detector()
            source, still, info = self._preview(run, uri)
            turn = detector.converse(still, messages)
            resolution = regions.resolve_detection(turn.bounding_box, info.width, info.height)
            if isinstance(resolution, NoRegion):
                run.advance(PipelineState.DONE)
                logger.info("chat_and_replace: no region proposed, GIF left untouched")
                return ChatOutcome(reply=turn.response, data_uri=None, run=run)
            result = self._resolved(run, source, resolution, transforms.replace_spec)
            return ChatOutcome(reply=turn.response, data_uri=result.data_uri, run=run)

        return self._guarded(run, _work)

    # -- internals ------------------------------------------------------------------

    def _manual(
        self,
        uri: str,
        raw: tuple[int, int, int, int],
        name: str,
        build: Callable[[Rectangle], TransformSpec],
    ) -> PipelineResult:
        run = PipelineRun(name)

        def _work() -> PipelineResult:
            run.advance(PipelineState.DECODING)
            source = data_uri.decode(uri)
            resolution = regions.resolve_manual(*raw)
            return self._resolved(run, source.data, resolution, build)

        return self._guarded(run, _work)

    def _resolved(
        self,
        run: PipelineRun,
        source: bytes,
        resolution: RegionResolution,
        build: Callable[[Rectangle], TransformSpec],
    ) -> PipelineResult:
        if isinstance(resolution, NoRegion):
            run.advance(PipelineState.DONE)
            logger.info("%s: %s, returning input unchanged", run.operation, resolution.reason)
            return PipelineResult(data_uri=data_uri.encode(source, GIF_MIME), run=run, changed=False)
        else:
            return self._run_frames(run, source, build(resolution.rect))

    def _transform(self, run: PipelineRun, uri: str, spec: TransformSpec) -> PipelineResult:
        run.advance(PipelineState.DECODING)
        source = data_uri.decode(uri)
        return self._run_frames(run, source.data, spec)

    def _preview(self, run: PipelineRun, uri: str) -> tuple[bytes, EncodedImage, FrameSequence]:
        run.advance(PipelineState.DECODING)
        source = data_uri.decode(uri)
        run.advance(PipelineState.PREVIEWING)
        preview = frame_extractor.extract(source.data, ExtractMode.FIRST_FRAME_ONLY)
        still = frame_extractor.frame_to_png(preview.frames[0])
        return source.data, still, preview

    def _run_frames(self, run: PipelineRun, source: bytes, spec: TransformSpec) -> PipelineResult:
        started = time.perf_counter()
        run.advance(PipelineState.EXTRACTING)
        sequence = frame_extractor.extract(source, ExtractMode.ALL_FRAMES_CUMULATIVE)
        if spec.rect is not None:
            regions.validate_rectangle(spec.rect, sequence.width, sequence.height)

        run.advance(PipelineState.TRANSFORMING)
        workers = min(self.settings.max_workers, len(sequence))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            edited = list(pool.map(spec, sequence.frames))
        for position, frame in enumerate(edited):
            if frame.index != position:
                raise EncodeError(f"Frame {frame.index} reassembled at position {position}")
        output = FrameSequence(frames=edited, loop=sequence.loop)

        run.advance(PipelineState.ENCODING)
        encoded = gif_encoder.encode(output, self.settings.encoder)
        result = data_uri.encode(encoded, GIF_MIME)
        run.advance(PipelineState.DONE)

        logger.info(
            "%s: %s frame(s) %sx%s -> %sx%s in %.0f ms",
            run.operation,
            len(output),
            sequence.width,
            sequence.height,
            output.width,
            output.height,
            (time.perf_counter() - started) * 1000,
        )
        return PipelineResult(data_uri=result, run=run, changed=True)

    def _require_detector(self) -> "RegionDetector":
        if self.detector is None:
            raise ExternalCollaboratorError("No region detector configured")
        return self.detector

    @staticmethod
    def _guarded(run: PipelineRun, work):
        # the run records the failure; the typed error still reaches the caller
        try:
            return work()
        except Exception as exc:
            run.fail(exc)
            logger.warning("%s failed in %s: %s", run.operation, run.history[-2].value, exc)
            raise
