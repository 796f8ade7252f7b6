"""Claim extraction pipeline.

Runs rasterization, text recognition, and field extraction in sequence
for one document session, tracking progress and enforcing that only
one run is in flight at a time.
"""

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from claim_ocr.errors import (
    ClaimOCRError,
    ErrorKind,
    ExtractionFailedError,
    PipelineBusyError,
    RecognitionFailedError,
    UnrenderableDocumentError,
)
from claim_ocr.extraction.field_extractor import FieldExtractor
from claim_ocr.extraction.rules import load_rules
from claim_ocr.models import (
    PDF_MEDIA_TYPE,
    ClaimRecord,
    ImageBuffer,
    PipelineResult,
    PipelineState,
    ProgressEvent,
)
from claim_ocr.ocr.rasterizer import Rasterizer
from claim_ocr.ocr.tesseract_engine import TesseractEngine, TextRecognizer
from claim_ocr.utils.config import AppConfig
from claim_ocr.utils.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
RecognizerFactory = Callable[[], TextRecognizer]

PROGRESS_PDF_RENDERED = 25
PROGRESS_IMAGE_READY = 10
PROGRESS_ENGINE_READY = 40
PROGRESS_TEXT_RECOGNIZED = 80
PROGRESS_COMPLETE = 100

_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.RASTERIZING}),
    PipelineState.RASTERIZING: frozenset(
        {PipelineState.RECOGNIZING, PipelineState.FAILED}
    ),
    PipelineState.RECOGNIZING: frozenset(
        {PipelineState.EXTRACTING, PipelineState.FAILED}
    ),
    PipelineState.EXTRACTING: frozenset({PipelineState.DONE, PipelineState.FAILED}),
    PipelineState.DONE: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class PipelineRun:
    """Progress and outcome of one extraction run."""

    media_type: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: PipelineState = PipelineState.IDLE
    percent: int = 0
    step_label: str = ""
    raw_text: str | None = None
    record: ClaimRecord | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @property
    def finished(self) -> bool:
        return self.state in (PipelineState.DONE, PipelineState.FAILED)

    def transition(self, state: PipelineState) -> None:
        """Move to ``state``, rejecting moves the state machine forbids."""
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state} -> {state}")
        logger.debug("Run %s: %s -> %s", self.run_id, self.state, state)
        self.state = state


class ClaimPipeline:
    """Document-to-claim pipeline for a single document session.

    Args:
        config: Application configuration.
        rasterizer: Document rasterizer. Built from ``config`` if omitted.
        recognizer_factory: Returns a fresh, unopened recognizer for each
            run. Defaults to a Tesseract engine built from ``config``.
        extractor: Field extractor. Built from the configured pattern
            file (or the default patterns) if omitted.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        rasterizer: Rasterizer | None = None,
        recognizer_factory: RecognizerFactory | None = None,
        extractor: FieldExtractor | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.rasterizer = rasterizer or Rasterizer(self.config.rasterizer)
        self.recognizer_factory = recognizer_factory or (
            lambda: TesseractEngine(self.config.ocr)
        )
        if extractor is None:
            patterns_path = self.config.extraction.patterns_path
            extractor = FieldExtractor(
                load_rules(Path(patterns_path) if patterns_path else None)
            )
        self.extractor = extractor
        self._active: PipelineRun | None = None
        self._draining: asyncio.Future[str] | None = None
        self.last_run: PipelineRun | None = None

    @property
    def state(self) -> PipelineState:
        """State of the in-flight run, or ``IDLE`` when none is active."""
        return self._active.state if self._active else PipelineState.IDLE

    @property
    def busy(self) -> bool:
        """True while a run is active or a timed-out recognition still runs."""
        return self._active is not None or self._draining is not None

    async def wait_until_idle(self) -> None:
        """Wait for an abandoned recognition to finish and release its engine."""
        while self._draining is not None:
            await asyncio.wait([self._draining])
            # let the release callback run
            await asyncio.sleep(0)

    async def run(
        self,
        data: bytes,
        media_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Extract claim fields from a document.

        Args:
            data: Raw document bytes.
            media_type: Declared media type (PDF, JPEG or PNG).
            on_progress: Optional callback receiving progress events.

        Returns:
            The recognized text and the extracted claim record.

        Raises:
            PipelineBusyError: If another run is still in flight, or the
                recognizer of a timed-out run has not finished yet.
            ClaimOCRError: The stage failure that ended the run. Faults
                outside the stages, such as a raising ``on_progress``, end
                the run as ``ExtractionFailedError``.
        """
        if self._active is not None:
            raise PipelineBusyError(
                f"Run {self._active.run_id} is still {self._active.state}"
            )
        if self._draining is not None:
            raise PipelineBusyError("A timed-out recognition is still finishing")

        run = PipelineRun(media_type=media_type)
        self._active = run
        self.last_run = run
        logger.info("Run %s started for %s document", run.run_id, media_type)

        try:
            result = await self._execute(run, data, media_type, on_progress)
        except ClaimOCRError as exc:
            self._fail(run, exc, on_progress)
            raise
        except Exception as exc:
            error = ExtractionFailedError(f"Pipeline fault while {run.state}: {exc}")
            self._fail(run, error, None)
            raise error from exc
        finally:
            self._active = None

        logger.info("Run %s complete", run.run_id)
        return result

    async def _execute(
        self,
        run: PipelineRun,
        data: bytes,
        media_type: str,
        on_progress: ProgressCallback | None,
    ) -> PipelineResult:
        run.transition(PipelineState.RASTERIZING)
        is_pdf = self.rasterizer.check_media_type(media_type) == PDF_MEDIA_TYPE
        if is_pdf:
            self._report(run, 0, "Converting PDF to image...", on_progress)
        else:
            self._report(run, 0, "Preparing image...", on_progress)

        try:
            buffer = await asyncio.to_thread(
                self.rasterizer.rasterize, data, media_type
            )
        except ClaimOCRError:
            raise
        except Exception as exc:
            raise UnrenderableDocumentError(f"Rasterization failed: {exc}") from exc
        self._report(
            run,
            PROGRESS_PDF_RENDERED if is_pdf else PROGRESS_IMAGE_READY,
            run.step_label,
            on_progress,
        )

        run.transition(PipelineState.RECOGNIZING)
        raw_text = await self._recognize(run, buffer, on_progress)
        self._report(run, PROGRESS_TEXT_RECOGNIZED, run.step_label, on_progress)

        run.transition(PipelineState.EXTRACTING)
        self._report(run, PROGRESS_TEXT_RECOGNIZED, "Parsing claim data...", on_progress)
        try:
            record = self.extractor.extract(raw_text)
        except ExtractionFailedError:
            raise
        except Exception as exc:
            raise ExtractionFailedError(f"Field extraction failed: {exc}") from exc

        # The last event carries DONE; the run only enters it once the
        # callback has accepted the event.
        self._report(
            run, PROGRESS_COMPLETE, "Complete!", on_progress, state=PipelineState.DONE
        )
        run.raw_text = raw_text
        run.record = record
        run.transition(PipelineState.DONE)
        return PipelineResult(raw_text=raw_text, record=record)

    async def _recognize(
        self,
        run: PipelineRun,
        buffer: ImageBuffer,
        on_progress: ProgressCallback | None,
    ) -> str:
        """Acquire a fresh recognizer, run OCR under a timeout, release it.

        The recognizer is closed once its worker thread is done. After a
        timeout the thread cannot be interrupted, so the pipeline stays
        busy until it returns and only then closes the recognizer.
        """
        self._report(run, run.percent, "Initializing OCR engine...", on_progress)
        timeout = self.config.ocr.timeout_seconds
        recognizer = self.recognizer_factory()
        worker: asyncio.Future[str] | None = None
        try:
            try:
                await asyncio.to_thread(recognizer.open)
            except RecognitionFailedError:
                raise
            except Exception as exc:
                raise RecognitionFailedError(
                    f"Text recognition failed: {exc}"
                ) from exc

            self._report(
                run, PROGRESS_ENGINE_READY, "Processing text recognition...", on_progress
            )

            worker = asyncio.ensure_future(
                asyncio.to_thread(recognizer.recognize, buffer)
            )
            try:
                return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
            except TimeoutError as exc:
                raise RecognitionFailedError(
                    f"Text recognition timed out after {timeout:g}s"
                ) from exc
            except RecognitionFailedError:
                raise
            except Exception as exc:
                raise RecognitionFailedError(
                    f"Text recognition failed: {exc}"
                ) from exc
        finally:
            if worker is None or worker.done():
                recognizer.close()
            else:
                self._drain(run, worker, recognizer)

    def _drain(
        self,
        run: PipelineRun,
        worker: asyncio.Future[str],
        recognizer: TextRecognizer,
    ) -> None:
        """Hold the pipeline busy until an abandoned worker returns."""
        self._draining = worker
        logger.warning(
            "Run %s: recognizer still running, holding pipeline until it returns",
            run.run_id,
        )

        def _release(done: asyncio.Future[str]) -> None:
            error = None if done.cancelled() else done.exception()
            if error is not None:
                logger.debug("Run %s: abandoned recognition raised %r", run.run_id, error)
            recognizer.close()
            if self._draining is done:
                self._draining = None
            logger.info("Run %s: recognizer released", run.run_id)

        worker.add_done_callback(_release)

    def _fail(
        self,
        run: PipelineRun,
        exc: ClaimOCRError,
        on_progress: ProgressCallback | None,
    ) -> None:
        run.error_kind = exc.kind
        run.error_message = exc.message
        run.raw_text = None
        run.record = None
        if not run.finished:
            run.transition(PipelineState.FAILED)
        logger.warning("Run %s failed (%s): %s", run.run_id, exc.kind, exc.message)
        self._report(run, run.percent, "Failed", on_progress)

    def _report(
        self,
        run: PipelineRun,
        percent: int,
        step_label: str,
        on_progress: ProgressCallback | None,
        state: PipelineState | None = None,
    ) -> None:
        run.percent = percent
        run.step_label = step_label
        if on_progress is not None:
            on_progress(ProgressEvent(percent, step_label, state or run.state))
