import asyncio
import logging
import time
from typing import Callable, Optional

from .decision import DecisionEngine
from .engines import CorrelationEngine, OCREngine, OpenCVEngine, TesseractEngine
from .exceptions import (
    AlreadyRunningError,
    MissingInputError,
    NotInitializedError,
    VerificationCancelledError,
    VerificationError,
)
from .extractor import FieldExtractor
from .image_loader import ImageSource, load_image, read_image_bytes
from .models import PipelineState, VerificationResult
from .quality import ImageQualityGate
from .template_match import TemplateMatcher

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


class VerificationService:
    """
    Orchestrates a document verification run.

    Owns the OCR and correlation engine lifecycle (initialize / cleanup) and
    sequences the stages: quality gate, image loading, template matching,
    text extraction and the final decision. Only one run may be in flight.

    States: NOT_READY -> READY -> RUNNING -> COMPLETED | FAILED
    """

    def __init__(self,
                 ocr_engine: Optional[OCREngine] = None,
                 correlation_engine: Optional[CorrelationEngine] = None,
                 quality_gate: Optional[ImageQualityGate] = None,
                 decision_engine: Optional[DecisionEngine] = None):
        self.ocr_engine = ocr_engine or TesseractEngine()
        self.correlation_engine = correlation_engine or OpenCVEngine()
        self.quality_gate = quality_gate or ImageQualityGate()
        self.matcher = TemplateMatcher(self.correlation_engine)
        self.extractor = FieldExtractor(self.ocr_engine)
        self.decision_engine = decision_engine or DecisionEngine()
        self._state = PipelineState.NOT_READY

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self.ocr_engine.is_ready and self.correlation_engine.is_ready

    async def initialize(self) -> None:
        """Start both engines. Safe to call more than once."""
        if self.is_ready:
            return
        logger.info("Initializing verification engines...")
        await self.correlation_engine.initialize()
        await self.ocr_engine.initialize()
        if self._state == PipelineState.NOT_READY:
            self._state = PipelineState.READY
        logger.info("Verification engines ready")

    async def cleanup(self) -> None:
        """Release the OCR engine. The service must be initialized again before use."""
        if self.ocr_engine.is_ready:
            await self.ocr_engine.terminate()
        self._state = PipelineState.NOT_READY

    async def verify(self,
                     id_image: Optional[ImageSource],
                     reference_image: Optional[ImageSource],
                     on_progress: Optional[ProgressCallback] = None,
                     cancel_event: Optional[asyncio.Event] = None) -> VerificationResult:
        """
        Verify an ID image against a reference template.

        Args:
            id_image: ID document image (bytes, path or binary file)
            reference_image: reference layout template image
            on_progress: optional callback(stage_description, percent)
            cancel_event: optional event checked between stages

        Returns:
            VerificationResult; a negative verdict is still a completed run

        Raises:
            AlreadyRunningError, NotInitializedError, MissingInputError,
            DecodeError, LowQualityImageError, VerificationCancelledError
        """
        if self._state == PipelineState.RUNNING:
            raise AlreadyRunningError()
        if not self.is_ready:
            raise NotInitializedError()

        missing = [
            name for name, source in (("id_image", id_image), ("reference_image", reference_image))
            if source is None or (isinstance(source, (bytes, bytearray)) and not source)
        ]
        if missing:
            raise MissingInputError(missing)

        self._state = PipelineState.RUNNING
        outcome = PipelineState.FAILED
        start_time = time.perf_counter()
        try:
            result = await self._run(id_image, reference_image, on_progress, cancel_event)
            outcome = PipelineState.COMPLETED
        except VerificationError as e:
            logger.warning(f"Verification failed [{e.code}] {e.message}")
            raise
        except Exception:
            logger.exception("Verification failed")
            raise
        finally:
            self._state = outcome

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Verification completed: valid={result.overall.is_valid}, "
            f"confidence={result.overall.confidence:.3f}",
            extra={"latency_ms": round(elapsed_ms, 2)}
        )
        return result

    async def _run(self,
                   id_image: ImageSource,
                   reference_image: ImageSource,
                   on_progress: Optional[ProgressCallback],
                   cancel_event: Optional[asyncio.Event]) -> VerificationResult:

        # Step 1: Quality gate on the ID image only
        self._step("Validating image quality...", 5, on_progress, cancel_event)
        id_bytes = await asyncio.to_thread(read_image_bytes, id_image, "id_image")
        id_buffer = await asyncio.to_thread(load_image, id_bytes, "id_image")
        await asyncio.to_thread(self.quality_gate.enforce, id_buffer)

        # Step 2: Decode the reference template
        self._step("Loading images...", 10, on_progress, cancel_event)
        reference_buffer = await asyncio.to_thread(load_image, reference_image, "reference_image")

        # Step 3: Layout match
        self._step("Performing template matching...", 30, on_progress, cancel_event)
        template_result = await self.matcher.match(id_buffer, reference_buffer)
        del id_buffer, reference_buffer

        # Step 4: OCR field extraction
        self._step("Extracting text labels...", 60, on_progress, cancel_event)
        text_result = await self.extractor.extract(id_bytes)

        # Step 5: Verdict
        self._step("Finalizing verification...", 90, on_progress, cancel_event)
        result = self.decision_engine.build_result(template_result, text_result)

        self._notify(on_progress, "Verification complete", 100)
        return result

    def _step(self,
              stage: str,
              percent: int,
              on_progress: Optional[ProgressCallback],
              cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise VerificationCancelledError(stage)
        logger.info(stage, extra={"stage": stage, "progress": percent})
        self._notify(on_progress, stage, percent)

    def _notify(self, on_progress: Optional[ProgressCallback], stage: str, percent: int) -> None:
        if on_progress is None:
            return
        try:
            on_progress(stage, percent)
        except Exception:
            logger.exception(f"Progress callback failed at {percent}%")


async def run_pipeline(id_image: ImageSource,
                       reference_image: ImageSource,
                       on_progress: Optional[ProgressCallback] = None,
                       ocr_engine: Optional[OCREngine] = None,
                       correlation_engine: Optional[CorrelationEngine] = None) -> VerificationResult:
    """
    One-shot verification: initialize engines, verify, release engines.
    """
    service = VerificationService(ocr_engine=ocr_engine, correlation_engine=correlation_engine)
    await service.initialize()
    try:
        return await service.verify(id_image, reference_image, on_progress=on_progress)
    finally:
        await service.cleanup()
