"""
Extraction orchestrator: the state machine that runs one extraction.

  idle -> assessing_quality -> recognizing_text -> parsing_text
       -> generating_recommendations -> completed

Terminal alternatives: quality_rejected, ocr_failed, cancelled, error.
Transitions only move forward; nothing is retried. One run per instance at a
time: a second call while a run is in flight fails with ServiceBusyError.

CONTRACTS:
  Input: image (ndarray / bytes / path / PIL) + ExtractionConfig
  Output: NutritionExtractionResult (contracts/extraction_result_dto.py)
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Dict, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from contracts.extraction_result_dto import ExtractionMetrics, NutritionExtractionResult
from ..domain.contracts import ExtractionConfig, ImageQualityAssessment
from ..domain.exceptions import (
    ConfigurationError,
    ExtractionCancelledError,
    ExtractionTimeoutError,
    ImageQualityTooLowError,
    NutritionExtractionError,
    ServiceBusyError,
)
from ..domain.interfaces import IImageQualityAssessor, INutritionTextParser, ITextRecognizer
from ..extraction.cancellation import CancellationToken
from ..extraction.ocr.text_recognition import TextRecognitionWrapper
from ..extraction.pre_ocr.image_loader import ImageInput, load_image
from ..extraction.pre_ocr.quality_assessor import ImageQualityAssessor
from ..parsing.nutrition_text_parser import NutritionTextParser
from ..scoring.confidence_aggregator import ConfidenceAggregator
from ..scoring.recommendation_engine import RecommendationEngine


class ExtractionStage(str, Enum):
    IDLE = "idle"
    ASSESSING_QUALITY = "assessing_quality"
    RECOGNIZING_TEXT = "recognizing_text"
    PARSING_TEXT = "parsing_text"
    GENERATING_RECOMMENDATIONS = "generating_recommendations"
    COMPLETED = "completed"
    QUALITY_REJECTED = "quality_rejected"
    OCR_FAILED = "ocr_failed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES

    @property
    def is_in_progress(self) -> bool:
        return self in WORK_STAGES


WORK_STAGES = (
    ExtractionStage.ASSESSING_QUALITY,
    ExtractionStage.RECOGNIZING_TEXT,
    ExtractionStage.PARSING_TEXT,
    ExtractionStage.GENERATING_RECOMMENDATIONS,
)

TERMINAL_STAGES = (
    ExtractionStage.COMPLETED,
    ExtractionStage.QUALITY_REJECTED,
    ExtractionStage.OCR_FAILED,
    ExtractionStage.CANCELLED,
    ExtractionStage.ERROR,
)


class ExtractionProgress(BaseModel):
    """Immutable snapshot of the orchestrator state."""

    model_config = ConfigDict(frozen=True)

    stage: ExtractionStage = ExtractionStage.IDLE
    progress: float = Field(0.0, ge=0.0, le=1.0)
    stage_timings: Dict[str, float] = Field(default_factory=dict, description="Seconds per finished stage")
    error_message: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.stage.is_in_progress


ProgressListener = Callable[[ExtractionProgress], None]


class ExtractionHandle:
    """
    Handle of a started run.

    Example:
        handle = orchestrator.start(image)
        handle.snapshot().progress
        handle.cancel()
        result = await handle.result()   # raises ExtractionCancelledError after cancel
    """

    def __init__(self, orchestrator: "ExtractionOrchestrator", task: "asyncio.Task[NutritionExtractionResult]"):
        self._orchestrator = orchestrator
        self.task = task

    def cancel(self) -> bool:
        return self._orchestrator.cancel()

    def snapshot(self) -> ExtractionProgress:
        return self._orchestrator.snapshot()

    def done(self) -> bool:
        return self.task.done()

    async def result(self) -> NutritionExtractionResult:
        try:
            # asyncio.wait does not propagate the task's own cancellation
            await asyncio.wait({self.task})
        except asyncio.CancelledError:
            self._orchestrator.cancel()
            raise
        if self.task.cancelled():
            raise ExtractionCancelledError()
        return self.task.result()

    def __await__(self):
        return self.result().__await__()


class ExtractionOrchestrator:
    """
    Sequences quality gate, recognition, parsing and recommendations.

    Every collaborator is injected; only the recognition engine is required.
    Per-run state (stage, progress, timings, result) lives on the instance,
    which is why one instance runs one extraction at a time.
    """

    def __init__(
        self,
        recognizer: Optional[ITextRecognizer] = None,
        *,
        recognition: Optional[TextRecognitionWrapper] = None,
        quality_assessor: Optional[IImageQualityAssessor] = None,
        parser: Optional[INutritionTextParser] = None,
        aggregator: Optional[ConfidenceAggregator] = None,
        recommendation_engine: Optional[RecommendationEngine] = None,
        config: Optional[ExtractionConfig] = None,
        on_progress: Optional[ProgressListener] = None,
    ):
        if recognition is None:
            if recognizer is None:
                raise ConfigurationError("A text recognizer is required", component="Orchestrator")
            recognition = TextRecognitionWrapper(recognizer)

        self.recognition = recognition
        self.quality_assessor = quality_assessor or ImageQualityAssessor()
        self.aggregator = aggregator or ConfidenceAggregator()
        self.parser = parser or NutritionTextParser(aggregator=self.aggregator)
        self.recommendation_engine = recommendation_engine or RecommendationEngine()
        self.default_config = config or ExtractionConfig.default()
        self.on_progress = on_progress

        self._stage = ExtractionStage.IDLE
        self._progress = 0.0
        self._timings: Dict[str, float] = {}
        self._error_message: Optional[str] = None
        self._result: Optional[NutritionExtractionResult] = None
        self._running = False
        self._token = CancellationToken()
        self._task: Optional[asyncio.Task] = None

        logger.info("[Orchestrator] Initialized")

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def extract(self, image: ImageInput, config: Optional[ExtractionConfig] = None) -> NutritionExtractionResult:
        """
        Runs one extraction and waits for the result.

        Raises:
            ServiceBusyError: another run is in flight on this instance
            ImageQualityTooLowError: the quality gate rejected the image
            InvalidImageFormatError: the image could not be decoded
            OCRProcessingFailedError / NoTextFoundError / ExtractionTimeoutError
            ExtractionCancelledError: cancel() was called
        """
        return await self.start(image, config).result()

    def start(self, image: ImageInput, config: Optional[ExtractionConfig] = None) -> ExtractionHandle:
        """Starts a run in the background and returns immediately. Needs a running event loop."""
        loop = asyncio.get_running_loop()
        self._begin_run()
        task = loop.create_task(self._run(image, config or self.default_config))
        task.add_done_callback(self._on_task_done)
        self._task = task
        return ExtractionHandle(self, task)

    def cancel(self) -> bool:
        """
        Cancels the run in flight.

        Returns:
            True if a run was cancelled, False if nothing was running
        """
        if not self._running or self._stage.is_terminal:
            return False
        logger.info(f"[Orchestrator] Cancel requested during {self._stage.value}")
        self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    def snapshot(self) -> ExtractionProgress:
        return ExtractionProgress(
            stage=self._stage,
            progress=self._progress,
            stage_timings=dict(self._timings),
            error_message=self._error_message,
        )

    @property
    def stage(self) -> ExtractionStage:
        return self._stage

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_result(self) -> Optional[NutritionExtractionResult]:
        return self._result

    # ========================================================================
    # RUN
    # ========================================================================

    def _begin_run(self) -> None:
        if self._running:
            raise ServiceBusyError()
        self._running = True
        self._stage = ExtractionStage.IDLE
        self._progress = 0.0
        self._timings = {}
        self._error_message = None
        self._result = None
        self._token = CancellationToken()

    async def _run(self, image: ImageInput, config: ExtractionConfig) -> NutritionExtractionResult:
        try:
            try:
                result = await asyncio.wait_for(self._pipeline(image, config), timeout=config.pipeline_timeout)
            except asyncio.TimeoutError as e:
                self._token.cancel()
                error = ExtractionTimeoutError("Extraction pipeline", config.pipeline_timeout, component="Orchestrator")
                self._terminate(ExtractionStage.ERROR, error)
                raise error from e
        except asyncio.CancelledError:
            self._token.cancel()
            stage = self._stage.value
            self._terminate(ExtractionStage.CANCELLED)
            raise ExtractionCancelledError(stage) from None
        except ExtractionCancelledError:
            self._terminate(ExtractionStage.CANCELLED)
            raise
        except ImageQualityTooLowError as e:
            self._terminate(ExtractionStage.QUALITY_REJECTED, e)
            raise
        except NutritionExtractionError as e:
            if not self._stage.is_terminal:
                failed = ExtractionStage.OCR_FAILED if self._stage is ExtractionStage.RECOGNIZING_TEXT else ExtractionStage.ERROR
                self._terminate(failed, e)
            raise
        except Exception as e:
            error = NutritionExtractionError("Unexpected failure", component="Orchestrator", original_error=e)
            self._terminate(ExtractionStage.ERROR, error)
            raise error from e
        finally:
            self._running = False

        self._result = result
        return result

    async def _pipeline(self, image: ImageInput, config: ExtractionConfig) -> NutritionExtractionResult:
        started = time.perf_counter()

        # === Stage 1: quality gate ===
        stage_started = self._enter(ExtractionStage.ASSESSING_QUALITY)
        decoded, assessment = await asyncio.to_thread(self._load_and_assess, image, config)
        self._leave(ExtractionStage.ASSESSING_QUALITY, stage_started)

        if assessment.overall_score < config.minimum_quality_score:
            logger.warning(
                f"[Orchestrator] Quality gate rejected image: {assessment.overall_score:.2f} "
                f"< {config.minimum_quality_score:.2f}"
            )
            raise ImageQualityTooLowError(assessment.overall_score, config.minimum_quality_score)
        self._token.raise_if_cancelled(ExtractionStage.ASSESSING_QUALITY.value)

        # === Stage 2: text recognition ===
        stage_started = self._enter(ExtractionStage.RECOGNIZING_TEXT)
        ocr_result = await self.recognition.recognize(decoded, config, self._token)
        self._leave(ExtractionStage.RECOGNIZING_TEXT, stage_started)
        self._token.raise_if_cancelled(ExtractionStage.RECOGNIZING_TEXT.value)

        # === Stage 3: parsing ===
        stage_started = self._enter(ExtractionStage.PARSING_TEXT)
        parsed = await asyncio.to_thread(self.parser.parse, ocr_result, config)
        self._leave(ExtractionStage.PARSING_TEXT, stage_started)
        self._token.raise_if_cancelled(ExtractionStage.PARSING_TEXT.value)

        # === Stage 4: recommendations ===
        stage_started = self._enter(ExtractionStage.GENERATING_RECOMMENDATIONS)
        recommendations = self.recommendation_engine.generate(parsed, assessment, ocr_result)
        success_rating = self.aggregator.success_rating(parsed.confidence.overall_score)
        has_usable_data = self.aggregator.has_usable_data(parsed)
        self._leave(ExtractionStage.GENERATING_RECOMMENDATIONS, stage_started)
        self._token.raise_if_cancelled(ExtractionStage.GENERATING_RECOMMENDATIONS.value)

        result = NutritionExtractionResult(
            ocr_result=ocr_result,
            parsed_nutrition=parsed,
            extraction_metrics=self._metrics(started, assessment, ocr_result, parsed),
            success_rating=success_rating,
            recommendations=recommendations,
            has_usable_data=has_usable_data,
        )

        self._stage = ExtractionStage.COMPLETED
        self._set_progress(1.0)
        logger.info(
            f"[Orchestrator] Completed in {result.extraction_metrics.total_processing_time:.2f}s: "
            f"{parsed.summary} ({success_rating.value}, usable={has_usable_data})"
        )
        return result

    def _load_and_assess(self, image: ImageInput, config: ExtractionConfig):
        # File reads and decoding stay off the event loop
        decoded = load_image(image)
        if not config.enable_quality_analysis:
            return decoded, self.quality_assessor.basic_assessment()
        return decoded, self.quality_assessor.assess(decoded)

    def _metrics(self, started: float, assessment: ImageQualityAssessment, ocr_result, parsed) -> ExtractionMetrics:
        return ExtractionMetrics(
            total_processing_time=time.perf_counter() - started,
            quality_assessment_time=self._timings.get(ExtractionStage.ASSESSING_QUALITY.value, 0.0),
            ocr_processing_time=self._timings.get(ExtractionStage.RECOGNIZING_TEXT.value, 0.0),
            parsing_time=self._timings.get(ExtractionStage.PARSING_TEXT.value, 0.0),
            recommendation_time=self._timings.get(ExtractionStage.GENERATING_RECOMMENDATIONS.value, 0.0),
            image_quality_score=assessment.overall_score,
            text_recognition_confidence=ocr_result.average_confidence,
            nutrition_parsing_accuracy=parsed.confidence.overall_score,
        )

    # ========================================================================
    # STATE
    # ========================================================================

    def _enter(self, stage: ExtractionStage) -> float:
        self._token.raise_if_cancelled(stage.value)
        self._stage = stage
        logger.debug(f"[Orchestrator] -> {stage.value}")
        self._notify()
        return time.perf_counter()

    def _leave(self, stage: ExtractionStage, stage_started: float) -> None:
        self._timings[stage.value] = time.perf_counter() - stage_started
        finished = WORK_STAGES[:WORK_STAGES.index(stage) + 1]
        self._set_progress(sum(settings.STAGE_PROGRESS_WEIGHTS[s.value] for s in finished))

    def _set_progress(self, value: float) -> None:
        # Progress never goes back
        self._progress = max(self._progress, min(1.0, value))
        self._notify()

    def _terminate(self, stage: ExtractionStage, error: Optional[BaseException] = None) -> None:
        self._stage = stage
        self._result = None
        if error is not None:
            self._error_message = str(error)
            logger.error(f"[Orchestrator] {stage.value}: {error}")
        else:
            logger.info(f"[Orchestrator] {stage.value}")
        self._notify()

    def _on_task_done(self, task: asyncio.Task) -> None:
        # A task cancelled before its first step never entered _run
        if task.cancelled() and not self._stage.is_terminal:
            self._terminate(ExtractionStage.CANCELLED)
        self._running = False

    def _notify(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.snapshot())
