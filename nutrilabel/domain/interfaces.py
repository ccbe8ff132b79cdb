"""
Interfaces (abstract classes) for the extraction pipeline.

Every collaborator the orchestrator depends on is injected through one of
these, so each can be replaced by a deterministic test double.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, TYPE_CHECKING

import numpy as np

from contracts.nutrition_dto import ParsedNutritionData
from contracts.ocr_result_dto import OCRResult, RecognizedTextItem
from .contracts import ExtractionConfig, ImageQualityAssessment, RecognitionRequest

if TYPE_CHECKING:
    from ..extraction.cancellation import CancellationToken


class IRecognitionSession(ABC):
    """
    One recognition call on an engine.

    Sessions own engine resources (clients, transports) and are always closed
    by the wrapper, whether recognition succeeded, failed or was cancelled.
    """

    @abstractmethod
    def recognize(self, image: np.ndarray, token: "CancellationToken") -> List[RecognizedTextItem]:
        """
        Recognizes text lines on the image.

        Runs in a worker thread. Implementations should check `token` around
        blocking work and stop early once it is cancelled.

        Args:
            image: Decoded image (BGR or grayscale uint8)
            token: Cancellation signal shared with the pipeline

        Returns:
            Lines in engine order with normalized bounding boxes
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Releases engine resources. Must be safe to call more than once."""
        pass


class ITextRecognizer(ABC):
    """External text recognition capability."""

    @abstractmethod
    def open_session(self, request: RecognitionRequest) -> IRecognitionSession:
        pass


class IImageQualityAssessor(ABC):
    """Scores an image for OCR readiness. Pure function of the image."""

    @abstractmethod
    def assess(self, image: np.ndarray) -> ImageQualityAssessment:
        pass

    @abstractmethod
    def basic_assessment(self) -> ImageQualityAssessment:
        """Assessment used when quality analysis is disabled."""
        pass


class INutritionTextParser(ABC):
    """Turns recognized text into structured nutrient data. Never raises on content."""

    @abstractmethod
    def parse(self, ocr_result: OCRResult, config: Optional[ExtractionConfig] = None) -> ParsedNutritionData:
        pass
