"""
Text recognition wrapper.

Runs an external recognition engine with a deadline and cooperative
cancellation, then normalizes its lines into an OCRResult:
  - lines below the minimum text confidence or blank are dropped
  - remaining lines are put in top-to-bottom, left-to-right reading order
  - confidence is passed through unmodified

CONTRACTS:
  Input: np.ndarray + ExtractionConfig + CancellationToken
  Output: OCRResult (contracts/ocr_result_dto.py)
"""

import asyncio
import time
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from config import settings
from contracts.ocr_result_dto import OCRResult, RecognizedTextItem
from ...domain.contracts import ExtractionConfig, RecognitionRequest
from ...domain.exceptions import (
    ExtractionCancelledError,
    ExtractionTimeoutError,
    NoTextFoundError,
    NutritionExtractionError,
    OCRProcessingFailedError,
)
from ...domain.interfaces import ITextRecognizer
from ..cancellation import CancellationToken
from ..pre_ocr.ocr_preprocessor import OCRPreprocessor

STAGE_NAME = "recognizing_text"


def sort_reading_order(
    items: Sequence[RecognizedTextItem],
    tolerance: float = settings.LINE_GROUPING_TOLERANCE,
) -> List[RecognizedTextItem]:
    """
    Orders lines top-to-bottom, then left-to-right within a row.

    Lines whose vertical centre is within `tolerance` of the first line of the
    current row are treated as the same row.
    """
    by_y = sorted(items, key=lambda item: (item.bounding_box.mid_y, item.bounding_box.mid_x))

    rows: List[List[RecognizedTextItem]] = []
    row_anchor = None
    for item in by_y:
        mid_y = item.bounding_box.mid_y
        if row_anchor is None or mid_y - row_anchor > tolerance:
            rows.append([item])
            row_anchor = mid_y
        else:
            rows[-1].append(item)

    ordered: List[RecognizedTextItem] = []
    for row in rows:
        ordered.extend(sorted(row, key=lambda item: item.bounding_box.mid_x))
    return ordered


class TextRecognitionWrapper:
    """
    Imposes timeout and cancellation semantics on an ITextRecognizer.

    The engine call runs in a worker thread so the event loop stays free; the
    engine session is closed on every exit path.
    """

    def __init__(self, recognizer: ITextRecognizer, preprocessor: Optional[OCRPreprocessor] = None):
        self.recognizer = recognizer
        self.preprocessor = preprocessor or OCRPreprocessor()

    async def recognize(
        self,
        image: np.ndarray,
        config: ExtractionConfig,
        token: Optional[CancellationToken] = None,
    ) -> OCRResult:
        """
        Recognizes text on the image.

        Args:
            image: Decoded image
            config: Recognition level, timeouts and confidence threshold
            token: Cancellation signal shared with the engine thread

        Returns:
            OCRResult with lines in reading order

        Raises:
            NoTextFoundError: no line survived filtering
            OCRProcessingFailedError: the engine raised
            ExtractionTimeoutError: recognition_timeout elapsed
            ExtractionCancelledError: the token was cancelled
        """
        token = token or CancellationToken()
        token.raise_if_cancelled(STAGE_NAME)
        started = time.perf_counter()

        engine_image = self.preprocessor.process(image) if config.enable_preprocessing else image

        session = self.recognizer.open_session(RecognitionRequest.from_config(config))
        try:
            raw_items = await self._run_session(session, engine_image, config, token)
        finally:
            session.close()

        token.raise_if_cancelled(STAGE_NAME)

        items = self.normalize(raw_items, config.minimum_text_confidence)
        elapsed = time.perf_counter() - started

        if not items:
            logger.warning(
                f"[TextRecognition] No usable lines ({len(raw_items)} raw, "
                f"min confidence {config.minimum_text_confidence:.2f})"
            )
            raise NoTextFoundError()

        result = OCRResult.from_items(items, processing_time=elapsed)
        logger.info(
            f"[TextRecognition] {len(items)} lines in {elapsed:.2f}s "
            f"(avg confidence {result.average_confidence:.2f})"
        )
        return result

    async def _run_session(self, session, image, config: ExtractionConfig, token: CancellationToken):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(session.recognize, image, token),
                timeout=config.recognition_timeout,
            )
        except asyncio.TimeoutError as e:
            token.cancel()
            logger.warning(f"[TextRecognition] Timed out after {config.recognition_timeout:.1f}s")
            raise ExtractionTimeoutError(
                "Text recognition", config.recognition_timeout, component="TextRecognition"
            ) from e
        except asyncio.CancelledError:
            token.cancel()
            raise
        except (ExtractionCancelledError, NutritionExtractionError):
            raise
        except Exception as e:
            logger.error(f"[TextRecognition] Engine failed: {type(e).__name__}: {e}")
            raise OCRProcessingFailedError(e) from e

    @staticmethod
    def normalize(items: Sequence[RecognizedTextItem], minimum_confidence: float) -> List[RecognizedTextItem]:
        kept = []
        for item in items:
            text = item.text.strip()
            if not text or item.confidence < minimum_confidence:
                logger.trace(f"[TextRecognition] Dropped '{item.text}' ({item.confidence:.2f})")
                continue
            kept.append(item if text == item.text else item.model_copy(update={"text": text}))
        return sort_reading_order(kept)
