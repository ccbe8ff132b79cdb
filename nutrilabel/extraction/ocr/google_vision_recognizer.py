"""
OCR: Google Cloud Vision integration.

Recognition engine behind the TextRecognitionWrapper:
  - fast      -> TEXT_DETECTION
  - accurate  -> DOCUMENT_TEXT_DETECTION
Words are grouped into lines using Vision's detected breaks; line boxes are
normalized by the page size and line confidence is the mean word confidence.

CONTRACTS:
  Input: np.ndarray (encoded to PNG for the API) + RecognitionRequest
  Output: List[RecognizedTextItem] in engine order
"""

import os
from pathlib import Path
from typing import Any, Callable, List, Optional

import numpy as np
from google.cloud import vision
from loguru import logger

from config import settings
from contracts.ocr_result_dto import BoundingBox, RecognizedTextItem
from ...domain.contracts import RecognitionLevel, RecognitionRequest
from ...domain.interfaces import IRecognitionSession, ITextRecognizer
from ..cancellation import CancellationToken
from ..pre_ocr.image_loader import encode_png

BreakType = vision.TextAnnotation.DetectedBreak.BreakType

# Breaks that end a recognized line
LINE_ENDING_BREAKS = (BreakType.EOL_SURE_SPACE, BreakType.LINE_BREAK, BreakType.HYPHEN)
SPACE_BREAKS = (BreakType.SPACE, BreakType.SURE_SPACE)


class GoogleVisionTextRecognizer(ITextRecognizer):
    """
    Google Cloud Vision engine.

    Each session creates its own ImageAnnotatorClient and closes its transport
    when the session is closed.
    """

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            credentials_path: Service account JSON key. Defaults to settings.
            client_factory: Builds the Vision client (injected in tests).
        """
        if client_factory is None:
            creds_path = credentials_path or settings.GOOGLE_APPLICATION_CREDENTIALS
            if not creds_path:
                raise ValueError(
                    "Google credentials are not set!\n"
                    "Point config/settings.py or the constructor at the JSON key."
                )
            if not Path(creds_path).exists():
                raise FileNotFoundError(f"Credentials file not found: {creds_path}")
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = str(creds_path)
            client_factory = vision.ImageAnnotatorClient

        self.client_factory = client_factory
        logger.info("[GoogleVision] Recognizer initialized")

    def open_session(self, request: RecognitionRequest) -> "GoogleVisionSession":
        if request.custom_vocabulary:
            # Vision has no custom-word API; language hints are the only steering it accepts
            logger.warning(
                f"[GoogleVision] custom_vocabulary ({len(request.custom_vocabulary)} words) "
                "is not supported and is ignored"
            )
        return GoogleVisionSession(self.client_factory(), request)


class GoogleVisionSession(IRecognitionSession):

    def __init__(self, client: Any, request: RecognitionRequest):
        self.client = client
        self.request = request
        self._closed = False

    def recognize(self, image: np.ndarray, token: CancellationToken) -> List[RecognizedTextItem]:
        token.raise_if_cancelled("recognizing_text")

        height, width = image.shape[:2]
        api_image = vision.Image(content=encode_png(image))
        image_context = vision.ImageContext(language_hints=list(self.request.languages))

        if self.request.recognition_level is RecognitionLevel.FAST:
            response = self.client.text_detection(image=api_image, image_context=image_context)
        else:
            response = self.client.document_text_detection(image=api_image, image_context=image_context)

        token.raise_if_cancelled("recognizing_text")

        if response.error.message:
            raise RuntimeError(f"Google Vision API error: {response.error.message}")

        scored = self.request.recognition_level is not RecognitionLevel.FAST
        lines = self.parse_response(response, width, height, scored=scored)
        logger.debug(f"[GoogleVision] {len(lines)} lines ({self.request.recognition_level.value})")
        return lines

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        transport = getattr(self.client, "transport", None)
        if transport is not None:
            transport.close()
        logger.debug("[GoogleVision] Session closed")

    # ========================================================================
    # RESPONSE PARSING
    # ========================================================================

    @classmethod
    def parse_response(
        cls, response: Any, image_width: int, image_height: int, scored: bool = True
    ) -> List[RecognizedTextItem]:
        """
        Groups Vision words into lines.

        Args:
            scored: Word confidences are real (document mode). When False, lines
                without any word score get UNSCORED_LINE_CONFIDENCE
        """
        annotation = response.full_text_annotation
        if not annotation or not annotation.pages:
            return []

        lines: List[RecognizedTextItem] = []
        for page in annotation.pages:
            page_w = page.width or image_width or 1
            page_h = page.height or image_height or 1

            for block in page.blocks:
                for paragraph in block.paragraphs:
                    builder = _LineBuilder(page_w, page_h, scored)
                    for word in paragraph.words:
                        line = builder.add_word(word)
                        if line is not None:
                            lines.append(line)
                    line = builder.flush()
                    if line is not None:
                        lines.append(line)
        return lines


class _LineBuilder:
    """Accumulates words of one paragraph until a line-ending break."""

    def __init__(self, page_width: int, page_height: int, scored: bool = True):
        self.page_width = page_width
        self.page_height = page_height
        self.scored = scored
        self._reset()

    def _reset(self):
        self.text = ""
        self.confidences: List[float] = []
        self.xs: List[float] = []
        self.ys: List[float] = []

    def add_word(self, word: Any) -> Optional[RecognizedTextItem]:
        word_text = "".join(symbol.text for symbol in word.symbols)
        if not word.symbols:
            return None

        self.text += word_text
        self.confidences.append(max(0.0, min(1.0, word.confidence)))
        for vertex in word.bounding_box.vertices:
            self.xs.append(vertex.x)
            self.ys.append(vertex.y)

        last_break = word.symbols[-1].property.detected_break.type_
        if last_break in SPACE_BREAKS:
            self.text += " "
        elif last_break == BreakType.HYPHEN:
            self.text += "-"
        if last_break in LINE_ENDING_BREAKS:
            return self.flush()
        return None

    def flush(self) -> Optional[RecognizedTextItem]:
        text = self.text.strip()
        if not text:
            self._reset()
            return None

        confidence = sum(self.confidences) / len(self.confidences)
        if not self.scored and confidence == 0.0:
            # TEXT_DETECTION leaves word confidence unset
            confidence = settings.UNSCORED_LINE_CONFIDENCE

        bbox = BoundingBox()
        if self.xs and self.ys:
            bbox = BoundingBox.from_corners(
                min(self.xs) / self.page_width,
                min(self.ys) / self.page_height,
                max(self.xs) / self.page_width,
                max(self.ys) / self.page_height,
            )

        item = RecognizedTextItem(text=text, confidence=confidence, bounding_box=bbox)
        self._reset()
        return item
