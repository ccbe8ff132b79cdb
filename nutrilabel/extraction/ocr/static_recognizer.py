"""
Recognition engine over text that was already recognized.

Used to re-run parsing on saved OCR output (the CLI `--text` mode) and as a
deterministic engine in tests. Lines get evenly spaced boxes in input order.
"""

from typing import List, Sequence, Tuple, Union

import numpy as np

from contracts.ocr_result_dto import BoundingBox, RecognizedTextItem
from ...domain.contracts import RecognitionRequest
from ...domain.interfaces import IRecognitionSession, ITextRecognizer
from ..cancellation import CancellationToken

LineSpec = Union[str, Tuple[str, float], RecognizedTextItem]


class PrerecognizedTextRecognizer(ITextRecognizer):
    """
    Returns fixed lines regardless of the image.

    Args:
        lines: Plain strings, (text, confidence) pairs or ready RecognizedTextItem objects
        default_confidence: Confidence for plain strings
    """

    def __init__(self, lines: Sequence[LineSpec], default_confidence: float = 1.0):
        self.items = self._to_items(lines, default_confidence)
        self.sessions_opened = 0
        self.sessions_closed = 0

    @classmethod
    def from_text(cls, text: str, default_confidence: float = 1.0) -> "PrerecognizedTextRecognizer":
        return cls(text.splitlines(), default_confidence)

    def open_session(self, request: RecognitionRequest) -> IRecognitionSession:
        self.sessions_opened += 1
        return _PrerecognizedSession(self)

    @staticmethod
    def _to_items(lines: Sequence[LineSpec], default_confidence: float) -> List[RecognizedTextItem]:
        count = max(1, len(lines))
        step = 1.0 / count
        items = []
        for index, line in enumerate(lines):
            if isinstance(line, RecognizedTextItem):
                items.append(line)
                continue
            if isinstance(line, tuple):
                text, confidence = line
            else:
                text, confidence = line, default_confidence
            box = BoundingBox(x=0.05, y=index * step, width=0.9, height=step * 0.8)
            items.append(RecognizedTextItem(text=text, confidence=confidence, bounding_box=box))
        return items


class _PrerecognizedSession(IRecognitionSession):

    def __init__(self, owner: PrerecognizedTextRecognizer):
        self.owner = owner
        self._closed = False

    def recognize(self, image: np.ndarray, token: CancellationToken) -> List[RecognizedTextItem]:
        token.raise_if_cancelled("recognizing_text")
        return list(self.owner.items)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.owner.sessions_closed += 1
