import time
from typing import List

import numpy as np
import pytest

from contracts.ocr_result_dto import OCRResult, RecognizedTextItem
from nutrilabel.domain import (
    ExtractionCancelledError,
    ExtractionConfig,
    IRecognitionSession,
    ITextRecognizer,
    NutrientRuleSet,
    RecognitionRequest,
)
from nutrilabel.extraction.pre_ocr.quality_assessor import ImageQualityAssessor
from nutrilabel.parsing import NutritionTextParser


SCENARIO_A = ["Calories 250", "Total Fat 12g", "Protein 5g", "Sodium 470mg"]


# ============================================================================
# IMAGES
# ============================================================================

@pytest.fixture
def label_image():
    """800x1000 vertical black/white stripes: full marks on every quality check."""
    row = ((np.arange(1000) // 4) % 2 * 255).astype(np.uint8)
    return np.tile(row, (800, 1))


@pytest.fixture
def dark_image():
    """Tiny black image: fails every quality check."""
    return np.zeros((10, 10), dtype=np.uint8)


# ============================================================================
# PARSING
# ============================================================================

@pytest.fixture
def rules():
    return NutrientRuleSet.load()


@pytest.fixture
def parser(rules):
    return NutritionTextParser(rules=rules)


@pytest.fixture
def config():
    return ExtractionConfig.default()


def ocr(lines, confidence: float = 1.0) -> OCRResult:
    """OCRResult from plain lines sharing one confidence."""
    return OCRResult.from_lines(lines, confidence=confidence)


# ============================================================================
# FAKE ENGINES
# ============================================================================

class _FakeSession(IRecognitionSession):

    def __init__(self, owner: "FakeRecognizer"):
        self.owner = owner
        self.closed = False

    def recognize(self, image, token) -> List[RecognizedTextItem]:
        return self.owner.run(image, token)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.owner.sessions_closed += 1


class FakeRecognizer(ITextRecognizer):
    """Base engine double that counts sessions and records the last request."""

    def __init__(self, lines=None, confidence: float = 0.95):
        self.items = [RecognizedTextItem(text=text, confidence=confidence) for text in (lines or [])]
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.last_request = None
        self.last_image = None

    def open_session(self, request: RecognitionRequest) -> IRecognitionSession:
        self.sessions_opened += 1
        self.last_request = request
        return _FakeSession(self)

    def run(self, image, token) -> List[RecognizedTextItem]:
        self.last_image = image
        return list(self.items)


class SlowRecognizer(FakeRecognizer):
    """Blocks until `delay` elapses or the token is cancelled."""

    def __init__(self, delay: float, lines=None):
        super().__init__(lines or SCENARIO_A)
        self.delay = delay
        self.was_cancelled = False

    def run(self, image, token):
        if token.wait(self.delay):
            self.was_cancelled = True
            raise ExtractionCancelledError("recognizing_text")
        return super().run(image, token)


class FailingRecognizer(FakeRecognizer):

    def run(self, image, token):
        raise RuntimeError("engine unavailable")


class SleepingAssessor:
    """Quality assessor that ignores cancellation, for pipeline timeouts."""

    def __init__(self, delay: float):
        self.delay = delay

    def assess(self, image):
        time.sleep(self.delay)
        return self.basic_assessment()

    def basic_assessment(self):
        return ImageQualityAssessor().basic_assessment()
