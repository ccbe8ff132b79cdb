from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from nutrilabel.domain import RecognitionLevel, RecognitionRequest
from nutrilabel.extraction import CancellationToken, GoogleVisionTextRecognizer
from nutrilabel.extraction.ocr.google_vision_recognizer import BreakType, GoogleVisionSession


# ============================================================================
# FAKE VISION RESPONSE
# ============================================================================

def word(text, last_break, x, y, confidence=0.9, width=40, height=20):
    symbols = [
        SimpleNamespace(text=ch, property=SimpleNamespace(detected_break=SimpleNamespace(type_=BreakType.UNKNOWN)))
        for ch in text
    ]
    symbols[-1] = SimpleNamespace(
        text=text[-1], property=SimpleNamespace(detected_break=SimpleNamespace(type_=last_break))
    )
    vertices = [
        SimpleNamespace(x=x, y=y),
        SimpleNamespace(x=x + width, y=y),
        SimpleNamespace(x=x + width, y=y + height),
        SimpleNamespace(x=x, y=y + height),
    ]
    return SimpleNamespace(symbols=symbols, confidence=confidence, bounding_box=SimpleNamespace(vertices=vertices))


def response(words, width=400, height=200, error=""):
    paragraph = SimpleNamespace(words=words)
    page = SimpleNamespace(width=width, height=height, blocks=[SimpleNamespace(paragraphs=[paragraph])])
    return SimpleNamespace(
        full_text_annotation=SimpleNamespace(pages=[page]),
        error=SimpleNamespace(message=error),
    )


LABEL_WORDS = [
    word("Calories", BreakType.SPACE, 10, 10, confidence=0.98),
    word("250", BreakType.EOL_SURE_SPACE, 60, 10, confidence=0.94),
    word("Total", BreakType.SPACE, 10, 40),
    word("Fat", BreakType.SPACE, 60, 40),
    word("12g", BreakType.LINE_BREAK, 110, 40),
]


# ============================================================================
# RESPONSE PARSING
# ============================================================================

def test_words_are_grouped_into_lines():
    lines = GoogleVisionSession.parse_response(response(LABEL_WORDS), 400, 200)

    assert [line.text for line in lines] == ["Calories 250", "Total Fat 12g"]
    assert lines[0].confidence == pytest.approx(0.96)


def test_line_boxes_are_normalized():
    line = GoogleVisionSession.parse_response(response(LABEL_WORDS), 400, 200)[0]

    assert line.bounding_box.x == pytest.approx(10 / 400)
    assert line.bounding_box.y == pytest.approx(10 / 200)
    assert line.bounding_box.width == pytest.approx(90 / 400)
    assert line.bounding_box.height == pytest.approx(20 / 200)


UNSCORED_WORDS = [
    word("Protein", BreakType.SPACE, 0, 0, confidence=0.0),
    word("5g", BreakType.LINE_BREAK, 50, 0, confidence=0.0),
]


def test_unscored_words_get_default_confidence():
    line = GoogleVisionSession.parse_response(response(UNSCORED_WORDS), 400, 200, scored=False)[0]

    assert line.confidence == pytest.approx(0.85)


def test_document_mode_zero_confidence_is_kept():
    line = GoogleVisionSession.parse_response(response(UNSCORED_WORDS), 400, 200)[0]

    assert line.confidence == 0.0


def test_paragraph_end_flushes_line():
    words = [word("Sodium", BreakType.SPACE, 0, 0), word("470mg", BreakType.UNKNOWN, 50, 0)]
    lines = GoogleVisionSession.parse_response(response(words), 400, 200)

    assert [line.text for line in lines] == ["Sodium 470mg"]


def test_hyphenated_line():
    words = [word("Carbo", BreakType.HYPHEN, 0, 0), word("hydrate", BreakType.LINE_BREAK, 0, 30)]
    lines = GoogleVisionSession.parse_response(response(words), 400, 200)

    assert [line.text for line in lines] == ["Carbo-", "hydrate"]


def test_empty_annotation():
    empty = SimpleNamespace(full_text_annotation=SimpleNamespace(pages=[]), error=SimpleNamespace(message=""))
    assert GoogleVisionSession.parse_response(empty, 400, 200) == []


# ============================================================================
# SESSION
# ============================================================================

@pytest.fixture
def client():
    client = MagicMock()
    client.document_text_detection.return_value = response(LABEL_WORDS)
    client.text_detection.return_value = response(LABEL_WORDS)
    return client


@pytest.fixture
def image():
    return np.full((200, 400), 255, dtype=np.uint8)


def test_accurate_level_uses_document_detection(client, image):
    recognizer = GoogleVisionTextRecognizer(client_factory=lambda: client)
    session = recognizer.open_session(RecognitionRequest(recognition_level=RecognitionLevel.ACCURATE, languages=("en",)))

    lines = session.recognize(image, CancellationToken())

    assert [line.text for line in lines] == ["Calories 250", "Total Fat 12g"]
    client.document_text_detection.assert_called_once()
    client.text_detection.assert_not_called()


def test_fast_level_uses_text_detection(client, image):
    recognizer = GoogleVisionTextRecognizer(client_factory=lambda: client)
    session = recognizer.open_session(RecognitionRequest(recognition_level=RecognitionLevel.FAST))

    session.recognize(image, CancellationToken())

    client.text_detection.assert_called_once()


def test_fast_level_defaults_unscored_lines(client, image):
    client.text_detection.return_value = response(UNSCORED_WORDS)
    session = GoogleVisionTextRecognizer(client_factory=lambda: client).open_session(
        RecognitionRequest(recognition_level=RecognitionLevel.FAST)
    )

    lines = session.recognize(image, CancellationToken())

    assert lines[0].confidence == pytest.approx(0.85)


def test_accurate_level_passes_zero_confidence_through(client, image):
    client.document_text_detection.return_value = response(UNSCORED_WORDS)
    session = GoogleVisionTextRecognizer(client_factory=lambda: client).open_session(RecognitionRequest())

    lines = session.recognize(image, CancellationToken())

    assert lines[0].confidence == 0.0


def test_api_error_raises(client, image):
    client.document_text_detection.return_value = response([], error="quota exceeded")
    session = GoogleVisionTextRecognizer(client_factory=lambda: client).open_session(RecognitionRequest())

    with pytest.raises(RuntimeError, match="quota exceeded"):
        session.recognize(image, CancellationToken())


def test_close_releases_transport_once(client):
    session = GoogleVisionTextRecognizer(client_factory=lambda: client).open_session(RecognitionRequest())

    session.close()
    session.close()

    client.transport.close.assert_called_once()


def test_missing_credentials_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        GoogleVisionTextRecognizer(credentials_path=str(tmp_path / "missing.json"))
