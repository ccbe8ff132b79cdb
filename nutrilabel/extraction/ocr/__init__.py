"""
OCR: recognition engines and the wrapper that imposes deadlines and cancellation.
"""

from .text_recognition import TextRecognitionWrapper, sort_reading_order
from .google_vision_recognizer import GoogleVisionTextRecognizer
from .static_recognizer import PrerecognizedTextRecognizer

__all__ = [
    "TextRecognitionWrapper",
    "sort_reading_order",
    "GoogleVisionTextRecognizer",
    "PrerecognizedTextRecognizer",
]
