"""
Extraction: image loading, quality gate, preprocessing and text recognition.

Boundary: contracts.OCRResult
"""

from .cancellation import CancellationToken
from .pre_ocr import ImageQualityAssessor, OCRPreprocessor, load_image
from .ocr import TextRecognitionWrapper, GoogleVisionTextRecognizer, PrerecognizedTextRecognizer

__all__ = [
    "CancellationToken",
    "ImageQualityAssessor",
    "OCRPreprocessor",
    "load_image",
    "TextRecognitionWrapper",
    "GoogleVisionTextRecognizer",
    "PrerecognizedTextRecognizer",
]
