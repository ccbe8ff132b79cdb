"""
Pre-OCR: image loading, quality gate and preprocessing before recognition.
"""

from .image_loader import load_image, encode_png, ImageInput
from .quality_assessor import ImageQualityAssessor
from .ocr_preprocessor import OCRPreprocessor

__all__ = [
    "load_image",
    "encode_png",
    "ImageInput",
    "ImageQualityAssessor",
    "OCRPreprocessor",
]
