"""
Quality gate: scores an image for OCR readiness before recognition.

CONTRACTS:
  Input: np.ndarray (BGR / BGRA / grayscale, uint8)
  Output: ImageQualityAssessment (all scores validated to [0, 1])

Checks (each score in [0, 1], passed = score >= check threshold):
  - resolution: pixel count against IDEAL_PIXELS
  - brightness: mean luma inside the [BRIGHTNESS_MIN, BRIGHTNESS_MAX] band
  - contrast: luma standard deviation
  - sharpness: Laplacian variance
"""

from typing import List

import numpy as np
from pydantic import ValidationError
from loguru import logger

from config import settings
from ...domain.contracts import (
    CheckType,
    ContractValidationError,
    ImageQualityAssessment,
    QualityCheck,
    QualityRecommendation,
)
from ...domain.interfaces import IImageQualityAssessor
from .filters import calculate_brightness, calculate_contrast, calculate_sharpness


def _clamp01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


class ImageQualityAssessor(IImageQualityAssessor):
    """
    Pure function of the image: no state, no side effects.

    Example:
        assessment = ImageQualityAssessor().assess(image)
        if assessment.overall_score < config.minimum_quality_score:
            ...
    """

    def __init__(self, weights: dict = None):
        self.weights = weights or settings.QUALITY_WEIGHTS
        logger.debug(f"[QualityAssessor] Initialized (weights={self.weights})")

    def assess(self, image: np.ndarray) -> ImageQualityAssessment:
        """
        Runs every check and combines them.

        Raises:
            ContractValidationError: if a measurement produced an invalid value (NaN)
        """
        checks = [
            self._check_resolution(image),
            self._check_brightness(image),
            self._check_contrast(image),
            self._check_sharpness(image),
        ]
        overall = self._weighted_score(checks)

        try:
            assessment = ImageQualityAssessment(
                overall_score=overall,
                checks=checks,
                recommendation=self.bucket(overall),
                estimated_ocr_success=self.estimate_ocr_success(overall),
            )
        except ValidationError as e:
            raise ContractValidationError("QualityAssessor", "ImageQualityAssessment", e.errors())

        logger.debug(
            f"[QualityAssessor] overall={overall:.2f} ({assessment.recommendation.value}), "
            + ", ".join(f"{c.check_type.value}={c.score:.2f}" for c in checks)
        )
        return assessment

    def basic_assessment(self) -> ImageQualityAssessment:
        score = settings.BASIC_ASSESSMENT_SCORE
        return ImageQualityAssessment(
            overall_score=score,
            checks=[],
            recommendation=self.bucket(score),
            estimated_ocr_success=self.estimate_ocr_success(score),
        )

    # ========================================================================
    # SCORING
    # ========================================================================

    def _weighted_score(self, checks: List[QualityCheck]) -> float:
        total_weight = 0.0
        weighted = 0.0
        for check in checks:
            weight = self.weights[check.check_type.value]
            weighted += weight * check.score
            total_weight += weight
        if total_weight == 0:
            return 0.0
        return _clamp01(weighted / total_weight)

    @staticmethod
    def bucket(score: float) -> QualityRecommendation:
        for name, threshold in settings.QUALITY_BUCKETS:
            if score >= threshold:
                return QualityRecommendation(name)
        return QualityRecommendation.UNUSABLE

    @staticmethod
    def estimate_ocr_success(score: float) -> float:
        return _clamp01(settings.OCR_SUCCESS_FLOOR + settings.OCR_SUCCESS_SPAN * score)

    # ========================================================================
    # CHECKS
    # ========================================================================

    def _check_resolution(self, image: np.ndarray) -> QualityCheck:
        h, w = image.shape[:2]
        score = _clamp01((h * w) / settings.IDEAL_PIXELS)
        threshold = settings.MIN_PIXELS / settings.IDEAL_PIXELS
        return QualityCheck(
            check_type=CheckType.RESOLUTION,
            score=score,
            passed=score >= threshold,
            details=f"{w}x{h}",
        )

    def _check_brightness(self, image: np.ndarray) -> QualityCheck:
        luma = calculate_brightness(image)
        if luma < settings.BRIGHTNESS_MIN:
            score = luma / settings.BRIGHTNESS_MIN
            details = f"too dark (mean luma {luma:.0f})"
        elif luma > settings.BRIGHTNESS_MAX:
            score = (255.0 - luma) / (255.0 - settings.BRIGHTNESS_MAX)
            details = f"too bright (mean luma {luma:.0f})"
        else:
            score = 1.0
            details = f"mean luma {luma:.0f}"
        score = _clamp01(score)
        return QualityCheck(
            check_type=CheckType.BRIGHTNESS,
            score=score,
            passed=score >= settings.BRIGHTNESS_PASS_SCORE,
            details=details,
        )

    def _check_contrast(self, image: np.ndarray) -> QualityCheck:
        std = calculate_contrast(image)
        score = _clamp01(std / settings.CONTRAST_TARGET)
        return QualityCheck(
            check_type=CheckType.CONTRAST,
            score=score,
            passed=score >= settings.CONTRAST_MIN / settings.CONTRAST_TARGET,
            details=f"luma std {std:.1f}",
        )

    def _check_sharpness(self, image: np.ndarray) -> QualityCheck:
        variance = calculate_sharpness(image)
        score = _clamp01(variance / settings.SHARPNESS_TARGET)
        return QualityCheck(
            check_type=CheckType.SHARPNESS,
            score=score,
            passed=score >= settings.SHARPNESS_MIN / settings.SHARPNESS_TARGET,
            details=f"laplacian variance {variance:.0f}",
        )
