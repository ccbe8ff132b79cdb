"""
Rule-based recommendations for missing or low-confidence data.

Rules are evaluated in declaration order, each with a fixed priority. Output is
sorted by priority (high first) and keeps declaration order within a priority.
"""

from typing import Callable, List, Optional

from loguru import logger

from config import settings
from contracts.extraction_result_dto import (
    ExtractionRecommendation,
    RecommendationPriority,
    RecommendationType,
)
from contracts.nutrition_dto import CORE_MACRONUTRIENTS, MACRONUTRIENT_KINDS, NutrientKind, ParsedNutritionData
from contracts.ocr_result_dto import OCRResult
from ..domain.contracts import ImageQualityAssessment, QualityRecommendation

HIGH = RecommendationPriority.HIGH
MEDIUM = RecommendationPriority.MEDIUM
LOW = RecommendationPriority.LOW


class RecommendationEngine:
    """Stateless: the same inputs always give the same recommendations."""

    def __init__(self):
        self._rules: List[Callable[..., List[ExtractionRecommendation]]] = [
            self._poor_image_quality,
            self._missing_calories,
            self._manual_entry,
            self._missing_core_macronutrients,
            self._low_confidence_fields,
            self._low_confidence_serving,
            self._low_text_confidence,
            self._missing_serving,
            self._no_micronutrients,
        ]

    def generate(
        self,
        parsed: ParsedNutritionData,
        assessment: ImageQualityAssessment,
        ocr_result: Optional[OCRResult] = None,
    ) -> List[ExtractionRecommendation]:
        recommendations: List[ExtractionRecommendation] = []
        for rule in self._rules:
            recommendations.extend(rule(parsed, assessment, ocr_result))

        # sorted() is stable: declaration order survives within a priority
        recommendations = sorted(recommendations, key=lambda r: r.priority.rank)
        logger.debug(
            f"[Recommendations] {len(recommendations)} generated "
            f"({sum(1 for r in recommendations if r.priority is HIGH)} high)"
        )
        return recommendations

    @staticmethod
    def high_priority(recommendations: List[ExtractionRecommendation]) -> List[ExtractionRecommendation]:
        return [r for r in recommendations if r.priority is HIGH]

    # ========================================================================
    # RULES
    # ========================================================================

    def _poor_image_quality(self, parsed, assessment, ocr_result):
        if assessment.recommendation not in (QualityRecommendation.POOR, QualityRecommendation.UNUSABLE):
            return []
        failed = ", ".join(c.check_type.value for c in assessment.failed_checks)
        message = "Image quality is poor. Retake the photo in good light with the label flat and in focus"
        if failed:
            message += f" (failed: {failed})"
        return [ExtractionRecommendation(
            type=RecommendationType.RETAKE_PHOTO, message=message, priority=HIGH,
        )]

    def _missing_calories(self, parsed, assessment, ocr_result):
        if parsed.calories is not None:
            return []
        return [ExtractionRecommendation(
            type=RecommendationType.MISSING_FIELD,
            message="Calories were not found. Make sure the calories line is visible or enter it manually",
            priority=HIGH,
            field=NutrientKind.CALORIES.value,
        )]

    def _manual_entry(self, parsed, assessment, ocr_result):
        if parsed.has_basic_nutrition or parsed.confidence.overall_score >= settings.MANUAL_ENTRY_THRESHOLD:
            return []
        return [ExtractionRecommendation(
            type=RecommendationType.MANUAL_ENTRY,
            message="No usable nutrition information was recognized. Enter the values manually",
            priority=HIGH,
        )]

    def _missing_core_macronutrients(self, parsed, assessment, ocr_result):
        return [
            ExtractionRecommendation(
                type=RecommendationType.MISSING_FIELD,
                message=f"{kind.label.capitalize()} was not found. Check the label and add it manually",
                priority=MEDIUM,
                field=kind.value,
            )
            for kind in CORE_MACRONUTRIENTS
            if parsed.macronutrients.get(kind) is None
        ]

    def _low_confidence_fields(self, parsed, assessment, ocr_result):
        recommendations = []
        for kind in (NutrientKind.CALORIES,) + MACRONUTRIENT_KINDS:
            value = parsed.get(kind)
            if value is not None and value.confidence < settings.LOW_FIELD_CONFIDENCE:
                recommendations.append(ExtractionRecommendation(
                    type=RecommendationType.VERIFY_FIELD,
                    message=f"Verify {kind.label}: read as {value.display_text} with low confidence",
                    priority=MEDIUM,
                    field=kind.value,
                ))
        return recommendations

    def _low_confidence_serving(self, parsed, assessment, ocr_result):
        serving = parsed.serving_info
        if serving is None or serving.confidence >= settings.LOW_FIELD_CONFIDENCE:
            return []
        return [ExtractionRecommendation(
            type=RecommendationType.VERIFY_FIELD,
            message=f"Verify serving size: read as {serving.display_text} with low confidence",
            priority=MEDIUM,
            field="serving",
        )]

    def _low_text_confidence(self, parsed, assessment, ocr_result):
        if ocr_result is None or not ocr_result.has_text:
            return []
        if ocr_result.average_confidence >= settings.LOW_OCR_CONFIDENCE:
            return []
        return [ExtractionRecommendation(
            type=RecommendationType.IMPROVE_LIGHTING,
            message="Text was hard to read. Improve lighting and avoid glare on the packaging",
            priority=MEDIUM,
        )]

    def _missing_serving(self, parsed, assessment, ocr_result):
        if parsed.serving_info is not None:
            return []
        return [ExtractionRecommendation(
            type=RecommendationType.MISSING_FIELD,
            message="Serving size was not found. Add it so the values can be scaled",
            priority=LOW,
            field="serving",
        )]

    def _no_micronutrients(self, parsed, assessment, ocr_result):
        if parsed.micronutrients:
            return []
        return [ExtractionRecommendation(
            type=RecommendationType.MISSING_FIELD,
            message="No vitamins or minerals were detected. Include the lower part of the label if it lists them",
            priority=LOW,
            field="micronutrients",
        )]
