"""
Confidence aggregation.

overall = (sum of weight * field confidence / sum of weights over found fields)
          * min(1, sqrt(found / MIN_EXPECTED_FIELDS))

Weights come from the rule table (calories 1.0, protein/carbohydrates/fat 0.8,
other macronutrients 0.4, micronutrients 0.2). Sparse extractions are scaled
down; nothing found scores 0. The serving score is the ServingInfo confidence
alone. The format score is informational and does not enter `overall`.
"""

import math
from typing import List, Optional

from loguru import logger

from config import settings
from contracts.extraction_result_dto import SuccessRating
from contracts.nutrition_dto import ConfidenceScore, NutrientValue, ParsedNutritionData
from ..domain.nutrient_rules import NutrientRuleSet


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


class ConfidenceAggregator:

    def __init__(self, rules: Optional[NutrientRuleSet] = None):
        self.rules = rules or NutrientRuleSet.load()

    def score(self, parsed: ParsedNutritionData, full_text: str = "") -> ConfidenceScore:
        """
        Computes every score of a parse result.

        Args:
            parsed: Parser output (its own confidence is ignored)
            full_text: Recognized text, used for the format score

        Returns:
            ConfidenceScore with all values in [0, 1]
        """
        values = list(parsed.all_values())
        found = len(values)

        overall = 0.0
        if found:
            total_weight = sum(self.rules.weight(kind) for kind, _ in values)
            weighted = sum(self.rules.weight(kind) * value.confidence for kind, value in values)
            coverage = min(1.0, math.sqrt(found / settings.MIN_EXPECTED_FIELDS))
            overall = _clamp01(weighted / total_weight * coverage)

        score = ConfidenceScore(
            overall_score=overall,
            serving_info_score=parsed.serving_info.confidence if parsed.serving_info else 0.0,
            calories_score=parsed.calories.confidence if parsed.calories else 0.0,
            macronutrients_score=_mean(self._confidences(parsed.macronutrients.values())),
            micronutrients_score=_mean(self._confidences(parsed.micronutrients.values())),
            format_recognition_score=self.format_score(full_text),
            found_fields=found,
        )
        logger.debug(
            f"[Confidence] overall={score.overall_score:.2f} ({found} fields), "
            f"serving={score.serving_info_score:.2f}, format={score.format_recognition_score:.2f}"
        )
        return score

    @staticmethod
    def _confidences(values) -> List[float]:
        return [value.confidence for value in values if isinstance(value, NutrientValue)]

    @staticmethod
    def format_score(full_text: str) -> float:
        text = " ".join(full_text.casefold().split())
        if not text:
            return 0.0
        if "nutrition facts" in text or "nutrition information" in text:
            return settings.FORMAT_HEADER_SCORE
        return settings.FORMAT_DEFAULT_SCORE

    @staticmethod
    def success_rating(overall_score: float) -> SuccessRating:
        for name, threshold in settings.SUCCESS_RATING_THRESHOLDS:
            if overall_score >= threshold:
                return SuccessRating(name)
        return SuccessRating.POOR

    @staticmethod
    def has_usable_data(parsed: ParsedNutritionData) -> bool:
        """Basic nutrition present and overall score at or above the usability threshold."""
        return parsed.has_basic_nutrition and parsed.confidence.overall_score >= settings.USABILITY_THRESHOLD
