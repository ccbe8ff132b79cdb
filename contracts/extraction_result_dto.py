"""
DTO contract: Orchestrator -> Caller

Terminal artifact of one extraction run, serializable to JSON.
Optional fields are omitted from the serialized form rather than written as null.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .nutrition_dto import ParsedNutritionData
from .ocr_result_dto import OCRResult


class SuccessRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @property
    def description(self) -> str:
        return f"{self.value.capitalize()} extraction quality"


class ExtractionEfficiency(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


class RecommendationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key, high first."""
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class RecommendationType(str, Enum):
    RETAKE_PHOTO = "retake_photo"
    IMPROVE_LIGHTING = "improve_lighting"
    MISSING_FIELD = "missing_field"
    VERIFY_FIELD = "verify_field"
    MANUAL_ENTRY = "manual_entry"


class ExtractionRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: RecommendationType
    message: str
    priority: RecommendationPriority
    field: Optional[str] = Field(None, description="Nutrient kind or 'serving' the advice is about")


class ExtractionMetrics(BaseModel):
    """Per-stage timings (seconds) and quality figures of one run."""

    model_config = ConfigDict(frozen=True)

    total_processing_time: float = Field(..., ge=0.0)
    quality_assessment_time: float = Field(0.0, ge=0.0)
    ocr_processing_time: float = Field(0.0, ge=0.0)
    parsing_time: float = Field(0.0, ge=0.0)
    recommendation_time: float = Field(0.0, ge=0.0)
    image_quality_score: float = Field(0.0, ge=0.0, le=1.0)
    text_recognition_confidence: float = Field(0.0, ge=0.0, le=1.0)
    nutrition_parsing_accuracy: float = Field(0.0, ge=0.0, le=1.0)

    @property
    def efficiency(self) -> ExtractionEfficiency:
        if self.total_processing_time < 3.0 and self.nutrition_parsing_accuracy > 0.8:
            return ExtractionEfficiency.EXCELLENT
        if self.total_processing_time < 5.0 and self.nutrition_parsing_accuracy > 0.6:
            return ExtractionEfficiency.GOOD
        if self.total_processing_time < 8.0 and self.nutrition_parsing_accuracy > 0.4:
            return ExtractionEfficiency.ACCEPTABLE
        return ExtractionEfficiency.POOR

    @property
    def summary(self) -> str:
        return (
            f"Processing Time: {self.total_processing_time:.2f}s\n"
            f"Text Confidence: {self.text_recognition_confidence * 100:.1f}%\n"
            f"Image Quality: {self.image_quality_score * 100:.1f}%\n"
            f"Parsing Accuracy: {self.nutrition_parsing_accuracy * 100:.1f}%\n"
            f"Efficiency: {self.efficiency.value}"
        )


class NutritionExtractionResult(BaseModel):
    """
    Result of a completed extraction run.

    Example:
        result = await orchestrator.extract(image)
        if result.has_usable_data:
            save(result.parsed_nutrition)
        payload = result.to_json()
    """

    model_config = ConfigDict(frozen=True)

    ocr_result: OCRResult
    parsed_nutrition: ParsedNutritionData
    extraction_metrics: ExtractionMetrics
    success_rating: SuccessRating
    recommendations: List[ExtractionRecommendation] = Field(default_factory=list)
    has_usable_data: bool = False

    @property
    def high_priority_recommendations(self) -> List[ExtractionRecommendation]:
        return [r for r in self.recommendations if r.priority is RecommendationPriority.HIGH]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(indent=indent, exclude_none=True)

    @classmethod
    def from_json(cls, payload: str) -> "NutritionExtractionResult":
        return cls.model_validate_json(payload)
