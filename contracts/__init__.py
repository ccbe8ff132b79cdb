"""
DTO contracts between Nutrilabel components.

All contracts use Pydantic v2 for validation.

Contracts:
- Extraction -> Parsing: OCRResult (ocr_result_dto.py)
- Parsing -> Scoring: ParsedNutritionData (nutrition_dto.py)
- Orchestrator -> Caller: NutritionExtractionResult (extraction_result_dto.py)
"""

# Extraction -> Parsing
from .ocr_result_dto import BoundingBox, RecognizedTextItem, OCRResult

# Parsing -> Scoring
from .nutrition_dto import (
    NutrientCategory,
    NutrientKind,
    NutrientValue,
    ServingInfo,
    NutritionMatch,
    ConfidenceScore,
    ParsedNutritionData,
    MACRONUTRIENT_KINDS,
    MICRONUTRIENT_KINDS,
    CORE_MACRONUTRIENTS,
)

# Orchestrator -> Caller
from .extraction_result_dto import (
    SuccessRating,
    ExtractionEfficiency,
    RecommendationPriority,
    RecommendationType,
    ExtractionRecommendation,
    ExtractionMetrics,
    NutritionExtractionResult,
)

__all__ = [
    # Extraction -> Parsing
    "BoundingBox",
    "RecognizedTextItem",
    "OCRResult",
    # Parsing -> Scoring
    "NutrientCategory",
    "NutrientKind",
    "NutrientValue",
    "ServingInfo",
    "NutritionMatch",
    "ConfidenceScore",
    "ParsedNutritionData",
    "MACRONUTRIENT_KINDS",
    "MICRONUTRIENT_KINDS",
    "CORE_MACRONUTRIENTS",
    # Orchestrator -> Caller
    "SuccessRating",
    "ExtractionEfficiency",
    "RecommendationPriority",
    "RecommendationType",
    "ExtractionRecommendation",
    "ExtractionMetrics",
    "NutritionExtractionResult",
]
