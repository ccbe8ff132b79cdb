"""
Domain layer: configuration contract, quality contracts, exceptions and interfaces.
"""

from .contracts import (
    RecognitionLevel,
    ExtractionConfig,
    RecognitionRequest,
    CheckType,
    QualityCheck,
    QualityRecommendation,
    ImageQualityAssessment,
    ContractValidationError,
)
from .exceptions import (
    NutritionExtractionError,
    ImageQualityTooLowError,
    InvalidImageFormatError,
    OCRProcessingFailedError,
    NoTextFoundError,
    ExtractionTimeoutError,
    ServiceBusyError,
    ConfigurationError,
    ExtractionCancelledError,
)
from .nutrient_rules import UnitFamily, NutrientRule, NutrientRuleSet
from .interfaces import (
    IRecognitionSession,
    ITextRecognizer,
    IImageQualityAssessor,
    INutritionTextParser,
)

__all__ = [
    "RecognitionLevel",
    "ExtractionConfig",
    "RecognitionRequest",
    "CheckType",
    "QualityCheck",
    "QualityRecommendation",
    "ImageQualityAssessment",
    "ContractValidationError",
    "NutritionExtractionError",
    "ImageQualityTooLowError",
    "InvalidImageFormatError",
    "OCRProcessingFailedError",
    "NoTextFoundError",
    "ExtractionTimeoutError",
    "ServiceBusyError",
    "ConfigurationError",
    "ExtractionCancelledError",
    "UnitFamily",
    "NutrientRule",
    "NutrientRuleSet",
    "IRecognitionSession",
    "ITextRecognizer",
    "IImageQualityAssessor",
    "INutritionTextParser",
]
