"""
Validation contracts for the extraction pipeline internals.

  - ExtractionConfig: the caller's configuration record (with presets)
  - RecognitionRequest: what the recognition wrapper hands to an engine session
  - ImageQualityAssessment: quality gate output

All models use Pydantic v2 with Field validators.
"""

from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from config import settings
from .exceptions import ConfigurationError


# ============================================================================
# CONFIGURATION
# ============================================================================

class RecognitionLevel(str, Enum):
    """Speed/accuracy tradeoff of the recognition engine."""
    FAST = "fast"
    ACCURATE = "accurate"


class ExtractionConfig(BaseModel):
    """
    Configuration for one extraction run.

    Build through `create()` or a preset so that invalid values surface as
    ConfigurationError instead of a pydantic ValidationError.
    """

    model_config = ConfigDict(frozen=True)

    PRESETS: ClassVar[Tuple[str, ...]] = ("default", "fast", "high_quality", "strict")

    recognition_level: RecognitionLevel = Field(RecognitionLevel.ACCURATE)
    minimum_quality_score: float = Field(
        settings.DEFAULT_MIN_QUALITY_SCORE, ge=0.0, le=1.0,
        description="Quality gate threshold [0-1]"
    )
    minimum_text_confidence: float = Field(
        settings.DEFAULT_MIN_TEXT_CONFIDENCE, ge=0.0, le=1.0,
        description="Recognized lines below this are dropped"
    )
    custom_vocabulary: FrozenSet[str] = Field(default=settings.NUTRITION_VOCABULARY)
    enable_fuzzy_matching: bool = True
    max_unit_distance: int = Field(
        settings.DEFAULT_MAX_UNIT_DISTANCE, ge=1, le=10,
        description="Maximum edit distance for fuzzy alias matches"
    )
    minimum_match_confidence: float = Field(
        settings.DEFAULT_MIN_MATCH_CONFIDENCE, ge=0.0, le=1.0,
        description="Matches with lower quality are not accepted"
    )
    pipeline_timeout: float = Field(settings.DEFAULT_PIPELINE_TIMEOUT, gt=0.0, description="Seconds")
    recognition_timeout: float = Field(settings.DEFAULT_RECOGNITION_TIMEOUT, gt=0.0, description="Seconds")

    enable_quality_analysis: bool = True
    enable_preprocessing: bool = True
    include_percentage_values: bool = True
    recognition_languages: Tuple[str, ...] = Field(default=tuple(settings.OCR_LANGUAGE_HINTS))

    @field_validator("custom_vocabulary")
    @classmethod
    def vocabulary_not_blank(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        return frozenset(word.strip() for word in v if word.strip())

    @model_validator(mode="after")
    def recognition_within_pipeline(self) -> "ExtractionConfig":
        if self.recognition_timeout > self.pipeline_timeout:
            raise ValueError(
                f"recognition_timeout ({self.recognition_timeout}s) must not exceed "
                f"pipeline_timeout ({self.pipeline_timeout}s)"
            )
        return self

    # === Construction ===

    @classmethod
    def create(cls, **kwargs: Any) -> "ExtractionConfig":
        """
        Validated constructor.

        Raises:
            ConfigurationError: if any option is out of range
        """
        try:
            return cls(**kwargs)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(
                f"Invalid extraction config: {details}",
                component="ExtractionConfig",
                original_error=e,
            ) from e

    def with_overrides(self, **kwargs: Any) -> "ExtractionConfig":
        return self.create(**{**self.model_dump(), **kwargs})

    # === Presets ===

    @classmethod
    def default(cls) -> "ExtractionConfig":
        return cls.create()

    @classmethod
    def fast(cls) -> "ExtractionConfig":
        return cls.create(
            recognition_level=RecognitionLevel.FAST,
            minimum_quality_score=0.4,
            minimum_text_confidence=0.4,
            pipeline_timeout=15.0,
            recognition_timeout=10.0,
            enable_preprocessing=False,
        )

    @classmethod
    def high_quality(cls) -> "ExtractionConfig":
        return cls.create(
            recognition_level=RecognitionLevel.ACCURATE,
            minimum_quality_score=0.8,
            minimum_text_confidence=0.6,
            pipeline_timeout=45.0,
            recognition_timeout=30.0,
        )

    @classmethod
    def strict(cls) -> "ExtractionConfig":
        return cls.create(
            minimum_match_confidence=0.8,
            enable_fuzzy_matching=False,
            max_unit_distance=2,
        )

    @classmethod
    def preset(cls, name: str) -> "ExtractionConfig":
        if name not in cls.PRESETS:
            raise ConfigurationError(
                f"Unknown preset '{name}' (known: {', '.join(cls.PRESETS)})",
                component="ExtractionConfig",
            )
        return getattr(cls, name)()


class RecognitionRequest(BaseModel):
    """Options forwarded to a recognition engine session."""

    model_config = ConfigDict(frozen=True)

    recognition_level: RecognitionLevel = RecognitionLevel.ACCURATE
    custom_vocabulary: FrozenSet[str] = Field(default_factory=frozenset)
    languages: Tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: ExtractionConfig) -> "RecognitionRequest":
        return cls(
            recognition_level=config.recognition_level,
            custom_vocabulary=config.custom_vocabulary,
            languages=config.recognition_languages,
        )


# ============================================================================
# IMAGE QUALITY
# ============================================================================

class CheckType(str, Enum):
    RESOLUTION = "resolution"
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    SHARPNESS = "sharpness"


class QualityRecommendation(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    UNUSABLE = "unusable"


class QualityCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    check_type: CheckType
    score: float = Field(..., ge=0.0, le=1.0)
    passed: bool
    details: Optional[str] = None


class ImageQualityAssessment(BaseModel):
    """
    Quality gate output.

    `estimated_ocr_success` grows monotonically with `overall_score`.
    """

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(..., ge=0.0, le=1.0)
    checks: List[QualityCheck] = Field(default_factory=list)
    recommendation: QualityRecommendation
    estimated_ocr_success: float = Field(..., ge=0.0, le=1.0)

    @property
    def passed_checks(self) -> List[QualityCheck]:
        return [c for c in self.checks if c.passed]

    @property
    def failed_checks(self) -> List[QualityCheck]:
        return [c for c in self.checks if not c.passed]

    def check(self, check_type: CheckType) -> Optional[QualityCheck]:
        for c in self.checks:
            if c.check_type is check_type:
                return c
        return None


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ContractValidationError(Exception):
    """Raised instead of a pydantic ValidationError when an internal contract is violated."""

    def __init__(self, component: str, contract_name: str, errors: Union[List[Dict[str, Any]], List[Any]]) -> None:
        self.component = component
        self.contract_name = contract_name
        self.errors = errors

        error_messages = []
        for err in errors:
            if isinstance(err, dict):
                loc = err.get('loc', [])[0] if err.get('loc') else 'unknown'
                err_type = err.get('type', 'unknown')
                msg = err.get('msg', 'unknown error')
                error_messages.append(f"  {loc} ({err_type}): {msg}")
            else:
                error_messages.append(f"  {str(err)}")

        message = (
            f"Contract violation in {component} ({contract_name}):\n"
            + "\n".join(error_messages)
        )
        super().__init__(message)
