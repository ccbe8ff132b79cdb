"""
DTO contract: Parsing -> Scoring -> Caller

Structured nutrient data extracted from a recognized label.

Invariants enforced by the validators:
  - every value is finite and non-negative
  - every confidence lies in [0, 1]
  - serving size is strictly positive
"""

import math
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NutrientCategory(str, Enum):
    ENERGY = "energy"
    MACRO = "macro"
    MICRO = "micro"


class NutrientKind(str, Enum):
    """Closed set of nutrients the parser knows about. Declaration order is scan order."""

    CALORIES = "calories"
    # Macronutrients
    PROTEIN = "protein"
    CARBOHYDRATES = "carbohydrates"
    FAT = "fat"
    SATURATED_FAT = "saturated_fat"
    TRANS_FAT = "trans_fat"
    FIBER = "fiber"
    SUGAR = "sugar"
    # Micronutrients
    SODIUM = "sodium"
    CHOLESTEROL = "cholesterol"
    POTASSIUM = "potassium"
    CALCIUM = "calcium"
    IRON = "iron"
    VITAMIN_A = "vitamin_a"
    VITAMIN_C = "vitamin_c"
    VITAMIN_D = "vitamin_d"
    VITAMIN_E = "vitamin_e"
    VITAMIN_K = "vitamin_k"
    THIAMIN = "thiamin"
    RIBOFLAVIN = "riboflavin"
    NIACIN = "niacin"
    VITAMIN_B6 = "vitamin_b6"
    VITAMIN_B12 = "vitamin_b12"
    FOLATE = "folate"
    MAGNESIUM = "magnesium"
    PHOSPHORUS = "phosphorus"
    ZINC = "zinc"

    @property
    def category(self) -> NutrientCategory:
        if self is NutrientKind.CALORIES:
            return NutrientCategory.ENERGY
        if self in MACRONUTRIENT_KINDS:
            return NutrientCategory.MACRO
        return NutrientCategory.MICRO

    @property
    def label(self) -> str:
        """Human readable name ("saturated fat", "vitamin A")."""
        name = self.value.replace("_", " ")
        if name.startswith("vitamin "):
            return "vitamin " + name[len("vitamin "):].upper()
        return name


MACRONUTRIENT_KINDS: Tuple[NutrientKind, ...] = (
    NutrientKind.PROTEIN,
    NutrientKind.CARBOHYDRATES,
    NutrientKind.FAT,
    NutrientKind.SATURATED_FAT,
    NutrientKind.TRANS_FAT,
    NutrientKind.FIBER,
    NutrientKind.SUGAR,
)

MICRONUTRIENT_KINDS: Tuple[NutrientKind, ...] = tuple(
    kind for kind in NutrientKind
    if kind is not NutrientKind.CALORIES and kind not in MACRONUTRIENT_KINDS
)

# protein + carbohydrates + fat substitute for calories in the basic-nutrition check
CORE_MACRONUTRIENTS: Tuple[NutrientKind, ...] = (
    NutrientKind.PROTEIN,
    NutrientKind.CARBOHYDRATES,
    NutrientKind.FAT,
)


def _format_number(value: float) -> str:
    """At most one decimal, trailing zero dropped: 12.5 -> '12.5', 250.0 -> '250'."""
    text = f"{value:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return text


class NutrientValue(BaseModel):
    """A single parsed nutrient amount in its canonical unit."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(..., ge=0.0, description="Amount in canonical unit")
    unit: str = Field(..., description="Canonical unit (kcal, g, mg, mcg)")
    original_text: str = Field(..., description="Source line as recognized")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Field confidence [0-1]")
    is_estimated: bool = Field(False, description="Derived from %DV, IU or a '<' bound")

    @field_validator("value", "confidence")
    @classmethod
    def must_be_finite(cls, v: float) -> float:
        if math.isnan(v) or math.isinf(v):
            raise ValueError(f"Value must be finite, got {v}")
        return v

    @property
    def display_value(self) -> str:
        return _format_number(self.value)

    @property
    def display_text(self) -> str:
        return f"{self.display_value}{self.unit}"


class ServingInfo(BaseModel):
    """Declared serving size and servings per container."""

    model_config = ConfigDict(frozen=True)

    size: float = Field(..., gt=0.0, description="Serving size amount")
    unit: str = Field(..., description="Serving unit (cup, g, piece...)")
    description: Optional[str] = Field(None, description="Parenthetical text, e.g. '240ml'")
    servings_per_container: Optional[float] = Field(None, gt=0.0)
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("size", "servings_per_container", "confidence")
    @classmethod
    def must_be_finite(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and (math.isnan(v) or math.isinf(v)):
            raise ValueError(f"Value must be finite, got {v}")
        return v

    @property
    def display_text(self) -> str:
        size_text = self.unit if self.size == 1.0 else f"{self.size:g} {self.unit}"
        if self.description:
            return f"{size_text} ({self.description})"
        return size_text


class NutritionMatch(BaseModel):
    """
    Raw record of one alias hit and the quantity attached to it.

    Kept for every candidate, accepted or not, so callers can explain a result.
    """

    model_config = ConfigDict(frozen=True)

    kind: NutrientKind
    alias: str = Field(..., description="Alias from the rule table that matched")
    matched_text: str = Field(..., description="Text span that matched the alias")
    line_index: int = Field(..., ge=0)
    line_text: str
    raw_value: Optional[float] = Field(None, description="Number as written on the label")
    raw_unit: Optional[str] = Field(None, description="Unit as written ('%' for daily value)")
    edit_distance: int = Field(0, ge=0)
    match_quality: float = Field(..., ge=0.0, le=1.0)
    line_confidence: float = Field(..., ge=0.0, le=1.0)
    accepted: bool = Field(False, description="Passed the minimum match confidence")


class ConfidenceScore(BaseModel):
    """Scores computed by the confidence aggregator. Parsing rules never set these."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(0.0, ge=0.0, le=1.0)
    serving_info_score: float = Field(0.0, ge=0.0, le=1.0)
    calories_score: float = Field(0.0, ge=0.0, le=1.0)
    macronutrients_score: float = Field(0.0, ge=0.0, le=1.0)
    micronutrients_score: float = Field(0.0, ge=0.0, le=1.0)
    format_recognition_score: float = Field(0.0, ge=0.0, le=1.0)
    found_fields: int = Field(0, ge=0)

    @classmethod
    def zero(cls) -> "ConfidenceScore":
        return cls()


class ParsedNutritionData(BaseModel):
    """
    Parser output.

    `macronutrients` / `micronutrients` hold only the kinds that were found;
    absent kinds are simply missing from the mapping.
    """

    model_config = ConfigDict(frozen=True)

    calories: Optional[NutrientValue] = None
    macronutrients: Dict[NutrientKind, NutrientValue] = Field(default_factory=dict)
    micronutrients: Dict[NutrientKind, NutrientValue] = Field(default_factory=dict)
    serving_info: Optional[ServingInfo] = None
    confidence: ConfidenceScore = Field(default_factory=ConfidenceScore)
    raw_matches: List[NutritionMatch] = Field(default_factory=list)

    @field_validator("macronutrients")
    @classmethod
    def only_macronutrients(cls, v: Dict[NutrientKind, NutrientValue]) -> Dict[NutrientKind, NutrientValue]:
        stray = [kind.value for kind in v if kind not in MACRONUTRIENT_KINDS]
        if stray:
            raise ValueError(f"Not macronutrients: {stray}")
        return v

    @field_validator("micronutrients")
    @classmethod
    def only_micronutrients(cls, v: Dict[NutrientKind, NutrientValue]) -> Dict[NutrientKind, NutrientValue]:
        stray = [kind.value for kind in v if kind not in MICRONUTRIENT_KINDS]
        if stray:
            raise ValueError(f"Not micronutrients: {stray}")
        return v

    def get(self, kind: NutrientKind) -> Optional[NutrientValue]:
        if kind is NutrientKind.CALORIES:
            return self.calories
        if kind in MACRONUTRIENT_KINDS:
            return self.macronutrients.get(kind)
        return self.micronutrients.get(kind)

    def all_values(self) -> Iterator[Tuple[NutrientKind, NutrientValue]]:
        """Found values in declaration order."""
        for kind in NutrientKind:
            value = self.get(kind)
            if value is not None:
                yield kind, value

    @property
    def found_fields(self) -> List[NutrientKind]:
        return [kind for kind, _ in self.all_values()]

    @property
    def has_basic_nutrition(self) -> bool:
        if self.calories is not None:
            return True
        return all(self.macronutrients.get(kind) is not None for kind in CORE_MACRONUTRIENTS)

    @property
    def summary(self) -> str:
        items = [kind.label for kind in self.found_fields]
        if self.serving_info is not None:
            items.append("serving")
        if not items:
            return "No nutrition data found"
        return "Found: " + ", ".join(items)

    def with_confidence(self, confidence: ConfidenceScore) -> "ParsedNutritionData":
        return self.model_copy(update={"confidence": confidence})
