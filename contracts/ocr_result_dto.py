"""
DTO contract: Extraction -> Parsing

Result of text recognition on a nutrition label photo.
Lines are already in top-to-bottom reading order; `full_text` is their
newline-joined concatenation.
"""

import math
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BoundingBox(BaseModel):
    """
    Line position on the image.

    Normalized to [0, 1] with the origin in the top-left corner.
    """

    model_config = ConfigDict(frozen=True)

    x: float = Field(0.0, ge=0.0, le=1.0, description="Left edge")
    y: float = Field(0.0, ge=0.0, le=1.0, description="Top edge")
    width: float = Field(0.0, ge=0.0, le=1.0, description="Width")
    height: float = Field(0.0, ge=0.0, le=1.0, description="Height")

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2

    @classmethod
    def from_corners(cls, x_min: float, y_min: float, x_max: float, y_max: float) -> "BoundingBox":
        """Builds a box from corner coordinates, clamping into the unit square."""
        def clamp(v: float) -> float:
            return min(1.0, max(0.0, v))

        x0, y0 = clamp(x_min), clamp(y_min)
        x1, y1 = clamp(x_max), clamp(y_max)
        return cls(x=x0, y=y0, width=max(0.0, x1 - x0), height=max(0.0, y1 - y0))


class RecognizedTextItem(BaseModel):
    """One recognized line with the engine's confidence."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Line text as recognized")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Engine confidence [0-1]")
    bounding_box: BoundingBox = Field(default_factory=BoundingBox, description="Normalized line box")

    @field_validator("confidence")
    @classmethod
    def confidence_finite(cls, v: float) -> float:
        if math.isnan(v) or math.isinf(v):
            raise ValueError(f"Confidence must be finite, got {v}")
        return v


class OCRResult(BaseModel):
    """
    Recognition output handed to the parser.

    Example:
        result = OCRResult.from_items([
            RecognizedTextItem(text="Calories 250", confidence=0.95),
        ], processing_time=0.4)
        result.full_text  # "Calories 250"
    """

    model_config = ConfigDict(frozen=True)

    recognized_texts: List[RecognizedTextItem] = Field(default_factory=list)
    full_text: str = Field("", description="Lines joined with newlines, reading order")
    processing_time: float = Field(0.0, ge=0.0, description="Recognition time (seconds)")

    @model_validator(mode="after")
    def full_text_matches_lines(self) -> "OCRResult":
        expected = "\n".join(item.text for item in self.recognized_texts)
        if self.recognized_texts and self.full_text != expected:
            raise ValueError("full_text must be the newline-joined recognized lines")
        return self

    @classmethod
    def from_items(cls, items: Sequence[RecognizedTextItem], processing_time: float = 0.0) -> "OCRResult":
        items = list(items)
        return cls(
            recognized_texts=items,
            full_text="\n".join(item.text for item in items),
            processing_time=processing_time,
        )

    @classmethod
    def from_lines(cls, lines: Sequence[str], confidence: float = 1.0) -> "OCRResult":
        """Builds a result from plain text lines sharing one confidence."""
        return cls.from_items(
            [RecognizedTextItem(text=line, confidence=confidence) for line in lines]
        )

    @property
    def has_text(self) -> bool:
        return len(self.recognized_texts) > 0

    @property
    def average_confidence(self) -> float:
        if not self.recognized_texts:
            return 0.0
        return sum(item.confidence for item in self.recognized_texts) / len(self.recognized_texts)
