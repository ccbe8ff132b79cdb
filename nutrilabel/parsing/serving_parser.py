"""
Serving information scan.

Two independent patterns over cleaned lines:
  (a) serving size: "Serving Size 2/3 cup (55g)", "Serv. size 1 1/2 cups", "Serving size ½ cup"
  (b) servings per container: "8 servings per container", "Servings Per Container about 8",
      "About 8 servings"
Either may be missing. The topmost occurrence of each wins.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from config import settings
from contracts.nutrition_dto import ServingInfo

UNICODE_FRACTIONS = {
    "½": 0.5, "⅓": 1 / 3, "⅔": 2 / 3, "¼": 0.25, "¾": 0.75,
    "⅕": 0.2, "⅛": 0.125, "⅜": 0.375, "⅝": 0.625, "⅞": 0.875,
}
_FRACTION_CHARS = "".join(UNICODE_FRACTIONS)

AMOUNT = (
    r"(?P<amount>"
    r"\d+\s+\d+/\d+"                    # mixed number: 1 1/2
    r"|\d+/\d+"                         # fraction: 2/3
    r"|\d*[" + _FRACTION_CHARS + r"]"   # unicode fraction: ½, 1½
    r"|\d+(?:\.\d+)?|\.\d+"             # decimal
    r")"
)

SERVING_SIZE_PATTERN = re.compile(
    r"serv(?:ing)?\.?\s*size\s*[:\-]?\s*"
    + AMOUNT
    + r"\s*(?P<unit>fl\.?\s*oz|[a-z]+(?:\.)?)?"
    + r"\s*(?:\((?P<description>[^)]*)\))?"
)

NUMBER = r"(?P<count>\d+(?:\.\d+)?)"
APPROX = r"(?:about|approx\.?|approximately|around|abt\.?)\s*"
PER_CONTAINER_PATTERNS = [
    re.compile(r"(?:" + APPROX + r")?" + NUMBER + r"\s*servings?\s*per\s*(?:container|package|pack|bag|box)"),
    re.compile(r"servings?\s*per\s*(?:container|package|pack|bag|box)\s*[:\-]?\s*(?:" + APPROX + r")?" + NUMBER),
    re.compile(APPROX + NUMBER + r"\s*servings\b"),
]


@dataclass(frozen=True)
class ServingLine:
    """Cleaned text and confidence of one line."""
    text: str
    confidence: float


def parse_amount(token: str) -> Optional[float]:
    """Parses an amount token; None for zero denominators and values too large to represent."""
    value = _parse_amount(token.strip())
    if value is None or not math.isfinite(value):
        return None
    return value


def _parse_amount(token: str) -> Optional[float]:
    if token and token[-1] in UNICODE_FRACTIONS:
        whole = float(token[:-1]) if token[:-1] else 0.0
        return whole + UNICODE_FRACTIONS[token[-1]]
    if " " in token:
        whole, fraction = token.split(None, 1)
        part = _parse_amount(fraction)
        return None if part is None else float(whole) + part
    if "/" in token:
        numerator, denominator = token.split("/", 1)
        if float(denominator) == 0:
            return None
        return float(numerator) / float(denominator)
    return float(token)


def singularize(unit: str) -> str:
    """cups -> cup, pieces -> piece, boxes -> box; abbreviations are kept."""
    unit = unit.rstrip(".")
    if len(unit) <= 3:
        return unit
    if unit.endswith("es") and unit[:-2].endswith(("ch", "sh", "x", "ss")):
        return unit[:-2]
    if unit.endswith("s") and not unit.endswith("ss"):
        return unit[:-1]
    return unit


class ServingParser:
    """
    Extracts ServingInfo from cleaned lines.

    Confidence follows the nutrient field rule: line confidence x match quality.
    """

    def parse(self, lines: Sequence[ServingLine]) -> Optional[ServingInfo]:
        size = self._find_size(lines)
        per_container = self._find_per_container(lines)

        if size is None and per_container is None:
            return None

        if size is None:
            count, confidence = per_container
            logger.debug(f"[ServingParser] Only servings per container found ({count:g})")
            return ServingInfo(
                size=1.0,
                unit="serving",
                servings_per_container=count,
                confidence=_clamp01(confidence * settings.SERVINGS_ONLY_PENALTY),
            )

        amount, unit, description, confidence = size
        info = ServingInfo(
            size=amount,
            unit=unit,
            description=description,
            servings_per_container=per_container[0] if per_container else None,
            confidence=_clamp01(confidence),
        )
        logger.debug(f"[ServingParser] {info.display_text} (confidence {info.confidence:.2f})")
        return info

    def _find_size(self, lines: Sequence[ServingLine]):
        for line in lines:
            match = SERVING_SIZE_PATTERN.search(line.text)
            if not match:
                continue
            amount = parse_amount(match.group("amount"))
            if amount is None or amount <= 0:
                continue

            quality = 1.0
            unit = match.group("unit")
            if unit:
                unit = singularize(" ".join(unit.replace(".", " ").split()))
            else:
                unit = "serving"
                quality *= settings.UNITLESS_FACTOR

            description = (match.group("description") or "").strip() or None
            return amount, unit, description, line.confidence * quality
        return None

    def _find_per_container(self, lines: Sequence[ServingLine]):
        for line in lines:
            for pattern in PER_CONTAINER_PATTERNS:
                match = pattern.search(line.text)
                if match:
                    count = float(match.group("count"))
                    if 0 < count < math.inf:
                        return count, line.confidence
        return None


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))
