"""
Numeric quantity extraction from a cleaned label line.

Recognizes "12", "12.5", ".5", "2/3", "<1", "less than 1" with an optional unit
token (kcal, cal, kj, g, mg, mcg, iu, %, and spelled-out gram units).
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional

# Spelled-out and alternative unit tokens -> normalized unit
UNIT_ALIASES = {
    "kcal": "kcal",
    "cal": "kcal",
    "kj": "kj",
    "g": "g",
    "gr": "g",
    "gram": "g",
    "grams": "g",
    "mg": "mg",
    "milligram": "mg",
    "milligrams": "mg",
    "mcg": "mcg",
    "ug": "mcg",
    "microgram": "mcg",
    "micrograms": "mcg",
    "iu": "iu",
    "%": "%",
}

_UNIT_ALTERNATION = "|".join(sorted((re.escape(u) for u in UNIT_ALIASES), key=len, reverse=True))

QUANTITY_PATTERN = re.compile(
    r"(?P<lt>(?:<|less\s+than)\s*)?"
    r"(?<![a-z0-9.])"
    r"(?P<number>\d+/\d+|\d+(?:\.\d+)?|\.\d+)"
    r"(?:\s*(?P<unit>" + _UNIT_ALTERNATION + r")(?![a-z])|(?![\d/a-z]|\.\d))"
)


@dataclass(frozen=True)
class Quantity:
    """A number found on a line, with its normalized unit (None when bare)."""

    value: float
    unit: Optional[str]
    start: int
    end: int
    text: str
    is_less_than: bool = False

    @property
    def is_percent(self) -> bool:
        return self.unit == "%"


def parse_number(token: str) -> Optional[float]:
    """Parses "12", "12.5", ".5" or "2/3"; None for zero denominators and non-finite values."""
    if "/" in token:
        numerator, denominator = token.split("/", 1)
        if float(denominator) == 0:
            return None
        value = float(numerator) / float(denominator)
    else:
        value = float(token)
    return value if math.isfinite(value) else None


class QuantityExtractor:
    """Finds quantities in a window of a cleaned line."""

    def extract(self, line: str, start: int = 0, end: Optional[int] = None) -> List[Quantity]:
        end = len(line) if end is None else end
        quantities = []
        for match in QUANTITY_PATTERN.finditer(line, start, end):
            value = parse_number(match.group("number"))
            if value is None:
                continue
            unit_token = match.group("unit")
            quantities.append(Quantity(
                value=value,
                unit=UNIT_ALIASES[unit_token] if unit_token else None,
                start=match.start(),
                end=match.end(),
                text=match.group(0).strip(),
                is_less_than=bool(match.group("lt")),
            ))
        return quantities
