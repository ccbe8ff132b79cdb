"""
Line cleanup before alias matching.

Fixes the OCR confusions that break number/unit parsing on nutrition labels:
  - letter O read for zero ("Trans Fat Og", "1O0mg")
  - l / I read for one between digits ("1l0mg")
  - comma thousands separators ("2,000") and comma decimals ("12,5g")
  - micro sign units ("µg")
The result is case-folded with single spaces.
"""

import re
from dataclasses import dataclass

from loguru import logger

UNIT_AHEAD = r"\s*(?:g|mg|mcg|kcal|kj|%)(?![a-z])"


@dataclass
class LineCleanupResult:
    text: str
    was_fixed: bool
    count: int


class LineCleaner:
    """Normalizes one recognized line for matching. Never raises."""

    def __init__(self):
        self.micro_unit_pattern = re.compile(r"[µμ]g")
        self.thousands_pattern = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
        self.comma_decimal_pattern = re.compile(r"(?<=\d),(?=\d)")
        self.zero_fixes = [
            re.compile(r"(?<=\d)o(?=\d|\.\d|" + UNIT_AHEAD + ")"),
            re.compile(r"(?<![a-z])o(?=\.?\d)"),
            re.compile(r"(?<![a-z])o(?=" + UNIT_AHEAD + ")"),
        ]
        self.one_fix = re.compile(r"(?<=\d)[li](?=\d)")

    def clean(self, text: str) -> LineCleanupResult:
        if not text:
            return LineCleanupResult(text="", was_fixed=False, count=0)

        folded = " ".join(text.casefold().replace("⁄", "/").split())
        fixes_count = 0

        def substitute(pattern: re.Pattern, replacement: str, value: str) -> str:
            nonlocal fixes_count
            value, n = pattern.subn(replacement, value)
            fixes_count += n
            return value

        cleaned = substitute(self.micro_unit_pattern, "mcg", folded)
        cleaned = substitute(self.thousands_pattern, "", cleaned)
        cleaned = substitute(self.comma_decimal_pattern, ".", cleaned)
        for pattern in self.zero_fixes:
            cleaned = substitute(pattern, "0", cleaned)
        cleaned = substitute(self.one_fix, "1", cleaned)

        was_fixed = fixes_count > 0
        if was_fixed:
            logger.trace(f"[LineCleaner] '{text}' -> '{cleaned}'")

        return LineCleanupResult(text=cleaned, was_fixed=was_fixed, count=fixes_count)
