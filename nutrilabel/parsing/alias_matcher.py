"""
Alias matching on a cleaned label line.

1. Ignore phrases ("calories from fat", "% daily value") claim their text.
2. Exact aliases, longest first, claim non-overlapping spans on letter boundaries.
3. Fuzzy pass (optional): word n-grams not yet claimed are compared with the
   remaining aliases by OSA edit distance (insert, delete, substitute,
   adjacent transposition).
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from loguru import logger
from rapidfuzz.distance import OSA

from config import settings
from contracts.nutrition_dto import NutrientKind
from ..domain.nutrient_rules import NutrientRuleSet

Span = Tuple[int, int]


@dataclass(frozen=True)
class AliasHit:
    kind: NutrientKind
    alias: str
    start: int
    end: int
    matched_text: str
    distance: int = 0

    @property
    def is_fuzzy(self) -> bool:
        return self.distance > 0


@dataclass
class LineMatches:
    """Alias hits of one line plus the spans claimed by ignore phrases."""

    hits: List[AliasHit] = field(default_factory=list)
    ignored: List[Span] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.hits and not self.ignored

    def window_after(self, hit: AliasHit, line_length: int) -> Span:
        """From the end of `hit` to the next claimed span (or end of line)."""
        starts = [s for s, _ in self._spans() if s >= hit.end]
        return hit.end, min(starts, default=line_length)

    def window_before(self, hit: AliasHit) -> Span:
        """From the previous claimed span to the start of `hit`."""
        ends = [e for _, e in self._spans() if e <= hit.start]
        return max(ends, default=0), hit.start

    def _spans(self) -> List[Span]:
        return [(h.start, h.end) for h in self.hits] + list(self.ignored)


def _boundary_pattern(phrase: str) -> re.Pattern:
    words = [re.escape(word) for word in phrase.split()]
    return re.compile(r"(?<![a-z])" + r"\s*".join(words) + r"(?![a-z])")


def _overlaps(span: Span, claimed: List[Span]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in claimed)


def _fuzzy_eligible(alias: str) -> bool:
    # Single letters ("vitamin a") and abbreviations carry the identity; never fuzz them
    words = alias.split()
    return (
        len(alias) >= settings.FUZZY_MIN_ALIAS_LENGTH
        and all(len(word) >= 3 and word.isalpha() for word in words)
    )


class AliasMatcher:
    """
    Finds nutrient aliases on one line.

    Example:
        matcher = AliasMatcher(NutrientRuleSet.load())
        matches = matcher.match("total fat 12g 18%")
        matches.hits[0].kind   # NutrientKind.FAT
    """

    def __init__(self, rules: NutrientRuleSet):
        self.rules = rules
        self._ignore_patterns = [_boundary_pattern(phrase) for phrase in rules.ignore_phrases]
        self._alias_patterns = [(alias, kind, _boundary_pattern(alias)) for alias, kind in rules.alias_index]

        self._fuzzy_aliases: Dict[int, List[Tuple[str, NutrientKind]]] = {}
        for alias, kind in rules.alias_index:
            if _fuzzy_eligible(alias):
                self._fuzzy_aliases.setdefault(len(alias.split()), []).append((alias, kind))

    def match(self, line: str, enable_fuzzy: bool = True, max_distance: int = settings.DEFAULT_MAX_UNIT_DISTANCE) -> LineMatches:
        claimed: List[Span] = []
        result = LineMatches()

        for pattern in self._ignore_patterns:
            for m in pattern.finditer(line):
                span = (m.start(), m.end())
                if not _overlaps(span, claimed):
                    claimed.append(span)
                    result.ignored.append(span)

        for alias, kind, pattern in self._alias_patterns:
            for m in pattern.finditer(line):
                span = (m.start(), m.end())
                if _overlaps(span, claimed):
                    continue
                claimed.append(span)
                result.hits.append(AliasHit(kind, alias, m.start(), m.end(), m.group(0)))

        if enable_fuzzy:
            result.hits.extend(self._fuzzy_hits(line, claimed, max_distance))

        result.hits.sort(key=lambda h: h.start)
        result.ignored.sort()
        return result

    # ========================================================================
    # FUZZY
    # ========================================================================

    def _fuzzy_hits(self, line: str, claimed: List[Span], max_distance: int) -> List[AliasHit]:
        tokens = [m for m in re.finditer(r"[a-z]+", line) if not _overlaps((m.start(), m.end()), claimed)]
        if not tokens:
            return []

        candidates = []
        for n, aliases in self._fuzzy_aliases.items():
            for i in range(len(tokens) - n + 1):
                gram = tokens[i:i + n]
                if any(line[a.end():b.start()].strip() for a, b in zip(gram, gram[1:])):
                    continue
                text = " ".join(t.group(0) for t in gram)
                start, end = gram[0].start(), gram[-1].end()
                for alias, kind in aliases:
                    allowed = min(max_distance, max(1, len(alias) // settings.FUZZY_CHARS_PER_EDIT))
                    if abs(len(text) - len(alias)) > allowed:
                        continue
                    distance = OSA.distance(text, alias, score_cutoff=allowed)
                    if 0 < distance <= allowed:
                        candidates.append((distance, -len(alias), start, end, alias, kind, text))

        hits = []
        for distance, _, start, end, alias, kind, text in sorted(candidates):
            if _overlaps((start, end), claimed):
                continue
            claimed.append((start, end))
            hits.append(AliasHit(kind, alias, start, end, text, distance))
            logger.trace(f"[AliasMatcher] Fuzzy '{text}' ~ '{alias}' (d={distance})")
        return hits
