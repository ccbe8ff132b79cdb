"""
Nutrition label parser.

CONTRACTS:
  Input: OCRResult (contracts/ocr_result_dto.py)
  Output: ParsedNutritionData (contracts/nutrition_dto.py)

Per line (cleaned and case-folded):
  1. Alias matching: exact, longest first; fuzzy (OSA distance) when enabled.
  2. Value association for each alias hit:
       a. label-first: quantities between the alias and the next claimed span
       b. value-first: unclaimed quantities between the previous span and the alias
       c. next line, when it carries no alias and no serving text
  3. Match quality = alias factor x ambiguity factor x unitless factor x adjacency factor
  4. Field confidence = clamp01(line confidence x match quality x unit penalty)
  5. Per nutrient, the topmost accepted match wins unless a later one has
     strictly higher match quality.

Parsing never raises on content: unmatched or garbled text yields empty fields.
Scores are computed by the ConfidenceAggregator, never by the rules here.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from loguru import logger

from config import settings
from contracts.nutrition_dto import (
    MACRONUTRIENT_KINDS,
    MICRONUTRIENT_KINDS,
    NutrientKind,
    NutrientValue,
    NutritionMatch,
    ParsedNutritionData,
)
from contracts.ocr_result_dto import OCRResult, RecognizedTextItem
from ..domain.contracts import ExtractionConfig
from ..domain.interfaces import INutritionTextParser
from ..domain.nutrient_rules import NutrientRule, NutrientRuleSet, UnitFamily
from ..scoring.confidence_aggregator import ConfidenceAggregator
from .alias_matcher import AliasHit, AliasMatcher, LineMatches
from .line_cleanup import LineCleaner
from .quantity_extractor import Quantity, QuantityExtractor
from .serving_parser import ServingLine, ServingParser
from .unit_normalizer import NormalizedValue, UnitNormalizer

# Where the quantities of a hit were found
LABEL_FIRST = "label_first"
VALUE_FIRST = "value_first"
NEXT_LINE = "next_line"


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class _Resolution:
    quantities: Tuple[Quantity, ...]
    source: str


@dataclass(frozen=True)
class _Candidate:
    kind: NutrientKind
    value: NutrientValue
    quality: float


class NutritionTextParser(INutritionTextParser):
    """
    Turns recognized label text into structured nutrient data.

    Example:
        parser = NutritionTextParser()
        parsed = parser.parse(OCRResult.from_lines(["Calories 250", "Total Fat 12g"]))
        parsed.calories.value                          # 250.0
        parsed.macronutrients[NutrientKind.FAT].unit   # "g"
    """

    def __init__(
        self,
        rules: Optional[NutrientRuleSet] = None,
        aggregator: Optional[ConfidenceAggregator] = None,
        config: Optional[ExtractionConfig] = None,
    ):
        self.rules = rules or NutrientRuleSet.load()
        self.aggregator = aggregator or ConfidenceAggregator(self.rules)
        self.default_config = config or ExtractionConfig.default()

        self.cleaner = LineCleaner()
        self.matcher = AliasMatcher(self.rules)
        self.quantities = QuantityExtractor()
        self.units = UnitNormalizer()
        self.serving_parser = ServingParser()

    def parse(self, ocr_result: OCRResult, config: Optional[ExtractionConfig] = None) -> ParsedNutritionData:
        """
        Parses recognized text.

        Args:
            ocr_result: Lines in reading order
            config: Matching options (fuzzy matching, distances, thresholds)

        Returns:
            ParsedNutritionData with aggregated confidence
        """
        config = config or self.default_config
        items = list(ocr_result.recognized_texts)
        lines = [self.cleaner.clean(item.text).text for item in items]
        matches = [
            self.matcher.match(line, config.enable_fuzzy_matching, config.max_unit_distance)
            for line in lines
        ]

        best: Dict[NutrientKind, _Candidate] = {}
        raw_matches: List[NutritionMatch] = []

        for index, line_matches in enumerate(matches):
            resolutions = self._resolve_quantities(index, lines, matches)
            for hit in line_matches.hits:
                candidate, record = self._evaluate(hit, resolutions.get(hit), index, items, config)
                raw_matches.append(record)
                if candidate is None:
                    continue
                current = best.get(hit.kind)
                # Topmost wins; a later match replaces it only with strictly higher quality
                if current is None or candidate.quality > current.quality:
                    best[hit.kind] = candidate

        serving_info = self.serving_parser.parse(
            [ServingLine(text=line, confidence=item.confidence) for line, item in zip(lines, items)]
        )

        parsed = ParsedNutritionData(
            calories=best[NutrientKind.CALORIES].value if NutrientKind.CALORIES in best else None,
            macronutrients={kind: best[kind].value for kind in MACRONUTRIENT_KINDS if kind in best},
            micronutrients={kind: best[kind].value for kind in MICRONUTRIENT_KINDS if kind in best},
            serving_info=serving_info,
            raw_matches=raw_matches,
        )
        parsed = parsed.with_confidence(self.aggregator.score(parsed, ocr_result.full_text))

        logger.info(
            f"[NutritionParser] {parsed.confidence.found_fields} fields from {len(items)} lines, "
            f"serving={'yes' if serving_info else 'no'}, "
            f"overall={parsed.confidence.overall_score:.2f}"
        )
        return parsed

    # ========================================================================
    # VALUE ASSOCIATION
    # ========================================================================

    def _resolve_quantities(
        self,
        index: int,
        lines: Sequence[str],
        matches: Sequence[LineMatches],
    ) -> Dict[AliasHit, _Resolution]:
        """Assigns quantities to the hits of one line. Each quantity belongs to at most one hit."""
        line = lines[index]
        hits = matches[index].hits
        resolutions: Dict[AliasHit, _Resolution] = {}
        claimed: Set[Tuple[int, int]] = set()

        for hit in hits:
            start, end = matches[index].window_after(hit, len(line))
            found = self.quantities.extract(line, start, end)
            if found:
                resolutions[hit] = _Resolution(tuple(found), LABEL_FIRST)
                claimed.update((q.start, q.end) for q in found)

        for hit in hits:
            if hit in resolutions:
                continue
            start, end = matches[index].window_before(hit)
            found = [q for q in self.quantities.extract(line, start, end) if (q.start, q.end) not in claimed]
            if found:
                resolutions[hit] = _Resolution(tuple(found), VALUE_FIRST)
                claimed.update((q.start, q.end) for q in found)

        if hits and hits[-1] not in resolutions and index + 1 < len(lines):
            next_line = lines[index + 1]
            if matches[index + 1].is_empty and "serving" not in next_line:
                found = self.quantities.extract(next_line)
                if found:
                    resolutions[hits[-1]] = _Resolution(tuple(found), NEXT_LINE)

        return resolutions

    def _evaluate(
        self,
        hit: AliasHit,
        resolution: Optional[_Resolution],
        index: int,
        items: Sequence[RecognizedTextItem],
        config: ExtractionConfig,
    ) -> Tuple[Optional[_Candidate], NutritionMatch]:
        rule = self.rules[hit.kind]
        line_confidence = items[index].confidence
        original_text = items[index].text

        alias_factor = 1.0
        if hit.is_fuzzy:
            alias_factor = settings.FUZZY_MATCH_CEILING * max(0.0, 1.0 - hit.distance / config.max_unit_distance)

        chosen: Optional[Quantity] = None
        normalized: Optional[NormalizedValue] = None
        quality = 0.0

        if resolution is not None:
            adjacency = 1.0
            if resolution.source == NEXT_LINE:
                adjacency = settings.NON_ADJACENT_FACTOR
                line_confidence = min(line_confidence, items[index + 1].confidence)
                original_text = f"{original_text} {items[index + 1].text}"

            chosen, normalized, distinct = self._choose(resolution, rule, config)
            if normalized is not None:
                ambiguity = 1.0 / (1.0 + settings.AMBIGUITY_STEP * (distinct - 1))
                unitless = settings.UNITLESS_FACTOR if chosen.unit is None and not rule.unitless_ok else 1.0
                quality = _clamp01(alias_factor * ambiguity * unitless * adjacency)

        accepted = normalized is not None and quality >= config.minimum_match_confidence
        record = NutritionMatch(
            kind=hit.kind,
            alias=hit.alias,
            matched_text=hit.matched_text,
            line_index=index,
            line_text=original_text,
            raw_value=chosen.value if chosen else None,
            raw_unit=chosen.unit if chosen else None,
            edit_distance=hit.distance,
            match_quality=quality,
            line_confidence=line_confidence,
            accepted=accepted,
        )

        if not accepted:
            logger.trace(f"[NutritionParser] Rejected {hit.kind.value} on line {index} (quality {quality:.2f})")
            return None, record

        confidence = _clamp01(line_confidence * quality * normalized.confidence_factor)
        value = NutrientValue(
            value=normalized.value,
            unit=normalized.unit,
            original_text=original_text,
            confidence=confidence,
            is_estimated=normalized.is_estimated,
        )
        return _Candidate(hit.kind, value, quality), record

    def _choose(
        self,
        resolution: _Resolution,
        rule: NutrientRule,
        config: ExtractionConfig,
    ) -> Tuple[Optional[Quantity], Optional[NormalizedValue], int]:
        """
        Picks the quantity for a hit.

        Absolute quantities beat %DV. Among absolutes the canonical unit wins,
        then a unit of the right family, then position (nearest to the alias).

        Returns:
            (chosen quantity, normalized value or None, number of distinct candidate values)
        """
        quantities = list(resolution.quantities)
        if resolution.source == VALUE_FIRST:
            quantities.reverse()

        absolutes = [q for q in quantities if not q.is_percent]
        pool = absolutes or quantities

        def preference(q: Quantity) -> int:
            if q.unit == rule.canonical_unit:
                return 0
            if q.unit is None or self._in_family(q.unit, rule):
                return 1
            return 2

        chosen = min(pool, key=preference)
        normalized = self.units.normalize(chosen, rule, config.include_percentage_values)

        if absolutes:
            converted = (self.units.normalize(q, rule) for q in absolutes)
            values = {round(n.value, 1) for n in converted if n is not None}
        else:
            values = {q.value for q in quantities}
        return chosen, normalized, max(1, len(values))

    @staticmethod
    def _in_family(unit: str, rule: NutrientRule) -> bool:
        if rule.unit_family is UnitFamily.ENERGY:
            return unit in ("kcal", "kj")
        return unit in ("g", "mg", "mcg") or (unit == "iu" and rule.iu_factor is not None)
