"""
Unit normalization into each nutrient's canonical unit (kcal, g, mg, mcg).

Conversions:
  - mass units by factor (g <-> mg <-> mcg)
  - kJ -> kcal
  - IU -> mcg / mg for vitamins A, D and E (estimated)
  - %DV -> pct / 100 * reference daily value (estimated)
A unit outside the nutrient's family keeps the number as-is, marked estimated.
"""

import math
from dataclasses import dataclass
from typing import Optional

from config import settings
from ..domain.nutrient_rules import NutrientRule, UnitFamily
from .quantity_extractor import Quantity

MASS_IN_MG = {"g": 1000.0, "mg": 1.0, "mcg": 0.001}


@dataclass(frozen=True)
class NormalizedValue:
    value: float
    unit: str
    is_estimated: bool = False
    confidence_factor: float = 1.0   # multiplier on the field confidence


class UnitNormalizer:

    def normalize(
        self,
        quantity: Quantity,
        rule: NutrientRule,
        include_percentage_values: bool = True,
    ) -> Optional[NormalizedValue]:
        """
        Converts a quantity for the given rule.

        Returns:
            NormalizedValue, or None when a %DV quantity cannot be estimated
            or the converted value overflows
        """
        if quantity.is_percent:
            result = self._from_percent(quantity, rule, include_percentage_values)
        else:
            result = self._convert(quantity, rule)
        if result is None or not math.isfinite(result.value):
            return None

        if quantity.is_less_than and not result.is_estimated:
            result = NormalizedValue(result.value, result.unit, True, result.confidence_factor)
        return result

    def _from_percent(self, quantity: Quantity, rule: NutrientRule, enabled: bool) -> Optional[NormalizedValue]:
        if not enabled or rule.daily_value is None:
            return None
        value = round(quantity.value / 100.0 * rule.daily_value, 2)
        return NormalizedValue(value, rule.canonical_unit, True, settings.ESTIMATED_PENALTY)

    def _convert(self, quantity: Quantity, rule: NutrientRule) -> NormalizedValue:
        unit = quantity.unit
        canonical = rule.canonical_unit

        if unit is None or unit == canonical:
            return NormalizedValue(quantity.value, canonical)

        if rule.unit_family is UnitFamily.ENERGY and unit == "kj":
            return NormalizedValue(round(quantity.value / settings.KJ_PER_KCAL, 2), canonical)

        if rule.unit_family is UnitFamily.MASS:
            if unit in MASS_IN_MG:
                value = quantity.value * MASS_IN_MG[unit] / MASS_IN_MG[canonical]
                return NormalizedValue(round(value, 6), canonical)
            if unit == "iu" and rule.iu_factor is not None:
                return NormalizedValue(
                    round(quantity.value * rule.iu_factor, 4), canonical, True, settings.IU_CONVERSION_PENALTY
                )

        # Unit from another family (e.g. kcal on a protein line): keep the number
        return NormalizedValue(quantity.value, canonical, True, settings.ESTIMATED_PENALTY)
