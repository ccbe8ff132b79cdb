"""
Rule table loader for the label parser.

One NutrientRule per NutrientKind: aliases, expected unit family, canonical
unit, importance weight and reference daily value. The data lives in
nutrilabel/parsing/rules/nutrients.yaml; control flow iterates the table generically.
"""

from enum import Enum
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Tuple

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from config import settings
from contracts.nutrition_dto import NutrientKind
from .exceptions import ConfigurationError


class UnitFamily(str, Enum):
    ENERGY = "energy"
    MASS = "mass"


# Canonical units each family accepts
FAMILY_UNITS = {
    UnitFamily.ENERGY: ("kcal",),
    UnitFamily.MASS: ("g", "mg", "mcg"),
}


class NutrientRule(BaseModel):
    """Parsing rule for one nutrient kind."""

    model_config = ConfigDict(frozen=True)

    kind: NutrientKind
    aliases: Tuple[str, ...] = Field(..., min_length=1)
    unit_family: UnitFamily
    canonical_unit: str
    weight: float = Field(..., gt=0.0, le=1.0, description="Importance in the overall score")
    unitless_ok: bool = False
    daily_value: Optional[float] = Field(None, gt=0.0, description="Reference daily value, canonical unit")

    @field_validator("aliases")
    @classmethod
    def normalize_aliases(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        aliases = tuple(" ".join(alias.casefold().split()) for alias in v)
        if any(not alias for alias in aliases):
            raise ValueError("Empty alias")
        return aliases

    @model_validator(mode="after")
    def canonical_unit_in_family(self) -> "NutrientRule":
        if self.canonical_unit not in FAMILY_UNITS[self.unit_family]:
            raise ValueError(
                f"{self.kind.value}: unit '{self.canonical_unit}' is not in family {self.unit_family.value}"
            )
        return self

    @property
    def iu_factor(self) -> Optional[float]:
        """IU -> canonical unit factor, for vitamins labelled in IU."""
        return settings.IU_FACTORS.get(self.kind.value)


class NutrientRuleSet:
    """
    Validated rule table.

    Example:
        rules = NutrientRuleSet.load()
        rules[NutrientKind.FAT].aliases   # ('total fat', 'fat', ...)
        rules.alias_index                 # longest alias first
    """

    _cache: ClassVar[Dict[str, "NutrientRuleSet"]] = {}

    def __init__(self, rules: Dict[NutrientKind, NutrientRule], ignore_phrases: List[str], source: str = "<memory>"):
        missing = [kind.value for kind in NutrientKind if kind not in rules]
        if missing:
            raise ConfigurationError(f"No rule for nutrient kinds: {missing}", component="NutrientRules")

        self.source = source
        self.rules = {kind: rules[kind] for kind in NutrientKind}
        self.ignore_phrases = tuple(
            sorted({" ".join(p.casefold().split()) for p in ignore_phrases}, key=lambda p: (-len(p), p))
        )
        self.alias_index = self._build_alias_index()

    def __getitem__(self, kind: NutrientKind) -> NutrientRule:
        return self.rules[kind]

    def __iter__(self):
        return iter(self.rules.values())

    def weight(self, kind: NutrientKind) -> float:
        return self.rules[kind].weight

    def _build_alias_index(self) -> Tuple[Tuple[str, NutrientKind], ...]:
        owners: Dict[str, NutrientKind] = {}
        for rule in self.rules.values():
            for alias in rule.aliases:
                owner = owners.get(alias)
                if owner is not None and owner is not rule.kind:
                    raise ConfigurationError(
                        f"Alias '{alias}' is used by both {owner.value} and {rule.kind.value}",
                        component="NutrientRules",
                    )
                owners[alias] = rule.kind

        order = {kind: i for i, kind in enumerate(NutrientKind)}
        # Longest first so that "total fat" claims its text before "fat" is tried
        return tuple(sorted(owners.items(), key=lambda item: (-len(item[0]), order[item[1]], item[0])))

    # ========================================================================
    # LOADING
    # ========================================================================

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "NutrientRuleSet":
        """
        Loads and validates the YAML rule table (cached per path).

        Raises:
            ConfigurationError: missing file, bad YAML or invalid rule
        """
        path = Path(path or settings.NUTRIENT_RULES_FILE)
        key = str(path.resolve())
        if key in cls._cache:
            return cls._cache[key]

        if not path.exists():
            raise ConfigurationError(f"Rule file not found: {path}", component="NutrientRules")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}", component="NutrientRules", original_error=e) from e

        rule_set = cls.from_dict(data, source=str(path))
        cls._cache[key] = rule_set

        logger.debug(
            f"[NutrientRules] Loaded {len(rule_set.rules)} rules, "
            f"{len(rule_set.alias_index)} aliases, {len(rule_set.ignore_phrases)} ignore phrases from {path.name}"
        )
        return rule_set

    @classmethod
    def from_dict(cls, data: dict, source: str = "<memory>") -> "NutrientRuleSet":
        nutrients = data.get("nutrients") or {}
        rules: Dict[NutrientKind, NutrientRule] = {}

        for name, body in nutrients.items():
            try:
                kind = NutrientKind(name)
            except ValueError:
                logger.warning(f"[NutrientRules] Unknown nutrient '{name}' in {source}, ignored")
                continue
            try:
                rules[kind] = NutrientRule(kind=kind, **(body or {}))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid rule for '{name}' in {source}", component="NutrientRules", original_error=e
                ) from e

        return cls(rules, list(data.get("ignore_phrases") or []), source=source)

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()
