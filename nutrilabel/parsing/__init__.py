"""
Parsing: recognized label text -> structured nutrient data.

Boundary: contracts.ParsedNutritionData
"""

from .line_cleanup import LineCleaner
from .alias_matcher import AliasMatcher, AliasHit
from .quantity_extractor import QuantityExtractor, Quantity
from .unit_normalizer import UnitNormalizer
from .serving_parser import ServingParser, ServingLine
from .nutrition_text_parser import NutritionTextParser

__all__ = [
    "LineCleaner",
    "AliasMatcher",
    "AliasHit",
    "QuantityExtractor",
    "Quantity",
    "UnitNormalizer",
    "ServingParser",
    "ServingLine",
    "NutritionTextParser",
]
