import pytest

from nutrilabel.parsing import AliasMatcher, LineCleaner, QuantityExtractor, UnitNormalizer
from nutrilabel.parsing.quantity_extractor import Quantity
from contracts.nutrition_dto import NutrientKind


# ============================================================================
# LINE CLEANUP
# ============================================================================

@pytest.fixture
def cleaner():
    return LineCleaner()


@pytest.mark.parametrize("raw, expected", [
    ("Trans Fat Og", "trans fat 0g"),
    ("Sodium 1O0mg", "sodium 100mg"),
    ("Sodium 1l0mg", "sodium 110mg"),
    ("Calories  2,000 ", "calories 2000"),
    ("Fat 12,5g", "fat 12.5g"),
    ("Vitamin D 10 µg", "vitamin d 10 mcg"),
    ("Serving Size 1⁄2 cup", "serving size 1/2 cup"),
])
def test_cleanup_fixes(cleaner, raw, expected):
    result = cleaner.clean(raw)

    assert result.text == expected


def test_cleanup_leaves_words_alone(cleaner):
    result = cleaner.clean("Total Carbohydrate 30g")

    assert result.text == "total carbohydrate 30g"
    assert result.was_fixed is False
    assert result.count == 0


def test_cleanup_empty(cleaner):
    assert cleaner.clean("").text == ""


# ============================================================================
# QUANTITIES
# ============================================================================

@pytest.fixture
def extractor():
    return QuantityExtractor()


def test_quantity_with_units(extractor):
    found = extractor.extract("total fat 12g 18%")

    assert [(q.value, q.unit) for q in found] == [(12.0, "g"), (18.0, "%")]
    assert found[1].is_percent is True


def test_quantity_spelled_out_units(extractor):
    found = extractor.extract("protein 5 grams 120 milligrams")
    assert [(q.value, q.unit) for q in found] == [(5.0, "g"), (120.0, "mg")]


def test_quantity_less_than(extractor):
    assert extractor.extract("less than 1g")[0].is_less_than is True
    assert extractor.extract("<5mg")[0].is_less_than is True


def test_quantity_fractions_and_leading_dot(extractor):
    assert extractor.extract("2/3")[0].value == pytest.approx(2 / 3)
    assert extractor.extract(".5g")[0].value == pytest.approx(0.5)


def test_quantity_bare_number_at_sentence_end(extractor):
    found = extractor.extract("calories 250.")
    assert [(q.value, q.unit) for q in found] == [(250.0, None)]


def test_quantity_ignores_digits_inside_words(extractor):
    assert extractor.extract("vitamin b12") == []


def test_quantity_window(extractor):
    line = "total fat 8g sodium 160mg"
    found = extractor.extract(line, 0, line.index("sodium"))
    assert [q.value for q in found] == [8.0]


def test_zero_denominator_is_skipped(extractor):
    assert extractor.extract("1/0 cup") == []


def test_numbers_too_large_to_represent_are_skipped(extractor):
    found = extractor.extract("calories " + "9" * 400 + " fat 3g")
    assert [(q.value, q.unit) for q in found] == [(3.0, "g")]


# ============================================================================
# ALIAS MATCHING
# ============================================================================

@pytest.fixture
def matcher(rules):
    return AliasMatcher(rules)


def test_longest_alias_claims_first(matcher):
    matches = matcher.match("saturated fat 1g")

    assert [h.kind for h in matches.hits] == [NutrientKind.SATURATED_FAT]
    assert matches.hits[0].alias == "saturated fat"


def test_alias_needs_letter_boundaries(matcher):
    assert matcher.match("fatty acids").hits == []


def test_ignore_phrases_claim_text(matcher):
    matches = matcher.match("% daily value")

    assert matches.hits == []
    assert matches.ignored
    assert matches.is_empty is False


def test_added_sugars_are_not_sugar(matcher):
    matches = matcher.match("total sugars 12g includes 10g added sugars")

    assert [h.kind for h in matches.hits] == [NutrientKind.SUGAR]


def test_fuzzy_hit_is_bounded_by_max_distance(matcher):
    assert matcher.match("protien", enable_fuzzy=True, max_distance=3).hits[0].distance == 1
    assert matcher.match("protien", enable_fuzzy=False).hits == []


def test_fuzzy_respects_length_based_limit(matcher):
    # Two edits away: too many for a seven-letter alias
    assert matcher.match("prtien", enable_fuzzy=True, max_distance=3).hits == []


def test_windows_between_hits(matcher):
    line = "total fat 8g sodium 160mg"
    matches = matcher.match(line)
    fat, sodium = matches.hits

    assert matches.window_after(fat, len(line)) == (fat.end, sodium.start)
    assert matches.window_before(sodium) == (fat.end, sodium.start)


# ============================================================================
# UNIT NORMALIZATION
# ============================================================================

def _quantity(value, unit, less_than=False):
    return Quantity(value=value, unit=unit, start=0, end=1, text="", is_less_than=less_than)


def test_normalize_mass(rules):
    normalizer = UnitNormalizer()

    result = normalizer.normalize(_quantity(250, "mcg"), rules[NutrientKind.SODIUM])
    assert result.value == pytest.approx(0.25)
    assert result.unit == "mg"
    assert result.is_estimated is False


def test_normalize_overflowing_conversion(rules):
    normalizer = UnitNormalizer()

    assert normalizer.normalize(_quantity(1e306, "g"), rules[NutrientKind.SODIUM]) is None
    assert normalizer.normalize(_quantity(1e307, "%"), rules[NutrientKind.SODIUM]) is None


def test_normalize_other_family_is_estimated(rules):
    result = UnitNormalizer().normalize(_quantity(12, "kcal"), rules[NutrientKind.PROTEIN])

    assert result.value == 12
    assert result.unit == "g"
    assert result.is_estimated is True
    assert result.confidence_factor == pytest.approx(0.7)


def test_normalize_percent_without_daily_value(rules):
    assert UnitNormalizer().normalize(_quantity(10, "%"), rules[NutrientKind.TRANS_FAT]) is None


def test_normalize_international_units_without_factor(rules):
    result = UnitNormalizer().normalize(_quantity(100, "iu"), rules[NutrientKind.VITAMIN_C])
    assert result.is_estimated is True
