import math

import pytest

from conftest import SCENARIO_A, ocr
from contracts.nutrition_dto import NutrientKind
from contracts.ocr_result_dto import OCRResult
from nutrilabel.domain import ExtractionConfig, UnitFamily
from nutrilabel.domain.nutrient_rules import FAMILY_UNITS


# ============================================================================
# SCENARIOS
# ============================================================================

def test_well_formed_label(parser):
    """Calories, fat, protein and sodium on one line each."""
    parsed = parser.parse(ocr(SCENARIO_A))

    assert parsed.calories.value == 250
    assert parsed.calories.unit == "kcal"
    assert parsed.macronutrients[NutrientKind.FAT].value == 12
    assert parsed.macronutrients[NutrientKind.FAT].unit == "g"
    assert parsed.macronutrients[NutrientKind.PROTEIN].value == 5
    assert parsed.micronutrients[NutrientKind.SODIUM].value == 470
    assert parsed.micronutrients[NutrientKind.SODIUM].unit == "mg"
    assert parsed.has_basic_nutrition is True
    assert parsed.confidence.overall_score > 0.6
    assert parsed.summary == "Found: calories, protein, fat, sodium"


def test_non_nutrition_text(parser):
    parsed = parser.parse(ocr(["This is a recipe for chocolate chip cookies."]))

    assert parsed.has_basic_nutrition is False
    assert parsed.confidence.overall_score < 0.3
    assert parsed.found_fields == []


def test_calories_alone_are_basic_nutrition(parser):
    parsed = parser.parse(ocr(["Calories 180", "Some other text here"]))

    assert parsed.calories.value == 180
    assert parsed.macronutrients == {}
    assert parsed.has_basic_nutrition is True


def test_empty_input_scores_zero(parser):
    parsed = parser.parse(OCRResult())

    assert parsed.confidence.overall_score == 0.0
    assert parsed.confidence.serving_info_score == 0.0
    assert parsed.has_basic_nutrition is False
    assert parsed.summary == "No nutrition data found"


def test_protein_carbs_fat_without_calories(parser):
    parsed = parser.parse(ocr(["Protein 5g", "Total Carbohydrate 30g", "Total Fat 2g"]))

    assert parsed.calories is None
    assert parsed.has_basic_nutrition is True


# ============================================================================
# EVERY NUTRIENT KIND
# ============================================================================

@pytest.mark.parametrize("kind", list(NutrientKind))
def test_label_value_unit_line_for_every_kind(parser, rules, kind):
    rule = rules[kind]
    line = f"{rule.aliases[0]} 7.5{rule.canonical_unit}"

    value = parser.parse(ocr([line])).get(kind)

    assert value is not None, line
    assert value.value == pytest.approx(7.5)
    assert value.unit in FAMILY_UNITS[rule.unit_family]
    assert 0.0 <= value.confidence <= 1.0


# ============================================================================
# VALUE ASSOCIATION
# ============================================================================

def test_value_first_order(parser):
    parsed = parser.parse(ocr(["470mg sodium"]))
    assert parsed.micronutrients[NutrientKind.SODIUM].value == 470


def test_abbreviated_alias(parser):
    parsed = parser.parse(ocr(["Prot 15g"]))
    assert parsed.macronutrients[NutrientKind.PROTEIN].value == 15


def test_daily_value_next_to_amount_is_ignored(parser):
    parsed = parser.parse(ocr(["Total Fat 12g 18%"]))
    fat = parsed.macronutrients[NutrientKind.FAT]

    assert fat.value == 12
    assert fat.is_estimated is False
    assert fat.confidence == pytest.approx(1.0)


def test_calories_from_fat_is_not_calories(parser):
    parsed = parser.parse(ocr(["Calories 250 Calories from Fat 110"]))

    assert parsed.calories.value == 250
    assert NutrientKind.FAT not in parsed.macronutrients


def test_value_on_next_line(parser):
    parsed = parser.parse(ocr(["Calories", "250"]))

    assert parsed.calories.value == 250
    assert parsed.calories.original_text == "Calories 250"
    assert parsed.calories.confidence == pytest.approx(0.85)


def test_several_nutrients_on_one_line(parser):
    parsed = parser.parse(ocr(["Total Fat 8g Sodium 160mg"]))

    assert parsed.macronutrients[NutrientKind.FAT].value == 8
    assert parsed.micronutrients[NutrientKind.SODIUM].value == 160


def test_ocr_zero_confusion_is_fixed(parser):
    parsed = parser.parse(ocr(["Trans Fat Og"]))
    assert parsed.macronutrients[NutrientKind.TRANS_FAT].value == 0


def test_less_than_marks_estimate(parser):
    value = parser.parse(ocr(["Cholesterol <5mg"])).micronutrients[NutrientKind.CHOLESTEROL]

    assert value.value == 5
    assert value.is_estimated is True


def test_alias_without_value_is_not_accepted(parser):
    parsed = parser.parse(ocr(["Protein"]))

    assert NutrientKind.PROTEIN not in parsed.macronutrients
    assert len(parsed.raw_matches) == 1
    assert parsed.raw_matches[0].accepted is False


# ============================================================================
# UNITS
# ============================================================================

def test_kilojoules_and_kilocalories_on_one_line(parser):
    parsed = parser.parse(ocr(["Energy 1046kJ/250kcal"]))

    assert parsed.calories.value == pytest.approx(250)
    assert parsed.calories.unit == "kcal"
    assert parsed.calories.confidence == pytest.approx(1.0)


def test_kilojoules_only_are_converted(parser):
    parsed = parser.parse(ocr(["Energy 836.8 kJ"]))
    assert parsed.calories.value == pytest.approx(200)


def test_grams_are_converted_to_milligrams(parser):
    parsed = parser.parse(ocr(["Sodium 0.47g"]))
    sodium = parsed.micronutrients[NutrientKind.SODIUM]

    assert sodium.value == pytest.approx(470)
    assert sodium.unit == "mg"


def test_international_units_are_converted(parser):
    value = parser.parse(ocr(["Vitamin D 400 IU"])).micronutrients[NutrientKind.VITAMIN_D]

    assert value.value == pytest.approx(10)
    assert value.unit == "mcg"
    assert value.is_estimated is True
    assert value.confidence == pytest.approx(0.9)


def test_percent_daily_value_is_estimated(parser):
    value = parser.parse(ocr(["Calcium 20%"])).micronutrients[NutrientKind.CALCIUM]

    assert value.value == pytest.approx(260)
    assert value.unit == "mg"
    assert value.is_estimated is True
    assert value.confidence == pytest.approx(0.7)


def test_percent_values_can_be_disabled(parser):
    config = ExtractionConfig.create(include_percentage_values=False)
    parsed = parser.parse(ocr(["Calcium 20%"]), config)

    assert NutrientKind.CALCIUM not in parsed.micronutrients


def test_micrograms_sign_is_recognized(parser):
    value = parser.parse(ocr(["Vitamin B12 2.4µg"])).micronutrients[NutrientKind.VITAMIN_B12]

    assert value.value == pytest.approx(2.4)
    assert value.unit == "mcg"


# ============================================================================
# FUZZY MATCHING
# ============================================================================

def test_fuzzy_alias(parser):
    parsed = parser.parse(ocr(["Protien 12g"]))
    protein = parsed.macronutrients[NutrientKind.PROTEIN]

    assert protein.value == 12
    # 0.95 * (1 - 1/3)
    assert protein.confidence == pytest.approx(0.95 * 2 / 3)
    assert parsed.raw_matches[0].edit_distance == 1


def test_fuzzy_matching_disabled(parser):
    parsed = parser.parse(ocr(["Protien 12g"]), ExtractionConfig.create(enable_fuzzy_matching=False))
    assert NutrientKind.PROTEIN not in parsed.macronutrients


def test_short_aliases_are_never_fuzzed(parser):
    # "iran" is one edit from "iron", but short aliases only match exactly
    parsed = parser.parse(ocr(["Iran 8mg"]))
    assert NutrientKind.IRON not in parsed.micronutrients


# ============================================================================
# CONFIDENCE AND TIE-BREAK
# ============================================================================

def test_field_confidence_follows_line_confidence(parser):
    parsed = parser.parse(ocr(SCENARIO_A, confidence=0.9))

    for _, value in parsed.all_values():
        assert value.confidence == pytest.approx(0.9)
    assert parsed.confidence.overall_score == pytest.approx(0.9)


def test_field_confidence_never_exceeds_line_confidence(parser):
    parsed = parser.parse(ocr(["Protien 12g", "Calories", "250", "Calcium 20%"], confidence=0.8))

    for _, value in parsed.all_values():
        assert 0.0 <= value.confidence <= 0.8


def test_topmost_match_wins_on_equal_quality(parser):
    parsed = parser.parse(ocr(["Protein 5g", "Protein 7g"]))
    assert parsed.macronutrients[NutrientKind.PROTEIN].value == 5


def test_later_match_wins_with_strictly_higher_quality(parser):
    parsed = parser.parse(ocr(["Protien 5g", "Protein 7g"]))
    assert parsed.macronutrients[NutrientKind.PROTEIN].value == 7


def test_later_match_with_lower_quality_is_ignored(parser):
    parsed = parser.parse(ocr(["Protein 7g", "Protien 5g"]))
    assert parsed.macronutrients[NutrientKind.PROTEIN].value == 7


def test_ambiguous_numbers_lower_quality(parser):
    parsed = parser.parse(ocr(["Sodium 470mg 520mg"]))
    sodium = parsed.micronutrients[NutrientKind.SODIUM]

    assert sodium.value == 470
    assert sodium.confidence == pytest.approx(0.8)


def test_parsing_is_deterministic(parser):
    lines = SCENARIO_A + ["Serving Size 2/3 cup (55g)", "Protien 3g", "Calcium 20%"]

    first = parser.parse(ocr(lines, confidence=0.87))
    second = parser.parse(ocr(lines, confidence=0.87))

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_raw_matches_record_every_hit(parser):
    parsed = parser.parse(ocr(SCENARIO_A))

    assert [m.kind for m in parsed.raw_matches] == [
        NutrientKind.CALORIES, NutrientKind.FAT, NutrientKind.PROTEIN, NutrientKind.SODIUM
    ]
    assert all(m.accepted for m in parsed.raw_matches)
    assert parsed.raw_matches[1].line_index == 1


def test_garbage_never_raises(parser):
    lines = ["%%%", "////", "0/0 g", "calories calories", "1/0 cup", "., ., .", ""]
    parsed = parser.parse(ocr([line for line in lines if line]))
    assert 0.0 <= parsed.confidence.overall_score <= 1.0


HUGE = "9" * 400


@pytest.mark.parametrize("line", [
    "Calories " + HUGE,
    "Sodium 1" + "0" * 306 + "g",
    "Sodium 1" + "0" * 307 + "%",
    "Protein " + HUGE + "/" + HUGE + "g",
    "Serving Size " + HUGE + " cup",
])
def test_numbers_too_large_to_represent_are_dropped(parser, line):
    """Overflowing amounts and unit conversions never reach the value models."""
    parsed = parser.parse(ocr(["Total Fat 12g", line]))

    assert parsed.macronutrients[NutrientKind.FAT].value == 12
    assert len(list(parsed.all_values())) == 1
    assert all(math.isfinite(value.value) for _, value in parsed.all_values())
    assert parsed.serving_info is None


def test_energy_family_units():
    assert FAMILY_UNITS[UnitFamily.ENERGY] == ("kcal",)
