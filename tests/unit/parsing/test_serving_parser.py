import json

import pytest
from pydantic import ValidationError

from conftest import ocr
from contracts.nutrition_dto import ServingInfo
from nutrilabel.parsing.serving_parser import ServingLine, ServingParser, parse_amount, singularize


@pytest.fixture
def serving_parser():
    return ServingParser()


def lines(*texts, confidence=1.0):
    return [ServingLine(text=text, confidence=confidence) for text in texts]


def test_fraction_with_description(serving_parser):
    info = serving_parser.parse(lines("serving size 2/3 cup (55g)"))

    assert info.size == pytest.approx(0.667, abs=1e-3)
    assert info.unit == "cup"
    assert info.description == "55g"
    assert info.confidence == pytest.approx(1.0)


def test_mixed_number_and_plural_unit(serving_parser):
    info = serving_parser.parse(lines("serving size 1 1/2 cups (360ml)"))

    assert info.size == pytest.approx(1.5)
    assert info.unit == "cup"
    assert info.description == "360ml"


def test_unicode_fraction(serving_parser):
    info = serving_parser.parse(lines("serving size ½ cup"))
    assert info.size == pytest.approx(0.5)


def test_fluid_ounces(serving_parser):
    info = serving_parser.parse(lines("serving size 8 fl oz (240ml)"))

    assert info.size == 8
    assert info.unit == "fl oz"


def test_servings_per_container_variants(serving_parser):
    assert serving_parser.parse(lines("serving size 1 bar", "8 servings per container")).servings_per_container == 8
    assert serving_parser.parse(lines("serving size 1 bar", "servings per container about 6")).servings_per_container == 6
    assert serving_parser.parse(lines("serving size 1 bar", "about 2.5 servings")).servings_per_container == 2.5


def test_only_servings_per_container(serving_parser):
    info = serving_parser.parse(lines("about 8 servings per container", confidence=0.9))

    assert info.size == 1.0
    assert info.unit == "serving"
    assert info.servings_per_container == 8
    assert info.confidence == pytest.approx(0.45)


def test_missing_unit_lowers_confidence(serving_parser):
    info = serving_parser.parse(lines("serving size 2"))

    assert info.unit == "serving"
    assert info.confidence == pytest.approx(0.8)


def test_topmost_serving_size_wins(serving_parser):
    info = serving_parser.parse(lines("serving size 1 cup", "serving size 2 cups"))
    assert info.size == 1


def test_no_serving_information(serving_parser):
    assert serving_parser.parse(lines("calories 250", "total fat 12g")) is None


def test_zero_serving_size_is_skipped(serving_parser):
    assert serving_parser.parse(lines("serving size 0 g")) is None


def test_serving_through_full_parser(parser):
    parsed = parser.parse(ocr(["Serving Size 2/3 cup (55g)", "Servings Per Container 8", "Calories 230"], 0.9))

    assert parsed.serving_info.size == pytest.approx(2 / 3)
    assert parsed.serving_info.unit == "cup"
    assert parsed.serving_info.description == "55g"
    assert parsed.serving_info.servings_per_container == 8
    assert parsed.confidence.serving_info_score == pytest.approx(0.9)
    assert parsed.serving_info.display_text == "0.666667 cup (55g)"


def test_parse_amount():
    assert parse_amount("2/3") == pytest.approx(2 / 3)
    assert parse_amount("1 1/2") == pytest.approx(1.5)
    assert parse_amount("1½") == pytest.approx(1.5)
    assert parse_amount(".5") == pytest.approx(0.5)
    assert parse_amount("1/0") is None
    assert parse_amount("9" * 400) is None
    assert parse_amount("1 " + "9" * 400 + "/1") is None


def test_overflowing_servings_per_container_is_skipped(serving_parser):
    info = serving_parser.parse(lines("serving size 1 cup", "9" * 400 + " servings per container"))

    assert info.unit == "cup"
    assert info.servings_per_container is None


def test_only_overflowing_servings_per_container(serving_parser):
    assert serving_parser.parse(lines("9" * 400 + " servings per container")) is None


def test_servings_per_container_must_be_finite():
    with pytest.raises(ValidationError):
        ServingInfo(size=1.0, unit="cup", servings_per_container=float("inf"), confidence=1.0)


def test_servings_per_container_survives_json(parser):
    parsed = parser.parse(ocr(["Calories 100", "8 servings per container"]))

    data = json.loads(parsed.model_dump_json())

    assert data["serving_info"]["servings_per_container"] == 8


def test_singularize():
    assert singularize("cups") == "cup"
    assert singularize("pieces") == "piece"
    assert singularize("boxes") == "box"
    assert singularize("tbsp.") == "tbsp"
    assert singularize("glass") == "glass"
