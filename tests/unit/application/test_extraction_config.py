import pytest
from pydantic import ValidationError

from nutrilabel.domain import ConfigurationError, ExtractionConfig, RecognitionLevel, RecognitionRequest


def test_default_values():
    config = ExtractionConfig.default()

    assert config.recognition_level is RecognitionLevel.ACCURATE
    assert config.minimum_quality_score == 0.6
    assert config.minimum_text_confidence == 0.5
    assert config.max_unit_distance == 3
    assert config.minimum_match_confidence == 0.6
    assert config.enable_fuzzy_matching is True
    assert config.recognition_timeout <= config.pipeline_timeout
    assert "calories" in config.custom_vocabulary


@pytest.mark.parametrize("name", ExtractionConfig.PRESETS)
def test_every_preset_builds(name):
    config = ExtractionConfig.preset(name)
    assert config.recognition_timeout <= config.pipeline_timeout


def test_preset_differences():
    assert ExtractionConfig.fast().recognition_level is RecognitionLevel.FAST
    assert ExtractionConfig.fast().enable_preprocessing is False
    assert ExtractionConfig.high_quality().minimum_quality_score == 0.8
    assert ExtractionConfig.strict().enable_fuzzy_matching is False
    assert ExtractionConfig.strict().minimum_match_confidence == 0.8


def test_unknown_preset():
    with pytest.raises(ConfigurationError, match="Unknown preset"):
        ExtractionConfig.preset("turbo")


def test_recognition_timeout_cannot_exceed_pipeline():
    with pytest.raises(ConfigurationError) as exc_info:
        ExtractionConfig.create(recognition_timeout=20.0, pipeline_timeout=10.0)

    assert exc_info.value.component == "ExtractionConfig"
    assert isinstance(exc_info.value.original_error, ValidationError)


@pytest.mark.parametrize("field, value", [
    ("minimum_quality_score", 1.5),
    ("minimum_text_confidence", -0.1),
    ("minimum_match_confidence", 2.0),
    ("max_unit_distance", 0),
    ("pipeline_timeout", 0.0),
])
def test_out_of_range_values(field, value):
    with pytest.raises(ConfigurationError, match=field):
        ExtractionConfig.create(**{field: value})


def test_with_overrides_keeps_other_fields():
    base = ExtractionConfig.strict()

    changed = base.with_overrides(minimum_quality_score=0.2)

    assert changed.minimum_quality_score == 0.2
    assert changed.enable_fuzzy_matching is False
    assert base.minimum_quality_score == 0.6


def test_with_overrides_validates():
    with pytest.raises(ConfigurationError):
        ExtractionConfig.default().with_overrides(max_unit_distance=50)


def test_config_is_frozen():
    config = ExtractionConfig.default()
    with pytest.raises(ValidationError):
        config.minimum_quality_score = 0.1


def test_blank_vocabulary_words_are_dropped():
    config = ExtractionConfig.create(custom_vocabulary={"fiber", "  ", " iron "})
    assert config.custom_vocabulary == frozenset({"fiber", "iron"})


def test_request_from_config():
    config = ExtractionConfig.fast()

    request = RecognitionRequest.from_config(config)

    assert request.recognition_level is RecognitionLevel.FAST
    assert request.custom_vocabulary == config.custom_vocabulary
    assert request.languages == config.recognition_languages
