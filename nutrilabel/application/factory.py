"""
Factory for the extraction components.

Builds the engine, the recognition wrapper, the parser and a fully wired
orchestrator from settings, so callers do not assemble them by hand.
"""

from typing import Any, Dict, Optional

from loguru import logger

from ..domain.contracts import ExtractionConfig
from ..domain.exceptions import ConfigurationError
from ..domain.interfaces import ITextRecognizer
from ..domain.nutrient_rules import NutrientRuleSet
from ..extraction.ocr.google_vision_recognizer import GoogleVisionTextRecognizer
from ..extraction.ocr.static_recognizer import PrerecognizedTextRecognizer
from ..extraction.ocr.text_recognition import TextRecognitionWrapper
from ..extraction.pre_ocr.ocr_preprocessor import OCRPreprocessor
from ..extraction.pre_ocr.quality_assessor import ImageQualityAssessor
from ..parsing.nutrition_text_parser import NutritionTextParser
from ..scoring.confidence_aggregator import ConfidenceAggregator
from ..scoring.recommendation_engine import RecommendationEngine
from .orchestrator import ExtractionOrchestrator, ProgressListener


class ExtractionComponentFactory:
    """Creates extraction components with default settings."""

    @staticmethod
    def create_text_recognizer(credentials_path: Optional[str] = None) -> ITextRecognizer:
        """
        Creates the Google Vision engine.

        Raises:
            ConfigurationError: credentials are missing or unreadable
        """
        logger.debug("[Factory] Creating Google Vision recognizer")
        try:
            return GoogleVisionTextRecognizer(credentials_path)
        except (ValueError, FileNotFoundError) as e:
            raise ConfigurationError(str(e), component="Factory", original_error=e) from e

    @staticmethod
    def create_text_recognition(recognizer: Optional[ITextRecognizer] = None) -> TextRecognitionWrapper:
        if recognizer is None:
            recognizer = ExtractionComponentFactory.create_text_recognizer()
        return TextRecognitionWrapper(recognizer, OCRPreprocessor())

    @staticmethod
    def create_parser(rules: Optional[NutrientRuleSet] = None) -> NutritionTextParser:
        logger.debug("[Factory] Creating nutrition parser")
        rules = rules or NutrientRuleSet.load()
        return NutritionTextParser(rules=rules, aggregator=ConfidenceAggregator(rules))

    @staticmethod
    def create_orchestrator(
        recognizer: Optional[ITextRecognizer] = None,
        config: Optional[ExtractionConfig] = None,
        on_progress: Optional[ProgressListener] = None,
    ) -> ExtractionOrchestrator:
        """
        Creates an orchestrator with every component wired.

        Args:
            recognizer: Recognition engine (Google Vision when omitted)
            config: Default extraction config for runs without one
            on_progress: Called with a snapshot on every state change

        Returns:
            ExtractionOrchestrator ready to run
        """
        logger.info("[Factory] Creating extraction orchestrator")
        rules = NutrientRuleSet.load()
        aggregator = ConfidenceAggregator(rules)
        return ExtractionOrchestrator(
            recognition=ExtractionComponentFactory.create_text_recognition(recognizer),
            quality_assessor=ImageQualityAssessor(),
            parser=NutritionTextParser(rules=rules, aggregator=aggregator),
            aggregator=aggregator,
            recommendation_engine=RecommendationEngine(),
            config=config,
            on_progress=on_progress,
        )

    @staticmethod
    def create_text_orchestrator(
        text: str,
        config: Optional[ExtractionConfig] = None,
        default_confidence: float = 1.0,
    ) -> ExtractionOrchestrator:
        """Creates an orchestrator that parses already-recognized text instead of calling an engine."""
        recognizer = PrerecognizedTextRecognizer.from_text(text, default_confidence)
        return ExtractionComponentFactory.create_orchestrator(recognizer, config)

    @staticmethod
    def get_extraction_info() -> Dict[str, Any]:
        rules = NutrientRuleSet.load()
        return {
            "stages": ["assessing_quality", "recognizing_text", "parsing_text", "generating_recommendations"],
            "engine": "Google Cloud Vision",
            "nutrients": [rule.kind.value for rule in rules],
            "presets": list(ExtractionConfig.PRESETS),
        }
