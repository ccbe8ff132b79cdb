"""
Scoring: confidence aggregation, success rating and recommendations.
"""

from .confidence_aggregator import ConfidenceAggregator
from .recommendation_engine import RecommendationEngine

__all__ = ["ConfidenceAggregator", "RecommendationEngine"]
