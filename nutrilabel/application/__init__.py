"""
Application layer: the extraction orchestrator and the component factory.
"""

from .orchestrator import (
    ExtractionStage,
    ExtractionProgress,
    ExtractionHandle,
    ExtractionOrchestrator,
)
from .factory import ExtractionComponentFactory

__all__ = [
    "ExtractionStage",
    "ExtractionProgress",
    "ExtractionHandle",
    "ExtractionOrchestrator",
    "ExtractionComponentFactory",
]
