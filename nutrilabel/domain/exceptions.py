"""
Exceptions for the nutrition extraction pipeline.

Every failure is terminal and surfaced to the caller as-is; nothing is retried.
Parsing never raises for content reasons, so there is no parsing error here.
"""

from typing import Optional


class NutritionExtractionError(Exception):
    """Base class for pipeline failures."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.component = component
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Extraction Error: {self.message}"
        if self.component:
            msg += f" (Component: {self.component})"
        if self.original_error:
            msg += f" [Original: {type(self.original_error).__name__}: {str(self.original_error)}]"
        return msg


class ImageQualityTooLowError(NutritionExtractionError):
    """Image scored below the configured minimum quality."""

    def __init__(self, score: float, minimum: Optional[float] = None, component: Optional[str] = "QualityGate"):
        self.score = score
        self.minimum = minimum
        message = f"Image quality too low: {score:.2f}"
        if minimum is not None:
            message += f" (minimum {minimum:.2f})"
        super().__init__(message, component)


class InvalidImageFormatError(NutritionExtractionError):
    """Input could not be decoded into a raster image."""
    pass


class OCRProcessingFailedError(NutritionExtractionError):
    """The recognition engine failed."""

    def __init__(self, cause: Exception, component: Optional[str] = "TextRecognition"):
        self.cause = cause
        super().__init__("Text recognition failed", component, original_error=cause)


class NoTextFoundError(NutritionExtractionError):
    """Recognition finished but produced no usable lines."""

    def __init__(self, message: str = "No text found in image", component: Optional[str] = "TextRecognition"):
        super().__init__(message, component)


class ExtractionTimeoutError(NutritionExtractionError):
    """A deadline elapsed (recognition stage or the whole pipeline)."""

    def __init__(self, stage: str, timeout: float, component: Optional[str] = None):
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"{stage} timed out after {timeout:.1f}s", component)


class ServiceBusyError(NutritionExtractionError):
    """The orchestrator is already running an extraction."""

    def __init__(self, component: Optional[str] = "Orchestrator"):
        super().__init__("An extraction is already in progress", component)


class ConfigurationError(NutritionExtractionError):
    """Invalid extraction configuration or rule table."""
    pass


class ExtractionCancelledError(Exception):
    """
    The run was cancelled by the caller.

    Not a NutritionExtractionError: cancellation is an outcome, not a failure.
    """

    def __init__(self, stage: Optional[str] = None):
        self.stage = stage
        message = "Extraction cancelled"
        if stage:
            message += f" during {stage}"
        super().__init__(message)
