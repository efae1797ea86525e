"""Custom exception classes."""

from typing import Any, Dict, Optional


class QuestionPaperComposerException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.

        Args:
            message: Error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationException(QuestionPaperComposerException):
    """Exception raised for invalid provider or application configuration."""

    pass


class GenerationException(QuestionPaperComposerException):
    """Exception raised during question paper generation."""

    pass


class NoStructuredDataFound(GenerationException):
    """Generator output contains no recognizable question array."""

    pass


class UnparsableGeneratorOutput(GenerationException):
    """
    Generator output could not be repaired into a question array.

    ``details["excerpt"]`` holds a bounded slice of the raw output, never the
    full payload.
    """

    def __init__(
        self,
        message: str,
        excerpt: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        merged["excerpt"] = excerpt
        super().__init__(message, merged)
        self.excerpt = excerpt


class EmptyGeneratorResponse(GenerationException):
    """The text-generation backend returned no content."""

    pass


class DiagramException(QuestionPaperComposerException):
    """Exception raised while preparing or generating a diagram."""

    pass


class DiagramConversionException(DiagramException):
    """A diagram image could not be read or converted to a raster format."""

    pass


class DiagramGenerationException(DiagramException):
    """The diagram-producing collaborator failed for a single question."""

    pass


class ValidationException(QuestionPaperComposerException):
    """Exception raised during input validation."""

    pass
