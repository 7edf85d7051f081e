"""
Custom exceptions for the EPUB translation pipeline.

This module defines specific exception types for different failure scenarios:
configuration problems and unparseable documents abort a run, while
translation failures are absorbed per unit by the translation client.
"""
from enum import Enum
from typing import Optional


class EpubTranslationError(Exception):
    """Base exception for all EPUB translation errors."""
    pass


class ConfigurationError(EpubTranslationError):
    """Raised before any processing when required settings are missing or invalid."""
    pass


class DocumentParseError(EpubTranslationError):
    """Raised when a markup document cannot be parsed or re-serialized.

    Attributes:
        entry_name: Archive entry the document came from
        original_error: The underlying parsing error
    """
    def __init__(self, message: str, entry_name: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message)
        self.entry_name = entry_name
        self.original_error = original_error


class InvalidArchiveError(EpubTranslationError):
    """Raised when the input file is not a readable zip archive."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class FailureKind(Enum):
    """Why one attempt against the translation service failed."""
    NETWORK = "network error"
    HTTP_STATUS = "bad status"
    RATE_LIMITED = "rate limited"
    MALFORMED_BODY = "malformed response"
    EMPTY_CHOICES = "empty choices"


class TranslationFailure(EpubTranslationError):
    """One failed attempt against the translation service.

    Always retryable. The translation client catches it and either schedules
    another attempt or converts the unit into a failed outcome; it never
    reaches the caller.

    Attributes:
        kind: Failure classification
        status_code: HTTP status when the service answered
    """
    def __init__(self, message: str, kind: FailureKind, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.kind is FailureKind.RATE_LIMITED

    def describe(self) -> str:
        """Short label for log lines, e.g. 'status 429' or 'network error'."""
        if self.status_code is not None:
            return f"status {self.status_code}"
        return self.kind.value
