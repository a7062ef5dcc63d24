"""
Custom exceptions for the audio auto-tagging pipeline.

This module defines a hierarchy of exceptions for handling the error
conditions of decoding, analysis, configuration and record storage.
"""

from typing import Optional, Any


class AutotagError(Exception):
    """Base exception for all auto-tagging errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class DecodeError(AutotagError):
    """Raised when an audio object cannot be turned into PCM."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message, details={"source": source})
        self.source = source


class AnalysisError(AutotagError):
    """Raised when a single analyzer fails."""

    def __init__(
        self,
        message: str,
        analyzer_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.analyzer_name = analyzer_name
        self.original_error = original_error
        self.details = {
            "analyzer_name": analyzer_name,
            "original_error": str(original_error) if original_error else None,
        }


class ConfigurationError(AutotagError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}


class StoreError(AutotagError):
    """Raised when a document store operation fails."""


class TransactionConflictError(StoreError):
    """Raised when a transaction keeps losing the race for a record."""

    def __init__(
        self,
        message: str,
        record_key: Optional[str] = None,
        attempts: Optional[int] = None,
    ):
        super().__init__(message)
        self.record_key = record_key
        self.attempts = attempts
        self.details = {"record_key": record_key, "attempts": attempts}
