"""Domain errors raised by the summaries service."""
from __future__ import annotations


class SummarizerError(Exception):
    """Base error for summarization failures the caller can act on."""


class InvalidInputError(SummarizerError, ValueError):
    """Raised when the transcript or options are missing or malformed."""


class PayloadTooLargeError(SummarizerError):
    """Raised when a transcript exceeds the configured size cap."""

    def __init__(self, message: str, *, length: int, limit: int) -> None:
        super().__init__(message)
        self.length = length
        self.limit = limit


class SummaryCancelledError(SummarizerError):
    """Raised when the caller cancels a summary before it completes."""


class InternalError(SummarizerError):
    """Raised for unexpected failures while producing a summary."""
