"""Shared exports for the summaries feature."""
from __future__ import annotations

from .cache import CacheEntry, SummaryCache, build_fingerprint
from .errors import (
    InternalError,
    InvalidInputError,
    PayloadTooLargeError,
    SummarizerError,
    SummaryCancelledError,
)
from .openai_client import (
    AuthenticationError,
    ChatCompletionResult,
    CompletionProvider,
    MalformedResponseError,
    OpenAIClient,
    ProviderError,
    RateLimitError,
    TransientError,
)
from .prompts import PromptDocument, PromptLoader, PromptValidationError
from .retry import RetryPolicy
from .service import SummaryService, run_cancellable
from .storage import render_summary, write_summary
from .types import SummaryOptions, SummaryRecord


__all__ = [
    "SummaryOptions",
    "SummaryRecord",
    "SummaryCache",
    "CacheEntry",
    "build_fingerprint",
    "PromptLoader",
    "PromptDocument",
    "PromptValidationError",
    "render_summary",
    "write_summary",
    "RetryPolicy",
    "CompletionProvider",
    "OpenAIClient",
    "ChatCompletionResult",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "TransientError",
    "MalformedResponseError",
    "SummarizerError",
    "InvalidInputError",
    "PayloadTooLargeError",
    "SummaryCancelledError",
    "InternalError",
    "SummaryService",
    "run_cancellable",
]
