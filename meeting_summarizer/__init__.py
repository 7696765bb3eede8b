"""Chunked, cached meeting transcript summarization."""

__version__ = "0.1.0"
