"""Helpers for splitting long transcripts into bounded chunks."""
from __future__ import annotations

from typing import Iterator, List

DEFAULT_CHUNK_CHARS = 12000


def iter_chunks(text: str, char_limit: int = DEFAULT_CHUNK_CHARS) -> Iterator[str]:
    """Yield consecutive slices of ``text`` no longer than ``char_limit``.

    Slicing is purely positional: no sentence or word awareness, no overlap.
    Joining the yielded chunks reproduces ``text`` exactly.
    """
    if char_limit <= 0:
        raise ValueError(f"char_limit must be positive, got {char_limit}")
    return _slices(text, char_limit)


def _slices(text: str, char_limit: int) -> Iterator[str]:
    start = 0
    while start < len(text):
        end = min(start + char_limit, len(text))
        yield text[start:end]
        start = end


def chunk_transcript(text: str, char_limit: int = DEFAULT_CHUNK_CHARS) -> List[str]:
    """Return the chunks of ``text`` as a list; empty text yields ``[]``."""
    return list(iter_chunks(text, char_limit))
