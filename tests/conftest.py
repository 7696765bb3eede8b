"""Shared fixtures for meeting-summarizer tests."""

import asyncio
from typing import Callable, List, Optional

import pytest

from meeting_summarizer.summaries import SummaryCache, SummaryService


class FakeProvider:
    """Completion provider that records prompts and answers from a script.

    ``responder`` maps a prompt to the reply; by default chunk prompts get
    ``PARTIAL`` and combine prompts get ``FINAL``.
    """

    def __init__(self, responder: Optional[Callable[[str], str]] = None) -> None:
        self.prompts: List[str] = []
        self._responder = responder or default_responder

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._responder(prompt)


def default_responder(prompt: str) -> str:
    if prompt.startswith("Combine"):
        return "  FINAL\n"
    return " PARTIAL "


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def service(provider):
    return SummaryService(provider, cache=SummaryCache(capacity=100))
