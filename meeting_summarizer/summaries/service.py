"""Shared orchestration layer for generating and caching summaries."""
from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Awaitable, List, Mapping, Optional, Sequence, TypeVar

from ..chunking import DEFAULT_CHUNK_CHARS, chunk_transcript
from .cache import SummaryCache, build_fingerprint
from .errors import (
    InternalError,
    InvalidInputError,
    PayloadTooLargeError,
    SummarizerError,
    SummaryCancelledError,
)
from .openai_client import CompletionProvider, ProviderError
from .prompts import PromptLoader
from .types import SummaryOptions, SummaryRecord

DEFAULT_MAX_TRANSCRIPT_CHARS = 20000

T = TypeVar("T")


async def run_cancellable(
    work: Awaitable[T],
    cancel_event: Optional[asyncio.Event],
    message: str = "Summary generation was cancelled",
) -> T:
    """Await ``work`` unless ``cancel_event`` fires first.

    When the event wins, ``work`` is cancelled and awaited before
    ``SummaryCancelledError`` is raised. Work is never started once the event
    is already set.
    """
    if cancel_event is None:
        return await work
    if cancel_event.is_set():
        if asyncio.iscoroutine(work):
            work.close()
        raise SummaryCancelledError(message)

    task = asyncio.ensure_future(work)
    cancelled = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({task, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [pending_task for pending_task in (task, cancelled) if not pending_task.done()]
        for pending_task in pending:
            pending_task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if task.done() and not task.cancelled():
        return task.result()
    raise SummaryCancelledError(message)


class SummaryService:
    """Public facade used by the CLI and the HTTP handler.

    A summary is produced in two phases. Each chunk of the transcript is
    summarized on its own, strictly one request at a time (map). The partial
    summaries are then merged by one final request (reduce). Finished summaries
    are cached by fingerprint, so repeating a request costs no provider calls.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        cache: Optional[SummaryCache] = None,
        prompt_loader: Optional[PromptLoader] = None,
        chunk_chars: int = DEFAULT_CHUNK_CHARS,
        max_transcript_chars: int = DEFAULT_MAX_TRANSCRIPT_CHARS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if chunk_chars <= 0:
            raise ValueError(f"chunk_chars must be positive, got {chunk_chars}")
        self._provider = provider
        self.cache = cache if cache is not None else SummaryCache()
        self._prompt_loader = prompt_loader or PromptLoader()
        self.chunk_chars = chunk_chars
        self.max_transcript_chars = max_transcript_chars
        self._logger = logger or logging.getLogger(__name__)
        self._inflight: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def summarize(
        self,
        transcript: object,
        options: Optional[SummaryOptions] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SummaryRecord:
        """Return the summary for ``transcript``, served from cache when possible."""

        text = self.validate(transcript)
        options = options or SummaryOptions()
        fingerprint = build_fingerprint(text, options.length, options.action_items)

        cached = self._from_cache(fingerprint, options)
        if cached:
            return cached

        lock = self._inflight.get(fingerprint)
        if lock is None:
            lock = asyncio.Lock()
            self._inflight[fingerprint] = lock

        # Waiting behind an identical in-flight request still honors cancellation.
        await run_cancellable(lock.acquire(), cancel_event)
        try:
            # Another request may have finished the same work while we waited.
            cached = self._from_cache(fingerprint, options)
            if cached:
                return cached

            chunks = chunk_transcript(text, self.chunk_chars)
            self._log_debug(
                "cache-miss",
                options,
                {"fingerprint": fingerprint, "chars": len(text), "chunks": len(chunks)},
            )
            partials = await self.summarize_chunks(chunks, options, cancel_event=cancel_event)
            summary = await self.combine_partials(partials, options, cancel_event=cancel_event)
            entry = self.cache.put(fingerprint, summary)
        finally:
            lock.release()

        return SummaryRecord(
            body=summary,
            fingerprint=fingerprint,
            cached=False,
            chunk_count=len(chunks),
            created_at=entry.created_at,
        )

    def validate(self, transcript: object) -> str:
        """Reject missing, non-string, empty, or oversized transcripts."""
        if not isinstance(transcript, str) or not transcript:
            raise InvalidInputError("Transcript required")
        if len(transcript) > self.max_transcript_chars:
            raise PayloadTooLargeError(
                "Transcript too long",
                length=len(transcript),
                limit=self.max_transcript_chars,
            )
        return transcript

    async def summarize_chunks(
        self,
        chunks: Sequence[str],
        options: SummaryOptions,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[str]:
        """Map phase: one provider call per chunk, in chunk order."""
        partials: List[str] = []
        for index, chunk in enumerate(chunks, start=1):
            prompt = self._prompt_loader.render(
                "chunk",
                style="detailed paragraphs" if options.detailed else "concise bullet points",
                highlights="key decisions and action items" if options.action_items else "key decisions",
                chunk=chunk,
            )
            self._log_debug("map-chunk", options, {"index": index, "total": len(chunks), "chars": len(chunk)})
            partial = await self._complete(prompt, cancel_event)
            partials.append(partial.strip())
        return partials

    async def combine_partials(
        self,
        partials: Sequence[str],
        options: SummaryOptions,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Reduce phase: merge the ordered partial summaries with one provider call."""
        prompt = self._prompt_loader.render(
            "combine",
            length=options.length,
            sections="decisions and action items" if options.action_items else "decisions",
            partials="\n\n".join(partials),
        )
        self._log_debug("reduce", options, {"partials": len(partials)})
        summary = await self._complete(prompt, cancel_event)
        return summary.strip()

    async def _complete(self, prompt: str, cancel_event: Optional[asyncio.Event]) -> str:
        return await run_cancellable(self._call_provider(prompt), cancel_event)

    async def _call_provider(self, prompt: str) -> str:
        try:
            result = await self._provider.complete(prompt)
        except (SummarizerError, ProviderError):
            raise
        except Exception as exc:
            raise InternalError(str(exc) or type(exc).__name__) from exc
        if not isinstance(result, str):
            raise InternalError("Completion provider returned a non-text response")
        return result

    def _from_cache(self, fingerprint: str, options: SummaryOptions) -> Optional[SummaryRecord]:
        entry = self.cache.get(fingerprint)
        if entry is None:
            return None
        self._log_debug("cache-hit", options, {"fingerprint": fingerprint})
        return SummaryRecord(
            body=entry.summary,
            fingerprint=fingerprint,
            cached=True,
            chunk_count=0,
            created_at=entry.created_at,
        )

    def _log_debug(self, event: str, options: SummaryOptions, extra: Mapping[str, object]) -> None:
        if not self._logger:
            return
        payload = {
            "event": event,
            "length": options.length,
            "action_items": options.action_items,
        }
        payload.update(dict(extra))
        self._logger.debug("summary-service", extra={"summary": payload})
