"""In-memory, insertion-ordered cache of finished summaries."""
from __future__ import annotations

import hashlib
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

DEFAULT_CACHE_CAPACITY = 100


def build_fingerprint(transcript: str, length: str, action_items: bool) -> str:
    """Return the SHA-256 hex digest identifying a (transcript, options) tuple."""
    flag = "true" if action_items else "false"
    return hashlib.sha256(f"{transcript}{length}{flag}".encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    summary: str
    created_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryCache:
    """Bounded map evicting the oldest inserted entries first.

    Lookups never reorder entries. Each insert plus its eviction runs under one
    lock so the size never exceeds ``capacity`` once ``put`` returns.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CACHE_CAPACITY,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._clock = clock or _utcnow
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(__name__)

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, summary: str) -> CacheEntry:
        """Store ``summary`` under ``key`` and evict until within capacity."""
        entry = CacheEntry(summary=summary, created_at=self._clock())
        evicted = []
        with self._lock:
            # Assigning an existing key keeps its original position.
            self._entries[key] = entry
            while len(self._entries) > self.capacity:
                oldest, _ = self._entries.popitem(last=False)
                evicted.append(oldest)
        for oldest in evicted:
            self._logger.debug("summary-cache", extra={"summary": {"event": "cache-evict", "fingerprint": oldest}})
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
