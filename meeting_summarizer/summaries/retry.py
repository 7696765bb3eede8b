"""Bounded exponential backoff shared by every provider request."""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry a provider call and how long to wait between tries.

    ``sleep`` and ``rand`` are injectable so tests can run without real delays.
    """

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 16.0
    min_delay: float = 0.5
    jitter: Tuple[float, float] = (0.5, 1.5)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)
    rand: Callable[[float, float], float] = field(default=random.uniform, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Return the delay before retrying after the zero-based ``attempt``."""
        base = min(self.base_delay * (2 ** attempt), self.max_delay)
        delay = base * self.rand(*self.jitter) + (retry_after or 0.0)
        return max(self.min_delay, delay)

    async def wait(self, attempt: int, retry_after: Optional[float] = None) -> float:
        delay = self.delay_for(attempt, retry_after)
        await self.sleep(delay)
        return delay
