"""Dataclasses shared across the summaries feature."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .errors import InvalidInputError

LENGTH_CHOICES = ("brief", "detailed")


@dataclass(frozen=True)
class SummaryOptions:
    """Immutable knobs that shape the prompts and the cache key."""

    length: str = "brief"
    action_items: bool = True

    def __post_init__(self) -> None:
        if self.length not in LENGTH_CHOICES:
            raise InvalidInputError(
                f"length must be one of {', '.join(LENGTH_CHOICES)}; got {self.length!r}"
            )
        if not isinstance(self.action_items, bool):
            raise InvalidInputError("action_items must be a boolean")

    @property
    def detailed(self) -> bool:
        return self.length == "detailed"


@dataclass
class SummaryRecord:
    """Normalized result of a summarize call."""

    body: str
    fingerprint: str
    cached: bool = False
    chunk_count: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
