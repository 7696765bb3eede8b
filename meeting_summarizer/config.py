"""Environment and key-file configuration shared by the CLI and the server."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .chunking import DEFAULT_CHUNK_CHARS
from .summaries import (
    AuthenticationError,
    OpenAIClient,
    PromptLoader,
    RetryPolicy,
    SummaryCache,
    SummaryService,
)
from .summaries.cache import DEFAULT_CACHE_CAPACITY
from .summaries.openai_client import DEFAULT_BASE_URL, DEFAULT_MODEL
from .summaries.service import DEFAULT_MAX_TRANSCRIPT_CHARS


def get_openai_key_path() -> Path:
    return Path("~/.config/openai/key").expanduser()


def load_openai_api_key(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    env_key = environ.get("OPENAI_API_KEY")
    if env_key and env_key.strip():
        return env_key.strip()

    try:
        contents = get_openai_key_path().read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return contents or None


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration; the API key is kept out of ``repr``."""

    api_key: Optional[str] = field(default=None, repr=False)
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_retries: int = 2
    max_transcript_chars: int = DEFAULT_MAX_TRANSCRIPT_CHARS
    chunk_chars: int = DEFAULT_CHUNK_CHARS
    cache_size: int = DEFAULT_CACHE_CAPACITY
    prompts_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        prompts_dir = environ.get("SUMMARY_PROMPTS_DIR")
        return cls(
            api_key=load_openai_api_key(environ),
            base_url=environ.get("OPENAI_API_BASE") or DEFAULT_BASE_URL,
            model=environ.get("OPENAI_MODEL") or DEFAULT_MODEL,
            max_retries=_int_setting(environ, "OPENAI_MAX_RETRIES", 2),
            max_transcript_chars=_int_setting(environ, "SUMMARY_MAX_CHARS", DEFAULT_MAX_TRANSCRIPT_CHARS),
            chunk_chars=_int_setting(environ, "SUMMARY_CHUNK_CHARS", DEFAULT_CHUNK_CHARS),
            cache_size=_int_setting(environ, "SUMMARY_CACHE_SIZE", DEFAULT_CACHE_CAPACITY),
            prompts_dir=Path(prompts_dir).expanduser() if prompts_dir else None,
        )


def build_openai_client(settings: Settings) -> OpenAIClient:
    if not settings.api_key:
        raise AuthenticationError(
            "OpenAI API key not found. Set OPENAI_API_KEY or place a key in ~/.config/openai/key."
        )
    return OpenAIClient(
        api_key=settings.api_key,
        base_url=settings.base_url,
        model=settings.model,
        retry_policy=RetryPolicy(max_retries=settings.max_retries),
    )


def create_summary_service(settings: Settings) -> tuple[SummaryService, OpenAIClient]:
    client = build_openai_client(settings)
    service = SummaryService(
        client,
        cache=SummaryCache(settings.cache_size),
        prompt_loader=PromptLoader(settings.prompts_dir),
        chunk_chars=settings.chunk_chars,
        max_transcript_chars=settings.max_transcript_chars,
    )
    return service, client
