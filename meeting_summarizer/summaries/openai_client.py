"""Thin OpenAI-compatible API wrapper used by the summaries service."""
from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

import httpx

from .retry import RetryPolicy

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"


class ProviderError(RuntimeError):
    """Base error raised when the completion provider fails a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ProviderError):
    """Raised when the API key is missing or invalid."""


class RateLimitError(ProviderError):
    """Raised when the provider returns HTTP 429 after retries."""


class TransientError(ProviderError):
    """Raised for network failures and HTTP 5xx errors exceeding retry limits."""


class MalformedResponseError(ProviderError):
    """Raised when the provider returns an unexpected payload."""


class CompletionProvider(Protocol):
    """Anything that turns a prompt into generated text."""

    async def complete(self, prompt: str) -> str:
        ...


@dataclass
class ChatCompletionResult:
    """Simplified view of a chat completion response."""

    content: str
    usage: Mapping[str, Any]
    raw: Mapping[str, Any]
    finish_reason: Optional[str] = None


class OpenAIClient:
    """Co-ordinates requests to chat completion and transcription endpoints."""

    _DEFAULT_TIMEOUT = 60.0
    _RETRY_STATUS_CODES = {408, 409, 425, 429, 500, 502, 503, 504}

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.3,
        timeout: float = _DEFAULT_TIMEOUT,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not api_key:
            raise AuthenticationError("An OpenAI API key is required")

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._logger = logger or logging.getLogger(__name__)

        headers = {"Authorization": f"Bearer {api_key}"}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OpenAIClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------
    # Chat completions
    # ------------------------------
    async def generate(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatCompletionResult:
        """Submit chat messages and return the normalized response payload."""

        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": list(messages),
            "temperature": self.temperature if temperature is None else temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        response_data = await self._request_with_retries("POST", "/chat/completions", json=payload)
        return self._parse_chat_completion(response_data)

    async def complete(self, prompt: str) -> str:
        result = await self.generate([{"role": "user", "content": prompt}])
        return result.content

    # ------------------------------
    # Audio transcription
    # ------------------------------
    async def transcribe(
        self,
        audio_path: Path,
        *,
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
        language: Optional[str] = "en",
    ) -> str:
        """Upload an audio file and return the transcript text."""

        audio_path = Path(audio_path).expanduser()
        audio_bytes = audio_path.read_bytes()
        mime_type = mimetypes.guess_type(audio_path.name)[0] or "application/octet-stream"
        data = {"model": model}
        if language:
            data["language"] = language

        response_data = await self._request_with_retries(
            "POST",
            "/audio/transcriptions",
            data=data,
            files={"file": (audio_path.name, audio_bytes, mime_type)},
        )
        text = response_data.get("text")
        if not isinstance(text, str):
            raise MalformedResponseError("Transcription response missing text")
        return text

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    async def _request_with_retries(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        policy = self.retry_policy
        last_error: Optional[Exception] = None
        for attempt in range(policy.attempts):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.HTTPError as exc:  # network issues
                last_error = exc
                if attempt < policy.max_retries:
                    delay = await policy.wait(attempt)
                    self._log_retry(path, attempt, delay, type(exc).__name__)
                continue

            if response.status_code == 401:
                raise AuthenticationError("Provider rejected the API key (401)", status_code=401)
            if response.status_code == 403:
                raise AuthenticationError("Provider denied access (403)", status_code=403)

            if response.status_code in self._RETRY_STATUS_CODES and attempt < policy.max_retries:
                delay = await policy.wait(attempt, _retry_after_seconds(response))
                self._log_retry(path, attempt, delay, str(response.status_code))
                continue

            if response.status_code >= 400:
                message = _error_message(response)
                status = response.status_code
                if status == 429:
                    raise RateLimitError(message or "Provider rate limit exceeded (429)", status_code=status)
                if status >= 500:
                    raise TransientError(message or f"Provider server error ({status})", status_code=status)
                raise ProviderError(message or f"Provider request failed ({status})", status_code=status)

            return self._safe_json(response)

        # Retries exhausted
        if isinstance(last_error, httpx.TimeoutException):
            raise TransientError("Provider request timed out after retries") from last_error
        raise TransientError("Provider request failed after retries") from last_error

    def _safe_json(self, response: httpx.Response) -> Mapping[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Provider returned a non-JSON response") from exc
        if not isinstance(data, Mapping):
            raise MalformedResponseError("Provider response was not a JSON object")
        return data

    def _parse_chat_completion(self, data: Mapping[str, Any]) -> ChatCompletionResult:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise MalformedResponseError("Chat response missing choices")

        first_choice = choices[0]
        message = first_choice.get("message") if isinstance(first_choice, Mapping) else None
        if not isinstance(message, Mapping):
            raise MalformedResponseError("Chat response missing message content")

        content = message.get("content")
        if not isinstance(content, str):
            raise MalformedResponseError("Chat response missing text content")

        usage = data.get("usage")
        finish_reason = first_choice.get("finish_reason")
        return ChatCompletionResult(
            content=content,
            usage=dict(usage) if isinstance(usage, Mapping) else {},
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            raw=data,
        )

    def _log_retry(self, path: str, attempt: int, delay: float, reason: str) -> None:
        self._logger.info(
            "Retrying %s after %s (attempt %d/%d, waiting %.1fs)",
            path,
            reason,
            attempt + 1,
            self.retry_policy.attempts,
            delay,
        )


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    header = response.headers.get("Retry-After")
    if not header:
        return None
    try:
        return float(header)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
    return None
