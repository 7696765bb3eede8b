"""Tests for meeting_summarizer.server: status codes, CORS, and body handling."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider
from meeting_summarizer.server import CORS_HEADERS, create_app
from meeting_summarizer.summaries import (
    AuthenticationError,
    RateLimitError,
    SummaryCancelledError,
    SummaryService,
)


def _client(provider=None, **service_kwargs):
    service = SummaryService(provider or FakeProvider(), **service_kwargs)
    return TestClient(create_app(service)), service


def _assert_cors(response):
    for header, value in CORS_HEADERS.items():
        assert response.headers[header] == value


class TestSummarizeEndpoint:
    def test_success_then_cached(self):
        """A repeat request is answered from cache with cached=true."""
        provider = FakeProvider()
        client, _ = _client(provider)
        body = {"transcript": "short transcript", "length": "brief", "actionItems": True}

        first = client.post("/summarize", json=body)
        assert first.status_code == 200
        assert first.json() == {"summary": "FINAL", "cached": False}
        _assert_cors(first)

        second = client.post("/summarize", json=body)
        assert second.json() == {"summary": "FINAL", "cached": True}
        assert provider.calls == 2

    def test_defaults_applied(self):
        """length and actionItems default to brief and true."""
        provider = FakeProvider()
        client, _ = _client(provider)
        client.post("/summarize", json={"transcript": "hello"})
        assert "concise bullet points" in provider.prompts[0]
        assert "and action items" in provider.prompts[0]

    def test_action_items_false(self):
        """actionItems=false drops action items from the prompts."""
        provider = FakeProvider()
        client, _ = _client(provider)
        client.post("/summarize", json={"transcript": "hello", "length": "detailed", "actionItems": False})
        assert "detailed paragraphs" in provider.prompts[0]
        assert "action items" not in provider.prompts[1]

    @pytest.mark.parametrize("body", [{}, {"transcript": None}, {"transcript": 12}, {"transcript": ""}])
    def test_missing_or_bad_transcript(self, body):
        """Missing or non-string transcripts return 400."""
        client, _ = _client()
        response = client.post("/summarize", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Transcript required"}
        _assert_cors(response)

    def test_invalid_length(self):
        """Unknown length values return 400."""
        client, _ = _client()
        response = client.post("/summarize", json={"transcript": "t", "length": "medium"})
        assert response.status_code == 400
        assert "length" in response.json()["error"]

    def test_non_json_body(self):
        """Unparseable bodies return 400."""
        client, _ = _client()
        response = client.post("/summarize", content=b"not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_transcript_too_long(self):
        """More than 20000 characters returns 413 without provider calls."""
        provider = FakeProvider()
        client, _ = _client(provider)
        response = client.post("/summarize", json={"transcript": "x" * 20001})
        assert response.status_code == 413
        assert response.json() == {"error": "Transcript too long"}
        assert provider.calls == 0

    def test_provider_error_is_500(self):
        """Provider failures surface their message with status 500."""

        def responder(prompt):
            raise RateLimitError("Rate limit reached for requests")

        client, _ = _client(FakeProvider(responder))
        response = client.post("/summarize", json={"transcript": "t"})
        assert response.status_code == 500
        assert response.json() == {"error": "Rate limit reached for requests"}
        _assert_cors(response)

    def test_error_message_masks_credentials(self):
        """Keys echoed by a provider never reach the client."""

        def responder(prompt):
            raise AuthenticationError("Incorrect API key provided: sk-abcdefghijklmnop")

        client, _ = _client(FakeProvider(responder))
        response = client.post("/summarize", json={"transcript": "t"})
        assert response.status_code == 500
        assert "sk-abcdefghijklmnop" not in response.text

    def test_unexpected_error_is_500(self):
        """Any other failure maps to 500 with its message."""

        def responder(prompt):
            raise RuntimeError("kaboom")

        client, _ = _client(FakeProvider(responder))
        response = client.post("/summarize", json={"transcript": "t"})
        assert response.status_code == 500
        assert response.json() == {"error": "kaboom"}

    def test_cancelled_is_499(self):
        """A cancelled summary reports client-closed-request."""

        def responder(prompt):
            raise SummaryCancelledError("Summary generation was cancelled")

        client, _ = _client(FakeProvider(responder))
        response = client.post("/summarize", json={"transcript": "t"})
        assert response.status_code == 499


class TestMethodsAndCors:
    def test_preflight(self):
        """OPTIONS returns 200 ok with the CORS headers."""
        client, _ = _client()
        response = client.options("/summarize")
        assert response.status_code == 200
        assert response.text == "ok"
        _assert_cors(response)

    @pytest.mark.parametrize("method", ["get", "put", "delete", "patch"])
    def test_other_methods_not_allowed(self, method):
        """Only POST summarizes."""
        client, _ = _client()
        response = client.request(method.upper(), "/summarize")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        _assert_cors(response)

    def test_health(self):
        """The health endpoint is available."""
        client, _ = _client()
        assert client.get("/health").json()["status"] == "healthy"
