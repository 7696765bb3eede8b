"""Tests for meeting_summarizer.config: environment parsing."""

from pathlib import Path

import pytest

from meeting_summarizer import config
from meeting_summarizer.config import Settings, build_openai_client, create_summary_service, load_openai_api_key
from meeting_summarizer.summaries import AuthenticationError


@pytest.fixture(autouse=True)
def no_key_file(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "get_openai_key_path", lambda: tmp_path / "key")
    return tmp_path / "key"


class TestSettings:
    def test_defaults(self):
        """An empty environment yields the documented defaults."""
        settings = Settings.from_env({})
        assert settings.api_key is None
        assert settings.base_url == "https://api.openai.com/v1"
        assert settings.model == "gpt-3.5-turbo"
        assert settings.max_retries == 2
        assert settings.max_transcript_chars == 20000
        assert settings.chunk_chars == 12000
        assert settings.cache_size == 100
        assert settings.prompts_dir is None

    def test_overrides(self, tmp_path):
        """Every knob can be set from the environment."""
        settings = Settings.from_env(
            {
                "OPENAI_API_KEY": " sk-env ",
                "OPENAI_API_BASE": "http://localhost:11434/v1",
                "OPENAI_MODEL": "llama3",
                "OPENAI_MAX_RETRIES": "5",
                "SUMMARY_MAX_CHARS": "5000",
                "SUMMARY_CHUNK_CHARS": "1000",
                "SUMMARY_CACHE_SIZE": "10",
                "SUMMARY_PROMPTS_DIR": str(tmp_path),
            }
        )
        assert settings.api_key == "sk-env"
        assert settings.base_url == "http://localhost:11434/v1"
        assert settings.model == "llama3"
        assert settings.max_retries == 5
        assert settings.max_transcript_chars == 5000
        assert settings.chunk_chars == 1000
        assert settings.cache_size == 10
        assert settings.prompts_dir == Path(tmp_path)

    def test_bad_integer_names_variable(self):
        """Malformed integers point at the offending variable."""
        with pytest.raises(ValueError, match="SUMMARY_CACHE_SIZE"):
            Settings.from_env({"SUMMARY_CACHE_SIZE": "lots"})

    def test_repr_hides_key(self):
        """The API key never appears in repr."""
        assert "sk-secret" not in repr(Settings(api_key="sk-secret"))


class TestApiKey:
    def test_key_file_fallback(self, no_key_file):
        """The key file is read when the variable is unset."""
        no_key_file.write_text("sk-from-file\n", encoding="utf-8")
        assert load_openai_api_key({}) == "sk-from-file"

    def test_env_wins(self, no_key_file):
        """The environment variable takes precedence."""
        no_key_file.write_text("sk-from-file\n", encoding="utf-8")
        assert load_openai_api_key({"OPENAI_API_KEY": "sk-env"}) == "sk-env"

    def test_missing_key_rejected(self):
        """Building a client without a key fails with a hint."""
        with pytest.raises(AuthenticationError, match="OPENAI_API_KEY"):
            build_openai_client(Settings())


class TestCreateSummaryService:
    def test_wires_settings(self):
        """The service picks up limits and cache size from settings."""
        service, client = create_summary_service(
            Settings(api_key="sk-test", max_transcript_chars=50, chunk_chars=10, cache_size=3, max_retries=4)
        )
        assert service.max_transcript_chars == 50
        assert service.chunk_chars == 10
        assert service.cache.capacity == 3
        assert client.retry_policy.max_retries == 4
