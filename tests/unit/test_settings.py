"""Unit tests for environment-driven settings and backend selection."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.config.settings import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OPENAI_API_KEY",
        "EMBEDDING_BACKEND",
        "LLM_BACKEND",
        "ALLOW_INGEST",
        "PROVIDER_TIMEOUT_SECONDS",
        "DATABASE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.ollama_base_url == "http://localhost:11434"
    assert settings.ollama_embed_model == "nomic-embed-text:latest"
    assert settings.allow_ingest is False
    assert settings.provider_timeout_seconds == 120.0
    assert settings.database_path == "data/policies.db"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOW_INGEST", "true")
    monkeypatch.setenv("DATABASE_PATH", "/tmp/other.db")
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "15")

    settings = Settings(_env_file=None)

    assert settings.allow_ingest is True
    assert settings.database_path == "/tmp/other.db"
    assert settings.provider_timeout_seconds == 15.0


class TestBackendResolution:
    def test_auto_without_key_uses_ollama(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.resolve_embedding_backend() == "ollama"
        assert settings.resolve_llm_backend() == "ollama"

    def test_auto_with_key_uses_openai(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="sk-test")
        assert settings.resolve_embedding_backend() == "openai"
        assert settings.resolve_llm_backend() == "openai"

    def test_explicit_backend_wins(self) -> None:
        settings = Settings(
            _env_file=None,
            openai_api_key="sk-test",
            embedding_backend="ollama",
            llm_backend="openai",
        )
        assert settings.resolve_embedding_backend() == "ollama"
        assert settings.resolve_llm_backend() == "openai"


class TestValidation:
    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, llm_backend="anthropic")

    def test_non_positive_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, provider_timeout_seconds=0)
