"""Unit tests for LLM provider adapters: OpenAI and Ollama."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.utils.errors import GenerationProviderError

_MESSAGES = [
    {"role": "system", "content": "system prompt"},
    {"role": "user", "content": "user prompt"},
]


# ======================================================================
# Shared helpers
# ======================================================================

def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
        "provider_timeout_seconds": 30,
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _chat_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(prompt_tokens=10, completion_tokens=5)
    return response


def _api_error(message: str) -> openai.APIError:
    return openai.APIError(message=message, request=MagicMock(), body=None)


# ======================================================================
# OpenAI LLM Provider
# ======================================================================


class TestOpenAILLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_provider_name(self, settings: Settings) -> None:
        from src.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(settings).get_provider_name() == "openai"
        compatible = OpenAILLMProvider(_settings(openai_base_url="https://api.together.xyz/v1"))
        assert compatible.get_provider_name() == "openai-compatible"

    def test_is_available_with_and_without_key(self, settings: Settings) -> None:
        from src.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(settings).is_available() is True
        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self, settings: Settings) -> None:
        from src.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response("answer [1]"))

        with patch("src.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            result = await provider.complete(_MESSAGES, temperature=0.1, max_tokens=1024)

        assert result == "answer [1]"
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == _MESSAGES
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 1024
        assert kwargs["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_complete_api_error(self, settings: Settings) -> None:
        from src.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_api_error("Rate limit"))

        with patch("src.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            with pytest.raises(GenerationProviderError) as exc_info:
                await provider.complete(_MESSAGES)

        assert exc_info.value.provider_name == "openai"
        assert isinstance(exc_info.value.__cause__, openai.APIError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, ""])
    async def test_complete_empty_content(self, settings: Settings, content: str | None) -> None:
        from src.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response(content))

        with patch("src.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            with pytest.raises(GenerationProviderError, match="empty response"):
                await provider.complete(_MESSAGES)

    @pytest.mark.asyncio
    async def test_validate_connection_without_key(self) -> None:
        from src.providers.llm.openai_provider import OpenAILLMProvider

        provider = OpenAILLMProvider(_settings(openai_api_key=""))
        assert await provider.validate_connection() is False


# ======================================================================
# Ollama LLM Provider
# ======================================================================


class TestOllamaLLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings(openai_api_key="")

    def test_client_points_at_v1_with_timeout(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        with patch("src.providers.llm.ollama_provider.openai.AsyncOpenAI") as client_cls:
            OllamaLLMProvider(settings)

        kwargs = client_cls.call_args.kwargs
        assert kwargs["base_url"] == "http://localhost:11434/v1"
        assert kwargs["timeout"] == 30

    def test_provider_name(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        assert OllamaLLMProvider(settings).get_provider_name() == "ollama"

    @pytest.mark.asyncio
    async def test_complete_uses_chat_model(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response("ok"))

        with patch("src.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OllamaLLMProvider(settings)
            assert await provider.complete(_MESSAGES) == "ok"

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "mistral:7b-instruct-q4_K_M"
        assert (kwargs["temperature"], kwargs["max_tokens"]) == (0.3, 512)

    @pytest.mark.asyncio
    async def test_complete_network_error(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=httpx.ConnectError("connection refused")
        )

        with patch("src.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OllamaLLMProvider(settings)
            with pytest.raises(GenerationProviderError) as exc_info:
                await provider.complete(_MESSAGES)

        assert str(exc_info.value).startswith("[ollama]")

    @pytest.mark.asyncio
    async def test_complete_blank_content(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response(""))

        with patch("src.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OllamaLLMProvider(settings)
            with pytest.raises(GenerationProviderError, match="empty response"):
                await provider.complete(_MESSAGES)

    @pytest.mark.asyncio
    async def test_validate_connection_success(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        mock_http = AsyncMock()
        mock_http.get = AsyncMock(return_value=MagicMock(status_code=200))
        mock_http.__aenter__ = AsyncMock(return_value=mock_http)
        mock_http.__aexit__ = AsyncMock(return_value=False)

        with patch("src.providers.llm.ollama_provider.httpx.AsyncClient", return_value=mock_http):
            provider = OllamaLLMProvider(settings)
            assert await provider.validate_connection() is True

        mock_http.get.assert_awaited_once_with("http://localhost:11434/api/tags")

    @pytest.mark.asyncio
    async def test_validate_connection_refused(self, settings: Settings) -> None:
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        mock_http = AsyncMock()
        mock_http.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        mock_http.__aenter__ = AsyncMock(return_value=mock_http)
        mock_http.__aexit__ = AsyncMock(return_value=False)

        with patch("src.providers.llm.ollama_provider.httpx.AsyncClient", return_value=mock_http):
            provider = OllamaLLMProvider(settings)
            assert await provider.validate_connection() is False
