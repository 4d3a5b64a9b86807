"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible API endpoint, using
the ``openai`` client library pointed at the Ollama base URL.  This lets
policyLens answer questions and extract facts fully offline with no API
costs, at the price of smaller local models.

Setup: install Ollama, then ``ollama pull mistral:7b-instruct-q4_K_M`` and
``ollama pull nomic-embed-text``.  Set OLLAMA_BASE_URL if the server is not
on ``http://localhost:11434``.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ChatMessage, ILLMProvider
from src.utils.errors import GenerationProviderError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server.

    Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
    the ``openai.AsyncOpenAI`` client pointed at the local URL.  Note that
    ``max_tokens`` maps onto Ollama's ``num_predict`` option server-side.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # The SDK requires a non-empty key; Ollama ignores it.
            api_key="ollama",
            timeout=settings.provider_timeout_seconds,
            max_retries=0,
        )
        self._text_model = settings.ollama_chat_model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 512,
    ) -> str:
        """Generate a chat completion via Ollama's OpenAI-compatible API."""
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[dict(m) for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except (openai.APIError, httpx.HTTPError) as exc:
            raise GenerationProviderError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationProviderError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_completion", model=self._text_model, messages=len(messages))
        return content

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    async def validate_connection(self) -> bool:
        """Check that the Ollama server is running and reachable.

        The ``/api/tags`` endpoint lists installed models without running
        inference.
        """
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"
