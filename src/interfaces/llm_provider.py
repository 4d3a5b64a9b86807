"""Abstract base class for text-generation providers.

Defines the contract for chat-style completion used by the RAG answer
assembler and the structured fact extractor.  Implementations wrap a local
Ollama server or an OpenAI-compatible chat completions API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TypedDict


class ChatMessage(TypedDict):
    """One message in a chat completion request."""

    role: str  # "system" | "user" | "assistant"
    content: str


# Concrete implementations: OllamaLLMProvider, OpenAILLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-generation services."""

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 512,
    ) -> str:
        """Generate a completion for an ordered list of chat messages.

        Parameters
        ----------
        messages:
            Messages in conversation order, usually starting with a
            ``system`` instruction and ending with a ``user`` turn.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's raw text response.

        Raises
        ------
        src.utils.errors.GenerationProviderError
            If the call fails, times out, or returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider.

        Example return values: ``"ollama"``, ``"openai"``.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Unlike :meth:`validate_connection`, this never contacts the service.
        """

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Perform a lightweight call to confirm the service is reachable.

        Returns ``False`` rather than raising when the service is down.
        """
