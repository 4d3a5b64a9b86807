"""Abstract base class for text-embedding service providers.

Defines the contract for turning one text into one fixed-length vector.
Implementations wrap ``nomic-embed-text`` served by a local Ollama instance
or an OpenAI-compatible embeddings endpoint.  Batching across many texts is
not the provider's job: :class:`~src.services.embedding_pipeline.EmbeddingPipeline`
calls :meth:`embed_single` sequentially to bound provider load.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OllamaEmbeddingProvider  -- nomic-embed-text via Ollama (local, default)
#   OpenAIEmbeddingProvider  -- text-embedding-3-small or a compatible API
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and search."""

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Parameters
        ----------
        text:
            The text string to embed.

        Returns
        -------
        list[float]
            The embedding vector.  Its length is provider-defined but
            constant for the lifetime of the provider instance.

        Raises
        ------
        src.utils.errors.EmbeddingProviderError
            If the provider is unreachable, the model is missing, or the
            call times out.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider.

        Example return values: ``"ollama_embedding"``, ``"openai_embedding"``.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable.

        Implementations should not generate an embedding to answer this.
        """
