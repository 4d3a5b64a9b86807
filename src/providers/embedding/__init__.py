"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
They are stored with each chunk and compared at query time.

Two implementations of IEmbeddingProvider:
    1. OllamaEmbeddingProvider -- nomic-embed-text via a local Ollama server
       (768 dims).  Free and local; the default backend.
    2. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) or any
       OpenAI-compatible embeddings API.

Vectors from different backends are not comparable: switching backends
requires re-ingesting every document.
"""

from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OllamaEmbeddingProvider", "OpenAIEmbeddingProvider"]
