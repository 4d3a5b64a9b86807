"""Public interface definitions for all external collaborators.

Every external service in the policyLens pipeline is reached only through
the abstract base classes defined here.  Concrete adapters implement them
and are injected at the composition root (``src/main.py``), so services
and tests never import a provider SDK directly.

CONCRETE PROVIDER MAP:
    Interface            →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────
    IEmbeddingProvider   →  OllamaEmbeddingProvider, OpenAIEmbeddingProvider
    ILLMProvider         →  OllamaLLMProvider, OpenAILLMProvider
    IRecordStore         →  SQLiteRecordStore
    ITextExtractor       →  PDFTextExtractor, PlainTextExtractor
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ChatMessage, ILLMProvider
from src.interfaces.record_store import IRecordStore
from src.interfaces.text_extractor import ITextExtractor

__all__ = [
    "ChatMessage",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IRecordStore",
    "ITextExtractor",
]
