"""Pydantic models shared across the policyLens pipeline."""

from src.models.coverage import CoverageLevel, RegionCoverage, RegionFactStats, StoreSummary
from src.models.policy import (
    Chunk,
    Document,
    DocumentStatus,
    Fact,
    FactCategory,
    IngestionJob,
    Region,
    RegionChunk,
)
from src.models.rag import (
    Citation,
    ConversationMessage,
    EmbeddedWindow,
    ExtractedText,
    RAGResponse,
    SearchResult,
    TextWindow,
)

__all__ = [
    "Chunk",
    "Citation",
    "ConversationMessage",
    "CoverageLevel",
    "Document",
    "DocumentStatus",
    "EmbeddedWindow",
    "ExtractedText",
    "Fact",
    "FactCategory",
    "IngestionJob",
    "RAGResponse",
    "Region",
    "RegionChunk",
    "RegionCoverage",
    "RegionFactStats",
    "SearchResult",
    "StoreSummary",
    "TextWindow",
]
