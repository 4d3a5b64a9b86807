"""Retrieval and answer models for the policyLens query path.

Defines Pydantic v2 models for chunker output windows, extracted document
text, scored search results, RAG answers and their citations.  All models
use frozen config.

Query-path overview:
    1. SEARCH: the query is embedded and compared against every stored chunk
       vector; chunks scoring at least 0.7 become :class:`SearchResult`.
    2. ANSWER: the top results are numbered ``[1]..[N]`` in a context block
       and sent with the question to the generation provider, producing a
       :class:`RAGResponse` with one :class:`Citation` per result.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Ingestion-side value objects
# ---------------------------------------------------------------------------
class ExtractedText(BaseModel):
    """Plain text recovered from a raw document plus its page count."""

    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int = Field(default=1, ge=0)


class TextWindow(BaseModel):
    """One chunker output window, before it has an embedding."""

    model_config = ConfigDict(frozen=True)

    content: str
    page_number: int = Field(ge=0, description="Linear page estimate from the window offset.")
    chunk_index: int = Field(ge=0)


class EmbeddedWindow(BaseModel):
    """A :class:`TextWindow` paired with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    window: TextWindow
    embedding: list[float]


# ---------------------------------------------------------------------------
# Query-side models
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A stored chunk scored against a query."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    content: str
    page_number: int
    similarity: float = Field(description="Cosine similarity between query and chunk vectors.")
    region_name: str
    document_title: str


class Citation(BaseModel):
    """Evidence attached to a RAG answer, one per retrieved search result."""

    model_config = ConfigDict(frozen=True)

    content: str
    page_number: int
    region_name: str
    document_title: str


class ConversationMessage(BaseModel):
    """One prior turn of a Q&A conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class RAGResponse(BaseModel):
    """Answer to a natural-language question with supporting citations.

    ``confidence`` is a calibration heuristic derived from retrieval
    similarity, not a probability that the answer is correct.
    """

    model_config = ConfigDict(frozen=True)

    answer: str
    confidence: float = Field(ge=0.0, le=1.0)
    citations: list[Citation] = Field(default_factory=list)
    suggested_queries: list[str] | None = None
