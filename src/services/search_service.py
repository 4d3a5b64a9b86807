"""Embedding-similarity search over stored policy chunks.

The query is embedded once, then compared against every stored chunk
vector (optionally restricted to a set of region names) with cosine
similarity.  Chunks scoring at least :data:`SIMILARITY_THRESHOLD` are
ranked best-first and the top ``top_k`` are returned.

This is an exhaustive linear scan with no index structure, sized for a
corpus of thousands of chunks.  An approximate-nearest-neighbour index
could replace :meth:`HybridSearchService._score_candidates` without
changing the public contract.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.interfaces.record_store import IRecordStore
from src.models.policy import RegionChunk
from src.models.rag import SearchResult
from src.services.embedding_pipeline import EmbeddingPipeline
from src.utils.errors import VectorDimensionMismatch
from src.utils.logging import get_logger
from src.utils.similarity import cosine_similarity, is_match

logger: structlog.BoundLogger = get_logger(__name__)

SIMILARITY_THRESHOLD = 0.7
DEFAULT_TOP_K = 5


class HybridSearchService:
    """Ranks stored chunks by cosine similarity to a free-text query.

    Parameters
    ----------
    embedding_pipeline:
        Embeds the query (one provider call per search).
    store:
        Source of candidate chunks, joined with region and document title.
    threshold:
        Minimum similarity for a chunk to be returned.
    """

    def __init__(
        self,
        embedding_pipeline: EmbeddingPipeline,
        store: IRecordStore,
        threshold: float = SIMILARITY_THRESHOLD,
    ) -> None:
        self._embeddings = embedding_pipeline
        self._store = store
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    async def search(
        self,
        query: str,
        region_filter: Sequence[str] | None = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[SearchResult]:
        """Return up to *top_k* chunks ranked by similarity to *query*.

        Results are sorted by descending similarity; equal scores keep the
        store's retrieval order.

        Raises
        ------
        ValueError
            If *top_k* is less than 1.
        src.utils.errors.EmbeddingProviderError
            If the query cannot be embedded.
        src.utils.errors.VectorDimensionMismatch
            If a stored vector's length differs from the query vector's.
        """
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")

        query_vector = await self._embeddings.embed_query(query)
        candidates = await self._store.query_chunks(
            list(region_filter) if region_filter is not None else None
        )

        matches = self._score_candidates(query_vector, candidates)
        # sorted() is stable, so ties stay in retrieval order.
        ranked = sorted(matches, key=lambda r: r.similarity, reverse=True)[:top_k]

        logger.info(
            "hybrid_search_complete",
            candidates=len(candidates),
            matches=len(matches),
            returned=len(ranked),
            region_filter=list(region_filter) if region_filter is not None else None,
        )
        return ranked

    def _score_candidates(
        self,
        query_vector: list[float],
        candidates: Sequence[RegionChunk],
    ) -> list[SearchResult]:
        matches: list[SearchResult] = []
        for candidate in candidates:
            chunk = candidate.chunk
            if chunk.embedding is None:
                continue

            if len(chunk.embedding) != len(query_vector):
                raise VectorDimensionMismatch(
                    message=(
                        f"Chunk {chunk.chunk_id} has a {len(chunk.embedding)}-dimensional "
                        f"embedding but the query has {len(query_vector)}"
                    ),
                    provider_name=self._embeddings.provider_name,
                    expected=len(query_vector),
                    actual=len(chunk.embedding),
                )

            similarity = cosine_similarity(query_vector, chunk.embedding)
            if not is_match(similarity, self._threshold):
                continue

            matches.append(
                SearchResult(
                    chunk_id=chunk.chunk_id,
                    document_id=chunk.document_id,
                    content=chunk.content,
                    page_number=chunk.page_number,
                    similarity=similarity,
                    region_name=candidate.region_name,
                    document_title=candidate.document_title,
                )
            )
        return matches
