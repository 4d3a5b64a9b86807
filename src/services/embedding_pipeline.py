"""Sequential embedding of chunk texts and search queries.

The pipeline sits between the chunker and the record store.  It calls the
embedding provider once per text, strictly one call at a time, which keeps
load on a local model server bounded while the single ingestion worker
runs.  A document's chunks embed all together or not at all: the first
failing call aborts the batch and any vectors already produced are
discarded.

Every returned vector is validated (non-empty, numeric, finite, same length
as the rest of the batch) so malformed provider output surfaces here as
:class:`EmbeddingProviderError` instead of as a corrupt row in the store.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.rag import EmbeddedWindow, TextWindow
from src.utils.errors import EmbeddingProviderError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingPipeline:
    """Maps ordered texts to ordered embedding vectors via one provider.

    Parameters
    ----------
    provider:
        The embedding backend.  Any exception it raises is reported as
        :class:`EmbeddingProviderError`.
    """

    def __init__(self, provider: IEmbeddingProvider) -> None:
        self._provider = provider

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed every text in order; ``result[i]`` is the vector for ``texts[i]``.

        Raises
        ------
        EmbeddingProviderError
            If any call fails or returns a malformed vector.  No partial
            result is returned.
        """
        vectors: list[list[float]] = []
        dimension: int | None = None

        for index, text in enumerate(texts):
            vector = await self._embed_one(text, index)
            if dimension is None:
                dimension = len(vector)
            elif len(vector) != dimension:
                raise EmbeddingProviderError(
                    message=(
                        f"Inconsistent embedding length at index {index}: "
                        f"expected {dimension}, got {len(vector)}"
                    ),
                    provider_name=self.provider_name,
                )
            vectors.append(vector)

        logger.info(
            "embedding_batch_complete",
            count=len(vectors),
            dimension=dimension,
            provider=self.provider_name,
        )
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single search query."""
        return await self._embed_one(query, 0)

    async def embed_windows(self, windows: Sequence[TextWindow]) -> list[EmbeddedWindow]:
        """Attach a vector to each chunker window, preserving order."""
        vectors = await self.embed_texts([w.content for w in windows])
        return [
            EmbeddedWindow(window=window, embedding=vector)
            for window, vector in zip(windows, vectors)
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_one(self, text: str, index: int) -> list[float]:
        try:
            raw = await self._provider.embed_single(text)
        except EmbeddingProviderError:
            raise
        except Exception as exc:  # noqa: BLE001 -- adapter leaked an SDK error
            raise EmbeddingProviderError(
                message=f"Embedding call {index} failed: {exc}",
                provider_name=self.provider_name,
            ) from exc
        return self._validate(raw, index)

    def _validate(self, raw: Any, index: int) -> list[float]:
        if not isinstance(raw, (list, tuple)) or not raw:
            raise EmbeddingProviderError(
                message=f"Malformed embedding at index {index}: expected a non-empty list",
                provider_name=self.provider_name,
            )

        vector: list[float] = []
        for value in raw:
            # bool is an int subclass but never a meaningful vector component.
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise EmbeddingProviderError(
                    message=f"Malformed embedding at index {index}: non-numeric component",
                    provider_name=self.provider_name,
                )
            if not math.isfinite(value):
                raise EmbeddingProviderError(
                    message=f"Malformed embedding at index {index}: non-finite component",
                    provider_name=self.provider_name,
                )
            vector.append(float(value))
        return vector
