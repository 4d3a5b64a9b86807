"""Vector similarity helpers for exhaustive embedding search.

Cosine similarity is computed with numpy on float64 copies of the inputs.
A zero-norm vector has no direction, so its similarity is ``nan``; callers
treat ``nan`` as a non-match rather than an error.  Length disagreement is
always an error because it means the stored corpus and the query were
embedded by different models.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from src.utils.errors import VectorDimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b*, clipped to ``[-1, 1]``.

    Raises
    ------
    VectorDimensionMismatch
        If the vectors differ in length.
    """
    if len(a) != len(b):
        raise VectorDimensionMismatch(
            message=f"Vectors must have the same length (got {len(a)} and {len(b)})",
            expected=len(a),
            actual=len(b),
        )

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0 or not math.isfinite(denominator):
        return math.nan

    # Rounding can push |v.v| / |v|^2 a hair past 1.0.
    return float(np.clip(np.dot(va, vb) / denominator, -1.0, 1.0))


def is_match(similarity: float, threshold: float) -> bool:
    """Return ``True`` if *similarity* is a real number at or above *threshold*."""
    return not math.isnan(similarity) and similarity >= threshold
