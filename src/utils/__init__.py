"""Utility modules for policyLens.

- **errors** -- Domain exception hierarchy rooted at PolicyLensError; each
  pipeline stage raises its own subclass so callers can handle failures
  without broad ``except Exception`` blocks.
- **logging** -- structlog setup with a dual-renderer pattern (coloured
  console in development, JSON in production) and job-scoped context.
- **similarity** -- numpy cosine similarity used by the exhaustive search.
- **json_extraction** -- tolerant ``{...}`` extraction from model output.
"""

from src.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    ExtractionError,
    GenerationProviderError,
    IngestionError,
    InvalidHistoryError,
    InvalidStatusTransitionError,
    JSONExtractionFailure,
    PolicyLensError,
    RecordStoreError,
    VectorDimensionMismatch,
)
from src.utils.json_extraction import JSONParseResult, extract_json_object, parse_json_object
from src.utils.logging import configure_logging, get_logger, job_context
from src.utils.similarity import cosine_similarity, is_match

__all__ = [
    "ConfigurationError",
    "DocumentNotFoundError",
    "EmbeddingProviderError",
    "ExtractionError",
    "GenerationProviderError",
    "IngestionError",
    "InvalidHistoryError",
    "InvalidStatusTransitionError",
    "JSONExtractionFailure",
    "JSONParseResult",
    "PolicyLensError",
    "RecordStoreError",
    "VectorDimensionMismatch",
    "configure_logging",
    "cosine_similarity",
    "extract_json_object",
    "get_logger",
    "is_match",
    "job_context",
    "parse_json_object",
]
