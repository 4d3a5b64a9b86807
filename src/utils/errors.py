"""Custom exception hierarchy for policyLens.

All application exceptions inherit from :class:`PolicyLensError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "ollama", "openai", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    PolicyLensError  (base -- catch-all for any policyLens error)
    +-- ExtractionError          (raw document -> text failed)
    +-- IngestionError           (a queued job could not resolve its input)
    +-- EmbeddingProviderError   (embedding call failed or was malformed)
    +-- GenerationProviderError  (text-generation call failed)
    +-- VectorDimensionMismatch  (query/candidate vector length disagree)
    +-- InvalidHistoryError      (conversation turn with an unsupported role)
    +-- RecordStoreError         (persistence failure)
    |   +-- DocumentNotFoundError
    |   +-- InvalidStatusTransitionError
    +-- JSONExtractionFailure    (no parseable JSON object in model output)
    +-- ConfigurationError       (startup / missing config)

Only :class:`JSONExtractionFailure` is non-fatal by convention: the fact
extractor absorbs it and produces zero facts.  Every other error aborts the
ingestion job or request that raised it.
"""


class PolicyLensError(Exception):
    """Base exception for all policyLens errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[ollama] connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion-side errors
# ---------------------------------------------------------------------------

class ExtractionError(PolicyLensError):
    """Raised when text cannot be extracted from a raw document buffer."""

    def __init__(
        self,
        message: str = "Document text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(PolicyLensError):
    """Raised when an ingestion job carries neither a buffer nor a readable file."""

    def __init__(
        self,
        message: str = "Ingestion job could not be processed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External provider errors
# ---------------------------------------------------------------------------

class EmbeddingProviderError(PolicyLensError):
    """Raised when the embedding provider fails or returns malformed vectors."""

    def __init__(
        self,
        message: str = "Embedding provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationProviderError(PolicyLensError):
    """Raised when the text-generation provider fails or returns no content."""

    def __init__(
        self,
        message: str = "Text generation provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval errors
# ---------------------------------------------------------------------------

class VectorDimensionMismatch(PolicyLensError):
    """Raised when two vectors compared for similarity differ in length."""

    def __init__(
        self,
        message: str = "Vector dimensions do not match",
        provider_name: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        self._expected = expected
        self._actual = actual
        super().__init__(message=message, provider_name=provider_name)

    @property
    def expected(self) -> int | None:
        return self._expected

    @property
    def actual(self) -> int | None:
        return self._actual


class InvalidHistoryError(PolicyLensError):
    """Raised when a conversation history entry is not a user/assistant turn."""

    def __init__(
        self,
        message: str = "Invalid conversation history entry",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------

class RecordStoreError(PolicyLensError):
    """Raised when the record store cannot read or write rows."""

    def __init__(
        self,
        message: str = "Record store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(RecordStoreError):
    """Raised when a document identifier has no matching row."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidStatusTransitionError(RecordStoreError):
    """Raised when a document status update would move the lifecycle backwards."""

    def __init__(
        self,
        message: str = "Invalid document status transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Parsing / configuration errors
# ---------------------------------------------------------------------------

class JSONExtractionFailure(PolicyLensError):
    """Raised when no JSON object can be located or parsed in model output."""

    def __init__(
        self,
        message: str = "Could not extract a JSON object from model output",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(PolicyLensError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
