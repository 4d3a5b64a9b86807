"""Core domain records for the policyLens ingestion pipeline.

Defines enums and Pydantic v2 models for regions, policy documents, stored
chunks, extracted facts, and the transient ingestion job.  All persisted
records use frozen config: a status change produces a new Document value
returned by the record store rather than mutating one in place.

Key relationships:
    - Region has many Document and Fact records
    - Document has many Chunk records (unique, increasing ``chunk_index``)
    - Fact references both its Document and the Document's Region
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DocumentStatus(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Lifecycle of one ingested document.

    ``processing`` is the only non-terminal state.  A document never moves
    from a terminal state back to ``processing`` through this package;
    re-ingesting a failed document requires an operator reset.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: DocumentStatus) -> bool:
        """Return ``True`` if moving from this status to *target* goes forward."""
        return self is DocumentStatus.PROCESSING and target is not DocumentStatus.PROCESSING


class FactCategory(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Fixed taxonomy of extracted policy facts.

    The string values are persisted and consumed by coverage dashboards,
    so they must never be renamed.
    """

    MODALITY = "modality"
    CONSENT = "consent"
    IN_PERSON = "in_person"
    PROVIDER_ELIGIBILITY = "provider_eligibility"
    SITE_ELIGIBILITY = "site_eligibility"
    BILLING = "billing"
    DOCUMENTATION = "documentation"
    PRESCRIBING = "prescribing"


class Region(BaseModel):
    """A named jurisdiction (a state, in the telehealth reports) owning documents."""

    model_config = ConfigDict(frozen=True)

    region_id: str = Field(description="Unique identifier (UUID) for this region.")
    name: str = Field(min_length=1, description="Display name, e.g. 'Alabama'.")
    abbreviation: str = Field(default="UN", description="Short code, e.g. 'AL'.")


class Document(BaseModel):
    """One ingested policy file and its processing lifecycle."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Unique identifier (UUID) for this document.")
    region_id: str = Field(description="Identifier of the owning region.")
    title: str = Field(description="Human-readable document title.")
    file_name: str = Field(description="Original upload filename.")
    file_size: int = Field(default=0, ge=0, description="Size of the uploaded file in bytes.")
    status: DocumentStatus = Field(default=DocumentStatus.PROCESSING)
    uploaded_at: datetime = Field(description="When the upload was accepted.")
    processed_at: datetime | None = Field(
        default=None,
        description="When ingestion completed successfully; unset otherwise.",
    )


class Chunk(BaseModel):
    """A stored text window of a document with its embedding vector.

    ``page_number`` is an estimate interpolated from the character offset
    (see :mod:`src.services.ingestion.chunker`), not a true page boundary.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Identifier of the owning document.")
    content: str = Field(description="The window's text content.")
    page_number: int = Field(default=0, ge=0, description="Estimated source page.")
    chunk_index: int = Field(ge=0, description="Zero-based position within the document.")
    embedding: list[float] | None = Field(
        default=None,
        description="Embedding vector; ``None`` for rows written without one.",
    )


class RegionChunk(BaseModel):
    """A chunk joined with its document title and region name.

    Returned by :meth:`IRecordStore.query_chunks` so search never needs a
    second round trip to label its results.
    """

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    document_title: str
    region_name: str


class Fact(BaseModel):
    """One structured assertion extracted from a document."""

    model_config = ConfigDict(frozen=True)

    fact_id: str = Field(description="Unique identifier (UUID) for this fact.")
    document_id: str = Field(description="Identifier of the source document.")
    region_id: str = Field(description="Identifier of the document's region.")
    category: FactCategory
    field: str = Field(min_length=1, description="Field name within the category, e.g. 'live_video'.")
    value: str = Field(description="Free-text value as stated by the document.")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    page_number: int | None = Field(default=None, ge=0)


class IngestionJob(BaseModel):
    """A transient unit of ingestion work held only in process memory.

    Exactly one of ``buffer`` / ``file_path`` is normally supplied; when both
    are present the in-memory buffer wins and the file is only relevant for
    post-job deletion.
    """

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(description="Identifier used to correlate log lines.")
    document_id: str
    buffer: bytes | None = None
    file_path: str | None = None
    file_name: str | None = Field(
        default=None,
        description="Original filename; used to pick the text extractor.",
    )
    delete_file_after: bool = False

    @model_validator(mode="after")
    def _delete_requires_path(self) -> IngestionJob:
        if self.delete_file_after and not self.file_path:
            raise ValueError("delete_file_after requires file_path")
        return self
