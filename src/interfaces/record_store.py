"""Abstract base class for the durable record store.

The record store owns regions, documents, chunks and facts.  The ingestion
worker is its only writer; search and Q&A only read.  Chunk writes for one
document happen in a single all-or-nothing batch, so readers either see all
of a document's chunks or none of them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from src.models.coverage import RegionFactStats, StoreSummary
from src.models.policy import (
    Chunk,
    Document,
    DocumentStatus,
    Fact,
    Region,
    RegionChunk,
)


# Concrete implementation: SQLiteRecordStore
# Located in: src/providers/record_store/
class IRecordStore(ABC):
    """Contract for policy document persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they do not already exist."""

    # -- Regions --------------------------------------------------------

    @abstractmethod
    async def get_or_create_region(self, name: str, abbreviation: str) -> Region:
        """Return the region called *name* (case-insensitive), creating it if absent."""

    @abstractmethod
    async def get_region(self, region_id: str) -> Region:
        """Return the region.

        Raises
        ------
        src.utils.errors.RecordStoreError
            If no region has that identifier.
        """

    # -- Documents ------------------------------------------------------

    @abstractmethod
    async def create_document(
        self,
        region_id: str,
        title: str,
        file_name: str,
        file_size: int,
    ) -> Document:
        """Insert a new document in ``processing`` status and return it."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document:
        """Return the document.

        Raises
        ------
        src.utils.errors.DocumentNotFoundError
            If no document has that identifier.
        """

    @abstractmethod
    async def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        """Return documents in upload order, optionally filtered by status."""

    @abstractmethod
    async def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        processed_at: datetime | None = None,
    ) -> Document:
        """Move a document to *status* and return the updated record.

        Raises
        ------
        src.utils.errors.InvalidStatusTransitionError
            If the move is not forward (see
            :meth:`DocumentStatus.can_transition_to`).
        """

    # -- Chunks ---------------------------------------------------------

    @abstractmethod
    async def insert_chunks(self, chunks: Sequence[Chunk]) -> int:
        """Insert all *chunks* in one transaction; return the number written.

        Either every chunk is written or none is.
        """

    @abstractmethod
    async def get_document_chunks(self, document_id: str) -> list[Chunk]:
        """Return one document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def query_chunks(self, region_names: Sequence[str] | None = None) -> list[RegionChunk]:
        """Return chunks joined with document title and region name.

        ``None`` returns every chunk.  A sequence restricts results to
        documents whose region name is in it (an empty sequence matches
        nothing).  Rows come back in a stable storage order.
        """

    # -- Facts ----------------------------------------------------------

    @abstractmethod
    async def insert_facts(self, facts: Sequence[Fact]) -> int:
        """Append *facts*; return the number written.  Never updates rows."""

    @abstractmethod
    async def get_document_facts(self, document_id: str) -> list[Fact]:
        """Return one document's facts in insertion order."""

    # -- Aggregates -----------------------------------------------------

    @abstractmethod
    async def region_fact_stats(self) -> list[RegionFactStats]:
        """Return fact aggregates for every region, ordered by name.

        Regions without documents or facts are included with zero counts.
        """

    @abstractmethod
    async def summary_counts(self) -> StoreSummary:
        """Return document counts per status and store-wide row totals."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
