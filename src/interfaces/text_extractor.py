"""Abstract base class for raw-document text extraction.

Text extraction runs upstream of chunking: it turns an uploaded file's
bytes into plain text plus a page count.  Failures surface as
:class:`~src.utils.errors.ExtractionError` and fail the ingestion job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import ExtractedText


# Concrete implementations: PDFTextExtractor, PlainTextExtractor
# Located in: src/providers/text_extraction/
class ITextExtractor(ABC):
    """Contract for converting document bytes into text."""

    @abstractmethod
    def extract(self, data: bytes) -> ExtractedText:
        """Return the document's text and page count.

        This is synchronous and may be CPU-heavy; async callers should run
        it in a worker thread.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the bytes cannot be parsed.
        """

    @abstractmethod
    def supports(self, file_name: str | None) -> bool:
        """Return ``True`` if this extractor handles files named like *file_name*."""
