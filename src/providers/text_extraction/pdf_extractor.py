"""Text extraction for PDF policy reports.

Reads PDF bytes using PyMuPDF (fitz) and joins the text of every page with
a blank line, so the chunker sees one continuous document.  Pages without a
text layer contribute nothing but still count toward ``page_count``, which
keeps the chunker's linear page estimate aligned with the physical document.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.models.rag import ExtractedText
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFTextExtractor(ITextExtractor):
    """Extracts plain text and the page count from PDF bytes."""

    def extract(self, data: bytes) -> ExtractedText:
        if not data:
            raise ExtractionError(message="Empty PDF buffer", provider_name="pymupdf")

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:  # noqa: BLE001 -- PyMuPDF raises several unrelated types
            raise ExtractionError(
                message=f"Unreadable PDF: {exc}",
                provider_name="pymupdf",
            ) from exc

        try:
            page_count = doc.page_count
            page_texts = [page.get_text("text") for page in doc]
        except Exception as exc:  # noqa: BLE001
            raise ExtractionError(
                message=f"Failed to read PDF pages: {exc}",
                provider_name="pymupdf",
            ) from exc
        finally:
            doc.close()

        text = "\n\n".join(t.strip() for t in page_texts if t.strip())
        if not text:
            logger.warning("pdf_no_text_extracted", pages=page_count)

        logger.debug("pdf_extracted", pages=page_count, chars=len(text))
        return ExtractedText(text=text, page_count=page_count)

    def supports(self, file_name: str | None) -> bool:
        # Uploads without a name are assumed to be PDF reports.
        return file_name is None or file_name.lower().endswith(".pdf")


class PlainTextExtractor(ITextExtractor):
    """Decodes UTF-8 text files; the whole file counts as one page."""

    _SUFFIXES = (".txt", ".md")

    def extract(self, data: bytes) -> ExtractedText:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ExtractionError(
                message=f"Text file is not valid UTF-8: {exc}",
                provider_name="plain_text",
            ) from exc
        return ExtractedText(text=text, page_count=1)

    def supports(self, file_name: str | None) -> bool:
        return file_name is not None and file_name.lower().endswith(self._SUFFIXES)
