"""Raw-document text extractors.

Implementations of ITextExtractor (src/interfaces/text_extractor.py):
    - PDFTextExtractor   -- PyMuPDF page text, joined with blank lines
    - PlainTextExtractor -- UTF-8 .txt / .md files, counted as one page
"""

from src.providers.text_extraction.pdf_extractor import PDFTextExtractor, PlainTextExtractor

__all__ = ["PDFTextExtractor", "PlainTextExtractor"]
