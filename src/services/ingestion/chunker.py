"""Fixed-width overlapping text windows for embedding.

Splits extracted document text into :class:`~src.models.rag.TextWindow`
objects of 1000 characters with a 200-character overlap (stride 800).
Consecutive windows share 200 characters so a requirement that straddles a
boundary is fully contained in at least one window.

Windows are cut on raw character offsets, not on sentence or paragraph
boundaries, and each one is trimmed of surrounding whitespace.  Starting
at offset 0 the offset advances by the stride until a window reaches the
end of the text; the final window may be shorter than 1000 characters and
is never padded.  A window that would lie entirely inside its predecessor
is not emitted, so any text shorter than 1000 characters is one window.

Page numbers are a linear estimate, ``ceil(offset / len(text) * pages)``,
not true pagination: the first window always reports page 0 and dense or
sparse pages skew the estimate.  Citations inherit this imprecision.
"""

from __future__ import annotations

import math

import structlog

from src.models.rag import TextWindow

logger = structlog.get_logger(logger_name=__name__)

WINDOW_SIZE = 1000
WINDOW_OVERLAP = 200


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    The chunker is pure and deterministic: the same ``(text, total_pages)``
    always yields the same windows, so a failed ingestion can simply be
    re-run from the start.

    Parameters
    ----------
    window_size:
        Characters per window (default 1000).
    overlap:
        Characters shared by consecutive windows (default 200).  Must be
        smaller than ``window_size``.
    """

    def __init__(self, window_size: int = WINDOW_SIZE, overlap: int = WINDOW_OVERLAP) -> None:
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        if not 0 <= overlap < window_size:
            raise ValueError("overlap must be in [0, window_size)")
        self._window_size = window_size
        self._overlap = overlap

    @property
    def stride(self) -> int:
        """Distance between the start offsets of consecutive windows."""
        return self._window_size - self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, total_pages: int) -> list[TextWindow]:
        """Split *text* into ordered, overlapping :class:`TextWindow` objects.

        Parameters
        ----------
        text:
            The full extracted document text.
        total_pages:
            Page count of the source document, used for page estimates.

        Returns
        -------
        list[TextWindow]
            Windows in document order with ``chunk_index`` 0, 1, 2, ...
            Empty input returns an empty list.
        """
        text_length = len(text)
        if text_length == 0:
            return []

        windows: list[TextWindow] = []
        for chunk_index, offset in enumerate(range(0, text_length, self.stride)):
            end = offset + self._window_size
            windows.append(
                TextWindow(
                    content=text[offset:end].strip(),
                    page_number=estimate_page(offset, text_length, total_pages),
                    chunk_index=chunk_index,
                )
            )
            if end >= text_length:
                break

        logger.debug(
            "chunking_complete",
            num_windows=len(windows),
            text_chars=text_length,
            total_pages=total_pages,
        )
        return windows


def estimate_page(offset: int, text_length: int, total_pages: int) -> int:
    """Return ``ceil(offset / text_length * total_pages)``.

    A linear approximation; see the module docstring.
    """
    if text_length <= 0 or total_pages <= 0:
        return 0
    return math.ceil((offset / text_length) * total_pages)
