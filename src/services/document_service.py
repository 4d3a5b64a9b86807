"""Document registration for uploaded policy files.

Before a file can be ingested it needs a Document row in ``processing``
status owned by a Region.  :class:`DocumentService` derives the region from
the upload filename (CCHP report naming), creates the region on first use,
creates the document, and optionally stages the raw bytes on disk so the
ingestion worker can read them back by path.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path
from typing import NamedTuple

import structlog

from src.interfaces.record_store import IRecordStore
from src.models.policy import Document, DocumentStatus
from src.utils.errors import IngestionError
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

UNKNOWN_REGION = "Unknown"

_CCHP_PATTERN = re.compile(r"CCHP\s+(.+?)\s+Telehealth", re.IGNORECASE)
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w. -]")

_REGION_ABBREVIATIONS: dict[str, str] = {
    "alabama": "AL",
    "alaska": "AK",
    "arizona": "AZ",
    "arkansas": "AR",
    "california": "CA",
    "colorado": "CO",
    "connecticut": "CT",
    "delaware": "DE",
    "district of columbia": "DC",
    "florida": "FL",
    "georgia": "GA",
    "hawaii": "HI",
    "idaho": "ID",
    "illinois": "IL",
    "indiana": "IN",
    "iowa": "IA",
    "kansas": "KS",
    "kentucky": "KY",
    "louisiana": "LA",
    "maine": "ME",
    "maryland": "MD",
    "massachusetts": "MA",
    "michigan": "MI",
    "minnesota": "MN",
    "mississippi": "MS",
    "missouri": "MO",
    "montana": "MT",
    "nebraska": "NE",
    "nevada": "NV",
    "new hampshire": "NH",
    "new jersey": "NJ",
    "new mexico": "NM",
    "new york": "NY",
    "north carolina": "NC",
    "north dakota": "ND",
    "ohio": "OH",
    "oklahoma": "OK",
    "oregon": "OR",
    "pennsylvania": "PA",
    "rhode island": "RI",
    "south carolina": "SC",
    "south dakota": "SD",
    "tennessee": "TN",
    "texas": "TX",
    "utah": "UT",
    "vermont": "VT",
    "virginia": "VA",
    "washington": "WA",
    "west virginia": "WV",
    "wisconsin": "WI",
    "wyoming": "WY",
    "puerto rico": "PR",
    "virgin islands": "VI",
    "guam": "GU",
    "american samoa": "AS",
    "northern mariana islands": "MP",
    "unknown": "UN",
}


def extract_region_name(file_name: str) -> str:
    """Return the region named in a ``"CCHP <Region> Telehealth ..."`` filename.

    >>> extract_region_name("CCHP Alabama Telehealth Laws Report, 07-18-2025.pdf")
    'Alabama'
    >>> extract_region_name("notes.pdf")
    'Unknown'
    """
    match = _CCHP_PATTERN.search(file_name)
    if not match:
        return UNKNOWN_REGION
    return match.group(1).strip() or UNKNOWN_REGION


def region_abbreviation(region_name: str) -> str:
    """Return the postal code for a US state or territory.

    Other names fall back to the upper-cased initials of their first three
    words; a blank name gives ``"UN"``.
    """
    normalized = region_name.strip().lower()
    if not normalized:
        return "UN"
    if normalized in _REGION_ABBREVIATIONS:
        return _REGION_ABBREVIATIONS[normalized]
    initials = "".join(part[0].upper() for part in normalized.split())[:3]
    return initials or "UN"


def safe_file_name(file_name: str) -> str:
    """Replace characters outside ``[A-Za-z0-9_. -]`` with underscores."""
    return _UNSAFE_FILENAME_CHARS.sub("_", file_name)


class RegisteredUpload(NamedTuple):
    """A newly created document and, if staged, where its bytes live."""

    document: Document
    region_name: str
    staged_path: Path | None


class DocumentService:
    """Creates documents for uploads and reports their processing status.

    Parameters
    ----------
    store:
        Record store that owns regions and documents.
    upload_dir:
        Directory where staged uploads are written.
    """

    def __init__(self, store: IRecordStore, upload_dir: str | Path) -> None:
        self._store = store
        self._upload_dir = Path(upload_dir)

    async def register_upload(
        self,
        file_name: str,
        data: bytes,
        region_name: str | None = None,
        stage: bool = False,
    ) -> RegisteredUpload:
        """Create the document row for an upload.

        Parameters
        ----------
        file_name:
            Original filename; used as title and to infer the region.
        data:
            Raw file bytes.  Only the length is recorded unless *stage* is set.
        region_name:
            Explicit region; inferred from *file_name* when omitted.
        stage:
            Write *data* under the upload directory with a unique name.

        Raises
        ------
        IngestionError
            If staging the file fails.
        RecordStoreError
            If the document row cannot be created; a staged copy is removed.
        """
        name = (region_name or "").strip() or extract_region_name(file_name)
        region = await self._store.get_or_create_region(name, region_abbreviation(name))

        staged_path: Path | None = None
        if stage:
            staged_path = await self._stage(file_name, data)

        try:
            document = await self._store.create_document(
                region_id=region.region_id,
                title=file_name,
                file_name=file_name,
                file_size=len(data),
            )
        except Exception:
            if staged_path is not None:
                await self._discard(staged_path)
            raise

        logger.info(
            "document_registered",
            document_id=document.document_id,
            region=region.name,
            file_name=file_name,
            file_size=len(data),
            staged=staged_path is not None,
        )
        return RegisteredUpload(document=document, region_name=region.name, staged_path=staged_path)

    async def get_status(self, document_id: str) -> DocumentStatus:
        """Return the current status of *document_id*."""
        document = await self._store.get_document(document_id)
        return document.status

    async def _stage(self, file_name: str, data: bytes) -> Path:
        target = self._upload_dir / f"{uuid.uuid4()}-{safe_file_name(Path(file_name).name)}"

        def _write() -> None:
            self._upload_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise IngestionError(f"Cannot stage upload {file_name}: {exc}") from exc
        return target

    async def _discard(self, path: Path) -> None:
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            logger.warning("staged_upload_delete_failed", file_path=str(path), error=str(exc))
