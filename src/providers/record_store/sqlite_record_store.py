"""SQLite-backed record store.

Persists regions, documents, chunks and facts to a local SQLite database at
``data/policies.db``.  Uses ``aiosqlite`` for async I/O and opens one
connection per operation, so the store is safe to share between the
ingestion worker and concurrent search requests.

Embeddings are stored as JSON arrays in a TEXT column.  That keeps the
schema portable and is adequate for the exhaustive search this system
performs over thousands of chunks.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.record_store import IRecordStore
from src.models.coverage import RegionFactStats, StoreSummary
from src.models.policy import (
    Chunk,
    Document,
    DocumentStatus,
    Fact,
    FactCategory,
    Region,
    RegionChunk,
)
from src.utils.errors import (
    DocumentNotFoundError,
    InvalidStatusTransitionError,
    RecordStoreError,
)

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/policies.db")

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in DocumentStatus)
_CATEGORY_VALUES = ", ".join(f"'{c.value}'" for c in FactCategory)

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS regions (
    id           TEXT PRIMARY KEY,
    name         TEXT NOT NULL UNIQUE COLLATE NOCASE,
    abbreviation TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS documents (
    id           TEXT PRIMARY KEY,
    region_id    TEXT NOT NULL REFERENCES regions(id),
    title        TEXT NOT NULL,
    file_name    TEXT NOT NULL,
    file_size    INTEGER NOT NULL DEFAULT 0,
    status       TEXT NOT NULL CHECK (status IN ({_STATUS_VALUES})),
    uploaded_at  TEXT NOT NULL,
    processed_at TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id          TEXT PRIMARY KEY,
    document_id TEXT NOT NULL REFERENCES documents(id),
    content     TEXT NOT NULL,
    page_number INTEGER NOT NULL DEFAULT 0,
    chunk_index INTEGER NOT NULL,
    embedding   TEXT,
    UNIQUE(document_id, chunk_index)
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS facts (
    id          TEXT PRIMARY KEY,
    document_id TEXT NOT NULL REFERENCES documents(id),
    region_id   TEXT NOT NULL REFERENCES regions(id),
    category    TEXT NOT NULL CHECK (category IN ({_CATEGORY_VALUES})),
    field       TEXT NOT NULL,
    value       TEXT NOT NULL,
    confidence  REAL NOT NULL DEFAULT 0.5,
    page_number INTEGER,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_region ON documents(region_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_facts_document ON facts(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_facts_region_category ON facts(region_id, category);",
]

_DOCUMENT_COLUMNS = (
    "id, region_id, title, file_name, file_size, status, uploaded_at, processed_at"
)

_QUERY_CHUNKS_SQL = """\
SELECT c.id, c.document_id, c.content, c.page_number, c.chunk_index, c.embedding,
       d.title AS document_title, r.name AS region_name
FROM chunks c
JOIN documents d ON d.id = c.document_id
JOIN regions r ON r.id = d.region_id
"""

_REGION_STATS_SQL = """\
SELECT r.id, r.name, r.abbreviation,
       (SELECT COUNT(*) FROM documents d
        WHERE d.region_id = r.id AND d.status = ?) AS completed_documents,
       (SELECT COUNT(*) FROM facts f WHERE f.region_id = r.id) AS fact_count,
       (SELECT COALESCE(SUM(f.confidence), 0.0) FROM facts f
        WHERE f.region_id = r.id) AS confidence_sum
FROM regions r
ORDER BY r.name, r.id
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        document_id=row["id"],
        region_id=row["region_id"],
        title=row["title"],
        file_name=row["file_name"],
        file_size=row["file_size"],
        status=DocumentStatus(row["status"]),
        uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
        processed_at=(
            datetime.fromisoformat(row["processed_at"]) if row["processed_at"] else None
        ),
    )


def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
    raw_embedding = row["embedding"]
    return Chunk(
        chunk_id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        page_number=row["page_number"],
        chunk_index=row["chunk_index"],
        embedding=json.loads(raw_embedding) if raw_embedding else None,
    )


def _row_to_fact(row: aiosqlite.Row) -> Fact:
    return Fact(
        fact_id=row["id"],
        document_id=row["document_id"],
        region_id=row["region_id"],
        category=FactCategory(row["category"]),
        field=row["field"],
        value=row["value"],
        confidence=row["confidence"],
        page_number=row["page_number"],
    )


class SQLiteRecordStore(IRecordStore):
    """SQLite-backed persistence for regions, documents, chunks and facts."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                for table_sql in _CREATE_TABLES_SQL:
                    await db.execute(table_sql)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to initialize schema: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("record_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    async def get_or_create_region(self, name: str, abbreviation: str) -> Region:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute(
                    "INSERT OR IGNORE INTO regions (id, name, abbreviation) VALUES (?, ?, ?)",
                    (str(uuid.uuid4()), name, abbreviation),
                )
                await db.commit()
                cursor = await db.execute(
                    "SELECT id, name, abbreviation FROM regions WHERE name = ? COLLATE NOCASE",
                    (name,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to upsert region {name!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return Region(region_id=row["id"], name=row["name"], abbreviation=row["abbreviation"])

    async def get_region(self, region_id: str) -> Region:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT id, name, abbreviation FROM regions WHERE id = ?",
                    (region_id,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to read region {region_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if row is None:
            raise RecordStoreError(
                message=f"Region {region_id} not found",
                provider_name=self.get_provider_name(),
            )
        return Region(region_id=row["id"], name=row["name"], abbreviation=row["abbreviation"])

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(
        self,
        region_id: str,
        title: str,
        file_name: str,
        file_size: int,
    ) -> Document:
        document = Document(
            document_id=str(uuid.uuid4()),
            region_id=region_id,
            title=title,
            file_name=file_name,
            file_size=file_size,
            status=DocumentStatus.PROCESSING,
            uploaded_at=_now(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        document.document_id,
                        document.region_id,
                        document.title,
                        document.file_name,
                        document.file_size,
                        document.status.value,
                        document.uploaded_at.isoformat(),
                        None,
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to create document for {file_name!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "document_created",
            document_id=document.document_id,
            region_id=region_id,
            file_name=file_name,
        )
        return document

    async def get_document(self, document_id: str) -> Document:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
                    (document_id,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to read document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if row is None:
            raise DocumentNotFoundError(
                message=f"Document {document_id} not found",
                provider_name=self.get_provider_name(),
            )
        return _row_to_document(row)

    async def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        sql = f"SELECT {_DOCUMENT_COLUMNS} FROM documents"
        params: tuple[str, ...] = ()
        if status is not None:
            sql += " WHERE status = ?"
            params = (status.value,)
        sql += " ORDER BY uploaded_at, rowid"

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to list documents: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [_row_to_document(r) for r in rows]

    async def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        processed_at: datetime | None = None,
    ) -> Document:
        current = await self.get_document(document_id)
        if not current.status.can_transition_to(status):
            raise InvalidStatusTransitionError(
                message=(
                    f"Document {document_id} cannot move from "
                    f"{current.status.value} to {status.value}"
                ),
                provider_name=self.get_provider_name(),
            )

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                # The status guard makes a concurrent transition lose cleanly.
                cursor = await db.execute(
                    "UPDATE documents SET status = ?, processed_at = ? "
                    "WHERE id = ? AND status = ?",
                    (
                        status.value,
                        processed_at.isoformat() if processed_at else None,
                        document_id,
                        current.status.value,
                    ),
                )
                await db.commit()
                updated = cursor.rowcount
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to update status of document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if updated != 1:
            raise InvalidStatusTransitionError(
                message=f"Document {document_id} changed status concurrently",
                provider_name=self.get_provider_name(),
            )

        logger.info("document_status_updated", document_id=document_id, status=status.value)
        return current.model_copy(update={"status": status, "processed_at": processed_at})

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def insert_chunks(self, chunks: Sequence[Chunk]) -> int:
        if not chunks:
            return 0

        rows = [
            (
                c.chunk_id,
                c.document_id,
                c.content,
                c.page_number,
                c.chunk_index,
                json.dumps(c.embedding) if c.embedding is not None else None,
            )
            for c in chunks
        ]
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                # executemany runs inside one implicit transaction; leaving
                # the context without commit rolls every row back.
                await db.executemany(
                    "INSERT INTO chunks "
                    "(id, document_id, content, page_number, chunk_index, embedding) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to insert {len(rows)} chunks: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chunks_inserted", count=len(rows), document_id=chunks[0].document_id)
        return len(rows)

    async def get_document_chunks(self, document_id: str) -> list[Chunk]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT id, document_id, content, page_number, chunk_index, embedding "
                    "FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                    (document_id,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to read chunks of document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [_row_to_chunk(r) for r in rows]

    async def query_chunks(self, region_names: Sequence[str] | None = None) -> list[RegionChunk]:
        if region_names is not None and len(region_names) == 0:
            return []

        sql = _QUERY_CHUNKS_SQL
        params: tuple[str, ...] = ()
        if region_names is not None:
            placeholders = ", ".join("?" for _ in region_names)
            sql += f" WHERE r.name IN ({placeholders})"
            params = tuple(region_names)
        sql += " ORDER BY c.rowid"

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to query chunks: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            RegionChunk(
                chunk=_row_to_chunk(r),
                document_title=r["document_title"],
                region_name=r["region_name"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Facts
    # ------------------------------------------------------------------

    async def insert_facts(self, facts: Sequence[Fact]) -> int:
        if not facts:
            return 0

        rows = [
            (
                f.fact_id,
                f.document_id,
                f.region_id,
                f.category.value,
                f.field,
                f.value,
                f.confidence,
                f.page_number,
            )
            for f in facts
        ]
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.executemany(
                    "INSERT INTO facts "
                    "(id, document_id, region_id, category, field, value, confidence, page_number) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to insert {len(rows)} facts: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("facts_inserted", count=len(rows), document_id=facts[0].document_id)
        return len(rows)

    async def get_document_facts(self, document_id: str) -> list[Fact]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT id, document_id, region_id, category, field, value, "
                    "confidence, page_number FROM facts WHERE document_id = ? ORDER BY rowid",
                    (document_id,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to read facts of document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [_row_to_fact(r) for r in rows]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def region_fact_stats(self) -> list[RegionFactStats]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_REGION_STATS_SQL, (DocumentStatus.COMPLETED.value,))
                region_rows = await cursor.fetchall()
                cursor = await db.execute("SELECT DISTINCT region_id, category FROM facts")
                category_rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to aggregate region facts: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        categories: dict[str, set[FactCategory]] = {}
        for row in category_rows:
            categories.setdefault(row["region_id"], set()).add(FactCategory(row["category"]))

        return [
            RegionFactStats(
                region=Region(
                    region_id=r["id"], name=r["name"], abbreviation=r["abbreviation"]
                ),
                completed_documents=r["completed_documents"],
                fact_count=r["fact_count"],
                confidence_sum=r["confidence_sum"],
                categories=frozenset(categories.get(r["id"], ())),
            )
            for r in region_rows
        ]

    async def summary_counts(self) -> StoreSummary:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT status, COUNT(*) AS n FROM documents GROUP BY status"
                )
                status_rows = await cursor.fetchall()
                cursor = await db.execute(
                    "SELECT (SELECT COUNT(*) FROM chunks) AS chunks, "
                    "(SELECT COUNT(*) FROM facts) AS facts, "
                    "(SELECT COUNT(*) FROM regions) AS regions"
                )
                totals = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise RecordStoreError(
                message=f"Failed to count records: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        by_status = {status: 0 for status in DocumentStatus}
        for row in status_rows:
            by_status[DocumentStatus(row["status"])] = row["n"]

        return StoreSummary(
            documents_by_status=by_status,
            total_documents=sum(by_status.values()),
            total_chunks=totals["chunks"],
            total_facts=totals["facts"],
            total_regions=totals["regions"],
        )

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_record_store"
