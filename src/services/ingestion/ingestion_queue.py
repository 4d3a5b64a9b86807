"""Single-worker ingestion queue for uploaded policy documents.

Pipeline stages per job: **resolve -> extract -> chunk -> embed -> store ->
extract facts -> complete**.

The :class:`IngestionQueue` owns an in-process FIFO and exactly one worker
task that drains it.  Jobs therefore run strictly one after another: a
document is fully chunked, embedded, written and fact-extracted before the
next job starts, which bounds load on the model server and means only one
writer ever touches the record store.

Callers enqueue and return immediately.  The outcome of a job is observable
only through the document's ``status`` field, which moves from
``processing`` to ``completed`` or ``failed`` exactly once.  Any failure
before completion (unreadable input, extraction, embedding, chunk write,
fact extraction) marks the document failed; there is no automatic retry.

The queue is not persisted.  Jobs that are enqueued but not started when the
process exits are lost, and their documents stay in ``processing`` until an
operator re-submits them.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.models.policy import Chunk, DocumentStatus, IngestionJob
from src.providers.text_extraction.pdf_extractor import PDFTextExtractor, PlainTextExtractor
from src.services.ingestion.chunker import TextChunker
from src.utils.errors import ExtractionError, IngestionError
from src.utils.logging import job_context

if TYPE_CHECKING:
    from src.interfaces.record_store import IRecordStore
    from src.services.embedding_pipeline import EmbeddingPipeline
    from src.services.fact_extractor import FactExtractor

logger = structlog.get_logger(logger_name=__name__)


class IngestionQueue:
    """FIFO of ingestion jobs drained by a single background worker.

    Construct one instance at the composition root and hand it to whatever
    accepts uploads.  :meth:`enqueue` must be called from a running event
    loop; the worker task is started lazily on the first enqueue (or
    explicitly with :meth:`start`).

    Parameters
    ----------
    store:
        Record store for chunks and document status.
    embedding_pipeline:
        Sequential embedder for chunk windows.
    fact_extractor:
        Runs after chunks are stored, before the document completes.
    chunker:
        Window splitter; defaults to 1000/200 character windows.
    extractors:
        Text extractors tried in order against the job's filename.
        Defaults to plain text then PDF.
    """

    def __init__(
        self,
        store: IRecordStore,
        embedding_pipeline: EmbeddingPipeline,
        fact_extractor: FactExtractor,
        chunker: TextChunker | None = None,
        extractors: Sequence[ITextExtractor] | None = None,
    ) -> None:
        self._store = store
        self._embeddings = embedding_pipeline
        self._fact_extractor = fact_extractor
        self._chunker = chunker or TextChunker()
        self._extractors: list[ITextExtractor] = list(
            extractors if extractors is not None else (PlainTextExtractor(), PDFTextExtractor())
        )
        self._queue: asyncio.Queue[IngestionJob] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._current_job: IngestionJob | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(
        self,
        document_id: str,
        buffer: bytes | None = None,
        file_path: str | Path | None = None,
        delete_file_after: bool = False,
        file_name: str | None = None,
    ) -> str:
        """Queue a document for ingestion and return the job identifier.

        Never blocks and never raises for pipeline failures; those are
        reflected in the document's status.  The caller must already have
        created the document row in ``processing`` status.
        """
        job = IngestionJob(
            job_id=str(uuid.uuid4()),
            document_id=document_id,
            buffer=buffer,
            file_path=str(file_path) if file_path is not None else None,
            file_name=file_name,
            delete_file_after=delete_file_after,
        )
        self._queue.put_nowait(job)
        self._ensure_worker()
        logger.info(
            "ingestion_job_enqueued",
            job_id=job.job_id,
            document_id=document_id,
            pending=self._queue.qsize(),
        )
        return job.job_id

    async def start(self) -> None:
        """Start the worker task if it is not already running."""
        self._ensure_worker()

    async def join(self) -> None:
        """Wait until every job enqueued so far has finished."""
        await self._queue.join()

    async def shutdown(self) -> None:
        """Stop the worker.  Jobs still waiting in the queue are dropped."""
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

        dropped: list[str] = []
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped.append(job.document_id)
            self._queue.task_done()
        if dropped:
            logger.warning(
                "ingestion_queue_dropped_jobs",
                dropped=len(dropped),
                document_ids=dropped,
            )

    @property
    def pending(self) -> int:
        """Number of jobs waiting to start."""
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def current_document_id(self) -> str | None:
        """Document being processed right now, if any."""
        return self._current_job.document_id if self._current_job else None

    async def process_job(self, job: IngestionJob) -> DocumentStatus:
        """Run one job to completion and return the document's final status.

        Never raises for pipeline failures.  Temporary files flagged for
        deletion are removed whether the job succeeded or not.
        """
        with job_context(job.job_id, job.document_id):
            start = time.monotonic()
            try:
                chunk_count = await self._run_pipeline(job)
            except Exception as exc:  # noqa: BLE001 -- any stage failure fails the job
                logger.error(
                    "ingestion_job_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    elapsed_s=round(time.monotonic() - start, 2),
                )
                await self._mark_failed(job)
                return DocumentStatus.FAILED
            finally:
                await self._cleanup(job)

            logger.info(
                "ingestion_job_completed",
                chunks=chunk_count,
                elapsed_s=round(time.monotonic() - start, 2),
            )
            return DocumentStatus.COMPLETED

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name="ingestion-worker"
            )

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            self._current_job = job
            try:
                await self.process_job(job)
            except Exception:  # noqa: BLE001 -- the worker must outlive any job
                logger.exception(
                    "ingestion_worker_error",
                    job_id=job.job_id,
                    document_id=job.document_id,
                )
            finally:
                self._current_job = None
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def _run_pipeline(self, job: IngestionJob) -> int:
        data = await self._resolve_buffer(job)

        extractor = self._select_extractor(job)
        extracted = await asyncio.to_thread(extractor.extract, data)
        logger.info(
            "ingestion_text_extracted",
            chars=len(extracted.text),
            pages=extracted.page_count,
        )

        windows = self._chunker.chunk(extracted.text, extracted.page_count)
        logger.info("ingestion_chunked", windows=len(windows))

        embedded = await self._embeddings.embed_windows(windows)

        chunks = [
            Chunk(
                chunk_id=str(uuid.uuid4()),
                document_id=job.document_id,
                content=item.window.content,
                page_number=item.window.page_number,
                chunk_index=item.window.chunk_index,
                embedding=item.embedding,
            )
            for item in embedded
        ]
        await self._store.insert_chunks(chunks)

        await self._fact_extractor.extract_facts(job.document_id)

        await self._store.update_document_status(
            job.document_id,
            DocumentStatus.COMPLETED,
            processed_at=datetime.now(timezone.utc),
        )
        return len(chunks)

    async def _resolve_buffer(self, job: IngestionJob) -> bytes:
        if job.buffer is not None:
            return job.buffer

        if job.file_path:
            try:
                return await asyncio.to_thread(Path(job.file_path).read_bytes)
            except OSError as exc:
                raise IngestionError(f"Cannot read staged file {job.file_path}: {exc}") from exc

        raise IngestionError("No buffer or file path provided for ingestion job")

    def _select_extractor(self, job: IngestionJob) -> ITextExtractor:
        name = job.file_name or (Path(job.file_path).name if job.file_path else None)
        for extractor in self._extractors:
            if extractor.supports(name):
                return extractor
        raise ExtractionError(f"No text extractor supports {name!r}")

    async def _mark_failed(self, job: IngestionJob) -> None:
        try:
            await self._store.update_document_status(job.document_id, DocumentStatus.FAILED)
        except Exception as exc:  # noqa: BLE001 -- status write is best-effort here
            logger.error(
                "ingestion_status_update_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def _cleanup(self, job: IngestionJob) -> None:
        if not (job.delete_file_after and job.file_path):
            return
        try:
            await asyncio.to_thread(Path(job.file_path).unlink)
            logger.debug("ingestion_temp_file_deleted", file_path=job.file_path)
        except OSError as exc:
            logger.warning(
                "ingestion_temp_file_delete_failed",
                file_path=job.file_path,
                error=str(exc),
            )
