"""policyLens composition root.

Wires together the record store, providers and services via dependency
injection and exposes them through :class:`PolicyEngine`, the facade an
HTTP layer, the operator CLI or a script drives.

The ingestion queue is created here, once, and owned by the engine; no
module holds queue state globally.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.record_store import IRecordStore
from src.models.coverage import RegionCoverage, StoreSummary
from src.models.policy import Document, DocumentStatus, Fact
from src.models.rag import ConversationMessage, RAGResponse, SearchResult
from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.record_store.sqlite_record_store import SQLiteRecordStore
from src.services.coverage_service import CoverageService
from src.services.document_service import DocumentService, RegisteredUpload
from src.services.embedding_pipeline import EmbeddingPipeline
from src.services.fact_extractor import FactExtractor
from src.services.ingestion.ingestion_queue import IngestionQueue
from src.services.qa_service import QAService
from src.services.search_service import DEFAULT_TOP_K, HybridSearchService
from src.utils.errors import ConfigurationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _require_openai_credentials(app_settings: Settings, role: str) -> None:
    if not (app_settings.openai_api_key or app_settings.openai_base_url):
        raise ConfigurationError(
            message=(
                f"{role} backend 'openai' needs OPENAI_API_KEY or OPENAI_BASE_URL"
            ),
            provider_name="openai",
        )


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the generation backend.

    ``auto`` prefers OpenAI (or an OpenAI-compatible endpoint) when an API
    key is configured, otherwise the local Ollama server.  Forcing
    ``openai`` with neither a key nor a base URL raises
    :class:`ConfigurationError`.
    """
    if app_settings.resolve_llm_backend() == "openai":
        _require_openai_credentials(app_settings, "LLM")
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the embedding backend using the same rule as the LLM."""
    if app_settings.resolve_embedding_backend() == "openai":
        _require_openai_credentials(app_settings, "Embedding")
        return OpenAIEmbeddingProvider(settings=app_settings)
    return OllamaEmbeddingProvider(settings=app_settings)


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class PolicyEngine:
    """Ingestion and retrieval operations over one record store.

    Build with :func:`build_engine`, then ``await engine.start()`` before
    use and ``await engine.shutdown()`` when done.
    """

    def __init__(
        self,
        settings: Settings,
        store: IRecordStore,
        embedding_provider: IEmbeddingProvider,
        llm: ILLMProvider,
        ingestion_queue: IngestionQueue,
        search: HybridSearchService,
        qa: QAService,
        fact_extractor: FactExtractor,
        documents: DocumentService,
        coverage: CoverageService,
    ) -> None:
        self._settings = settings
        self._store = store
        self._embedding_provider = embedding_provider
        self._llm = llm
        self._queue = ingestion_queue
        self._search = search
        self._qa = qa
        self._fact_extractor = fact_extractor
        self._documents = documents
        self._coverage = coverage

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> IRecordStore:
        return self._store

    @property
    def ingestion_queue(self) -> IngestionQueue:
        return self._queue

    # -- Lifecycle ------------------------------------------------------

    async def start(self) -> None:
        """Create storage tables and start the ingestion worker."""
        await self._store.initialize()
        await self._queue.start()
        _logger.info(
            "policy_engine_started",
            record_store=self._store.get_provider_name(),
            embedding_provider=self._embedding_provider.get_provider_name(),
            llm_provider=self._llm.get_provider_name(),
        )

    async def wait_for_ingestion(self) -> None:
        """Block until every queued ingestion job has finished."""
        await self._queue.join()

    async def shutdown(self) -> None:
        """Stop the ingestion worker; unstarted jobs are dropped."""
        await self._queue.shutdown()
        _logger.info("policy_engine_stopped")

    # -- Ingestion ------------------------------------------------------

    def enqueue_ingestion(
        self,
        document_id: str,
        buffer: bytes | None = None,
        file_path: str | Path | None = None,
        delete_after: bool = False,
        file_name: str | None = None,
    ) -> str:
        """Queue a document for background ingestion; returns the job id.

        The document row must already exist in ``processing`` status.
        Progress is observable only through :meth:`document_status`.
        """
        return self._queue.enqueue(
            document_id,
            buffer=buffer,
            file_path=file_path,
            delete_file_after=delete_after,
            file_name=file_name,
        )

    async def register_and_enqueue(
        self,
        file_name: str,
        data: bytes,
        region_name: str | None = None,
        stage: bool = False,
        delete_after: bool = False,
    ) -> RegisteredUpload:
        """Create the document for an upload and queue it for ingestion.

        With *stage* set the bytes are written under ``upload_dir`` and the
        worker reads them back from disk, deleting the staged copy
        afterwards when *delete_after* is also set.
        """
        registered = await self._documents.register_upload(
            file_name, data, region_name=region_name, stage=stage
        )
        if registered.staged_path is not None:
            self.enqueue_ingestion(
                registered.document.document_id,
                file_path=registered.staged_path,
                delete_after=delete_after,
                file_name=file_name,
            )
        else:
            self.enqueue_ingestion(
                registered.document.document_id,
                buffer=data,
                file_name=file_name,
            )
        return registered

    async def document_status(self, document_id: str) -> DocumentStatus:
        return await self._documents.get_status(document_id)

    async def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        return await self._store.list_documents(status)

    # -- Retrieval ------------------------------------------------------

    async def hybrid_search(
        self,
        query: str,
        region_filter: Sequence[str] | None = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[SearchResult]:
        return await self._search.search(query, region_filter, top_k)

    async def rag_answer(
        self,
        query: str,
        region_filter: Sequence[str] | None = None,
        history: Sequence[ConversationMessage | Mapping[str, str]] | None = None,
    ) -> RAGResponse:
        return await self._qa.ask(query, region_filter, history)

    # -- Facts ----------------------------------------------------------

    async def extract_facts(self, document_id: str) -> None:
        """Run fact extraction for an already-ingested document.

        Appends to any facts extracted earlier for the same document.
        """
        await self._fact_extractor.extract_facts(document_id)

    async def document_facts(self, document_id: str) -> list[Fact]:
        return await self._store.get_document_facts(document_id)

    # -- Reporting ------------------------------------------------------

    async def region_coverage(self) -> list[RegionCoverage]:
        """Score how completely each region's facts span the taxonomy."""
        return await self._coverage.region_coverage()

    async def store_summary(self) -> StoreSummary:
        """Return document counts per status and store-wide totals."""
        return await self._coverage.summary()


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_engine(
    app_settings: Settings | None = None,
    store: IRecordStore | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    llm: ILLMProvider | None = None,
) -> PolicyEngine:
    """Construct every provider and service and return the engine facade.

    Any of *store*, *embedding_provider* and *llm* may be supplied to
    override the settings-driven defaults.
    """
    app_settings = app_settings or Settings()

    store = store or SQLiteRecordStore(db_path=app_settings.database_path)
    embedding_provider = embedding_provider or _build_embedding_provider(app_settings)
    llm = llm or _build_llm_provider(app_settings)

    pipeline = EmbeddingPipeline(embedding_provider)
    fact_extractor = FactExtractor(llm=llm, store=store)
    ingestion_queue = IngestionQueue(
        store=store,
        embedding_pipeline=pipeline,
        fact_extractor=fact_extractor,
    )
    search = HybridSearchService(embedding_pipeline=pipeline, store=store)
    qa = QAService(search=search, llm=llm)
    documents = DocumentService(store=store, upload_dir=app_settings.upload_dir)
    coverage = CoverageService(store=store)

    _logger.debug(
        "policy_engine_built",
        embedding_backend=embedding_provider.get_provider_name(),
        llm_backend=llm.get_provider_name(),
        database_path=app_settings.database_path,
    )
    return PolicyEngine(
        settings=app_settings,
        store=store,
        embedding_provider=embedding_provider,
        llm=llm,
        ingestion_queue=ingestion_queue,
        search=search,
        qa=qa,
        fact_extractor=fact_extractor,
        documents=documents,
        coverage=coverage,
    )
