"""Unit tests for provider selection and engine assembly in src/main.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.models.policy import DocumentStatus
from src.providers.record_store.sqlite_record_store import SQLiteRecordStore
from src.utils.errors import ConfigurationError
from tests.conftest import KeywordEmbeddingProvider


def _settings(**overrides) -> Settings:
    """Build a Settings instance with no API keys unless overridden."""
    defaults = {
        "openai_api_key": "",
        "openai_base_url": "",
        "ollama_base_url": "http://localhost:11434",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


class TestProviderSelection:
    def test_ollama_without_api_key(self) -> None:
        from src.main import _build_embedding_provider, _build_llm_provider
        from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
        from src.providers.llm.ollama_provider import OllamaLLMProvider

        settings = _settings()
        assert isinstance(_build_llm_provider(settings), OllamaLLMProvider)
        assert isinstance(_build_embedding_provider(settings), OllamaEmbeddingProvider)

    def test_openai_with_api_key(self) -> None:
        from src.main import _build_embedding_provider, _build_llm_provider
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        from src.providers.llm.openai_provider import OpenAILLMProvider

        settings = _settings(openai_api_key="sk-test")
        assert isinstance(_build_llm_provider(settings), OpenAILLMProvider)
        assert isinstance(_build_embedding_provider(settings), OpenAIEmbeddingProvider)

    def test_backends_selected_independently(self) -> None:
        from src.main import _build_embedding_provider, _build_llm_provider
        from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
        from src.providers.llm.openai_provider import OpenAILLMProvider

        settings = _settings(openai_api_key="sk-test", embedding_backend="ollama")
        assert isinstance(_build_llm_provider(settings), OpenAILLMProvider)
        assert isinstance(_build_embedding_provider(settings), OllamaEmbeddingProvider)

    @pytest.mark.parametrize("field", ["llm_backend", "embedding_backend"])
    def test_forced_openai_without_credentials(self, field: str) -> None:
        from src.main import _build_embedding_provider, _build_llm_provider

        settings = _settings(**{field: "openai"})
        build = _build_llm_provider if field == "llm_backend" else _build_embedding_provider
        with pytest.raises(ConfigurationError) as excinfo:
            build(settings)
        assert excinfo.value.provider_name == "openai"

    def test_forced_openai_with_base_url_only(self) -> None:
        from src.main import _build_llm_provider
        from src.providers.llm.openai_provider import OpenAILLMProvider

        settings = _settings(llm_backend="openai", openai_base_url="http://localhost:8000/v1")
        assert isinstance(_build_llm_provider(settings), OpenAILLMProvider)


class TestBuildEngine:
    def test_defaults_from_settings(self, tmp_path: Path) -> None:
        from src.main import PolicyEngine, build_engine

        settings = _settings(database_path=str(tmp_path / "engine.db"))
        engine = build_engine(settings)

        assert isinstance(engine, PolicyEngine)
        assert engine.settings is settings
        assert isinstance(engine.store, SQLiteRecordStore)
        assert engine.ingestion_queue.pending == 0

    @pytest.mark.asyncio
    async def test_register_and_enqueue_buffer(
        self, tmp_path: Path, mock_llm_provider: ILLMProvider
    ) -> None:
        from src.main import build_engine

        settings = _settings(upload_dir=str(tmp_path / "uploads"))
        engine = build_engine(
            settings,
            store=SQLiteRecordStore(db_path=tmp_path / "engine.db"),
            embedding_provider=KeywordEmbeddingProvider(),
            llm=mock_llm_provider,
        )
        await engine.start()
        try:
            upload = await engine.register_and_enqueue(
                "CCHP Alaska Telehealth Laws Report.txt", b"Consent is required."
            )
            assert upload.staged_path is None
            assert upload.region_name == "Alaska"

            await engine.wait_for_ingestion()
            status = await engine.document_status(upload.document.document_id)
        finally:
            await engine.shutdown()

        assert status is DocumentStatus.COMPLETED
        assert not (tmp_path / "uploads").exists()

    @pytest.mark.asyncio
    async def test_shutdown_stops_worker(
        self, tmp_path: Path, mock_llm_provider: ILLMProvider
    ) -> None:
        from src.main import build_engine

        engine = build_engine(
            _settings(),
            store=SQLiteRecordStore(db_path=tmp_path / "engine.db"),
            embedding_provider=KeywordEmbeddingProvider(),
            llm=mock_llm_provider,
        )
        await engine.start()
        assert engine.ingestion_queue.is_running

        await engine.shutdown()
        assert not engine.ingestion_queue.is_running

    @pytest.mark.asyncio
    async def test_coverage_reports(self, tmp_path: Path, mock_llm_provider: ILLMProvider) -> None:
        from src.main import build_engine
        from src.models.coverage import CoverageLevel

        mock_llm_provider.complete.return_value = (
            '{"facts": [{"category": "consent", "field": "type", "value": "Verbal", '
            '"confidence": 0.6}]}'
        )
        engine = build_engine(
            _settings(),
            store=SQLiteRecordStore(db_path=tmp_path / "engine.db"),
            embedding_provider=KeywordEmbeddingProvider(),
            llm=mock_llm_provider,
        )
        await engine.start()
        try:
            await engine.register_and_enqueue(
                "CCHP Alaska Telehealth Laws Report.txt", b"Consent is required."
            )
            await engine.wait_for_ingestion()
            coverage = await engine.region_coverage()
            summary = await engine.store_summary()
        finally:
            await engine.shutdown()

        assert [(c.abbreviation, c.coverage_score) for c in coverage] == [("AK", 13)]
        assert coverage[0].coverage_level is CoverageLevel.LOW
        assert coverage[0].avg_confidence == pytest.approx(0.6)
        assert summary.documents_by_status[DocumentStatus.COMPLETED] == 1
        assert (summary.total_chunks, summary.total_facts, summary.total_regions) == (1, 1, 1)
