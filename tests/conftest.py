"""Shared pytest fixtures for the policyLens test suite."""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.models.policy import Document
from src.providers.record_store.sqlite_record_store import SQLiteRecordStore

# ---------------------------------------------------------------------------
# Deterministic embedding providers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64

# Each vocabulary word owns one axis, so texts sharing a topic word point in
# nearly the same direction and unrelated texts are close to orthogonal.
KEYWORD_VOCABULARY = (
    "video",
    "consent",
    "billing",
    "prescribing",
    "store-and-forward",
    "audio",
    "modifier",
    "site",
)


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length unit vector by hashing *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [byte / 255.0 - 0.5 for byte in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


def keyword_vector(text: str) -> list[float]:
    """Count vocabulary words in *text*; the last axis is a small constant."""
    lowered = text.lower()
    return [float(lowered.count(word)) for word in KEYWORD_VOCABULARY] + [0.01]


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Topic-sensitive embedding provider for search and RAG tests.

    Records every text it embeds.  ``delay`` simulates a slow model server
    and ``fail_on`` makes any text containing that substring raise.
    """

    def __init__(self, delay: float = 0.0, fail_on: str | None = None) -> None:
        self.delay = delay
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in text:
            raise ConnectionError("embedding server unreachable")
        return keyword_vector(text)

    def get_provider_name(self) -> str:
        return "mock-keyword-embedding"

    def is_available(self) -> bool:
        return True


class HashEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def keyword_embedding_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def hash_embedding_provider() -> HashEmbeddingProvider:
    return HashEmbeddingProvider()


# ---------------------------------------------------------------------------
# Mock generation provider
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Return a mock LLM provider whose ``complete`` yields an empty fact list."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.validate_connection = AsyncMock(return_value=True)
    mock.complete = AsyncMock(return_value='{"facts": []}')
    return mock


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def record_store(tmp_path: Path) -> SQLiteRecordStore:
    """Return an initialized SQLite store in a temporary directory."""
    store = SQLiteRecordStore(db_path=tmp_path / "policies.db")
    await store.initialize()
    return store


async def seed_document(
    store: SQLiteRecordStore,
    region_name: str = "Alabama",
    file_name: str = "CCHP Alabama Telehealth Laws Report.pdf",
    abbreviation: str = "AL",
) -> Document:
    """Create a region (if needed) and a ``processing`` document in *store*."""
    region = await store.get_or_create_region(region_name, abbreviation)
    return await store.create_document(
        region_id=region.region_id,
        title=file_name,
        file_name=file_name,
        file_size=1024,
    )


@pytest.fixture
def sample_policy_text() -> str:
    """Return a multi-topic policy text a little over three windows long."""
    sections = [
        "Live video is covered. Live video visits require real-time video with "
        "the patient. Providers must use HIPAA compliant video platforms. " * 4,
        "Billing for telehealth uses modifier GT or modifier 95. Billing parity "
        "applies to live video services; billing rules follow the modifier. " * 4,
        "Consent must be obtained before the first encounter. Written consent "
        "or verbal consent documented in the record is acceptable. " * 4,
        "Prescribing of controlled substances requires a prior in-person exam "
        "unless a federal exception applies to prescribing via telehealth. " * 4,
    ]
    return "\n\n".join(sections)
