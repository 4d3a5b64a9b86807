"""Structured fact extraction from ingested policy documents.

Reconstructs a document's approximate text from its stored chunks, asks the
text-generation provider for a JSON list of typed facts, and persists every
well-formed fact as a :class:`~src.models.policy.Fact` row.

Extraction is best-effort at the parsing stage only.  If the model's reply
contains no parseable ``{...}`` object, the document simply gets zero facts
and a warning is logged.  Provider and record-store failures still raise,
so the ingestion job that called the extractor is marked failed.

Re-running extraction for a document appends new rows; prior facts for the
same document are neither replaced nor de-duplicated.
"""

from __future__ import annotations

import math
import uuid
from typing import Any

import structlog

from src.interfaces.llm_provider import ChatMessage, ILLMProvider
from src.interfaces.record_store import IRecordStore
from src.models.policy import Fact, FactCategory
from src.utils.json_extraction import parse_json_object
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

# Provider context-length guard for the reconstructed document text.
MAX_DOCUMENT_CHARS = 12_000
EXTRACTION_TEMPERATURE = 0.1
EXTRACTION_MAX_TOKENS = 1024
DEFAULT_CONFIDENCE = 0.5
# Largest value an SQLite INTEGER column holds.
MAX_PAGE_NUMBER = 2**63 - 1


class FactExtractor:
    """Turns a stored document into typed, confidence-scored facts.

    Parameters
    ----------
    llm:
        Text-generation provider that performs the extraction.
    store:
        Record store holding the document's chunks; facts are written back
        to it.
    """

    _SYSTEM_PROMPT = (
        "You are a telehealth policy extraction expert. Extract structured facts "
        "from state telehealth policy documents.\n\n"
        "Extract the following categories:\n"
        "1. modality: live_video, store_and_forward, rpm, audio_only\n"
        "2. consent: requirements and specifics\n"
        "3. in_person: initial visit rules\n"
        "4. provider_eligibility: who can provide telehealth\n"
        "5. site_eligibility: originating/distant site rules\n"
        "6. billing: facility fees, modifiers (GT, FQ, 95), reimbursement parity\n"
        "7. documentation: special requirements (e.g., BMI recording)\n"
        "8. prescribing: controlled substances, restrictions\n\n"
        "Use exactly these category names. Return JSON format:\n"
        "{\n"
        '  "facts": [\n'
        "    {\n"
        '      "category": "modality",\n'
        '      "field": "live_video",\n'
        '      "value": "Allowed with no restrictions",\n'
        '      "confidence": 0.95,\n'
        '      "page": 3\n'
        "    }\n"
        "  ]\n"
        "}"
    )

    def __init__(self, llm: ILLMProvider, store: IRecordStore) -> None:
        self._llm = llm
        self._store = store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract_facts(self, document_id: str) -> None:
        """Extract and persist facts for *document_id*.

        Raises
        ------
        src.utils.errors.DocumentNotFoundError
            If the document does not exist.
        src.utils.errors.GenerationProviderError
            If the generation call fails.
        src.utils.errors.RecordStoreError
            If facts cannot be written.
        """
        document = await self._store.get_document(document_id)
        region = await self._store.get_region(document.region_id)
        chunks = await self._store.get_document_chunks(document_id)

        full_text = "\n".join(c.content for c in chunks)
        messages: list[ChatMessage] = [
            {"role": "system", "content": self._SYSTEM_PROMPT},
            {"role": "user", "content": self._build_user_prompt(region.name, full_text)},
        ]

        logger.info(
            "fact_extraction_start",
            document_id=document_id,
            chunks=len(chunks),
            text_chars=min(len(full_text), MAX_DOCUMENT_CHARS),
            llm_provider=self._llm.get_provider_name(),
        )
        raw_response = await self._llm.complete(
            messages,
            temperature=EXTRACTION_TEMPERATURE,
            max_tokens=EXTRACTION_MAX_TOKENS,
        )

        parsed, diagnostic = parse_json_object(raw_response)
        if parsed is None:
            logger.warning(
                "fact_extraction_unparseable",
                document_id=document_id,
                reason=diagnostic,
                response_preview=raw_response[:200],
            )
            return

        facts = self._build_facts(parsed, document_id, document.region_id)
        written = await self._store.insert_facts(facts)
        logger.info("fact_extraction_complete", document_id=document_id, facts=written)

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    @staticmethod
    def _build_user_prompt(region_name: str, full_text: str) -> str:
        return (
            f"Extract facts from this {region_name} policy:\n\n"
            f"{full_text[:MAX_DOCUMENT_CHARS]}"
        )

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    def _build_facts(
        self,
        parsed: dict[str, Any],
        document_id: str,
        region_id: str,
    ) -> list[Fact]:
        """Convert the parsed ``{"facts": [...]}`` object into Fact models.

        Entries that are not objects, use a category outside the taxonomy,
        or lack a field name or value are skipped with a debug log.
        """
        raw_facts = parsed.get("facts")
        if not isinstance(raw_facts, list):
            logger.warning("fact_extraction_no_fact_list", document_id=document_id)
            return []

        facts: list[Fact] = []
        skipped = 0
        for entry in raw_facts:
            fact = self._build_fact(entry, document_id, region_id)
            if fact is None:
                skipped += 1
                continue
            facts.append(fact)

        if skipped:
            logger.debug("fact_entries_skipped", document_id=document_id, skipped=skipped)
        return facts

    @staticmethod
    def _build_fact(entry: Any, document_id: str, region_id: str) -> Fact | None:
        if not isinstance(entry, dict):
            return None

        try:
            category = FactCategory(_normalize_category(entry.get("category")))
        except ValueError:
            return None

        field = entry.get("field")
        value = entry.get("value")
        if not isinstance(field, str) or not field.strip() or value is None:
            return None
        if isinstance(value, (dict, list)):
            return None

        return Fact(
            fact_id=str(uuid.uuid4()),
            document_id=document_id,
            region_id=region_id,
            category=category,
            field=field.strip(),
            value=str(value).strip(),
            confidence=_coerce_confidence(entry.get("confidence")),
            page_number=_coerce_page(entry.get("page")),
        )


def _coerce_confidence(raw: Any) -> float:
    """Return *raw* as a confidence in ``[0, 1]``, or 0.5 when absent/invalid."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        return DEFAULT_CONFIDENCE
    try:
        value = float(raw)
    except (ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        return DEFAULT_CONFIDENCE
    return value


def _coerce_page(raw: Any) -> int | None:
    """Return *raw* as a non-negative page number, or ``None``."""
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        page = int(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return page if 0 <= page <= MAX_PAGE_NUMBER else None


def _normalize_category(raw: Any) -> str:
    """Map ``"In-Person"`` / ``"in person"`` style labels onto taxonomy values."""
    return "_".join(str(raw or "").strip().lower().replace("-", " ").split())
