"""Unit tests for FactExtractor: prompt shape, tolerant parsing, persistence."""

from __future__ import annotations

import json
import uuid

import pytest

from src.models.policy import Chunk, FactCategory
from src.services.fact_extractor import (
    EXTRACTION_MAX_TOKENS,
    EXTRACTION_TEMPERATURE,
    MAX_DOCUMENT_CHARS,
    FactExtractor,
    _coerce_page,
)
from src.utils.errors import DocumentNotFoundError, GenerationProviderError
from tests.conftest import seed_document


async def _store_chunks(store, document_id: str, contents: list[str]) -> None:  # noqa: ANN001
    await store.insert_chunks(
        [
            Chunk(
                chunk_id=str(uuid.uuid4()),
                document_id=document_id,
                content=content,
                page_number=i,
                chunk_index=i,
                embedding=[1.0, 0.0],
            )
            for i, content in enumerate(contents)
        ]
    )


def _facts_response(*facts: dict) -> str:
    return json.dumps({"facts": list(facts)})


class TestPrompt:
    @pytest.mark.asyncio
    async def test_prompt_contains_region_and_joined_chunks(
        self, record_store, mock_llm_provider
    ) -> None:
        document = await seed_document(record_store, region_name="Alabama")
        await _store_chunks(record_store, document.document_id, ["first part", "second part"])

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        messages = mock_llm_provider.complete.call_args.args[0]
        kwargs = mock_llm_provider.complete.call_args.kwargs
        assert messages[0]["role"] == "system"
        assert "in_person" in messages[0]["content"]
        assert messages[1] == {
            "role": "user",
            "content": "Extract facts from this Alabama policy:\n\nfirst part\nsecond part",
        }
        assert kwargs == {
            "temperature": EXTRACTION_TEMPERATURE,
            "max_tokens": EXTRACTION_MAX_TOKENS,
        }

    @pytest.mark.asyncio
    async def test_document_text_is_truncated(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        await _store_chunks(record_store, document.document_id, ["x" * 9000, "y" * 9000])

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        user_prompt = mock_llm_provider.complete.call_args.args[0][1]["content"]
        body = user_prompt.split("\n\n", 1)[1]
        assert len(body) == MAX_DOCUMENT_CHARS


class TestParsing:
    @pytest.mark.asyncio
    async def test_facts_inside_prose_are_persisted(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        await _store_chunks(record_store, document.document_id, ["Live video is covered."])
        mock_llm_provider.complete.return_value = (
            "Here is what I found:\n"
            + _facts_response(
                {
                    "category": "modality",
                    "field": "live_video",
                    "value": "Allowed with no restrictions",
                    "confidence": 0.95,
                    "page": 3,
                },
                {"category": "billing", "field": "modifier", "value": "GT"},
            )
            + "\nHope this helps!"
        )

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        facts = await record_store.get_document_facts(document.document_id)
        assert [(f.category, f.field, f.value) for f in facts] == [
            (FactCategory.MODALITY, "live_video", "Allowed with no restrictions"),
            (FactCategory.BILLING, "modifier", "GT"),
        ]
        assert facts[0].confidence == pytest.approx(0.95)
        assert facts[0].page_number == 3
        assert facts[1].confidence == pytest.approx(0.5)
        assert facts[1].page_number is None
        assert all(f.region_id == document.region_id for f in facts)

    @pytest.mark.asyncio
    async def test_no_json_yields_zero_facts_without_error(
        self, record_store, mock_llm_provider
    ) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.return_value = "I could not find any facts in this document."

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        assert await record_store.get_document_facts(document.document_id) == []

    @pytest.mark.asyncio
    async def test_malformed_json_yields_zero_facts(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.return_value = '{"facts": [{"category": "billing",}'

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        assert await record_store.get_document_facts(document.document_id) == []

    @pytest.mark.asyncio
    async def test_invalid_entries_are_skipped(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.return_value = _facts_response(
            {"category": "astrology", "field": "sign", "value": "Leo"},
            {"category": "consent", "field": "", "value": "verbal"},
            {"category": "consent", "field": "type", "value": None},
            {"category": "consent", "field": "type", "value": {"nested": True}},
            "not an object",
            {"category": "In-Person", "field": "initial_visit", "value": "Not required"},
            {"category": "prescribing", "field": "controlled", "value": True, "confidence": 2},
        )

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        facts = await record_store.get_document_facts(document.document_id)
        assert [(f.category, f.field, f.value) for f in facts] == [
            (FactCategory.IN_PERSON, "initial_visit", "Not required"),
            (FactCategory.PRESCRIBING, "controlled", "True"),
        ]
        # out-of-range confidence falls back to the default
        assert facts[1].confidence == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_zero_confidence_is_kept(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.return_value = _facts_response(
            {"category": "site_eligibility", "field": "home", "value": "Eligible", "confidence": 0},
            {"category": "documentation", "field": "bmi", "value": "Required", "confidence": "0.8"},
        )

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        facts = await record_store.get_document_facts(document.document_id)
        assert [f.confidence for f in facts] == [pytest.approx(0.0), pytest.approx(0.8)]

    @pytest.mark.asyncio
    async def test_out_of_range_numbers_fall_back(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        huge_int = "1" + "0" * 400
        mock_llm_provider.complete.return_value = (
            '{"facts": ['
            '{"category": "modality", "field": "live_video", "value": "Allowed", '
            '"confidence": 0.9, "page": 1e999},'
            '{"category": "billing", "field": "modifier", "value": "GT", '
            f'"confidence": {huge_int}, "page": {huge_int}}},'
            '{"category": "consent", "field": "written", "value": "Required", '
            '"confidence": 1e999, "page": 9223372036854775808}'
            "]}"
        )

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        facts = await record_store.get_document_facts(document.document_id)
        assert [f.category for f in facts] == [
            FactCategory.MODALITY,
            FactCategory.BILLING,
            FactCategory.CONSENT,
        ]
        assert [f.page_number for f in facts] == [None, None, None]
        assert [f.confidence for f in facts] == [
            pytest.approx(0.9),
            pytest.approx(0.5),
            pytest.approx(0.5),
        ]

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(3, 3), (2.0, 2), ("7", 7), (-1, None), (2**63 - 1, 2**63 - 1), (2**63, None)],
    )
    def test_page_coercion(self, raw, expected) -> None:  # noqa: ANN001
        assert _coerce_page(raw) == expected

    @pytest.mark.asyncio
    async def test_missing_fact_list(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.return_value = '{"summary": "nothing"}'

        await FactExtractor(mock_llm_provider, record_store).extract_facts(document.document_id)

        assert await record_store.get_document_facts(document.document_id) == []


class TestRepeatedExtraction:
    @pytest.mark.asyncio
    async def test_re_extraction_appends(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.return_value = _facts_response(
            {"category": "modality", "field": "audio_only", "value": "Allowed"}
        )
        extractor = FactExtractor(mock_llm_provider, record_store)

        await extractor.extract_facts(document.document_id)
        await extractor.extract_facts(document.document_id)

        facts = await record_store.get_document_facts(document.document_id)
        assert len(facts) == 2
        assert facts[0].fact_id != facts[1].fact_id


class TestFailures:
    @pytest.mark.asyncio
    async def test_unknown_document(self, record_store, mock_llm_provider) -> None:
        with pytest.raises(DocumentNotFoundError):
            await FactExtractor(mock_llm_provider, record_store).extract_facts("missing")
        mock_llm_provider.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_generation_failure_propagates(self, record_store, mock_llm_provider) -> None:
        document = await seed_document(record_store)
        mock_llm_provider.complete.side_effect = GenerationProviderError(
            "timed out", provider_name="ollama"
        )

        with pytest.raises(GenerationProviderError):
            await FactExtractor(mock_llm_provider, record_store).extract_facts(
                document.document_id
            )
