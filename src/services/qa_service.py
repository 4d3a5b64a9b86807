"""RAG answer assembly for natural-language policy questions.

Accepts a question, an optional region filter and the recent conversation,
retrieves the best-matching policy chunks through
:class:`~src.services.search_service.HybridSearchService`, and asks the
generation provider for a cited answer.

Architecture overview
---------------------
The data flow follows a classic RAG (Retrieval-Augmented Generation)
pattern:
  1. RETRIEVE    -- Hybrid search with a fixed K of 5.  Zero results is a
                    normal outcome and returns a canned fallback answer
                    without calling the generation provider.
  2. CONTEXT     -- Number the results ``[1]..[N]`` in rank order, each
                    labelled with its region and estimated page.
  3. SYNTHESIS   -- System rules + the last 10 history messages + a user
                    message holding the context and the question.
  4. CALIBRATE   -- Confidence is ``min(mean similarity * 1.2, 1.0)``.

The confidence figure is a calibration heuristic derived from retrieval
similarity.  It is not a probability that the answer is correct, and it
does not look at the answer text at all.  Likewise citations list every
retrieved chunk whether or not the answer references it.

Search and generation failures propagate to the caller unchanged.  A
malformed history entry raises :class:`InvalidHistoryError`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import structlog
from pydantic import ValidationError

from src.interfaces.llm_provider import ChatMessage, ILLMProvider
from src.models.rag import Citation, ConversationMessage, RAGResponse, SearchResult
from src.services.search_service import HybridSearchService
from src.utils.errors import InvalidHistoryError
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

RAG_TOP_K = 5
HISTORY_LIMIT = 10
ANSWER_TEMPERATURE = 0.3
ANSWER_MAX_TOKENS = 512
CONFIDENCE_SCALE = 1.2

FALLBACK_ANSWER = (
    "I couldn't find relevant information to answer your question. Try rephrasing "
    "or asking about specific telehealth modalities, billing codes, or state requirements."
)
FALLBACK_SUGGESTIONS: tuple[str, ...] = (
    "What are the live video requirements?",
    "Does this state allow store-and-forward?",
    "What are the consent requirements?",
)


class QAService:
    """Answers policy questions from retrieved chunks plus an LLM.

    Parameters
    ----------
    search:
        Retrieval over stored chunk embeddings.
    llm:
        Generation provider that writes the final answer.
    """

    _SYSTEM_PROMPT = (
        "You are a telehealth policy expert assistant. Answer questions based ONLY on "
        "the provided context from state telehealth policy documents.\n\n"
        "Rules:\n"
        "1. Only use information from the provided context\n"
        "2. Always cite sources using [number] notation\n"
        "3. If the context doesn't contain enough information, say so clearly\n"
        "4. Be concise and specific\n"
        "5. For regulatory questions, quote exact requirements when possible\n"
        "6. If confidence is low, suggest alternative queries"
    )

    def __init__(self, search: HybridSearchService, llm: ILLMProvider) -> None:
        self._search = search
        self._llm = llm

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ask(
        self,
        query: str,
        region_filter: Sequence[str] | None = None,
        history: Sequence[ConversationMessage | Mapping[str, str]] | None = None,
    ) -> RAGResponse:
        """Answer *query* using chunks from the regions in *region_filter*.

        Parameters
        ----------
        query:
            The user's natural-language question.
        region_filter:
            Region names to restrict retrieval to; ``None`` searches all.
        history:
            Prior user/assistant turns, oldest first.  Only the most recent
            10 messages are forwarded.

        Returns
        -------
        RAGResponse
            The answer, a similarity-derived confidence, and one citation
            per retrieved chunk in rank order.  When nothing is retrieved,
            a fallback answer with confidence 0 and three suggested queries.

        Raises
        ------
        InvalidHistoryError
            If a forwarded history entry is not a user or assistant turn.
            Raised before retrieval runs.
        """
        prior_turns = self._trim_history(history)
        results = await self._search.search(query, region_filter, top_k=RAG_TOP_K)

        if not results:
            logger.info("qa_no_results", query=query[:80])
            return RAGResponse(
                answer=FALLBACK_ANSWER,
                confidence=0.0,
                citations=[],
                suggested_queries=list(FALLBACK_SUGGESTIONS),
            )

        messages: list[ChatMessage] = [{"role": "system", "content": self._SYSTEM_PROMPT}]
        messages.extend(prior_turns)
        messages.append(
            {"role": "user", "content": self._build_user_prompt(query, build_context(results))}
        )

        answer = await self._llm.complete(
            messages,
            temperature=ANSWER_TEMPERATURE,
            max_tokens=ANSWER_MAX_TOKENS,
        )

        confidence = score_confidence(results)
        logger.info(
            "qa_answered",
            query=query[:80],
            citations=len(results),
            confidence=round(confidence, 3),
            llm_provider=self._llm.get_provider_name(),
        )
        return RAGResponse(
            answer=answer,
            confidence=confidence,
            citations=[
                Citation(
                    content=r.content,
                    page_number=r.page_number,
                    region_name=r.region_name,
                    document_title=r.document_title,
                )
                for r in results
            ],
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _trim_history(
        history: Sequence[ConversationMessage | Mapping[str, str]] | None,
    ) -> list[ChatMessage]:
        if not history:
            return []
        trimmed: list[ChatMessage] = []
        for item in list(history)[-HISTORY_LIMIT:]:
            if isinstance(item, ConversationMessage):
                message = item
            else:
                try:
                    message = ConversationMessage.model_validate(item)
                except ValidationError as exc:
                    raise InvalidHistoryError(
                        f"Unsupported conversation history entry: {exc.errors()[0]['msg']}"
                    ) from exc
            trimmed.append({"role": message.role, "content": message.content})
        return trimmed

    @staticmethod
    def _build_user_prompt(query: str, context: str) -> str:
        return (
            f"Context from policy documents:\n{context}\n\n"
            f"Question: {query}\n\n"
            "Provide a clear, cited answer. Use [1], [2], etc. to reference the context sources."
        )


def build_context(results: Sequence[SearchResult]) -> str:
    """Render results as numbered ``[i] From <region> (Page <p>):`` blocks."""
    return "\n\n".join(
        f"[{index}] From {r.region_name} (Page {r.page_number}):\n{r.content}"
        for index, r in enumerate(results, start=1)
    )


def score_confidence(results: Sequence[SearchResult]) -> float:
    """Return ``min(mean similarity * 1.2, 1.0)``, or 0 for no results."""
    if not results:
        return 0.0
    mean = sum(r.similarity for r in results) / len(results)
    return max(0.0, min(mean * CONFIDENCE_SCALE, 1.0))
