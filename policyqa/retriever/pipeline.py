"""
Answer Pipeline

Wires the retriever components into one request:
validate -> expand -> retrieve -> estimate confidence -> build prompt -> synthesize
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..common.config import PolicyQAConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import ValidationError
from ..common.llm_client import LLMClient
from ..common.vector_store import VectorStore, create_vector_store
from .confidence import ConfidenceLevel, estimate_confidence
from .prompt_builder import HISTORY_WINDOW, ConversationTurn, build_prompt
from .query_expander import QueryExpander
from .searcher import Searcher
from .synthesizer import Synthesizer

logger = logging.getLogger("policyqa.retriever.pipeline")


@dataclass
class AnswerResult:
    """Answer returned to the caller"""
    answer: str
    confidence: ConfidenceLevel
    queries: List[str] = field(default_factory=list)
    chunk_count: int = 0
    failed_queries: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Response body for the HTTP boundary"""
        return {"answer": self.answer, "confidence": self.confidence.value}


def validate_question(question: Any) -> str:
    """Return the question unchanged if it is a non-blank string."""
    if not isinstance(question, str) or not question.strip():
        raise ValidationError("Missing question")
    return question


class AnswerPipeline:
    """
    End-to-end question answering over the policy index.

    Holds no per-request state; one instance serves concurrent requests.
    """

    def __init__(
        self,
        expander: QueryExpander,
        searcher: Searcher,
        synthesizer: Synthesizer,
        match_threshold: float = 0.1,
        match_count: int = 5,
        history_window: int = HISTORY_WINDOW,
    ):
        self._expander = expander
        self._searcher = searcher
        self._synthesizer = synthesizer
        self._match_threshold = match_threshold
        self._match_count = match_count
        self._history_window = history_window

    @classmethod
    def from_config(
        cls,
        config: PolicyQAConfig,
        llm_client: LLMClient,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
    ) -> "AnswerPipeline":
        """Build a pipeline from configuration and pre-built service handles."""
        expander = QueryExpander(
            llm_client,
            max_expansions=config.retriever.max_expansions,
            timeout=config.llm.expansion_timeout,
            temperature=config.llm.temperature,
        )
        searcher = Searcher(
            embedding_service,
            vector_store,
            dedup_policy=config.retriever.dedup_policy,
            embed_timeout=config.embedding.timeout,
            search_timeout=config.retriever.search_timeout,
        )
        synthesizer = Synthesizer(
            llm_client,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
            timeout=config.llm.synthesis_timeout,
        )
        return cls(
            expander,
            searcher,
            synthesizer,
            match_threshold=config.retriever.match_threshold,
            match_count=config.retriever.match_count,
            history_window=config.retriever.history_window,
        )

    async def ask(
        self,
        question: str,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> AnswerResult:
        """
        Answer a question.

        Args:
            question: User question (must be non-blank)
            history: Prior turns, oldest first

        Returns:
            AnswerResult with answer text and confidence

        Raises:
            ValidationError: Blank or missing question (before any upstream call)
            EmbeddingError / RetrievalError: Original question could not be searched
            SynthesisError: Model failed to answer
        """
        question = validate_question(question)

        queries = await self._expander.expand(question)

        report = await self._searcher.retrieve_with_report(
            queries,
            threshold=self._match_threshold,
            limit_per_query=self._match_count,
        )

        confidence = estimate_confidence(report.similarities)
        logger.debug(
            "Confidence %s from %d chunk(s) for %r",
            confidence.value, len(report.chunks), question[:80],
        )

        messages = build_prompt(
            report.contents,
            history,
            question,
            history_window=self._history_window,
        )
        answer = await self._synthesizer.synthesize(messages)

        return AnswerResult(
            answer=answer,
            confidence=confidence,
            queries=queries,
            chunk_count=len(report.chunks),
            failed_queries=report.failed_queries,
        )


def embedding_api_key(config: PolicyQAConfig) -> Optional[str]:
    """API key for the configured embedding provider, taken from the LLM section."""
    keys = {
        "openai": config.llm.openai_api_key,
        "google": config.llm.google_api_key,
    }
    return keys.get(config.embedding.provider.lower()) or None


def build_services(config: PolicyQAConfig) -> Tuple[LLMClient, EmbeddingService, VectorStore]:
    """Construct the process-wide service handles once, at startup."""
    llm_client = LLMClient.from_config(config.llm)
    embedding_service = EmbeddingService.from_config(config.embedding, embedding_api_key(config))
    vector_store = create_vector_store(config)
    return llm_client, embedding_service, vector_store
