"""
Searcher

Multi-query retrieval over the policy chunk index.
Each query variant is embedded and searched concurrently; the per-variant
result lists are merged into one deduplicated mapping of chunk content to
similarity once every variant has settled.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from ..common.embedding_service import EmbeddingService
from ..common.errors import EmbeddingError, RetrievalError
from ..common.vector_store import RetrievedChunk, VectorStore

logger = logging.getLogger("policyqa.retriever.searcher")

FIRST_SEEN = "first_seen"
MAX_SIMILARITY = "max_similarity"


@dataclass
class RetrievalReport:
    """Merged retrieval result plus the variants that failed"""
    chunks: Dict[str, float] = field(default_factory=dict)
    failed_queries: List[Tuple[str, str]] = field(default_factory=list)  # (query, error)

    @property
    def similarities(self) -> List[float]:
        return list(self.chunks.values())

    @property
    def contents(self) -> List[str]:
        return list(self.chunks.keys())


def merge_results(
    per_variant: Sequence[List[RetrievedChunk]],
    policy: str = FIRST_SEEN,
) -> Dict[str, float]:
    """
    Merge ranked lists in variant order then rank order.

    first_seen keeps the score that was inserted first; max_similarity keeps
    the highest score. Either way an entry stays at its first-seen position.
    """
    merged: Dict[str, float] = {}
    for chunks in per_variant:
        for chunk in chunks:
            if chunk.content not in merged:
                merged[chunk.content] = chunk.similarity
            elif policy == MAX_SIMILARITY and chunk.similarity > merged[chunk.content]:
                merged[chunk.content] = chunk.similarity
    return merged


class Searcher:
    """
    Searches the policy index with several phrasings of one question.

    Features:
    - Concurrent embed + search per variant
    - Failure isolation for paraphrases
    - Deduplication by exact chunk text
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        dedup_policy: str = FIRST_SEEN,
        embed_timeout: float = 30.0,
        search_timeout: float = 15.0,
    ):
        """
        Initialize searcher.

        Args:
            embedding_service: For embedding query variants
            vector_store: Similarity search gateway
            dedup_policy: "first_seen" or "max_similarity"
            embed_timeout: Seconds allowed per embedding call
            search_timeout: Seconds allowed per vector search
        """
        if dedup_policy not in (FIRST_SEEN, MAX_SIMILARITY):
            raise ValueError(f"Unknown dedup policy: {dedup_policy}")
        self._embedding = embedding_service
        self._store = vector_store
        self._dedup_policy = dedup_policy
        self._embed_timeout = embed_timeout
        self._search_timeout = search_timeout

    async def retrieve(
        self,
        queries: List[str],
        threshold: float,
        limit_per_query: int,
    ) -> Dict[str, float]:
        """Return the merged content -> similarity mapping."""
        report = await self.retrieve_with_report(queries, threshold, limit_per_query)
        return report.chunks

    async def retrieve_with_report(
        self,
        queries: List[str],
        threshold: float,
        limit_per_query: int,
    ) -> RetrievalReport:
        """
        Search with every query variant and merge the results.

        Args:
            queries: Original question first, then paraphrases
            threshold: Minimum similarity per search
            limit_per_query: Maximum chunks per variant

        Returns:
            RetrievalReport with merged chunks and failed variants

        Raises:
            EmbeddingError / RetrievalError: If the original question's variant fails
        """
        if not queries:
            return RetrievalReport()

        outcomes = await asyncio.gather(
            *(self._search_single(q, threshold, limit_per_query) for q in queries),
            return_exceptions=True,
        )

        # The original question must succeed; paraphrases are best effort
        first = outcomes[0]
        if isinstance(first, BaseException):
            logger.warning("Search failed for original question %r: %s", queries[0][:80], first)
            raise first

        successful: List[List[RetrievedChunk]] = []
        failed: List[Tuple[str, str]] = []
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Search failed for variant %r: %s", query[:80], outcome)
                failed.append((query, str(outcome)))
            else:
                successful.append(outcome)

        chunks = merge_results(successful, self._dedup_policy)
        logger.info(
            "Retrieved %d unique chunk(s) from %d variant(s), %d failed",
            len(chunks), len(queries), len(failed),
        )
        return RetrievalReport(chunks=chunks, failed_queries=failed)

    async def _search_single(
        self,
        query_text: str,
        threshold: float,
        limit: int,
    ) -> List[RetrievedChunk]:
        """Embed one variant and search the index with it."""
        try:
            vector = await asyncio.wait_for(
                asyncio.to_thread(self._embedding.embed_single, query_text),
                timeout=self._embed_timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"Embedding timed out after {self._embed_timeout}s") from e
        except ValueError as e:
            raise EmbeddingError(str(e)) from e

        try:
            return await asyncio.wait_for(
                self._store.search(vector, threshold, limit),
                timeout=self._search_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RetrievalError(f"Vector search timed out after {self._search_timeout}s") from e
