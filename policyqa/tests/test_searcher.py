"""Tests for multi-query retrieval and deduplication."""

import asyncio
import pytest
from unittest.mock import Mock

from conftest import make_embedding, make_store

QUERIES = ["original question", "paraphrase one", "paraphrase two"]


class TestMergeResults:
    def test_first_seen_keeps_first_score(self):
        from policyqa.common.vector_store import RetrievedChunk
        from policyqa.retriever.searcher import merge_results

        merged = merge_results([
            [RetrievedChunk("shared", 0.4)],
            [RetrievedChunk("shared", 0.9), RetrievedChunk("other", 0.3)],
        ])

        assert merged == {"shared": 0.4, "other": 0.3}
        assert list(merged) == ["shared", "other"]

    def test_max_similarity_keeps_highest(self):
        from policyqa.common.vector_store import RetrievedChunk
        from policyqa.retriever.searcher import merge_results

        merged = merge_results(
            [
                [RetrievedChunk("shared", 0.4), RetrievedChunk("a", 0.35)],
                [RetrievedChunk("b", 0.95), RetrievedChunk("shared", 0.9)],
            ],
            policy="max_similarity",
        )

        assert merged == {"shared": 0.9, "a": 0.35, "b": 0.95}
        assert list(merged) == ["shared", "a", "b"]


class TestSearcher:
    def _searcher(self, embedding, store, **kwargs):
        from policyqa.retriever.searcher import Searcher
        return Searcher(embedding, store, **kwargs)

    @pytest.mark.asyncio
    async def test_dedup_first_seen_across_variants(self):
        store = make_store({
            0: [("MA rate increase is 5.06%", 0.55)],
            1: [("MA rate increase is 5.06%", 0.72), ("Star ratings update", 0.31)],
        })
        searcher = self._searcher(make_embedding(QUERIES[:2]), store)

        chunks = await searcher.retrieve(QUERIES[:2], threshold=0.1, limit_per_query=5)

        assert chunks == {
            "MA rate increase is 5.06%": 0.55,
            "Star ratings update": 0.31,
        }

    @pytest.mark.asyncio
    async def test_dedup_max_similarity_policy(self):
        store = make_store({
            0: [("shared", 0.55)],
            1: [("shared", 0.72)],
        })
        searcher = self._searcher(make_embedding(QUERIES[:2]), store, dedup_policy="max_similarity")

        chunks = await searcher.retrieve(QUERIES[:2], threshold=0.1, limit_per_query=5)

        assert chunks == {"shared": 0.72}

    @pytest.mark.asyncio
    async def test_passes_threshold_and_limit(self):
        store = make_store({0: []})
        searcher = self._searcher(make_embedding(QUERIES[:1]), store)

        await searcher.retrieve(QUERIES[:1], threshold=0.25, limit_per_query=4)

        args = store.search.call_args.args
        assert args[0] == [0.0, 1.0]
        assert args[1] == 0.25
        assert args[2] == 4

    @pytest.mark.asyncio
    async def test_paraphrase_failure_isolated(self, caplog):
        import logging
        from policyqa.common.errors import RetrievalError
        store = make_store({
            0: [("from original", 0.6)],
            1: RetrievalError("index timeout"),
            2: [("from paraphrase two", 0.4)],
        })
        searcher = self._searcher(make_embedding(QUERIES), store)

        with caplog.at_level(logging.WARNING, logger="policyqa.retriever.searcher"):
            report = await searcher.retrieve_with_report(QUERIES, threshold=0.1, limit_per_query=5)

        assert report.chunks == {"from original": 0.6, "from paraphrase two": 0.4}
        assert report.failed_queries == [("paraphrase one", "index timeout")]
        assert "paraphrase one" in caplog.text

    @pytest.mark.asyncio
    async def test_paraphrase_embedding_failure_isolated(self):
        store = make_store({0: [("a", 0.5)], 2: [("b", 0.4)]})
        searcher = self._searcher(make_embedding(QUERIES, fail=["paraphrase one"]), store)

        report = await searcher.retrieve_with_report(QUERIES, threshold=0.1, limit_per_query=5)

        assert report.contents == ["a", "b"]
        assert [q for q, _ in report.failed_queries] == ["paraphrase one"]

    @pytest.mark.asyncio
    async def test_original_failure_propagates(self):
        from policyqa.common.errors import EmbeddingError
        store = make_store({1: [("a", 0.5)]})
        searcher = self._searcher(make_embedding(QUERIES[:2], fail=["original question"]), store)

        with pytest.raises(EmbeddingError, match="quota exceeded"):
            await searcher.retrieve(QUERIES[:2], threshold=0.1, limit_per_query=5)

    @pytest.mark.asyncio
    async def test_siblings_complete_when_one_fails(self):
        from policyqa.common.errors import RetrievalError
        store = make_store({0: [("a", 0.5)], 1: RetrievalError("boom"), 2: [("c", 0.4)]})
        searcher = self._searcher(make_embedding(QUERIES), store)

        await searcher.retrieve(QUERIES, threshold=0.1, limit_per_query=5)

        assert store.search.await_count == 3

    @pytest.mark.asyncio
    async def test_variants_run_concurrently(self):
        from policyqa.common.vector_store import RetrievedChunk
        in_flight = 0
        peak = 0

        async def search(vector, threshold, limit):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.1)
            in_flight -= 1
            return [RetrievedChunk(f"chunk {int(vector[0])}", 0.5)]

        store = Mock()
        store.search = search
        searcher = self._searcher(make_embedding(QUERIES), store)

        chunks = await searcher.retrieve(QUERIES, threshold=0.1, limit_per_query=5)

        assert peak == 3
        assert list(chunks) == ["chunk 0", "chunk 1", "chunk 2"]

    @pytest.mark.asyncio
    async def test_search_timeout_becomes_retrieval_error(self):
        from policyqa.common.errors import RetrievalError

        async def slow_search(vector, threshold, limit):
            await asyncio.sleep(1)
            return []

        store = Mock()
        store.search = slow_search
        searcher = self._searcher(make_embedding(QUERIES[:1]), store, search_timeout=0.01)

        with pytest.raises(RetrievalError, match="timed out"):
            await searcher.retrieve(QUERIES[:1], threshold=0.1, limit_per_query=5)

    @pytest.mark.asyncio
    async def test_no_queries(self):
        searcher = self._searcher(make_embedding([]), make_store({}))
        assert await searcher.retrieve([], threshold=0.1, limit_per_query=5) == {}

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            self._searcher(make_embedding([]), make_store({}), dedup_policy="newest")
