"""Shared fixtures: deterministic stand-ins for the model and index services."""

from typing import Dict, List, Sequence, Tuple, Union
from unittest.mock import AsyncMock, Mock

import pytest

CONFIG_ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "EMBEDDING_PROVIDER",
    "EMBEDDING_MODEL",
    "POLICYQA_MATCH_THRESHOLD",
    "POLICYQA_MATCH_COUNT",
    "POLICYQA_MAX_EXPANSIONS",
    "POLICYQA_DEDUP_POLICY",
    "POLICYQA_PORT",
    "POLICYQA_LOG_LEVEL",
    "POLICYQA_VECTOR_BACKEND",
    "POLICYQA_LLM_PROVIDER",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_MODEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """No config-related env vars and no dotenv files."""
    for var in CONFIG_ENV_VARS:
        # setenv first so teardown also removes values a dotenv load adds
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.setattr("policyqa.common.config.DOTENV_FILES", ())


def make_embedding(queries: Sequence[str], fail: Sequence[str] = ()) -> Mock:
    """Embedding service that maps the i-th known query to the vector [i, 1]."""
    from policyqa.common.errors import EmbeddingError

    index = {q: [float(i), 1.0] for i, q in enumerate(queries)}

    def embed_single(text):
        if text in fail:
            raise EmbeddingError(f"quota exceeded while embedding {text!r}")
        return index[text]

    service = Mock()
    service.is_available = True
    service.embed_single.side_effect = embed_single
    return service


Rows = Union[List[Tuple[str, float]], Exception]


def make_store(results: Dict[int, Rows]) -> Mock:
    """Vector store returning scripted rows per query index (vector[0])."""
    from policyqa.common.vector_store import RetrievedChunk

    async def search(vector, threshold, limit):
        rows = results.get(int(vector[0]), [])
        if isinstance(rows, Exception):
            raise rows
        return [RetrievedChunk(content=c, similarity=s) for c, s in rows][:limit]

    store = Mock()
    store.is_available = True
    store.search = AsyncMock(side_effect=search)
    return store


def make_llm(expansion: str = "[]", answer: str = "mock answer") -> Mock:
    """LLM client whose generate() drives expansion and chat() drives synthesis."""
    llm = Mock()
    llm.is_available = True
    llm.generate.return_value = expansion
    llm.chat.return_value = answer
    return llm
