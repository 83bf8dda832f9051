"""
Vector Store Gateway

Nearest-neighbour search over the pre-populated policy chunk index.

- SupabaseVectorStore: pgvector index behind a PostgREST RPC function
- InMemoryVectorStore: numpy cosine search for local runs and tests

Both return chunks sorted by descending similarity, filtered by threshold
and truncated to limit. Either the full ranked list or RetrievalError.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx
import numpy as np

from .errors import RetrievalError

logger = logging.getLogger("policyqa.common.vector_store")


@dataclass
class RetrievedChunk:
    """A chunk of policy text returned by similarity search"""
    content: str
    similarity: float  # 0.0 to 1.0


def rank_chunks(chunks: List[RetrievedChunk], threshold: float, limit: int) -> List[RetrievedChunk]:
    """Apply the gateway contract: drop below threshold, sort descending, cap at limit."""
    kept = [c for c in chunks if c.similarity >= threshold]
    kept.sort(key=lambda c: c.similarity, reverse=True)
    return kept[:limit]


class VectorStore(ABC):
    """Read side of the chunk index used by the retriever."""

    @abstractmethod
    async def search(
        self,
        query_vector: Sequence[float],
        threshold: float,
        limit: int,
    ) -> List[RetrievedChunk]:
        """
        Find chunks similar to query_vector.

        Args:
            query_vector: Embedding of the query
            threshold: Minimum similarity to include
            limit: Maximum number of chunks

        Returns:
            Chunks sorted by descending similarity

        Raises:
            RetrievalError: If the index is unreachable or rejects the query
        """

    @abstractmethod
    async def insert(self, content: str, embedding: Sequence[float]) -> None:
        """Store one chunk with its embedding."""

    @property
    def is_available(self) -> bool:
        return True


class SupabaseVectorStore(VectorStore):
    """
    Supabase pgvector index.

    Search calls the `match_pdf_embeddings` Postgres function through
    PostgREST; inserts go straight to the `pdf_embeddings` table.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        match_function: str = "match_pdf_embeddings",
        table: str = "pdf_embeddings",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Supabase gateway.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            service_role_key: Service role key (bypasses RLS)
            match_function: Name of the similarity RPC function
            table: Table holding {content, embedding} rows
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._url = (url or "").rstrip("/")
        self._key = service_role_key
        self._match_function = match_function
        self._table = table
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, supabase_config, timeout: float = 15.0) -> "SupabaseVectorStore":
        return cls(
            url=supabase_config.url,
            service_role_key=supabase_config.service_role_key,
            match_function=supabase_config.match_function,
            table=supabase_config.table,
            timeout=timeout,
        )

    @property
    def is_available(self) -> bool:
        return bool(self._url and self._key)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def search(
        self,
        query_vector: Sequence[float],
        threshold: float,
        limit: int,
    ) -> List[RetrievedChunk]:
        if not self.is_available:
            raise RetrievalError("Supabase vector store is not configured")

        payload = {
            "query_embedding": list(query_vector),
            "match_threshold": threshold,
            "match_count": limit,
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._url}/rest/v1/rpc/{self._match_function}",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
                rows = response.json()
        except httpx.TimeoutException as e:
            raise RetrievalError(f"Vector search timed out after {self._timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise RetrievalError(
                f"Vector search failed with HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise RetrievalError(f"Vector index unreachable: {e}") from e
        except ValueError as e:
            raise RetrievalError(f"Vector search returned invalid JSON: {e}") from e

        return rank_chunks(self._parse_rows(rows), threshold, limit)

    def _parse_rows(self, rows: Any) -> List[RetrievedChunk]:
        """Convert RPC rows to chunks"""
        if not isinstance(rows, list):
            raise RetrievalError(f"Unexpected vector search response: {type(rows).__name__}")

        chunks = []
        for row in rows:
            if not isinstance(row, dict):
                raise RetrievalError(f"Unexpected vector search row: {row!r}")
            content = row.get("content", row.get("text"))
            similarity = row.get("similarity")
            if content is None or similarity is None:
                raise RetrievalError(f"Vector search row missing content or similarity: {sorted(row)}")
            chunks.append(RetrievedChunk(content=content, similarity=float(similarity)))
        return chunks

    async def insert(self, content: str, embedding: Sequence[float]) -> None:
        if not self.is_available:
            raise RetrievalError("Supabase vector store is not configured")

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._url}/rest/v1/{self._table}",
                    json=[{"content": content, "embedding": list(embedding)}],
                    headers={**self._headers(), "Prefer": "return=minimal"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RetrievalError(
                f"Insert failed with HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise RetrievalError(f"Vector index unreachable: {e}") from e


class InMemoryVectorStore(VectorStore):
    """
    Cosine-similarity index held in process memory.

    Vectors are L2 normalized on insert so a dot product gives cosine
    similarity, clamped to [0, 1].
    """

    def __init__(self):
        self._contents: List[str] = []
        self._vectors: List[np.ndarray] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._contents)

    def add(self, content: str, embedding: Sequence[float]) -> None:
        """Synchronous insert, convenient for seeding"""
        vector = np.asarray(embedding, dtype=np.float64)
        if vector.ndim != 1 or vector.size == 0:
            raise ValueError("Embedding must be a non-empty 1-D vector")
        if self._vectors and vector.shape != self._vectors[0].shape:
            raise ValueError(
                f"Vector dimension mismatch: {vector.shape} vs {self._vectors[0].shape}"
            )

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm

        with self._lock:
            self._contents.append(content)
            self._vectors.append(vector)

    async def insert(self, content: str, embedding: Sequence[float]) -> None:
        try:
            self.add(content, embedding)
        except ValueError as e:
            raise RetrievalError(str(e)) from e

    async def search(
        self,
        query_vector: Sequence[float],
        threshold: float,
        limit: int,
    ) -> List[RetrievedChunk]:
        with self._lock:
            contents = list(self._contents)
            vectors = list(self._vectors)

        if not vectors:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        matrix = np.vstack(vectors)
        if query.shape != (matrix.shape[1],):
            raise RetrievalError(
                f"Query dimension mismatch: {query.shape} vs index dimension {matrix.shape[1]}"
            )

        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        similarities = np.clip(matrix @ query, 0.0, 1.0)
        chunks = [
            RetrievedChunk(content=content, similarity=float(score))
            for content, score in zip(contents, similarities)
        ]
        return rank_chunks(chunks, threshold, limit)


def create_vector_store(config) -> VectorStore:
    """Build the gateway selected by PolicyQAConfig.vector_backend."""
    if config.vector_backend == "memory":
        logger.info("Using in-memory vector store")
        return InMemoryVectorStore()

    store = SupabaseVectorStore.from_config(
        config.supabase,
        timeout=config.retriever.search_timeout,
    )
    if not store.is_available:
        logger.warning("Supabase URL or service role key missing, vector search will fail")
    return store
