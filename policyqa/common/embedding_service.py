"""
Embedding Service

Turns questions, paraphrases and document chunks into dense vectors.
Supports OpenAI (text-embedding-3-large) and Google (text-embedding-004).
"""

import logging
from typing import List, Optional

import numpy as np

from .errors import EmbeddingError

logger = logging.getLogger("policyqa.common.embedding_service")

DEFAULT_MODELS = {
    "openai": "text-embedding-3-large",
    "google": "text-embedding-004",
}

# Gemini task types; OpenAI embeddings ignore them
QUERY_TASK = "retrieval_query"
DOCUMENT_TASK = "retrieval_document"


class EmbeddingService:
    """
    Embedding client shared by retrieval and ingestion.

    Built once at startup from EmbeddingConfig and injected into the
    components that need it. Calls are synchronous; async callers run
    them in a worker thread.
    """

    def __init__(
        self,
        provider: str = "openai",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize embedding service.

        Args:
            provider: "openai" or "google"
            model: Model name (provider default when omitted)
            api_key: Provider API key
            dimensions: Expected vector length; checked on every call when set
            timeout: Per-request timeout in seconds
        """
        self._provider = (provider or "openai").lower()
        self._model = model or DEFAULT_MODELS.get(self._provider, "")
        self._dimensions = dimensions
        self._timeout = timeout
        self._client = None

        if self._provider not in DEFAULT_MODELS:
            logger.warning("Unsupported embedding provider: %s", self._provider)
            return

        if not api_key:
            logger.info("%s API key not provided, embedding service unavailable", self._provider)
            return

        try:
            if self._provider == "openai":
                from openai import OpenAI

                self._client = OpenAI(api_key=api_key)
            else:
                import google.generativeai as genai

                genai.configure(api_key=api_key)
                self._client = genai
            logger.info("Embedding service ready (provider=%s, model=%s)", self._provider, self._model)
        except ImportError as e:
            logger.warning("Embedding provider package not installed: %s", e)
        except Exception as e:
            logger.warning("Failed to initialize embedding client: %s", e)

    @classmethod
    def from_config(cls, embedding_config, api_key: Optional[str]) -> "EmbeddingService":
        return cls(
            provider=embedding_config.provider,
            model=embedding_config.model,
            api_key=api_key,
            dimensions=embedding_config.dimensions,
            timeout=embedding_config.timeout,
        )

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def model(self) -> str:
        return self._model

    @property
    def timeout(self) -> float:
        return self._timeout

    def embed(self, texts: List[str], task_type: str = QUERY_TASK) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed
            task_type: QUERY_TASK for questions, DOCUMENT_TASK for stored chunks

        Returns:
            List of embedding vectors, one per input text

        Raises:
            EmbeddingError: On any upstream failure or malformed vector
        """
        if not self._client:
            raise EmbeddingError("Embedding service is not available")

        if not texts:
            return []

        try:
            if self._provider == "openai":
                response = self._client.embeddings.create(
                    model=self._model,
                    input=texts,
                    timeout=self._timeout,
                )
                vectors = [item.embedding for item in response.data]
            else:
                result = self._client.embed_content(
                    model=f"models/{self._model}",
                    content=texts,
                    task_type=task_type,
                    request_options={"timeout": self._timeout},
                )
                vectors = result["embedding"]
        except Exception as e:
            raise EmbeddingError(f"{self._provider} embedding request failed: {e}") from e

        return self._validate(vectors, expected=len(texts))

    def embed_single(self, text: str, task_type: str = QUERY_TASK) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed
            task_type: See embed()

        Returns:
            Embedding vector
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        embeddings = self.embed([text], task_type)
        return embeddings[0]

    def _validate(self, vectors, expected: int) -> List[List[float]]:
        """Check count, shape and finiteness of returned vectors."""
        try:
            matrix = np.asarray(vectors, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        if matrix.ndim != 2 or matrix.shape[0] != expected:
            raise EmbeddingError(
                f"Expected {expected} vectors, got array of shape {matrix.shape}"
            )
        if self._dimensions is not None and matrix.shape[1] != self._dimensions:
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self._dimensions}, got {matrix.shape[1]}"
            )
        if not np.all(np.isfinite(matrix)):
            raise EmbeddingError("Embedding contains non-finite values")

        return matrix.tolist()
