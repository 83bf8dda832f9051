"""
Policy QA Common Module

Shared infrastructure for retrieval, synthesis and ingestion.
"""

from .config import PolicyQAConfig, load_config, save_config
from .embedding_service import EmbeddingService
from .errors import (
    PolicyQAError,
    ValidationError,
    EmbeddingError,
    RetrievalError,
    SynthesisError,
)
from .llm_client import LLMClient
from .vector_store import (
    VectorStore,
    SupabaseVectorStore,
    InMemoryVectorStore,
    RetrievedChunk,
    create_vector_store,
)

__all__ = [
    "PolicyQAConfig",
    "load_config",
    "save_config",
    "EmbeddingService",
    "LLMClient",
    "PolicyQAError",
    "ValidationError",
    "EmbeddingError",
    "RetrievalError",
    "SynthesisError",
    "VectorStore",
    "SupabaseVectorStore",
    "InMemoryVectorStore",
    "RetrievedChunk",
    "create_vector_store",
]
