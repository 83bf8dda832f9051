"""
Policy QA Server

FastAPI server answering questions about the policy corpus.

Endpoints:
- POST /ask: Answer a question (optionally with prior conversation turns)
- GET /health: Health check

Pipeline:
1. Validate the question
2. Expand it into query variants
3. Embed + search every variant concurrently, merge results
4. Estimate confidence from similarity scores
5. Build prompt with context and conversation window
6. Synthesize the answer
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .. import __version__
from ..common.config import PolicyQAConfig, load_config
from ..common.embedding_service import EmbeddingService
from ..common.errors import ValidationError
from ..common.llm_client import LLMClient
from ..common.vector_store import VectorStore
from ..retriever.pipeline import AnswerPipeline, build_services
from ..retriever.prompt_builder import ConversationTurn

logger = logging.getLogger("policyqa.server")


# Global state
config: Optional[PolicyQAConfig] = None
llm_client: Optional[LLMClient] = None
embedding_service: Optional[EmbeddingService] = None
vector_store: Optional[VectorStore] = None
pipeline: Optional[AnswerPipeline] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, llm_client, embedding_service, vector_store, pipeline

    logger.info("Starting up...")

    config = load_config()
    logger.info(
        "Loaded config (llm=%s/%s, embedding=%s/%s, backend=%s)",
        config.llm.provider, config.llm.model,
        config.embedding.provider, config.embedding.model,
        config.vector_backend,
    )

    llm_client, embedding_service, vector_store = build_services(config)
    pipeline = AnswerPipeline.from_config(config, llm_client, embedding_service, vector_store)

    if not llm_client.is_available:
        logger.warning("LLM client unavailable, /ask will fail until an API key is configured")
    if not embedding_service.is_available:
        logger.warning("Embedding service unavailable, /ask will fail until an API key is configured")

    logger.info("Ready to answer questions")

    yield

    # Cleanup
    logger.info("Shutting down...")
    pipeline = None


app = FastAPI(
    title="Policy QA",
    description="Question answering over policy documents",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class HistoryTurn(BaseModel):
    """One prior exchange sent by the client"""
    question: str
    answer: str


history_adapter = TypeAdapter(List[HistoryTurn])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "policy-qa",
        "version": __version__,
        "initialized": pipeline is not None,
        "llm_available": llm_client.is_available if llm_client else False,
        "embedding_available": embedding_service.is_available if embedding_service else False,
        "vector_backend": config.vector_backend if config else None,
        "vector_store_available": vector_store.is_available if vector_store else False,
    }


@app.post("/ask")
async def ask(request: Request):
    """
    Answer a question about the policy documents.

    Body: {"question": str, "history": [{"question": str, "answer": str}, ...]}
    Returns: {"answer": str, "confidence": "high" | "medium" | "low"}
    """
    if pipeline is None:
        return _error(503, "Pipeline not initialized")

    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return _error(400, "Missing question")

    question = body.get("question")
    if not isinstance(question, str) or not question.strip():
        return _error(400, "Missing question")

    try:
        turns = history_adapter.validate_python(body.get("history") or [])
    except PydanticValidationError:
        return _error(400, "Invalid history")
    history = [ConversationTurn(question=t.question, answer=t.answer) for t in turns]

    try:
        result = await pipeline.ask(question, history)
    except ValidationError as e:
        return _error(400, str(e))
    except Exception as e:
        logger.exception("Failed to answer %r", question[:80])
        return _error(500, str(e))

    if result.failed_queries:
        logger.warning(
            "Answered %r with %d failed query variant(s)",
            question[:80], len(result.failed_queries),
        )
    return JSONResponse(result.to_dict())


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the Policy QA server"""
    import uvicorn

    server_config = load_config().server
    logging.basicConfig(
        level=getattr(logging, server_config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    host = host or server_config.host
    port = port or server_config.port

    logger.info("Starting server on %s:%d", host, port)
    uvicorn.run(
        "policyqa.server.app:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
