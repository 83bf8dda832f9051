"""
PDF Loader

Populates the vector index from a policy PDF:
1. Extract text from every page
2. Split into fixed-size character chunks
3. Embed and store each chunk; a failing chunk is logged and skipped
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple, Union

from pypdf import PdfReader

from ..common.embedding_service import DOCUMENT_TASK, EmbeddingService
from ..common.vector_store import VectorStore

logger = logging.getLogger("policyqa.ingest.loader")

DEFAULT_CHUNK_SIZE = 1000


@dataclass
class IngestReport:
    """Outcome of one ingestion run"""
    total: int = 0
    stored: int = 0
    failures: List[Tuple[int, str]] = field(default_factory=list)  # (1-based index, error)

    @property
    def failed(self) -> int:
        return len(self.failures)


def extract_pdf_text(path: Union[str, Path]) -> str:
    """
    Extract the text of all pages of a PDF.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the PDF cannot be read
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"PDF not found: {file_path}")

    try:
        reader = PdfReader(str(file_path))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        raise ValueError(f"Failed to read PDF {file_path}: {e}") from e

    logger.info("Extracted %d page(s) from %s", len(pages), file_path.name)
    return "\n".join(pages)


def chunk_text(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """Split text into consecutive windows of chunk_size characters (last may be short)."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    chunks = [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]
    logger.info("Split text into %d chunk(s)", len(chunks))
    return chunks


async def ingest_chunks(
    chunks: List[str],
    embedding_service: EmbeddingService,
    store: VectorStore,
) -> IngestReport:
    """
    Embed and store chunks in order.

    Args:
        chunks: Chunk texts
        embedding_service: Embeds each chunk
        store: Destination index

    Returns:
        IngestReport with stored and failed counts
    """
    report = IngestReport(total=len(chunks))

    for i, chunk in enumerate(chunks, 1):
        try:
            embedding = await asyncio.to_thread(
                embedding_service.embed_single, chunk, task_type=DOCUMENT_TASK
            )
            await store.insert(chunk, embedding)
        except Exception as e:
            logger.warning("Error storing chunk %d/%d: %s", i, len(chunks), e)
            report.failures.append((i, str(e)))
            continue

        report.stored += 1
        logger.debug("Stored chunk %d/%d", i, len(chunks))

    logger.info("Ingested %d/%d chunk(s), %d failed", report.stored, report.total, report.failed)
    return report


async def ingest_pdf(
    path: Union[str, Path],
    embedding_service: EmbeddingService,
    store: VectorStore,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IngestReport:
    """Extract, chunk and store one PDF."""
    text = extract_pdf_text(path)
    return await ingest_chunks(chunk_text(text, chunk_size), embedding_service, store)
