"""
Ingestion - fills the policy chunk index from PDF documents.
"""

from .loader import (
    IngestReport,
    chunk_text,
    extract_pdf_text,
    ingest_chunks,
    ingest_pdf,
)

__all__ = [
    "IngestReport",
    "chunk_text",
    "extract_pdf_text",
    "ingest_chunks",
    "ingest_pdf",
]
