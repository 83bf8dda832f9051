#!/usr/bin/env python3
"""
PDF Ingestion Script

Extracts text from a policy PDF, splits it into fixed-size chunks, embeds
each chunk and stores it in the Supabase `pdf_embeddings` table.

Usage:
    python scripts/ingest_pdf.py path/to/policy.pdf [--chunk-size 1000] [--dry-run]
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    parser = argparse.ArgumentParser(description="Embed a policy PDF into the vector index")
    parser.add_argument("pdf", type=Path, help="Path to the PDF file")
    parser.add_argument("--chunk-size", type=int, default=1000, help="Characters per chunk")
    parser.add_argument("--dry-run", action="store_true", help="Extract and chunk without embedding or storing")
    args = parser.parse_args()

    from policyqa.common.config import load_config
    from policyqa.common.embedding_service import EmbeddingService
    from policyqa.common.vector_store import SupabaseVectorStore
    from policyqa.ingest.loader import chunk_text, extract_pdf_text, ingest_chunks
    from policyqa.retriever.pipeline import embedding_api_key

    config = load_config()

    print(f"[Ingest] Reading {args.pdf}...")
    try:
        text = extract_pdf_text(args.pdf)
        chunks = chunk_text(text, args.chunk_size)
    except (FileNotFoundError, ValueError) as e:
        print(f"[Ingest] ERROR: {e}")
        sys.exit(1)
    print(f"[Ingest] {len(text)} characters, {len(chunks)} chunk(s) of up to {args.chunk_size}")

    if args.dry_run:
        print("[Ingest] DRY RUN - nothing will be embedded or stored")
        for i, chunk in enumerate(chunks[:3], 1):
            preview = chunk[:80].replace("\n", " ")
            print(f"[Ingest]   chunk {i}: {preview}...")
        return

    missing = []
    if not config.supabase.url:
        missing.append("SUPABASE_URL")
    if not config.supabase.service_role_key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY")
    if not embedding_api_key(config):
        missing.append(f"API key for embedding provider '{config.embedding.provider}'")
    if missing:
        for name in missing:
            print(f"[Ingest] ERROR: Missing setting: {name}")
        sys.exit(1)

    print(f"[Ingest] Embedding model: {config.embedding.provider}/{config.embedding.model}")
    embedding_svc = EmbeddingService.from_config(config.embedding, embedding_api_key(config))
    if not embedding_svc.is_available:
        print("[Ingest] ERROR: Embedding service not available")
        sys.exit(1)

    store = SupabaseVectorStore.from_config(config.supabase, timeout=config.retriever.search_timeout)

    report = asyncio.run(ingest_chunks(chunks, embedding_svc, store))

    print(f"[Ingest] Stored {report.stored}/{report.total} chunk(s)")
    for index, error in report.failures:
        print(f"[Ingest]   chunk {index} failed: {error}")

    if report.stored == 0 and report.total > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
