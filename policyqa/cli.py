"""
Command line entry point.

    policy-qa ask "What is the projected MA growth for 2027?"
    policy-qa ask --pdf policy.pdf "..."     # answer from a local PDF, in memory
    policy-qa serve [--host 0.0.0.0] [--port 8000]
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional


async def _ask(question: str, pdf: Optional[Path], chunk_size: int) -> int:
    from .common.config import load_config
    from .common.errors import PolicyQAError
    from .ingest.loader import ingest_pdf
    from .retriever.pipeline import AnswerPipeline, build_services
    from .retriever.synthesizer import format_answer_for_display

    config = load_config()
    if pdf is not None:
        config.vector_backend = "memory"

    llm_client, embedding_service, vector_store = build_services(config)

    if pdf is not None:
        report = await ingest_pdf(pdf, embedding_service, vector_store, chunk_size=chunk_size)
        if report.stored == 0:
            print(f"Could not index any chunk of {pdf}", file=sys.stderr)
            return 1

    pipeline = AnswerPipeline.from_config(config, llm_client, embedding_service, vector_store)
    try:
        result = await pipeline.ask(question)
    except PolicyQAError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_answer_for_display(result.answer, result.confidence))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="policy-qa", description="Question answering over policy documents")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    ask_parser = sub.add_parser("ask", help="Answer one question and exit")
    ask_parser.add_argument("question", help="Question to answer")
    ask_parser.add_argument("--pdf", type=Path, help="Index this PDF in memory instead of using Supabase")
    ask_parser.add_argument("--chunk-size", type=int, default=1000, help="Characters per chunk for --pdf")

    serve_parser = sub.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    if args.command == "serve":
        from .server.app import run_server

        run_server(host=args.host, port=args.port)
        return 0

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_ask(args.question, args.pdf, args.chunk_size))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
