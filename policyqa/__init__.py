"""
Policy QA

Retrieval-augmented question answering over a fixed policy document corpus.

Pipeline:
- QueryExpander: paraphrases the question for wider recall
- Searcher: concurrent embed + vector search per variant, deduplicated
- estimate_confidence: coarse label from mean similarity
- build_prompt: retrieved context + last turns of conversation
- Synthesizer: LLM answer constrained to the retrieved context

Usage:
    from policyqa.common import load_config
    from policyqa.retriever import AnswerPipeline
    from policyqa.server.app import app
"""

__version__ = "0.1.0"
