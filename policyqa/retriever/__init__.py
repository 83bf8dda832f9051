"""
Retriever - Policy Question Answering

Retrieves policy passages and synthesizes answers using LLM.

Key Components:
- QueryExpander: LLM paraphrases of the question
- Searcher: Concurrent multi-query vector search with deduplication
- estimate_confidence: Label from mean similarity
- build_prompt: Context + conversation window + question
- Synthesizer: LLM answer synthesis
- AnswerPipeline: Runs all of the above for one request

Pipeline:
1. Expand the question into variants
2. Embed and search every variant concurrently, merge results
3. Estimate confidence from the merged similarities
4. Build the prompt and synthesize the answer
"""

from .confidence import ConfidenceLevel, estimate_confidence
from .pipeline import AnswerPipeline, AnswerResult
from .prompt_builder import ConversationTurn, build_prompt
from .query_expander import ExpansionOutcome, QueryExpander
from .searcher import RetrievalReport, Searcher
from .synthesizer import Synthesizer, format_answer_for_display

__all__ = [
    "ConfidenceLevel",
    "estimate_confidence",
    "AnswerPipeline",
    "AnswerResult",
    "ConversationTurn",
    "build_prompt",
    "ExpansionOutcome",
    "QueryExpander",
    "RetrievalReport",
    "Searcher",
    "Synthesizer",
    "format_answer_for_display",
]
