"""
Query Expander

Asks the LLM for alternative phrasings of a question to widen vector search
recall. The original question always comes first in the output. When the
model is unavailable, fails, or answers with something that is not a list,
expansion degrades to the original question alone.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_list

logger = logging.getLogger("policyqa.retriever.query_expander")

EXPANDED = "expanded"
DEGRADED = "degraded"


EXPANSION_SYSTEM_PROMPT = """You rewrite questions about policy documents to improve document search.
Given a question, produce up to {max_expansions} alternative phrasings that keep the same intent.
Use different vocabulary a policy document might use (synonyms, formal terms, acronyms spelled out).
Return ONLY a JSON array of strings, with no explanation and no code fences."""


@dataclass
class ExpansionOutcome:
    """Result of one expansion attempt"""
    queries: List[str]  # original first, then paraphrases
    status: str = EXPANDED  # "expanded" or "degraded"
    reason: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.status == DEGRADED

    @property
    def paraphrases(self) -> List[str]:
        return self.queries[1:]


def _normalize(text: str) -> str:
    return " ".join(text.split()).lower()


def select_paraphrases(question: str, candidates: List[str], limit: int) -> List[str]:
    """Drop blanks, echoes of the question and repeats; keep at most limit."""
    seen = {_normalize(question)}
    selected = []
    for candidate in candidates:
        text = candidate.strip()
        key = _normalize(text)
        if not key or key in seen:
            continue
        seen.add(key)
        selected.append(text)
        if len(selected) >= limit:
            break
    return selected


class QueryExpander:
    """
    LLM-based query expansion.

    Never raises on model trouble: the outcome is marked degraded and the
    caller searches with the original question only.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient],
        max_expansions: int = 3,
        timeout: float = 20.0,
        temperature: float = 0.1,
    ):
        """
        Initialize query expander.

        Args:
            llm_client: Generative model client (None disables expansion)
            max_expansions: Maximum paraphrases to add (K)
            timeout: Seconds to wait for the model
            temperature: Sampling temperature
        """
        self._llm = llm_client
        self._max_expansions = max(0, max_expansions)
        self._timeout = timeout
        self._temperature = temperature

    @property
    def max_expansions(self) -> int:
        return self._max_expansions

    async def expand(self, question: str) -> List[str]:
        """Return [question] followed by up to K paraphrases."""
        outcome = await self.expand_with_outcome(question)
        return outcome.queries

    async def expand_with_outcome(self, question: str) -> ExpansionOutcome:
        """
        Expand a question and report how it went.

        Args:
            question: Validated, non-blank user question

        Returns:
            ExpansionOutcome whose queries start with the question verbatim
        """
        if self._max_expansions == 0:
            return ExpansionOutcome(queries=[question])

        if self._llm is None or not self._llm.is_available:
            return self._degrade(question, "LLM client not available")

        system = EXPANSION_SYSTEM_PROMPT.format(max_expansions=self._max_expansions)
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(
                    self._llm.generate,
                    question,
                    system=system,
                    max_tokens=512,
                    temperature=self._temperature,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return self._degrade(question, f"expansion timed out after {self._timeout}s")
        except Exception as e:
            return self._degrade(question, f"expansion request failed: {e}")

        candidates = parse_llm_list(raw, key="queries")
        if candidates is None:
            snippet = (raw or "")[:120]
            return self._degrade(question, f"unparseable expansion output: {snippet!r}")

        paraphrases = select_paraphrases(question, candidates, self._max_expansions)
        logger.debug("Expanded %r into %d paraphrase(s)", question[:80], len(paraphrases))
        return ExpansionOutcome(queries=[question] + paraphrases)

    def _degrade(self, question: str, reason: str) -> ExpansionOutcome:
        logger.warning("Query expansion degraded for %r: %s", question[:80], reason)
        return ExpansionOutcome(queries=[question], status=DEGRADED, reason=reason)
