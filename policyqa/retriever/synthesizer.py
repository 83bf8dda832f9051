"""
Synthesizer

LLM-based answer synthesis from assembled chat messages.
The prompt builder already constrains the model to the retrieved context;
this module only runs the completion and turns upstream trouble into
SynthesisError.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..common.errors import SynthesisError
from ..common.llm_client import LLMClient
from .confidence import ConfidenceLevel

logger = logging.getLogger("policyqa.retriever.synthesizer")

CONFIDENCE_MARKERS = {
    ConfidenceLevel.HIGH: "●●●",
    ConfidenceLevel.MEDIUM: "●●○",
    ConfidenceLevel.LOW: "●○○",
}


class Synthesizer:
    """
    Synthesizes answers with the configured generative model.

    No fallback and no retry: a failed completion fails the request.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient],
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ):
        """
        Initialize synthesizer.

        Args:
            llm_client: Generative model client
            temperature: Sampling temperature
            max_tokens: Completion length cap
            timeout: Seconds to wait for the completion
        """
        self._llm = llm_client
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def has_llm(self) -> bool:
        """Check if LLM is available"""
        return self._llm is not None and self._llm.is_available

    async def synthesize(self, messages: List[Dict[str, str]]) -> str:
        """
        Run the completion for a built prompt.

        Args:
            messages: Chat messages from build_prompt()

        Returns:
            Answer text of the top completion

        Raises:
            SynthesisError: On unavailable model, upstream error, timeout or empty output
        """
        if not self.has_llm:
            raise SynthesisError("LLM client is not available")

        try:
            answer = await asyncio.wait_for(
                asyncio.to_thread(
                    self._llm.chat,
                    messages,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise SynthesisError(f"Answer synthesis timed out after {self._timeout}s") from e
        except Exception as e:
            raise SynthesisError(f"Answer synthesis failed: {e}") from e

        if not answer or not answer.strip():
            raise SynthesisError("Model returned an empty answer")
        return answer


def format_answer_for_display(answer: str, confidence: ConfidenceLevel) -> str:
    """Format an answer for terminal display"""
    level = ConfidenceLevel(confidence)
    lines = [
        answer.strip(),
        "",
        "---",
        f"Confidence: {CONFIDENCE_MARKERS[level]} {level.value}",
    ]
    if level == ConfidenceLevel.LOW:
        lines.append("Few relevant passages were found; verify against the source documents.")
    return "\n".join(lines)
