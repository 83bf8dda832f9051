"""
Prompt Builder

Assembles the chat messages sent to the answer model:
1. system message carrying the retrieved policy context
2. the most recent conversation turns, oldest first
3. the current question
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

HISTORY_WINDOW = 3
CONTEXT_SEPARATOR = "\n---\n"


@dataclass
class ConversationTurn:
    """One prior question/answer exchange supplied by the caller"""
    question: str
    answer: str


# System prompt when retrieval produced context
CONTEXT_SYSTEM_PROMPT = """You are a helpful assistant that answers questions about policy documents.
Answer the question using ONLY the context below. Do not add facts that are not in the context.

Context:
{context}

Formatting:
- Keep paragraphs short (2-3 sentences).
- Use bullet lists when listing multiple changes, provisions or figures.
- Use **bold** for key terms, percentages and dates."""


# System prompt when retrieval produced nothing
EMPTY_CONTEXT_SYSTEM_PROMPT = """You are a helpful assistant that answers questions about policy documents.
No relevant passages were found in the policy documents for this question.
If you cannot answer from the conversation so far, reply "I don't know" and suggest rephrasing the question.
Do not make up policy details, figures or dates."""


def assemble_context(chunks: Iterable[str]) -> str:
    """Join non-blank chunk texts with the visible separator."""
    return CONTEXT_SEPARATOR.join(c for c in chunks if c and c.strip())


def recent_turns(history: Optional[Sequence[ConversationTurn]], window: int = HISTORY_WINDOW) -> List[ConversationTurn]:
    """Last `window` turns, oldest first"""
    if not history or window <= 0:
        return []
    return list(history)[-window:]


def build_prompt(
    chunks: Iterable[str],
    history: Optional[Sequence[ConversationTurn]],
    question: str,
    history_window: int = HISTORY_WINDOW,
) -> List[Dict[str, str]]:
    """
    Build the chat messages for synthesis.

    Args:
        chunks: Retrieved chunk texts in merge order
        history: Prior turns, oldest first (may be None)
        question: Current question
        history_window: Number of most recent turns to include

    Returns:
        List of {"role", "content"} messages
    """
    context = assemble_context(chunks)
    if context:
        system = CONTEXT_SYSTEM_PROMPT.format(context=context)
    else:
        system = EMPTY_CONTEXT_SYSTEM_PROMPT

    messages = [{"role": "system", "content": system}]
    for turn in recent_turns(history, history_window):
        messages.append({"role": "user", "content": turn.question})
        messages.append({"role": "assistant", "content": turn.answer})
    messages.append({"role": "user", "content": question})
    return messages
