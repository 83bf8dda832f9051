"""Confidence label derived from retrieval similarity scores."""

from enum import Enum
from typing import Iterable

HIGH_THRESHOLD = 0.5
MEDIUM_THRESHOLD = 0.3


class ConfidenceLevel(str, Enum):
    """How well the retrieved context supports an answer"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def mean_similarity(similarities: Iterable[float]) -> float:
    scores = list(similarities)
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def estimate_confidence(similarities: Iterable[float]) -> ConfidenceLevel:
    """
    Map the mean similarity to a level.

    mean > 0.5 is high, 0.3 < mean <= 0.5 is medium, anything else
    (including no chunks at all) is low.
    """
    mean = mean_similarity(similarities)
    if mean > HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if mean > MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW
