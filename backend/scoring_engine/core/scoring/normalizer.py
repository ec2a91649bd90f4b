"""
Answer normalization.

Every answer, whatever its question format, is reduced to a score in [0, 1]
before it is aggregated. Ordinal ratings are rescaled from the 1-5 range;
pre-scored formats (situational judgment, multiple choice, open text graded
elsewhere) use their pre-computed score, clamped.
"""
from typing import Optional

from scoring_engine.models.models import QuestionType

from ._constants import (
    HYBRID_QUESTION_TYPES,
    LIKERT_MAX,
    LIKERT_MIN,
    ORDINAL_QUESTION_TYPES,
)
from ._types import AnswerRecord


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into the closed interval [lower, upper]."""
    return max(lower, min(upper, value))


def normalize_likert(value: Optional[float]) -> float:
    """
    Rescale an ordinal rating to [0, 1].

    Values outside 1-5 are clamped first, so 0 behaves like 1 and 7 like 5.

    Example:
        >>> normalize_likert(3)
        0.5
        >>> normalize_likert(9)
        1.0
    """
    if value is None:
        return 0.0
    clamped = clamp(value, LIKERT_MIN, LIKERT_MAX)
    return (clamped - LIKERT_MIN) / (LIKERT_MAX - LIKERT_MIN)


def normalize_precomputed(score: Optional[float]) -> float:
    """Clamp a pre-computed score to [0, 1]; an absent score counts as 0."""
    if score is None:
        return 0.0
    return clamp(score, 0.0, 1.0)


def normalize_answer(answer: AnswerRecord, question_type: Optional[QuestionType]) -> float:
    """
    Normalize one answer to a score in [0, 1].

    Args:
        answer: The raw answer
        question_type: Kind of the answered question; None when unknown

    Returns:
        Normalized score. Skipped answers score 0.
    """
    if answer.skipped:
        return 0.0

    if question_type in ORDINAL_QUESTION_TYPES:
        return normalize_likert(answer.likert_value)

    if question_type in HYBRID_QUESTION_TYPES and answer.likert_value is not None:
        return normalize_likert(answer.likert_value)

    # Situational judgment, multiple choice, hybrid without a rating,
    # open text and unknown kinds all fall back to the pre-computed score
    return normalize_precomputed(answer.score)
