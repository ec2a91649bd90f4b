"""
Item-level psychometric analysis.

Pure functions over historical response data for a single question:

- Difficulty index (p-value analogue): mean normalized score
- Discrimination index: point-biserial (Pearson) correlation between the item
  score and the respondent's overall assessment result
- Difficulty / discrimination flags
- Validity status decision and a human-readable reason
- Distractor efficiency for choice questions

Validity decision order:
    1. response_count < MIN_RESPONSES            -> PROBATION
    2. discrimination < 0                        -> RETIRED (toxic item)
    3. discrimination >= 0.30, 0.2 <= p <= 0.9   -> ACTIVE
    4. no discrimination could be computed       -> PROBATION
    5. otherwise                                 -> FLAGGED_FOR_REVIEW
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from scoring_engine.core.precision import (
    is_at_least,
    is_below,
    round4,
    round_half_up,
)
from scoring_engine.models.models import (
    DifficultyFlag,
    DiscriminationFlag,
    ItemValidityStatus,
)

from ._constants import (
    DIFFICULTY_TOO_EASY,
    DIFFICULTY_TOO_HARD,
    DISCRIMINATION_CRITICAL,
    DISCRIMINATION_EXCELLENT,
    DISCRIMINATION_GOOD,
    DISCRIMINATION_NEGATIVE,
    DISCRIMINATION_WARNING,
    MIN_ACTIVE_DISCRIMINATION,
    MIN_RESPONSES,
)

logger = logging.getLogger(__name__)


def calculate_difficulty_index(item_scores: Sequence[float]) -> Optional[float]:
    """
    Mean normalized score across responses, rounded to 4 decimals.

    Returns:
        The p-value analogue in [0, 1], or None with no responses
    """
    if not item_scores:
        return None
    return round4(float(np.mean(np.asarray(item_scores, dtype=float))))


def calculate_discrimination_index(
    item_scores: Sequence[float],
    total_scores: Sequence[float],
    min_responses: int = MIN_RESPONSES,
) -> Optional[float]:
    """
    Point-biserial correlation between item scores and overall results.

    With dichotomous item scores this is the classic point-biserial
    coefficient; with graded scores in [0, 1] it is the Pearson correlation
    it generalizes.

    Args:
        item_scores: Normalized score on this item, one per respondent
        total_scores: Overall result (0-1) of the same respondents
        min_responses: Minimum paired observations required

    Returns:
        Correlation in [-1, 1] rounded to 4 decimals, or None when there are
        too few pairs or either series has no variance
    """
    if len(item_scores) != len(total_scores):
        logger.warning("Item scores and total scores length mismatch")
        return None

    if len(item_scores) < max(min_responses, 2):
        return None

    items = np.asarray(item_scores, dtype=float)
    totals = np.asarray(total_scores, dtype=float)

    if np.std(items) == 0 or np.std(totals) == 0:
        return None

    r = float(np.corrcoef(items, totals)[0, 1])
    if np.isnan(r):
        return None

    # Clamp floating point overshoot
    r = max(-1.0, min(1.0, r))
    return round4(r)


def determine_difficulty_flag(difficulty: Optional[float]) -> DifficultyFlag:
    if difficulty is None:
        return DifficultyFlag.NONE
    if is_below(difficulty, DIFFICULTY_TOO_HARD):
        return DifficultyFlag.TOO_HARD
    if round4(difficulty) > DIFFICULTY_TOO_EASY:
        return DifficultyFlag.TOO_EASY
    return DifficultyFlag.NONE


def determine_discrimination_flag(discrimination: Optional[float]) -> DiscriminationFlag:
    if discrimination is None:
        return DiscriminationFlag.NONE
    if is_below(discrimination, DISCRIMINATION_NEGATIVE):
        return DiscriminationFlag.NEGATIVE
    if is_below(discrimination, DISCRIMINATION_CRITICAL):
        return DiscriminationFlag.CRITICAL
    if is_below(discrimination, DISCRIMINATION_GOOD):
        return DiscriminationFlag.WARNING
    return DiscriminationFlag.NONE


def is_difficulty_in_range(difficulty: Optional[float]) -> bool:
    """True when DIFFICULTY_TOO_HARD <= p <= DIFFICULTY_TOO_EASY."""
    if difficulty is None:
        return False
    return (
        is_at_least(difficulty, DIFFICULTY_TOO_HARD)
        and round4(difficulty) <= DIFFICULTY_TOO_EASY
    )


def determine_validity_status(
    response_count: int,
    difficulty: Optional[float],
    discrimination: Optional[float],
    min_responses: int = MIN_RESPONSES,
) -> ItemValidityStatus:
    """
    Validity status for an item from its current metrics.

    Examples:
        >>> determine_validity_status(30, 0.5, 0.4)
        <ItemValidityStatus.PROBATION: 'probation'>
        >>> determine_validity_status(100, 0.65, 0.35)
        <ItemValidityStatus.ACTIVE: 'active'>
    """
    if response_count < min_responses:
        return ItemValidityStatus.PROBATION

    if discrimination is not None and is_below(discrimination, DISCRIMINATION_NEGATIVE):
        return ItemValidityStatus.RETIRED

    if (
        discrimination is not None
        and is_at_least(discrimination, MIN_ACTIVE_DISCRIMINATION)
        and is_difficulty_in_range(difficulty)
    ):
        return ItemValidityStatus.ACTIVE

    if discrimination is None:
        return ItemValidityStatus.PROBATION

    return ItemValidityStatus.FLAGGED_FOR_REVIEW


def _discrimination_band(discrimination: float) -> str:
    if is_below(discrimination, DISCRIMINATION_NEGATIVE):
        return "toxic"
    if is_at_least(discrimination, DISCRIMINATION_EXCELLENT):
        return "excellent"
    if is_at_least(discrimination, DISCRIMINATION_GOOD):
        return "good"
    if is_at_least(discrimination, DISCRIMINATION_WARNING):
        return "marginal"
    return "poor"


def _difficulty_band(difficulty: float) -> str:
    flag = determine_difficulty_flag(difficulty)
    if flag == DifficultyFlag.TOO_HARD:
        return "too hard"
    if flag == DifficultyFlag.TOO_EASY:
        return "too easy"
    return "acceptable"


def generate_status_reason(
    difficulty: Optional[float], discrimination: Optional[float]
) -> str:
    """
    Describe the metrics behind a status decision.

    Example:
        >>> generate_status_reason(0.65, 0.35)
        'rpb=0.350 (excellent), p=0.650 (acceptable)'
    """
    parts: List[str] = []
    if discrimination is not None:
        parts.append(
            f"rpb={round_half_up(discrimination, 3):.3f} ({_discrimination_band(discrimination)})"
        )
    if difficulty is not None:
        parts.append(f"p={round_half_up(difficulty, 3):.3f} ({_difficulty_band(difficulty)})")
    return ", ".join(parts)


def calculate_distractor_efficiency(
    selections: Iterable[Optional[Iterable[object]]],
) -> Dict[str, float]:
    """
    Share of all selections that went to each option.

    Args:
        selections: Selected option IDs, one collection per response

    Returns:
        Option ID (as string) -> share of selections rounded to 4 decimals.
        Empty when nothing was selected.
    """
    counts: Counter = Counter()
    for selected in selections:
        for option_id in selected or ():
            counts[str(option_id)] += 1

    total = sum(counts.values())
    if total == 0:
        return {}
    return {option_id: round4(count / total) for option_id, count in sorted(counts.items())}
