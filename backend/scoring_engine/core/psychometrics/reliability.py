r"""
Cronbach's alpha for competency internal consistency.

Formula:
    α = (k / (k-1)) × (1 - Σσ²ᵢ / σ²ₜ)

Where:
    k = number of items
    σ²ᵢ = sample variance of item i
    σ²ₜ = sample variance of total scores

The matrix has one row per test session and one column per question of the
competency; values are normalized scores in [0, 1].
"""
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from scoring_engine.core.precision import is_at_least, round4
from scoring_engine.models.models import ReliabilityStatus

from ._constants import (
    ALPHA_ACCEPTABLE,
    ALPHA_RELIABLE,
    MIN_ITEMS_FOR_ALPHA,
    MIN_ITEMS_FOR_ALPHA_IF_DELETED,
    MIN_SAMPLE_SIZE_FOR_ALPHA,
    RESPONSE_COMPLETENESS_THRESHOLD,
)

logger = logging.getLogger(__name__)


def cronbach_alpha(matrix: np.ndarray) -> Optional[float]:
    """
    Cronbach's alpha of a complete (sessions × items) score matrix.

    Returns:
        Alpha rounded to 4 decimals, or None with fewer than 2 items, fewer
        than 2 sessions, or zero total-score variance
    """
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got {matrix.ndim} dimension(s)")

    n_sessions, k = matrix.shape
    if k < MIN_ITEMS_FOR_ALPHA or n_sessions < 2:
        return None

    item_variances = matrix.var(axis=0, ddof=1)
    total_variance = matrix.sum(axis=1).var(ddof=1)
    if total_variance == 0:
        return None

    alpha = (k / (k - 1)) * (1 - item_variances.sum() / total_variance)
    return round4(float(alpha))


def alpha_if_item_deleted(
    matrix: np.ndarray, item_ids: Sequence[int]
) -> Dict[str, Optional[float]]:
    """
    Alpha recomputed with each item left out in turn.

    Items whose removal raises alpha are candidates for revision. Requires at
    least three items so that two remain.

    Returns:
        Item ID (as string) -> alpha without that item; empty for k < 3
    """
    k = matrix.shape[1]
    if k < MIN_ITEMS_FOR_ALPHA_IF_DELETED:
        return {}

    result: Dict[str, Optional[float]] = {}
    for index, item_id in enumerate(item_ids):
        reduced = np.delete(matrix, index, axis=1)
        result[str(item_id)] = cronbach_alpha(reduced)
    return result


def build_response_matrix(
    session_scores: Mapping[int, Mapping[int, float]],
    item_ids: Sequence[int],
    completeness_threshold: float = RESPONSE_COMPLETENESS_THRESHOLD,
) -> Tuple[np.ndarray, List[int]]:
    """
    Build the sessions × items matrix from per-session item scores.

    Sessions that answered fewer than ``completeness_threshold`` of the items
    are excluded. Remaining gaps are filled with the item's mean among
    sessions that answered it.

    Args:
        session_scores: session ID -> {question ID: normalized score}
        item_ids: Column order

    Returns:
        (matrix, session IDs in row order)
    """
    k = len(item_ids)
    if k == 0:
        return np.empty((0, 0)), []

    required = completeness_threshold * k
    included = [
        session_id
        for session_id, scores in sorted(session_scores.items())
        if sum(1 for item_id in item_ids if item_id in scores) >= required
    ]
    if not included:
        return np.empty((0, k)), []

    matrix = np.array(
        [
            [session_scores[session_id].get(item_id, np.nan) for item_id in item_ids]
            for session_id in included
        ],
        dtype=float,
    )

    if np.isnan(matrix).any():
        column_means = np.nanmean(matrix, axis=0)
        rows, cols = np.where(np.isnan(matrix))
        matrix[rows, cols] = column_means[cols]

    return matrix, included


def determine_reliability_status(
    alpha: Optional[float],
    sample_size: int,
    item_count: int,
    min_sample_size: int = MIN_SAMPLE_SIZE_FOR_ALPHA,
) -> ReliabilityStatus:
    """
    Classify internal consistency.

    Too few sessions or items, or an alpha that could not be computed, is
    INSUFFICIENT_DATA rather than a low score.
    """
    if sample_size < min_sample_size or item_count < MIN_ITEMS_FOR_ALPHA:
        return ReliabilityStatus.INSUFFICIENT_DATA
    if alpha is None:
        return ReliabilityStatus.INSUFFICIENT_DATA
    if is_at_least(alpha, ALPHA_RELIABLE):
        return ReliabilityStatus.RELIABLE
    if is_at_least(alpha, ALPHA_ACCEPTABLE):
        return ReliabilityStatus.ACCEPTABLE
    return ReliabilityStatus.UNRELIABLE


def calculate_competency_alpha(
    session_scores: Mapping[int, Mapping[int, float]],
    item_ids: Sequence[int],
    min_sample_size: int = MIN_SAMPLE_SIZE_FOR_ALPHA,
) -> Dict[str, object]:
    """
    Alpha, alpha-if-deleted and sample description for one competency.

    Returns:
        Dict with ``cronbach_alpha``, ``alpha_if_deleted``, ``sample_size``,
        ``item_count`` and ``reliability_status``
    """
    matrix, sessions = build_response_matrix(session_scores, item_ids)
    sample_size = len(sessions)
    item_count = len(item_ids)

    alpha: Optional[float] = None
    if_deleted: Dict[str, Optional[float]] = {}
    if sample_size >= min_sample_size and item_count >= MIN_ITEMS_FOR_ALPHA:
        alpha = cronbach_alpha(matrix)
        if_deleted = alpha_if_item_deleted(matrix, item_ids)
    else:
        logger.info(
            f"Cronbach's alpha skipped: {sample_size} complete session(s), "
            f"{item_count} item(s) (need {min_sample_size} and {MIN_ITEMS_FOR_ALPHA})"
        )

    return {
        "cronbach_alpha": alpha,
        "alpha_if_deleted": if_deleted or None,
        "sample_size": sample_size,
        "item_count": item_count,
        "reliability_status": determine_reliability_status(
            alpha, sample_size, item_count, min_sample_size
        ),
    }
