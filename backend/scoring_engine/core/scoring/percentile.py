"""
Percentile rank of a result, and of each competency score, among completed
results of the same template.
"""
import logging
from typing import List, Mapping, Sequence

from scoring_engine.core.precision import round_half_up
from scoring_engine.schemas.scoring import CompetencyScore

logger = logging.getLogger(__name__)


def calculate_percentile_rank(below_count: int, total_count: int) -> int:
    """
    Percentage of other test-takers who scored below this result.

    Args:
        below_count: Completed results for the template scoring strictly lower
        total_count: Completed results for the template, including this one

    Returns:
        Percentile in 0-100. With no other results to compare against, 50.

    Example:
        >>> calculate_percentile_rank(3, 5)
        75
        >>> calculate_percentile_rank(0, 1)
        50
    """
    if total_count <= 1:
        return 50

    percentile = int(round_half_up(below_count / (total_count - 1) * 100, 0))
    return max(0, min(100, percentile))


def enrich_with_competency_percentiles(
    competency_scores: List[CompetencyScore],
    score_samples: Mapping[int, Sequence[float]],
) -> List[CompetencyScore]:
    """
    Set ``percentile`` on each competency score from past percentages.

    ``score_samples`` holds the competency's percentage in earlier completed
    results of the same template; the result being scored is not among them.
    A competency with no history gets 50.
    """
    for score in competency_scores:
        history = score_samples.get(score.competency_id) or ()
        below = sum(1 for past in history if past < score.percentage)
        score.percentile = calculate_percentile_rank(below, len(history) + 1)

    logger.debug(f"Added percentiles to {len(competency_scores)} competency score(s)")
    return competency_scores
