"""
Measurement precision for competency scores.

Adds a Standard Error of Measurement and a confidence interval to each
competency that has a stored Cronbach's alpha. Percentages live on a 0-100
scale, so intervals are clamped to that range.
"""
import logging
import math
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from scoring_engine.core.precision import round_half_up
from scoring_engine.schemas.scoring import CompetencyScore

from ._constants import (
    DEFAULT_CONFIDENCE_LEVEL,
    DEFAULT_SCORE_SD,
    MIN_SAMPLE_SIZE_FOR_BOOTSTRAP,
    MIN_SAMPLE_SIZE_FOR_SD,
)

logger = logging.getLogger(__name__)

PERCENTAGE_MIN = 0.0
PERCENTAGE_MAX = 100.0


def estimate_score_sd(samples: Optional[Sequence[float]]) -> float:
    """
    Standard deviation to use for a competency's SEM.

    Sample size tiers:
        n >= 30   observed population SD (default SD if it is 0)
        6 <= n < 30  default SD inflated by sqrt(30 / n)
        n <= 5    default SD

    Example:
        >>> estimate_score_sd([])
        15.0
        >>> round(estimate_score_sd([50.0] * 10), 2)
        25.98
    """
    n = len(samples) if samples else 0
    if n >= MIN_SAMPLE_SIZE_FOR_SD:
        observed = float(np.std(np.asarray(samples, dtype=float)))
        return observed if observed > 0 else DEFAULT_SCORE_SD
    if n > MIN_SAMPLE_SIZE_FOR_BOOTSTRAP:
        return DEFAULT_SCORE_SD * math.sqrt(MIN_SAMPLE_SIZE_FOR_SD / n)
    return DEFAULT_SCORE_SD


def calculate_sem(reliability: float, score_sd: float = DEFAULT_SCORE_SD) -> float:
    """
    Standard Error of Measurement: SEM = SD * sqrt(1 - alpha).

    Args:
        reliability: Cronbach's alpha in [0, 1]
        score_sd: Standard deviation of percentage scores

    Returns:
        SEM rounded to 2 decimal places

    Raises:
        ValueError: If reliability is outside [0, 1] or score_sd is not positive.
    """
    if reliability < 0 or reliability > 1:
        raise ValueError(
            f"reliability must be between 0 and 1 inclusive, got {reliability}"
        )
    if score_sd <= 0:
        raise ValueError(f"score_sd must be positive, got {score_sd}")

    return round_half_up(score_sd * math.sqrt(1 - reliability), 2)


def calculate_confidence_interval(
    percentage: float, sem: float, confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
) -> Tuple[float, float]:
    """
    Confidence interval ``percentage +/- z * SEM`` clamped to 0-100.

    Raises:
        ValueError: If sem is negative or confidence_level is not in (0, 1).
    """
    if sem < 0:
        raise ValueError(f"sem must be non-negative, got {sem}")
    if confidence_level <= 0 or confidence_level >= 1:
        raise ValueError(
            f"confidence_level must be strictly between 0 and 1, got {confidence_level}"
        )

    # Two-tailed: leave (1 - level) / 2 in each tail, e.g. z = 1.96 for 95%
    alpha = 1 - confidence_level
    z_score = float(norm.ppf(1 - alpha / 2))
    margin = z_score * sem

    lower = max(PERCENTAGE_MIN, percentage - margin)
    upper = min(PERCENTAGE_MAX, percentage + margin)
    return round_half_up(lower, 2), round_half_up(upper, 2)


def enrich_with_confidence_intervals(
    competency_scores: List[CompetencyScore],
    alphas: Mapping[int, Optional[float]],
    score_samples: Optional[Mapping[int, Sequence[float]]] = None,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
) -> List[CompetencyScore]:
    """
    Populate ``sem``, ``ci_lower``, ``ci_upper`` and ``cronbach_alpha``.

    Competencies without an alpha in (0, 1] are left untouched.
    """
    samples = score_samples or {}
    enriched = 0

    for score in competency_scores:
        alpha = alphas.get(score.competency_id)
        if alpha is None or alpha <= 0 or alpha > 1:
            continue

        score_sd = estimate_score_sd(samples.get(score.competency_id))
        sem = calculate_sem(alpha, score_sd)
        ci_lower, ci_upper = calculate_confidence_interval(
            score.percentage, sem, confidence_level
        )

        score.sem = sem
        score.ci_lower = ci_lower
        score.ci_upper = ci_upper
        score.cronbach_alpha = round_half_up(alpha, 4)
        enriched += 1

    logger.debug(f"Added confidence intervals to {enriched} competency score(s)")
    return competency_scores
