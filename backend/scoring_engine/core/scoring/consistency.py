"""
Response consistency analysis.

Looks for answering patterns that make a session's scores less trustworthy:
answers given faster than a question can be read, the same Likert value
chosen over and over, and competencies whose answers vary too little or too
much. The composite score (0-1, higher is more consistent) and the
human-readable flags are stored in ``extended_metrics`` for every goal.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from scoring_engine.core.precision import round_half_up, round4

from ._constants import (
    HIGH_VARIANCE_FLAG,
    LOW_VARIANCE_FLAG,
    MIN_ANSWERS_FOR_VARIANCE,
    MIN_RESPONSE_TIME_SECONDS,
    NO_VARIANCE_FACTOR,
    NORMAL_VARIANCE_MAX,
    NORMAL_VARIANCE_MIN,
    SPEED_ANOMALY_FLAG_RATE,
    SPEED_WEIGHT,
    STRAIGHT_LINING_THRESHOLD,
    STRAIGHT_LINING_WEIGHT,
    VARIANCE_WEIGHT,
)
from ._types import AnswerRecord, ScoringLookups
from .normalizer import normalize_answer

logger = logging.getLogger(__name__)


@dataclass
class ConsistencyResult:
    consistency_score: float = 1.0
    flags: List[str] = field(default_factory=list)
    speed_anomaly_rate: float = 0.0
    straight_lining_rate: float = 0.0
    intra_competency_variance: float = 0.0

    def as_metrics(self) -> dict:
        """Keys stored in ``extended_metrics``."""
        return {
            "consistency_score": self.consistency_score,
            "consistency_flags": list(self.flags),
            "speed_anomaly_rate": round4(self.speed_anomaly_rate),
            "straight_lining_rate": round4(self.straight_lining_rate),
        }


def _speed_anomalies(answers: Sequence[AnswerRecord]) -> int:
    return sum(
        1
        for a in answers
        if a.time_spent_seconds is not None and a.time_spent_seconds < MIN_RESPONSE_TIME_SECONDS
    )


def calculate_straight_lining_rate(answers: Sequence[AnswerRecord]) -> float:
    """Share of Likert answers that carry the most common Likert value."""
    values = [a.likert_value for a in answers if a.likert_value is not None]
    if not values:
        return 0.0
    _, most_common = Counter(values).most_common(1)[0]
    return most_common / len(values)


def calculate_intra_competency_variance(
    answers: Sequence[AnswerRecord], lookups: ScoringLookups
) -> float:
    """
    Mean sample variance of normalized scores within each competency.

    Only competencies with at least three valid answers take part; answers
    whose question, indicator or competency cannot be resolved are ignored.
    Returns 0.0 when no competency qualifies.
    """
    by_competency: Dict[int, List[float]] = defaultdict(list)
    for answer in answers:
        if not answer.is_valid:
            continue
        question = lookups.question_for(answer.question_id)
        if question is None or question.indicator_id is None:
            continue
        competency = lookups.competency_for_indicator(question.indicator_id)
        if competency is None:
            continue
        by_competency[competency.competency_id].append(
            normalize_answer(answer, question.question_type)
        )

    variances = [
        float(np.var(np.asarray(scores, dtype=float), ddof=1))
        for scores in by_competency.values()
        if len(scores) >= MIN_ANSWERS_FOR_VARIANCE
    ]
    if not variances:
        return 0.0
    return float(np.mean(variances))


def variance_factor(average_variance: float) -> float:
    """
    Map the average within-competency variance to a 0-1 factor.

    1.0 inside the normal 0.05-0.4 band, falling linearly to 0 at zero
    variance and at 1.0. No variance data at all scores a neutral 0.7.

    Example:
        >>> variance_factor(0.2)
        1.0
        >>> variance_factor(0.0)
        0.7
    """
    if average_variance == 0.0:
        return NO_VARIANCE_FACTOR
    if NORMAL_VARIANCE_MIN <= average_variance <= NORMAL_VARIANCE_MAX:
        return 1.0
    if average_variance < NORMAL_VARIANCE_MIN:
        return average_variance / NORMAL_VARIANCE_MIN
    return max(0.0, 1.0 - (average_variance - NORMAL_VARIANCE_MAX) / (1.0 - NORMAL_VARIANCE_MAX))


def analyze_response_consistency(
    answers: Sequence[AnswerRecord], lookups: ScoringLookups
) -> ConsistencyResult:
    """
    Composite consistency score and flags for one session.

    The score weighs the share of answers that were not rushed (0.3), the
    share that did not repeat the dominant Likert value (0.3) and the
    variance factor (0.4), rounded to two decimals.
    """
    if not answers:
        return ConsistencyResult()

    valid = [a for a in answers if a.is_valid]
    anomalies = _speed_anomalies(valid)
    speed_rate = anomalies / len(valid) if valid else 0.0
    straight_lining = calculate_straight_lining_rate(answers)
    average_variance = calculate_intra_competency_variance(answers, lookups)

    score = round_half_up(
        (1.0 - speed_rate) * SPEED_WEIGHT
        + (1.0 - straight_lining) * STRAIGHT_LINING_WEIGHT
        + variance_factor(average_variance) * VARIANCE_WEIGHT,
        2,
    )

    flags: List[str] = []
    if speed_rate > SPEED_ANOMALY_FLAG_RATE:
        flags.append(
            f"Speed anomaly: {anomalies} of {len(valid)} answers were completed "
            f"in under {MIN_RESPONSE_TIME_SECONDS} seconds"
        )
    if straight_lining > STRAIGHT_LINING_THRESHOLD:
        flags.append(
            f"Straight-lining detected: {int(round_half_up(straight_lining * 100, 0))}% "
            "of Likert responses used the same value"
        )
    if 0.0 < average_variance < LOW_VARIANCE_FLAG:
        flags.append("Low response variance suggests possible disengagement")
    if average_variance > HIGH_VARIANCE_FLAG:
        flags.append("High response variance suggests inconsistent engagement")

    logger.debug(
        f"Consistency {score:.2f} (speed={speed_rate:.2f}, "
        f"straight_lining={straight_lining:.2f}, variance={average_variance:.4f}, "
        f"flags={len(flags)})"
    )
    return ConsistencyResult(
        consistency_score=score,
        flags=flags,
        speed_anomaly_rate=speed_rate,
        straight_lining_rate=straight_lining,
        intra_competency_variance=average_variance,
    )
