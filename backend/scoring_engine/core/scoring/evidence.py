"""
Evidence sufficiency.

A competency backed by fewer than M answered questions is flagged and its
weight in the overall score is multiplied by the low-evidence factor.
"""
from typing import List, Optional, Tuple

from scoring_engine.schemas.scoring import CompetencyScore

from ._types import ScoringThresholds


def evidence_note(questions_answered: int, minimum: int) -> str:
    return f"{questions_answered} question(s) answered, minimum {minimum} required"


def annotate_evidence(
    competency_scores: List[CompetencyScore],
    min_questions: int,
) -> List[CompetencyScore]:
    """
    Flag competencies answered with fewer than ``min_questions`` questions.

    Sufficient competencies keep ``insufficient_evidence``/``evidence_note``
    as None; they are never set to False.
    """
    for score in competency_scores:
        if score.questions_answered < min_questions:
            score.insufficient_evidence = True
            score.evidence_note = evidence_note(score.questions_answered, min_questions)
    return competency_scores


def effective_weight(score: CompetencyScore, low_evidence_factor: float) -> float:
    """Question count, discounted when the competency is flagged."""
    factor = low_evidence_factor if score.insufficient_evidence else 1.0
    return score.questions_answered * factor


def calculate_overall(
    competency_scores: List[CompetencyScore],
    thresholds: Optional[ScoringThresholds] = None,
) -> Tuple[float, float]:
    """
    Evidence-weighted overall score and percentage.

    overall = sum(value_c * ew_c) / sum(ew_c), ew_c = answered_c * (factor if flagged)

    Returns:
        (overall_score, overall_percentage); (0.0, 0.0) with no competencies
    """
    if not competency_scores:
        return 0.0, 0.0
    if len(competency_scores) == 1:
        only = competency_scores[0]
        return only.score, only.percentage

    t = thresholds or ScoringThresholds()
    weights = [effective_weight(s, t.low_evidence_weight_factor) for s in competency_scores]
    total_weight = sum(weights)
    if total_weight <= 0:
        return 0.0, 0.0

    overall_score = sum(s.score * w for s, w in zip(competency_scores, weights)) / total_weight
    overall_percentage = (
        sum(s.percentage * w for s, w in zip(competency_scores, weights)) / total_weight
    )
    return overall_score, overall_percentage
