"""
Goal-specific scoring strategies.

Each strategy is a pure function with the signature

    strategy(answers, session, lookups, thresholds) -> ScoringResult

and is registered in ``STRATEGY_REGISTRY`` under the assessment goal it
serves. Goals without an entry (including a missing goal) are scored by
``score_legacy``.

Strategies:
- OVERVIEW: evidence-weighted competency profile with profile pattern
- JOB_FIT: O*NET-weighted fit against a strictness-adjusted threshold
- TEAM_FIT: saturation / diversity analysis with ESCO and Big Five weighting
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from scoring_engine.core.precision import round4
from scoring_engine.models.models import AssessmentGoal
from scoring_engine.schemas.scoring import CompetencyScore, ScoringResult

from ._constants import (
    ONET_BENCHMARK_TO_PERCENT,
    PROFILE_PATTERN_KEY,
    UNKNOWN_COMPETENCY_NAME,
    TeamContribution,
)
from ._types import AnswerRecord, ScoringLookups, ScoringThresholds, SessionInfo
from .aggregation import score_competencies, valid_answers
from .evidence import annotate_evidence, calculate_overall
from .interpretation import build_profile_pattern, proficiency_label
from .normalizer import normalize_answer

logger = logging.getLogger(__name__)

ScoringStrategy = Callable[
    [Sequence[AnswerRecord], SessionInfo, ScoringLookups, ScoringThresholds],
    ScoringResult,
]


# =============================================================================
# HELPERS
# =============================================================================


def _weighted_mean(pairs: Sequence[Tuple[float, float]]) -> float:
    """Mean of (value, weight) pairs; 0.0 when the weights sum to zero."""
    total_weight = sum(weight for _, weight in pairs)
    if total_weight <= 0:
        return 0.0
    return sum(value * weight for value, weight in pairs) / total_weight


def _blueprint_value(blueprint: Optional[Mapping[str, Any]], key: str, default: Any) -> Any:
    if not blueprint:
        return default
    value = blueprint.get(key)
    return default if value is None else value


# =============================================================================
# OVERVIEW
# =============================================================================


def score_overview(
    answers: Sequence[AnswerRecord],
    session: SessionInfo,
    lookups: ScoringLookups,
    thresholds: ScoringThresholds,
) -> ScoringResult:
    """
    Competency profile: indicator roll-up, evidence weighting and profile pattern.

    The overall percentage is the evidence-weighted mean of competency
    percentages; the overall score uses the same weights over raw scores.
    """
    competency_scores = score_competencies(answers, lookups)
    annotate_evidence(competency_scores, thresholds.min_questions_per_competency)
    overall_score, overall_percentage = calculate_overall(competency_scores, thresholds)

    profile_pattern = build_profile_pattern(
        ((s.competency_name, s.percentage) for s in competency_scores),
        overall_percentage,
        thresholds,
    )

    logger.info(
        f"Overview score for session {session.session_id}: "
        f"{overall_percentage:.2f}% over {len(competency_scores)} competencies",
        extra={"session_id": session.session_id},
    )

    return ScoringResult(
        goal=AssessmentGoal.OVERVIEW,
        overall_score=round4(overall_score),
        overall_percentage=round4(overall_percentage),
        competency_scores=competency_scores,
        extended_metrics={PROFILE_PATTERN_KEY: profile_pattern},
    )


# =============================================================================
# JOB FIT
# =============================================================================


def effective_job_fit_threshold(strictness: float, thresholds: ScoringThresholds) -> float:
    """
    Fraction a candidate must reach to meet job requirements.

    Strictness 0 yields the base threshold; strictness 100 adds the full
    adjustment (0.5 -> 0.8 with defaults).
    """
    return (
        thresholds.job_fit_base_threshold
        + (strictness / 100.0) * thresholds.job_fit_strictness_max_adjustment
    )


def score_job_fit(
    answers: Sequence[AnswerRecord],
    session: SessionInfo,
    lookups: ScoringLookups,
    thresholds: ScoringThresholds,
) -> ScoringResult:
    """Fit against an occupation profile; O*NET-mapped competencies weigh more."""
    onet_soc_code = _blueprint_value(session.blueprint, "onetSocCode", None)
    strictness = int(
        _blueprint_value(
            session.blueprint, "strictnessLevel", thresholds.job_fit_default_strictness
        )
    )
    strictness = max(0, min(100, strictness))
    effective_threshold = effective_job_fit_threshold(strictness, thresholds)

    competency_scores = score_competencies(answers, lookups)
    annotate_evidence(competency_scores, thresholds.min_questions_per_competency)

    weighted: List[Tuple[float, float]] = []
    for score in competency_scores:
        weight = thresholds.onet_boost if score.onet_code else 1.0
        weighted.append((score.percentage, weight))

        benchmark = lookups.onet_benchmarks.get(score.competency_name)
        if benchmark is not None:
            score.benchmark_score = benchmark * ONET_BENCHMARK_TO_PERCENT

    overall_percentage = _weighted_mean(weighted)
    overall_score = (
        sum(s.score for s in competency_scores) / len(competency_scores)
        if competency_scores
        else 0.0
    )
    meets_requirements = overall_percentage / 100.0 >= effective_threshold

    logger.info(
        f"Job fit for session {session.session_id}: {overall_percentage:.2f}% "
        f"(threshold {effective_threshold * 100:.1f}%, strictness {strictness}) -> "
        f"{'MEETS' if meets_requirements else 'BELOW'} requirements",
        extra={"session_id": session.session_id},
    )

    return ScoringResult(
        goal=AssessmentGoal.JOB_FIT,
        overall_score=round4(overall_score),
        overall_percentage=round4(overall_percentage),
        competency_scores=competency_scores,
        extended_metrics={
            "effective_threshold": round4(effective_threshold),
            "strictness_level": strictness,
            "meets_job_requirements": meets_requirements,
            "onet_soc_code": onet_soc_code,
        },
    )


# =============================================================================
# TEAM FIT
# =============================================================================


def classify_team_contribution(
    fraction: float, saturation_threshold: float, diversity_threshold: float
) -> TeamContribution:
    if fraction >= saturation_threshold:
        return TeamContribution.SATURATION
    if fraction >= diversity_threshold:
        return TeamContribution.DIVERSITY
    return TeamContribution.GAP


def _big_five_profile(
    answers: Sequence[AnswerRecord], lookups: ScoringLookups
) -> Optional[Dict[str, float]]:
    """Mean normalized answer score per Big Five trait, on a 0-100 scale."""
    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}

    for answer in valid_answers(answers):
        question = lookups.question_for(answer.question_id)
        if question is None or question.indicator_id is None:
            continue
        competency = lookups.competency_for_indicator(question.indicator_id)
        if competency is None or not competency.big_five_category:
            continue
        trait = competency.big_five_category
        totals[trait] = totals.get(trait, 0.0) + normalize_answer(answer, question.question_type)
        counts[trait] = counts.get(trait, 0) + 1

    if not totals:
        return None
    return {trait: round4(totals[trait] / counts[trait] * 100.0) for trait in totals}


def score_team_fit(
    answers: Sequence[AnswerRecord],
    session: SessionInfo,
    lookups: ScoringLookups,
    thresholds: ScoringThresholds,
) -> ScoringResult:
    """
    Team fit based on how each competency would change the team's profile.

    A competency at or above the saturation threshold duplicates existing team
    strength; between the diversity and saturation thresholds it adds a
    distinct strength; below the diversity threshold it is a gap. A profile
    dominated by diversity earns a bonus, one dominated by saturation a penalty.
    """
    team_id = _blueprint_value(session.blueprint, "teamId", None)
    saturation_threshold = float(
        _blueprint_value(
            session.blueprint,
            "saturationThreshold",
            thresholds.team_fit_saturation_threshold,
        )
    )

    competency_scores = score_competencies(answers, lookups)
    annotate_evidence(competency_scores, thresholds.min_questions_per_competency)

    counts = {contribution: 0 for contribution in TeamContribution}
    weighted: List[Tuple[float, float]] = []

    for score in competency_scores:
        contribution = classify_team_contribution(
            score.percentage / 100.0,
            saturation_threshold,
            thresholds.team_fit_diversity_threshold,
        )
        counts[contribution] += 1

        competency = lookups.competency_for(score.competency_id)
        weight = 1.0
        if competency is not None and competency.esco_uri:
            weight *= thresholds.esco_boost
        if competency is not None and competency.big_five_category:
            weight *= thresholds.big_five_boost
        weighted.append((score.percentage, weight))

        logger.debug(
            f"Team fit competency {score.competency_name}: "
            f"{score.percentage:.2f}% -> {contribution.value}",
            extra={"competency_id": score.competency_id},
        )

    competency_count = len(competency_scores)
    diversity_ratio = (
        counts[TeamContribution.DIVERSITY] / competency_count if competency_count else 0.0
    )
    saturation_ratio = (
        counts[TeamContribution.SATURATION] / competency_count if competency_count else 0.0
    )

    multiplier = 1.0
    if (
        diversity_ratio > thresholds.team_fit_diversity_bonus_threshold
        and saturation_ratio < 1.0 - thresholds.team_fit_diversity_bonus_threshold
    ):
        multiplier = thresholds.team_fit_diversity_bonus
    elif saturation_ratio > thresholds.team_fit_saturation_penalty_threshold:
        multiplier = thresholds.team_fit_saturation_penalty

    overall_percentage = _weighted_mean(weighted)
    adjusted_percentage = overall_percentage * multiplier
    overall_score = (
        sum(s.score for s in competency_scores) / competency_count if competency_count else 0.0
    )
    adds_team_value = (
        adjusted_percentage >= thresholds.team_fit_pass_threshold * 100.0
        and diversity_ratio >= thresholds.team_fit_min_diversity_ratio
    )

    logger.info(
        f"Team fit for session {session.session_id}: {adjusted_percentage:.2f}% "
        f"(multiplier {multiplier}), diversity {diversity_ratio:.2f}, "
        f"saturation {saturation_ratio:.2f}",
        extra={"session_id": session.session_id},
    )

    return ScoringResult(
        goal=AssessmentGoal.TEAM_FIT,
        overall_score=round4(overall_score),
        overall_percentage=round4(adjusted_percentage),
        competency_scores=competency_scores,
        big_five_profile=_big_five_profile(answers, lookups),
        extended_metrics={
            "diversity_ratio": round4(diversity_ratio),
            "saturation_ratio": round4(saturation_ratio),
            "team_fit_multiplier": multiplier,
            "diversity_count": counts[TeamContribution.DIVERSITY],
            "saturation_count": counts[TeamContribution.SATURATION],
            "gap_count": counts[TeamContribution.GAP],
            "adds_team_value": adds_team_value,
            "team_id": str(team_id) if team_id is not None else None,
        },
    )


# =============================================================================
# LEGACY
# =============================================================================


def score_legacy(
    answers: Sequence[AnswerRecord],
    session: SessionInfo,
    lookups: ScoringLookups,
    thresholds: ScoringThresholds,
) -> ScoringResult:
    """
    Plain sum-of-scores computation for goals without a registered strategy.

    percentage = 100 * sum(score) / sum(max_score) over valid answers with a
    pre-computed score; an absent max score counts as 1.0.
    """
    total_score = 0.0
    total_max = 0.0
    per_competency: Dict[int, List[float]] = {}  # id -> [score, max, count]

    for answer in valid_answers(answers):
        if answer.score is None:
            continue
        max_score = answer.max_score if answer.max_score is not None else 1.0
        total_score += answer.score
        total_max += max_score

        question = lookups.question_for(answer.question_id)
        if question is None or question.indicator_id is None:
            continue
        indicator = lookups.indicator_for(question.indicator_id)
        if indicator is None or indicator.competency_id is None:
            continue
        bucket = per_competency.setdefault(indicator.competency_id, [0.0, 0.0, 0])
        bucket[0] += answer.score
        bucket[1] += max_score
        bucket[2] += 1

    competency_scores: List[CompetencyScore] = []
    for competency_id, (score, max_score, count) in per_competency.items():
        if max_score <= 0:
            continue
        competency = lookups.competency_for(competency_id)
        percentage = 100.0 * score / max_score
        competency_scores.append(
            CompetencyScore(
                competency_id=competency_id,
                competency_name=competency.name if competency else UNKNOWN_COMPETENCY_NAME,
                onet_code=competency.onet_code if competency else None,
                score=score,
                max_score=max_score,
                percentage=percentage,
                questions_answered=int(count),
                proficiency_label=proficiency_label(percentage),
            )
        )

    percentage = 100.0 * total_score / total_max if total_max > 0 else 0.0

    logger.info(
        f"Legacy score for session {session.session_id}: {percentage:.2f}%",
        extra={"session_id": session.session_id},
    )

    return ScoringResult(
        goal=session.goal,
        overall_score=round4(total_score),
        overall_percentage=round4(percentage),
        competency_scores=competency_scores,
    )


# =============================================================================
# DISPATCH
# =============================================================================

STRATEGY_REGISTRY: Dict[AssessmentGoal, ScoringStrategy] = {
    AssessmentGoal.OVERVIEW: score_overview,
    AssessmentGoal.JOB_FIT: score_job_fit,
    AssessmentGoal.TEAM_FIT: score_team_fit,
}


def resolve_strategy(
    goal: Optional[AssessmentGoal],
    registry: Optional[Mapping[AssessmentGoal, ScoringStrategy]] = None,
) -> ScoringStrategy:
    """Strategy registered for ``goal``, or the legacy computation."""
    table = STRATEGY_REGISTRY if registry is None else registry
    strategy = table.get(goal) if goal is not None else None
    if strategy is None:
        logger.warning(f"No scoring strategy for goal {goal}, using legacy calculation")
        return score_legacy
    return strategy
