"""
Indicator aggregation and competency roll-up.

Pipeline:
    valid answers -> aggregate_indicators()  -> {indicator_id: IndicatorAggregation}
                  -> roll_up_competencies()  -> {competency_id: CompetencyAggregation}
                  -> build_competency_scores() -> [CompetencyScore]

Unresolvable references (question without indicator, indicator without
competency) drop the affected answer or indicator with a warning instead of
aborting the run.
"""
import logging
from typing import Dict, Iterable, List, Optional

from scoring_engine.schemas.scoring import CompetencyScore, IndicatorScore

from ._constants import DEFAULT_LOCALE, UNKNOWN_COMPETENCY_NAME, UNKNOWN_INDICATOR_TITLE
from ._types import (
    AnswerRecord,
    CompetencyAggregation,
    IndicatorAggregation,
    ScoringLookups,
)
from .interpretation import proficiency_label
from .normalizer import normalize_answer

logger = logging.getLogger(__name__)


def valid_answers(answers: Iterable[AnswerRecord]) -> List[AnswerRecord]:
    """Answers that take part in scoring: not skipped and actually answered."""
    return [answer for answer in answers if answer.is_valid]


def aggregate_indicators(
    answers: Iterable[AnswerRecord],
    lookups: ScoringLookups,
) -> Dict[int, IndicatorAggregation]:
    """
    Accumulate normalized scores per behavioral indicator.

    Args:
        answers: Raw answers; invalid ones are ignored
        lookups: Question metadata for the run

    Returns:
        Mapping of indicator ID to its running sum and count. Empty input
        yields an empty mapping.
    """
    aggregations: Dict[int, IndicatorAggregation] = {}

    for answer in valid_answers(answers):
        question = lookups.question_for(answer.question_id)
        if question is None or question.indicator_id is None:
            logger.warning(
                f"Dropping answer for question {answer.question_id}: "
                "no indicator could be resolved",
                extra={"question_id": answer.question_id},
            )
            continue

        normalized = normalize_answer(answer, question.question_type)
        aggregation = aggregations.get(question.indicator_id)
        if aggregation is None:
            aggregation = IndicatorAggregation(indicator_id=question.indicator_id)
            aggregations[question.indicator_id] = aggregation
        aggregation.add_answer(normalized)

    return aggregations


def build_indicator_score(
    aggregation: IndicatorAggregation,
    lookups: ScoringLookups,
    locale: str = DEFAULT_LOCALE,
) -> IndicatorScore:
    indicator = lookups.indicator_for(aggregation.indicator_id)
    percentage = aggregation.percentage
    return IndicatorScore(
        indicator_id=aggregation.indicator_id,
        indicator_title=indicator.title if indicator else UNKNOWN_INDICATOR_TITLE,
        weight=indicator.weight if indicator else 1.0,
        score=aggregation.total_score,
        max_score=aggregation.total_max_score,
        percentage=percentage,
        questions_answered=aggregation.question_count,
        proficiency_label=proficiency_label(percentage, locale),
    )


def roll_up_competencies(
    indicator_aggregations: Dict[int, IndicatorAggregation],
    lookups: ScoringLookups,
    locale: str = DEFAULT_LOCALE,
) -> Dict[int, CompetencyAggregation]:
    """
    Merge indicator aggregates into weighted competency aggregates.

    weighted percentage = sum(w_i * pct_i) / sum(w_i) over indicators with at
    least one valid answer.
    """
    competencies: Dict[int, CompetencyAggregation] = {}

    for indicator_id, aggregation in indicator_aggregations.items():
        indicator = lookups.indicator_for(indicator_id)
        if indicator is None or indicator.competency_id is None:
            logger.warning(
                f"Dropping indicator {indicator_id}: no owning competency",
            )
            continue

        competency_aggregation = competencies.get(indicator.competency_id)
        if competency_aggregation is None:
            competency_aggregation = CompetencyAggregation(
                competency_id=indicator.competency_id
            )
            competencies[indicator.competency_id] = competency_aggregation

        competency_aggregation.add_indicator(
            build_indicator_score(aggregation, lookups, locale),
            aggregation,
            indicator.weight,
        )

    return competencies


def build_competency_scores(
    competency_aggregations: Dict[int, CompetencyAggregation],
    lookups: ScoringLookups,
    locale: str = DEFAULT_LOCALE,
) -> List[CompetencyScore]:
    """
    Convert competency aggregates into output scores.

    Competencies with no scorable evidence (max score 0) are left out.
    A competency missing from the lookups gets the "Unknown Competency"
    placeholder name.
    """
    scores: List[CompetencyScore] = []

    for competency_id, aggregation in competency_aggregations.items():
        if aggregation.total_max_score <= 0:
            continue

        competency = lookups.competency_for(competency_id)
        percentage = aggregation.weighted_percentage
        score = CompetencyScore(
            competency_id=competency_id,
            competency_name=competency.name if competency else UNKNOWN_COMPETENCY_NAME,
            onet_code=competency.onet_code if competency else None,
            score=aggregation.total_score,
            max_score=aggregation.total_max_score,
            percentage=percentage,
            questions_answered=aggregation.question_count,
            proficiency_label=proficiency_label(percentage, locale),
            indicator_scores=list(aggregation.indicator_scores),
        )
        logger.debug(
            f"Competency {score.competency_name}: {percentage:.2f}% "
            f"over {score.questions_answered} question(s)",
            extra={"competency_id": competency_id},
        )
        scores.append(score)

    return scores


def score_competencies(
    answers: Iterable[AnswerRecord],
    lookups: ScoringLookups,
    locale: Optional[str] = None,
) -> List[CompetencyScore]:
    """Run the full normalize -> aggregate -> roll-up -> build pipeline."""
    effective_locale = locale or DEFAULT_LOCALE
    indicators = aggregate_indicators(answers, lookups)
    competencies = roll_up_competencies(indicators, lookups, effective_locale)
    return build_competency_scores(competencies, lookups, effective_locale)
