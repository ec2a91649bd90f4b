"""
Tests for indicator aggregation and weighted competency roll-up.
"""
import logging

import pytest

from scoring_engine.core.scoring import (
    AnswerRecord,
    CompetencyInfo,
    IndicatorInfo,
    QuestionInfo,
    ScoringLookups,
    aggregate_indicators,
    roll_up_competencies,
    score_competencies,
)
from scoring_engine.core.scoring.aggregation import valid_answers
from scoring_engine.models.models import QuestionType


@pytest.fixture
def lookups():
    """
    Two competencies:
        10 Communication: indicator 100 (weight 2.0), indicator 101 (weight 1.0)
        20 Leadership: indicator 200
    """
    return ScoringLookups.build(
        questions=[
            QuestionInfo(1, QuestionType.LIKERT, 100),
            QuestionInfo(2, QuestionType.LIKERT, 100),
            QuestionInfo(3, QuestionType.LIKERT, 101),
            QuestionInfo(4, QuestionType.LIKERT, 101),
            QuestionInfo(5, QuestionType.SJT, 200),
            QuestionInfo(6, QuestionType.LIKERT, None),
        ],
        indicators=[
            IndicatorInfo(100, 10, "Listens actively", 2.0),
            IndicatorInfo(101, 10, "Writes clearly", 1.0),
            IndicatorInfo(200, 20, "Delegates", 1.0),
        ],
        competencies=[
            CompetencyInfo(10, "Communication", onet_code="2.A.1.a"),
            CompetencyInfo(20, "Leadership"),
        ],
    )


def _likert(question_id, value, answered_at, **kwargs):
    return AnswerRecord(
        question_id=question_id, likert_value=value, answered_at=answered_at, **kwargs
    )


class TestValidAnswers:
    def test_skipped_and_unanswered_are_excluded(self, answered_at):
        answers = [
            _likert(1, 5, answered_at),
            _likert(2, 5, answered_at, skipped=True),
            _likert(3, 5, None),
        ]
        assert [a.question_id for a in valid_answers(answers)] == [1]


class TestAggregateIndicators:
    def test_sums_and_counts_per_indicator(self, lookups, answered_at):
        answers = [_likert(1, 5, answered_at), _likert(2, 3, answered_at)]

        aggregations = aggregate_indicators(answers, lookups)

        assert set(aggregations) == {100}
        assert aggregations[100].total_score == pytest.approx(1.5)
        assert aggregations[100].question_count == 2
        assert aggregations[100].percentage == pytest.approx(75.0)

    def test_empty_input_yields_empty_mapping(self, lookups):
        assert aggregate_indicators([], lookups) == {}

    def test_answer_without_indicator_is_dropped_with_warning(
        self, lookups, answered_at, caplog
    ):
        with caplog.at_level(logging.WARNING):
            aggregations = aggregate_indicators(
                [_likert(6, 5, answered_at), _likert(99, 5, answered_at)], lookups
            )

        assert aggregations == {}
        assert "question 6" in caplog.text
        assert "question 99" in caplog.text


class TestRollUp:
    def test_weighted_percentage(self, lookups, answered_at):
        """Weight 2.0 at 100% and weight 1.0 at 50% give 83.33%."""
        answers = [
            _likert(1, 5, answered_at),
            _likert(2, 5, answered_at),
            _likert(3, 3, answered_at),
            _likert(4, 3, answered_at),
        ]

        competencies = roll_up_competencies(aggregate_indicators(answers, lookups), lookups)

        aggregation = competencies[10]
        assert aggregation.weighted_percentage == pytest.approx(83.33, abs=0.1)
        assert aggregation.question_count == 4
        assert len(aggregation.indicator_scores) == 2

    def test_indicator_without_competency_is_dropped(self, answered_at, caplog):
        lookups = ScoringLookups.build(
            questions=[QuestionInfo(1, QuestionType.LIKERT, 300)],
            indicators=[IndicatorInfo(300, None, "Orphan")],
        )

        with caplog.at_level(logging.WARNING):
            competencies = roll_up_competencies(
                aggregate_indicators([_likert(1, 5, answered_at)], lookups), lookups
            )

        assert competencies == {}
        assert "indicator 300" in caplog.text


class TestScoreCompetencies:
    def test_full_pipeline(self, lookups, answered_at):
        answers = [
            _likert(1, 5, answered_at),
            _likert(3, 3, answered_at),
            AnswerRecord(question_id=5, score=0.4, answered_at=answered_at),
        ]

        scores = {s.competency_id: s for s in score_competencies(answers, lookups)}

        communication = scores[10]
        assert communication.competency_name == "Communication"
        assert communication.onet_code == "2.A.1.a"
        assert communication.percentage == pytest.approx(83.3333, abs=0.001)
        assert communication.proficiency_label == "Advanced"
        assert [i.indicator_id for i in communication.indicator_scores] == [100, 101]

        leadership = scores[20]
        assert leadership.percentage == pytest.approx(40.0)
        assert leadership.proficiency_label == "Developing"
        assert leadership.insufficient_evidence is None

    def test_all_skipped_yields_no_competencies(self, lookups, answered_at):
        answers = [_likert(1, 5, answered_at, skipped=True), _likert(5, 5, None)]
        assert score_competencies(answers, lookups) == []

    def test_unknown_competency_placeholder(self, answered_at):
        lookups = ScoringLookups.build(
            questions=[QuestionInfo(1, QuestionType.LIKERT, 100)],
            indicators=[IndicatorInfo(100, 77, "Listens actively")],
        )

        scores = score_competencies([_likert(1, 4, answered_at)], lookups)

        assert scores[0].competency_id == 77
        assert scores[0].competency_name == "Unknown Competency"

    def test_russian_labels(self, lookups, answered_at):
        scores = score_competencies([_likert(1, 1, answered_at)], lookups, locale="ru")
        assert scores[0].proficiency_label == "Начальный"
