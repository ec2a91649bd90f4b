"""
Tests for response consistency analysis: speed anomalies, straight-lining,
within-competency variance and the composite score.
"""
import pytest

from scoring_engine.core.scoring import (
    AnswerRecord,
    CompetencyInfo,
    IndicatorInfo,
    QuestionInfo,
    ScoringLookups,
    analyze_response_consistency,
)
from scoring_engine.core.scoring.consistency import (
    calculate_intra_competency_variance,
    calculate_straight_lining_rate,
    variance_factor,
)
from scoring_engine.models.models import QuestionType


def _lookups(question_type=QuestionType.SJT, question_ids=range(1, 11)):
    return ScoringLookups.build(
        questions=[QuestionInfo(q, question_type, 100) for q in question_ids],
        indicators=[IndicatorInfo(100, 10, "Plans ahead")],
        competencies=[CompetencyInfo(10, "Planning")],
    )


def _scored(answered_at, scores, seconds=20):
    return [
        AnswerRecord(
            question_id=q, score=s, answered_at=answered_at, time_spent_seconds=seconds
        )
        for q, s in enumerate(scores, start=1)
    ]


class TestStraightLining:
    def test_share_of_most_common_value(self, answered_at):
        answers = [
            AnswerRecord(question_id=q, likert_value=v, answered_at=answered_at)
            for q, v in enumerate([4, 4, 4, 2, 4], start=1)
        ]
        assert calculate_straight_lining_rate(answers) == pytest.approx(0.8)

    def test_no_likert_answers(self, answered_at):
        assert calculate_straight_lining_rate(_scored(answered_at, [0.5, 1.0])) == 0.0


class TestIntraCompetencyVariance:
    def test_sample_variance(self, answered_at):
        answers = _scored(answered_at, [0.0, 0.5, 1.0])
        assert calculate_intra_competency_variance(answers, _lookups()) == pytest.approx(0.25)

    def test_needs_three_valid_answers(self, answered_at):
        answers = _scored(answered_at, [0.0, 1.0])
        answers.append(AnswerRecord(question_id=3, score=0.5, skipped=True))

        assert calculate_intra_competency_variance(answers, _lookups()) == 0.0

    def test_unresolved_questions_ignored(self, answered_at):
        answers = _scored(answered_at, [0.0, 0.5, 1.0])
        lookups = _lookups(question_ids=[1, 2])

        assert calculate_intra_competency_variance(answers, lookups) == 0.0


class TestVarianceFactor:
    @pytest.mark.parametrize(
        "variance,expected",
        [
            (0.0, 0.7),
            (0.025, 0.5),
            (0.05, 1.0),
            (0.4, 1.0),
            (0.7, 0.5),
            (1.2, 0.0),
        ],
    )
    def test_factor(self, variance, expected):
        assert variance_factor(variance) == pytest.approx(expected)


class TestAnalyzeResponseConsistency:
    def test_no_answers(self):
        result = analyze_response_consistency([], _lookups())

        assert result.consistency_score == 1.0
        assert result.flags == []

    def test_engaged_session(self, answered_at):
        answers = _scored(answered_at, [0.0, 0.5, 1.0])

        result = analyze_response_consistency(answers, _lookups())

        assert result.consistency_score == pytest.approx(1.0)
        assert result.flags == []

    def test_speed_anomalies_flagged(self, answered_at):
        answers = _scored(answered_at, [0.2, 0.4, 0.6], seconds=20)
        answers += [
            AnswerRecord(question_id=4, score=0.5, answered_at=answered_at, time_spent_seconds=1),
            AnswerRecord(question_id=5, score=0.5, answered_at=answered_at, time_spent_seconds=2),
        ]

        result = analyze_response_consistency(answers, _lookups())

        assert result.speed_anomaly_rate == pytest.approx(0.4)
        assert result.flags == [
            "Speed anomaly: 2 of 5 answers were completed in under 3 seconds"
        ]

    def test_skipped_answers_are_not_speed_anomalies(self, answered_at):
        answers = _scored(answered_at, [0.0, 0.5, 1.0])
        answers.append(AnswerRecord(question_id=4, skipped=True, time_spent_seconds=0))

        result = analyze_response_consistency(answers, _lookups())

        assert result.speed_anomaly_rate == 0.0

    def test_straight_lining_flagged(self, answered_at):
        answers = [
            AnswerRecord(
                question_id=q, likert_value=4, answered_at=answered_at, time_spent_seconds=10
            )
            for q in range(1, 9)
        ]
        answers += [
            AnswerRecord(
                question_id=q, likert_value=2, answered_at=answered_at, time_spent_seconds=10
            )
            for q in (9, 10)
        ]

        result = analyze_response_consistency(answers, _lookups(QuestionType.LIKERT))

        assert result.straight_lining_rate == pytest.approx(0.8)
        assert "Straight-lining detected: 80% of Likert responses used the same value" in (
            result.flags
        )

    def test_low_variance_flagged(self, answered_at):
        # Sample variance of 0.5, 0.5, 0.6 is 1/300
        answers = _scored(answered_at, [0.5, 0.5, 0.6])

        result = analyze_response_consistency(answers, _lookups())

        assert result.intra_competency_variance == pytest.approx(1 / 300)
        assert result.flags == ["Low response variance suggests possible disengagement"]
        # 0.3 + 0.3 + 0.4 * (1/300) / 0.05
        assert result.consistency_score == pytest.approx(0.63)

    def test_as_metrics(self, answered_at):
        metrics = analyze_response_consistency(
            _scored(answered_at, [0.0, 0.5, 1.0]), _lookups()
        ).as_metrics()

        assert set(metrics) == {
            "consistency_score",
            "consistency_flags",
            "speed_anomaly_rate",
            "straight_lining_rate",
        }
