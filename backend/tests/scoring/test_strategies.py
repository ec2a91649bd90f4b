"""
Tests for goal-specific scoring strategies and strategy dispatch.

Fixture layout (all questions are Likert, three per competency):
    10 Problem Solving  O*NET-mapped            questions 1-3
    20 Teamwork         ESCO + Big Five mapped  questions 4-6
    30 Planning         unmapped                questions 7-9
"""
import logging

import pytest

from scoring_engine.core.scoring import (
    STRATEGY_REGISTRY,
    AnswerRecord,
    CompetencyInfo,
    IndicatorInfo,
    QuestionInfo,
    ScoringLookups,
    ScoringThresholds,
    SessionInfo,
    TeamContribution,
    resolve_strategy,
    score_job_fit,
    score_legacy,
    score_overview,
    score_team_fit,
)
from scoring_engine.core.scoring.strategies import (
    classify_team_contribution,
    effective_job_fit_threshold,
)
from scoring_engine.models.models import AssessmentGoal, QuestionType

COMPETENCY_QUESTIONS = {10: (1, 2, 3), 20: (4, 5, 6), 30: (7, 8, 9)}


def _lookups(onet_benchmarks=None):
    questions = []
    for competency_id, question_ids in COMPETENCY_QUESTIONS.items():
        questions.extend(
            QuestionInfo(qid, QuestionType.LIKERT, competency_id * 10) for qid in question_ids
        )
    return ScoringLookups.build(
        questions=questions,
        indicators=[
            IndicatorInfo(cid * 10, cid, f"Indicator {cid}") for cid in COMPETENCY_QUESTIONS
        ],
        competencies=[
            CompetencyInfo(10, "Problem Solving", onet_code="2.A.2.a"),
            CompetencyInfo(
                20,
                "Teamwork",
                esco_uri="http://data.europa.eu/esco/skill/teamwork",
                big_five_category="AGREEABLENESS",
            ),
            CompetencyInfo(30, "Planning"),
        ],
        onet_benchmarks=onet_benchmarks,
    )


def _answers(answered_at, ratings):
    """ratings: competency id -> Likert values for its questions, in order."""
    answers = []
    for competency_id, values in ratings.items():
        for question_id, value in zip(COMPETENCY_QUESTIONS[competency_id], values):
            answers.append(
                AnswerRecord(question_id=question_id, likert_value=value, answered_at=answered_at)
            )
    return answers


def _session(goal, blueprint=None):
    return SessionInfo(
        session_id=1,
        template_id=1,
        goal=goal,
        passing_score=70.0,
        blueprint=blueprint or {},
    )


@pytest.fixture
def thresholds():
    return ScoringThresholds()


class TestOverviewStrategy:
    def test_profile(self, answered_at, thresholds):
        answers = _answers(answered_at, {10: (5, 5, 5), 20: (3, 3, 3), 30: (1, 1, 1)})

        result = score_overview(
            answers, _session(AssessmentGoal.OVERVIEW), _lookups(), thresholds
        )

        assert result.goal == AssessmentGoal.OVERVIEW
        assert result.overall_percentage == pytest.approx(50.0)
        assert result.overall_score == pytest.approx(1.5)
        assert result.extended_metrics["profile_pattern"] == {
            "SIGNATURE_STRENGTH": ["Problem Solving"],
            "DEVELOPING": ["Teamwork"],
            "CRITICAL_GAP": ["Planning"],
        }

    def test_low_evidence_competency_is_flagged_and_down_weighted(
        self, answered_at, thresholds
    ):
        answers = _answers(answered_at, {10: (5, 5), 20: (3, 3, 3)})

        result = score_overview(
            answers, _session(AssessmentGoal.OVERVIEW), _lookups(), thresholds
        )

        scores = {s.competency_id: s for s in result.competency_scores}
        assert scores[10].insufficient_evidence is True
        assert scores[20].insufficient_evidence is None
        # (100 * 2 * 0.5 + 50 * 3) / (1 + 3)
        assert result.overall_percentage == pytest.approx(62.5)

    def test_no_answers(self, thresholds):
        result = score_overview([], _session(AssessmentGoal.OVERVIEW), _lookups(), thresholds)

        assert result.overall_percentage == pytest.approx(0.0)
        assert result.competency_scores == []
        assert result.extended_metrics == {"profile_pattern": {}}


class TestJobFitStrategy:
    @pytest.mark.parametrize(
        "strictness,expected", [(0, 0.5), (50, 0.65), (70, 0.71), (100, 0.8)]
    )
    def test_effective_threshold(self, strictness, expected, thresholds):
        assert effective_job_fit_threshold(strictness, thresholds) == pytest.approx(expected)

    def test_onet_weighting_and_benchmarks(self, answered_at, thresholds):
        answers = _answers(answered_at, {10: (5, 5, 5), 20: (3, 3, 3), 30: (1, 1, 1)})
        session = _session(
            AssessmentGoal.JOB_FIT, {"onetSocCode": "15-1252.00", "strictnessLevel": 70}
        )

        result = score_job_fit(
            answers, session, _lookups({"Problem Solving": 4.0}), thresholds
        )

        # (100 * 1.2 + 50 + 0) / 3.2
        assert result.overall_percentage == pytest.approx(53.125)
        assert result.overall_score == pytest.approx(1.5)
        assert result.extended_metrics == {
            "effective_threshold": pytest.approx(0.71),
            "strictness_level": 70,
            "meets_job_requirements": False,
            "onet_soc_code": "15-1252.00",
        }
        scores = {s.competency_id: s for s in result.competency_scores}
        assert scores[10].benchmark_score == pytest.approx(80.0)
        assert scores[20].benchmark_score is None

    def test_meets_requirements(self, answered_at, thresholds):
        answers = _answers(answered_at, {10: (5, 5, 5), 30: (4, 4, 4)})

        result = score_job_fit(
            answers, _session(AssessmentGoal.JOB_FIT), _lookups(), thresholds
        )

        # (100 * 1.2 + 75) / 2.2 = 88.64% against the default 0.65
        assert result.overall_percentage == pytest.approx(88.6364, abs=1e-3)
        assert result.extended_metrics["strictness_level"] == 50
        assert result.extended_metrics["meets_job_requirements"] is True
        assert result.extended_metrics["onet_soc_code"] is None

    def test_strictness_is_clamped(self, answered_at, thresholds):
        session = _session(AssessmentGoal.JOB_FIT, {"strictnessLevel": 150})

        result = score_job_fit(
            _answers(answered_at, {30: (5, 5, 5)}), session, _lookups(), thresholds
        )

        assert result.extended_metrics["strictness_level"] == 100
        assert result.extended_metrics["effective_threshold"] == pytest.approx(0.8)
        assert result.extended_metrics["meets_job_requirements"] is True


class TestTeamFitStrategy:
    @pytest.mark.parametrize(
        "fraction,expected",
        [
            (0.75, TeamContribution.SATURATION),
            (0.74, TeamContribution.DIVERSITY),
            (0.5, TeamContribution.DIVERSITY),
            (0.49, TeamContribution.GAP),
        ],
    )
    def test_classify_contribution(self, fraction, expected):
        assert classify_team_contribution(fraction, 0.75, 0.5) == expected

    def test_diversity_bonus(self, answered_at, thresholds):
        answers = _answers(answered_at, {10: (4, 3, 3), 20: (3, 3, 3), 30: (1, 1, 1)})

        result = score_team_fit(
            answers, _session(AssessmentGoal.TEAM_FIT), _lookups(), thresholds
        )

        metrics = result.extended_metrics
        assert metrics["diversity_count"] == 2
        assert metrics["saturation_count"] == 0
        assert metrics["gap_count"] == 1
        assert metrics["diversity_ratio"] == pytest.approx(0.6667)
        assert metrics["saturation_ratio"] == pytest.approx(0.0)
        assert metrics["team_fit_multiplier"] == pytest.approx(1.1)
        # (58.33 * 1.0 + 50 * 1.15 * 1.1 + 0 * 1.0) / 3.265 * 1.1
        assert result.overall_percentage == pytest.approx(40.9622, abs=1e-3)
        assert metrics["adds_team_value"] is False
        assert metrics["team_id"] is None
        assert result.big_five_profile == {"AGREEABLENESS": pytest.approx(50.0)}

    def test_saturation_penalty(self, answered_at, thresholds):
        answers = _answers(answered_at, {10: (5, 5, 5), 20: (5, 5, 5), 30: (5, 5, 5)})

        result = score_team_fit(
            answers, _session(AssessmentGoal.TEAM_FIT), _lookups(), thresholds
        )

        assert result.extended_metrics["saturation_ratio"] == pytest.approx(1.0)
        assert result.extended_metrics["team_fit_multiplier"] == pytest.approx(0.9)
        assert result.overall_percentage == pytest.approx(90.0)
        assert result.extended_metrics["adds_team_value"] is False

    def test_blueprint_saturation_threshold_and_team_id(self, answered_at, thresholds):
        answers = _answers(answered_at, {10: (4, 4, 4), 20: (4, 4, 4), 30: (4, 4, 4)})
        session = _session(
            AssessmentGoal.TEAM_FIT, {"teamId": 42, "saturationThreshold": 0.95}
        )

        result = score_team_fit(answers, session, _lookups(), thresholds)

        assert result.extended_metrics["diversity_count"] == 3
        assert result.overall_percentage == pytest.approx(82.5)
        assert result.extended_metrics["adds_team_value"] is True
        assert result.extended_metrics["team_id"] == "42"

    def test_no_big_five_mapping(self, answered_at, thresholds):
        result = score_team_fit(
            _answers(answered_at, {30: (3, 3, 3)}),
            _session(AssessmentGoal.TEAM_FIT),
            _lookups(),
            thresholds,
        )
        assert result.big_five_profile is None


class TestLegacyStrategy:
    def test_sum_of_scores(self, answered_at, thresholds):
        answers = [
            AnswerRecord(question_id=1, score=2.0, max_score=4.0, answered_at=answered_at),
            AnswerRecord(question_id=2, score=1.0, answered_at=answered_at),
            AnswerRecord(question_id=3, score=5.0, skipped=True, answered_at=answered_at),
            AnswerRecord(question_id=4, likert_value=5, answered_at=answered_at),
        ]

        result = score_legacy(answers, _session(None), _lookups(), thresholds)

        assert result.goal is None
        assert result.overall_score == pytest.approx(3.0)
        assert result.overall_percentage == pytest.approx(60.0)
        assert len(result.competency_scores) == 1
        competency = result.competency_scores[0]
        assert competency.competency_id == 10
        assert competency.percentage == pytest.approx(60.0)
        assert competency.questions_answered == 2
        assert result.extended_metrics == {}

    def test_no_scored_answers(self, answered_at, thresholds):
        answers = [AnswerRecord(question_id=1, likert_value=3, answered_at=answered_at)]

        result = score_legacy(answers, _session(None), _lookups(), thresholds)

        assert result.overall_percentage == pytest.approx(0.0)
        assert result.competency_scores == []


class TestResolveStrategy:
    @pytest.mark.parametrize(
        "goal,expected",
        [
            (AssessmentGoal.OVERVIEW, score_overview),
            (AssessmentGoal.JOB_FIT, score_job_fit),
            (AssessmentGoal.TEAM_FIT, score_team_fit),
        ],
    )
    def test_registered_goals(self, goal, expected):
        assert resolve_strategy(goal) is expected
        assert STRATEGY_REGISTRY[goal] is expected

    def test_missing_goal_uses_legacy_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert resolve_strategy(None) is score_legacy
        assert "using legacy calculation" in caplog.text

    def test_unmapped_goal_in_custom_registry_uses_legacy(self):
        assert resolve_strategy(AssessmentGoal.TEAM_FIT, registry={}) is score_legacy

    def test_custom_registry_entry(self):
        def custom(answers, session, lookups, thresholds):
            raise AssertionError("not called")

        registry = {AssessmentGoal.OVERVIEW: custom}
        assert resolve_strategy(AssessmentGoal.OVERVIEW, registry) is custom
