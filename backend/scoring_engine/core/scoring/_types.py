"""
Type definitions for the scoring pipeline.

Input records are frozen: a scoring run never mutates answers or metadata.
Aggregations are mutable accumulators that live for a single run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional

from scoring_engine.core.config import Settings, settings
from scoring_engine.models.models import AssessmentGoal, QuestionType

from ._constants import UNKNOWN_INDICATOR_TITLE

if TYPE_CHECKING:
    from scoring_engine.schemas.scoring import IndicatorScore


# =============================================================================
# INPUT RECORDS
# =============================================================================


@dataclass(frozen=True)
class AnswerRecord:
    """A raw answer as handed over by the persistence layer."""

    question_id: int
    likert_value: Optional[int] = None
    score: Optional[float] = None
    max_score: Optional[float] = None
    skipped: bool = False
    answered_at: Optional[datetime] = None
    time_spent_seconds: Optional[int] = None
    answer_id: Optional[int] = None

    @property
    def is_valid(self) -> bool:
        """Only answered, non-skipped answers take part in scoring."""
        return not self.skipped and self.answered_at is not None


@dataclass(frozen=True)
class QuestionInfo:
    question_id: int
    question_type: QuestionType
    indicator_id: Optional[int] = None


@dataclass(frozen=True)
class IndicatorInfo:
    indicator_id: int
    competency_id: Optional[int] = None
    title: str = UNKNOWN_INDICATOR_TITLE
    weight: float = 1.0


@dataclass(frozen=True)
class CompetencyInfo:
    competency_id: int
    name: str
    onet_code: Optional[str] = None
    esco_uri: Optional[str] = None
    big_five_category: Optional[str] = None


@dataclass(frozen=True)
class SessionInfo:
    """The part of a test session that scoring depends on."""

    session_id: int
    template_id: Optional[int]
    goal: Optional[AssessmentGoal]
    passing_score: float
    blueprint: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoringLookups:
    """
    Read-only metadata for one scoring run.

    Built once per run from batch-loaded rows and never shared between runs.
    """

    questions: Mapping[int, QuestionInfo]
    indicators: Mapping[int, IndicatorInfo]
    competencies: Mapping[int, CompetencyInfo]
    # Competency name -> O*NET importance (1-5) for the blueprint's occupation
    onet_benchmarks: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def build(
        cls,
        questions: Iterable[QuestionInfo] = (),
        indicators: Iterable[IndicatorInfo] = (),
        competencies: Iterable[CompetencyInfo] = (),
        onet_benchmarks: Optional[Mapping[str, float]] = None,
    ) -> "ScoringLookups":
        return cls(
            questions=MappingProxyType({q.question_id: q for q in questions}),
            indicators=MappingProxyType({i.indicator_id: i for i in indicators}),
            competencies=MappingProxyType({c.competency_id: c for c in competencies}),
            onet_benchmarks=MappingProxyType(dict(onet_benchmarks or {})),
        )

    def question_for(self, question_id: int) -> Optional[QuestionInfo]:
        return self.questions.get(question_id)

    def indicator_for(self, indicator_id: int) -> Optional[IndicatorInfo]:
        return self.indicators.get(indicator_id)

    def competency_for(self, competency_id: int) -> Optional[CompetencyInfo]:
        return self.competencies.get(competency_id)

    def competency_for_indicator(self, indicator_id: int) -> Optional[CompetencyInfo]:
        indicator = self.indicator_for(indicator_id)
        if indicator is None or indicator.competency_id is None:
            return None
        return self.competency_for(indicator.competency_id)


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class ScoringThresholds:
    """Scoring configuration passed explicitly through the pipeline."""

    strength: float = 75.0
    development: float = 40.0
    critical_gap: float = 30.0
    signature_band_width: float = 10.0
    min_questions_per_competency: int = 3
    low_evidence_weight_factor: float = 0.5

    job_fit_base_threshold: float = 0.5
    job_fit_strictness_max_adjustment: float = 0.3
    job_fit_default_strictness: int = 50

    team_fit_saturation_threshold: float = 0.75
    team_fit_diversity_threshold: float = 0.5
    team_fit_diversity_bonus_threshold: float = 0.4
    team_fit_saturation_penalty_threshold: float = 0.8
    team_fit_diversity_bonus: float = 1.1
    team_fit_saturation_penalty: float = 0.9
    team_fit_pass_threshold: float = 0.6
    team_fit_min_diversity_ratio: float = 0.3

    onet_boost: float = 1.2
    esco_boost: float = 1.15
    big_five_boost: float = 1.1

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "ScoringThresholds":
        s = source or settings
        return cls(
            strength=s.SCORING_STRENGTH_THRESHOLD,
            development=s.SCORING_DEVELOPMENT_THRESHOLD,
            critical_gap=s.SCORING_CRITICAL_GAP_THRESHOLD,
            signature_band_width=s.SCORING_SIGNATURE_BAND_WIDTH,
            min_questions_per_competency=s.SCORING_MIN_QUESTIONS_PER_COMPETENCY,
            low_evidence_weight_factor=s.SCORING_LOW_EVIDENCE_WEIGHT_FACTOR,
            job_fit_base_threshold=s.SCORING_JOB_FIT_BASE_THRESHOLD,
            job_fit_strictness_max_adjustment=s.SCORING_JOB_FIT_STRICTNESS_MAX_ADJUSTMENT,
            job_fit_default_strictness=s.SCORING_JOB_FIT_DEFAULT_STRICTNESS,
            team_fit_saturation_threshold=s.SCORING_TEAM_FIT_SATURATION_THRESHOLD,
            team_fit_diversity_threshold=s.SCORING_TEAM_FIT_DIVERSITY_THRESHOLD,
            team_fit_diversity_bonus_threshold=s.SCORING_TEAM_FIT_DIVERSITY_BONUS_THRESHOLD,
            team_fit_saturation_penalty_threshold=s.SCORING_TEAM_FIT_SATURATION_PENALTY_THRESHOLD,
            team_fit_diversity_bonus=s.SCORING_TEAM_FIT_DIVERSITY_BONUS,
            team_fit_saturation_penalty=s.SCORING_TEAM_FIT_SATURATION_PENALTY,
            team_fit_pass_threshold=s.SCORING_TEAM_FIT_PASS_THRESHOLD,
            team_fit_min_diversity_ratio=s.SCORING_TEAM_FIT_MIN_DIVERSITY_RATIO,
            onet_boost=s.SCORING_ONET_BOOST,
            esco_boost=s.SCORING_ESCO_BOOST,
            big_five_boost=s.SCORING_BIG_FIVE_BOOST,
        )


# =============================================================================
# AGGREGATIONS (transient, one scoring run)
# =============================================================================


@dataclass
class IndicatorAggregation:
    """Running sum and count of normalized scores for one indicator."""

    indicator_id: int
    total_score: float = 0.0
    total_max_score: float = 0.0
    question_count: int = 0

    def add_answer(self, normalized_score: float) -> None:
        self.total_score += normalized_score
        self.total_max_score += 1.0
        self.question_count += 1

    @property
    def percentage(self) -> float:
        if self.total_max_score <= 0:
            return 0.0
        return (self.total_score / self.total_max_score) * 100.0


@dataclass
class CompetencyAggregation:
    """Weighted combination of one competency's indicator aggregates."""

    competency_id: int
    weighted_percentage_sum: float = 0.0
    total_weight: float = 0.0
    total_score: float = 0.0
    total_max_score: float = 0.0
    question_count: int = 0
    indicator_scores: List["IndicatorScore"] = field(default_factory=list)

    def add_indicator(
        self,
        indicator_score: "IndicatorScore",
        aggregation: IndicatorAggregation,
        weight: float,
    ) -> None:
        # Indicators without valid answers never reach the denominator
        if aggregation.question_count == 0:
            return
        self.indicator_scores.append(indicator_score)
        self.weighted_percentage_sum += weight * aggregation.percentage
        self.total_weight += weight
        self.total_score += weight * aggregation.total_score
        self.total_max_score += weight * aggregation.total_max_score
        self.question_count += aggregation.question_count

    @property
    def weighted_percentage(self) -> float:
        if self.total_weight <= 0:
            return 0.0
        return self.weighted_percentage_sum / self.total_weight
