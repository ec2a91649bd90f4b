"""
Pydantic schemas for scoring output.

These models are what the orchestrator returns and what is stored in the
``test_results.competency_scores`` JSON column.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scoring_engine.models.models import AssessmentGoal, ResultStatus


class IndicatorScore(BaseModel):
    """Score summary for one behavioral indicator within a competency."""

    indicator_id: int = Field(..., description="Behavioral indicator ID")
    indicator_title: str = Field(
        "Unknown Indicator", description="Indicator title, or placeholder if unresolved"
    )
    weight: float = Field(1.0, gt=0, description="Roll-up weight of the indicator")
    score: float = Field(..., ge=0, description="Sum of normalized answer scores")
    max_score: float = Field(..., ge=0, description="Number of valid answers")
    percentage: float = Field(..., ge=0)
    questions_answered: int = Field(..., ge=0)
    proficiency_label: Optional[str] = None


class CompetencyScore(BaseModel):
    """Score for one competency, with nested indicator breakdown."""

    competency_id: int = Field(..., description="Competency ID (aggregation key)")
    competency_name: str = Field(
        "Unknown Competency",
        description="Competency name, or placeholder if the competency is unresolved",
    )
    onet_code: Optional[str] = Field(None, description="O*NET element code, if mapped")
    score: float = Field(..., ge=0, description="Weighted sum of normalized scores")
    max_score: float = Field(..., ge=0, description="Weighted count of valid answers")
    percentage: float = Field(..., ge=0)
    questions_answered: int = Field(..., ge=0)
    proficiency_label: Optional[str] = None

    # Evidence sufficiency: left None (not False) when evidence is sufficient
    insufficient_evidence: Optional[bool] = None
    evidence_note: Optional[str] = None

    # Job fit
    benchmark_score: Optional[float] = Field(
        None, description="O*NET benchmark converted to the 0-100 scale"
    )

    # Measurement precision, populated when reliability data exists
    sem: Optional[float] = Field(None, description="Standard error of measurement")
    ci_lower: Optional[float] = None
    ci_upper: Optional[float] = None
    cronbach_alpha: Optional[float] = None

    percentile: Optional[int] = Field(
        None, ge=0, le=100, description="Rank among earlier results for the same template"
    )

    indicator_scores: List[IndicatorScore] = Field(default_factory=list)


class ScoringResult(BaseModel):
    """Output of a goal strategy before it is persisted."""

    goal: Optional[AssessmentGoal] = None
    overall_score: float = 0.0
    overall_percentage: float = 0.0
    competency_scores: List[CompetencyScore] = Field(default_factory=list)
    big_five_profile: Optional[Dict[str, float]] = None
    extended_metrics: Dict[str, Any] = Field(default_factory=dict)


class TestResultDto(BaseModel):
    """
    Persisted result of a scoring request.

    COMPLETED results carry scores and ``passed``. PENDING results (scoring
    failed) carry only the descriptive statistics; score fields stay None.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    session_id: int
    template_id: Optional[int] = None
    goal: Optional[AssessmentGoal] = None
    status: ResultStatus
    overall_score: Optional[float] = None
    overall_percentage: Optional[float] = None
    percentile: Optional[int] = Field(None, ge=0, le=100)
    passed: Optional[bool] = None
    competency_scores: Optional[List[CompetencyScore]] = None
    big_five_profile: Optional[Dict[str, float]] = None
    extended_metrics: Optional[Dict[str, Any]] = None
    questions_answered: int = 0
    questions_skipped: int = 0
    total_time_seconds: int = 0
    completed_at: Optional[datetime] = None
