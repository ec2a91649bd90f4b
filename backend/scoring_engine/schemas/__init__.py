"""
Pydantic schemas for scoring and psychometric output.
"""
from .scoring import (
    IndicatorScore,
    CompetencyScore,
    ScoringResult,
    TestResultDto,
)
from .psychometrics import (
    StatusChangeRecord,
    FlaggedItemSummary,
    PsychometricHealthReport,
    truncate_question_text,
)

__all__ = [
    "IndicatorScore",
    "CompetencyScore",
    "ScoringResult",
    "TestResultDto",
    "StatusChangeRecord",
    "FlaggedItemSummary",
    "PsychometricHealthReport",
    "truncate_question_text",
]
