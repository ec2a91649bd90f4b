"""
Pydantic schemas for psychometric reporting.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from scoring_engine.models.models import (
    DifficultyFlag,
    DiscriminationFlag,
    ItemValidityStatus,
)

QUESTION_TEXT_PREVIEW_LENGTH = 100


def truncate_question_text(text: Optional[str]) -> str:
    """Shorten question text to a 100-character preview.

    >>> truncate_question_text("x" * 120)[-3:]
    '...'
    """
    if text is None:
        return ""
    if len(text) <= QUESTION_TEXT_PREVIEW_LENGTH:
        return text
    return text[: QUESTION_TEXT_PREVIEW_LENGTH - 3] + "..."


class StatusChangeRecord(BaseModel):
    """One entry in an item's validity status history."""

    from_status: Optional[ItemValidityStatus] = None
    to_status: ItemValidityStatus
    timestamp: datetime
    reason: str


class FlaggedItemSummary(BaseModel):
    """Problematic item as listed in the health report."""

    question_id: int
    question_text: str = Field(..., description="Question text preview (<= 100 chars)")
    competency_name: str = "Unknown"
    indicator_title: str = "Unknown"
    difficulty_index: Optional[float] = None
    discrimination_index: Optional[float] = None
    response_count: int = 0
    validity_status: ItemValidityStatus
    difficulty_flag: DifficultyFlag = DifficultyFlag.NONE
    discrimination_flag: DiscriminationFlag = DiscriminationFlag.NONE
    last_calculated_at: Optional[datetime] = None

    @property
    def severity_level(self) -> int:
        """
        Severity for sorting: 3 toxic, 2 poor discrimination or extreme
        difficulty, 1 marginal discrimination, 0 otherwise.
        """
        if self.discrimination_flag == DiscriminationFlag.NEGATIVE:
            return 3
        if self.discrimination_flag == DiscriminationFlag.CRITICAL:
            return 2
        if self.difficulty_flag in (DifficultyFlag.TOO_HARD, DifficultyFlag.TOO_EASY):
            return 2
        if self.discrimination_flag == DiscriminationFlag.WARNING:
            return 1
        return 0

    @property
    def primary_issue(self) -> str:
        """Human-readable description of the main problem with this item."""
        if self.discrimination_flag == DiscriminationFlag.NEGATIVE:
            return "Toxic item: high performers fail, low performers succeed"
        if self.discrimination_flag == DiscriminationFlag.CRITICAL:
            return "Poor discrimination: item does not differentiate skill levels"
        if self.difficulty_flag == DifficultyFlag.TOO_HARD:
            return "Too difficult: most respondents fail this question"
        if self.difficulty_flag == DifficultyFlag.TOO_EASY:
            return "Too easy: nearly all respondents succeed on this question"
        if self.discrimination_flag == DiscriminationFlag.WARNING:
            return "Marginal discrimination: consider revising the item"
        return "Flagged for review"


class PsychometricHealthReport(BaseModel):
    """Aggregate psychometric health of the item bank and competencies."""

    total_items: int = 0
    active_items: int = 0
    probation_items: int = 0
    flagged_items: int = 0
    retired_items: int = 0

    total_competencies: int = 0
    reliable_competencies: int = 0
    acceptable_competencies: int = 0
    unreliable_competencies: int = 0
    insufficient_data_competencies: int = 0

    average_reliability: Optional[float] = Field(
        None, description="Mean Cronbach's alpha over competencies with a computed value"
    )
    average_discrimination: Optional[float] = None
    top_flagged_items: List[FlaggedItemSummary] = Field(default_factory=list)
    generated_at: datetime
