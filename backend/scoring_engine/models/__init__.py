"""
Models package for the competency scoring engine.
"""
from .base import Base, engine, SessionLocal
from .models import (
    Competency,
    BehavioralIndicator,
    AssessmentQuestion,
    AssessmentTemplate,
    TestSession,
    TestAnswer,
    TestResult,
    ItemStatistics,
    CompetencyReliability,
    QuestionType,
    AssessmentGoal,
    SessionStatus,
    ResultStatus,
    ItemValidityStatus,
    DifficultyFlag,
    DiscriminationFlag,
    ReliabilityStatus,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "Competency",
    "BehavioralIndicator",
    "AssessmentQuestion",
    "AssessmentTemplate",
    "TestSession",
    "TestAnswer",
    "TestResult",
    "ItemStatistics",
    "CompetencyReliability",
    "QuestionType",
    "AssessmentGoal",
    "SessionStatus",
    "ResultStatus",
    "ItemValidityStatus",
    "DifficultyFlag",
    "DiscriminationFlag",
    "ReliabilityStatus",
]
