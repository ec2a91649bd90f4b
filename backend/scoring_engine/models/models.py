"""
Database models for the competency scoring engine.

Competency metadata (competencies, behavioral indicators, questions, templates)
is authored elsewhere; these tables are the read side of that data plus the
records the engine owns: test results, item statistics and competency
reliability.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Float,
    JSON,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class QuestionType(str, enum.Enum):
    """Question kind; decides how a raw answer is normalized."""

    # Ordinal (1-5) family
    LIKERT = "likert"
    LIKERT_SCALE = "likert_scale"
    FREQUENCY_SCALE = "frequency_scale"

    # Situational judgment, pre-scored 0-1
    SJT = "sjt"
    SITUATIONAL_JUDGMENT = "situational_judgment"

    # Multiple choice, pre-scored 0-1
    MCQ = "mcq"
    MULTIPLE_CHOICE = "multiple_choice"

    # Ordinal when rated, otherwise pre-scored
    CAPABILITY_ASSESSMENT = "capability_assessment"
    PEER_FEEDBACK = "peer_feedback"

    # Free-form, pre-scored by a reviewer when scored at all
    BEHAVIORAL_EXAMPLE = "behavioral_example"
    OPEN_TEXT = "open_text"
    SELF_REFLECTION = "self_reflection"


class AssessmentGoal(str, enum.Enum):
    """What an assessment template is designed to measure."""

    OVERVIEW = "overview"
    JOB_FIT = "job_fit"
    TEAM_FIT = "team_fit"


class SessionStatus(str, enum.Enum):
    """Test session status enumeration."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ResultStatus(str, enum.Enum):
    """Scoring state of a test result."""

    PENDING = "pending"
    COMPLETED = "completed"


class ItemValidityStatus(str, enum.Enum):
    """Lifecycle state of a question item."""

    PROBATION = "probation"
    ACTIVE = "active"
    FLAGGED_FOR_REVIEW = "flagged_for_review"
    RETIRED = "retired"


class DifficultyFlag(str, enum.Enum):
    """Difficulty flag enumeration."""

    NONE = "none"
    TOO_HARD = "too_hard"
    TOO_EASY = "too_easy"


class DiscriminationFlag(str, enum.Enum):
    """Discrimination flag enumeration."""

    NONE = "none"
    NEGATIVE = "negative"
    CRITICAL = "critical"
    WARNING = "warning"


class ReliabilityStatus(str, enum.Enum):
    """Internal consistency classification of a competency."""

    RELIABLE = "reliable"
    ACCEPTABLE = "acceptable"
    UNRELIABLE = "unreliable"
    INSUFFICIENT_DATA = "insufficient_data"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Competency(Base):
    """Named skill or trait area composed of behavioral indicators."""

    __tablename__ = "competencies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    onet_code = Column(String(50), nullable=True)  # e.g. "2.B.1.a"
    esco_uri = Column(String(500), nullable=True)
    big_five_category = Column(String(50), nullable=True)  # e.g. "CONSCIENTIOUSNESS"
    is_active = Column(Boolean, default=True, nullable=False)

    indicators = relationship(
        "BehavioralIndicator", back_populates="competency", cascade="all, delete-orphan"
    )
    reliability = relationship(
        "CompetencyReliability",
        back_populates="competency",
        uselist=False,
        cascade="all, delete-orphan",
    )


class BehavioralIndicator(Base):
    """Observable behavior under one competency, with a roll-up weight."""

    __tablename__ = "behavioral_indicators"

    id = Column(Integer, primary_key=True, index=True)
    competency_id = Column(
        Integer,
        ForeignKey("competencies.id", ondelete="CASCADE"),
        nullable=True,  # Orphaned indicators are tolerated and skipped during roll-up
        index=True,
    )
    title = Column(String(500), nullable=False)
    weight = Column(Float, default=1.0, nullable=False)

    competency = relationship("Competency", back_populates="indicators")
    questions = relationship("AssessmentQuestion", back_populates="indicator")

    __table_args__ = (
        CheckConstraint("weight > 0", name="ck_behavioral_indicators_weight_positive"),
    )


class AssessmentQuestion(Base):
    """Question item measuring one behavioral indicator."""

    __tablename__ = "assessment_questions"

    id = Column(Integer, primary_key=True, index=True)
    indicator_id = Column(
        Integer,
        ForeignKey("behavioral_indicators.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    question_type = Column(Enum(QuestionType), nullable=False)
    question_text = Column(Text, nullable=False)
    answer_options = Column(JSON)  # Option list for choice questions
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    indicator = relationship("BehavioralIndicator", back_populates="questions")
    statistics = relationship(
        "ItemStatistics",
        back_populates="question",
        uselist=False,
        cascade="all, delete-orphan",
    )


class AssessmentTemplate(Base):
    """Assessment definition: goal, pass mark and goal-specific blueprint."""

    __tablename__ = "assessment_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    goal = Column(Enum(AssessmentGoal), nullable=True)
    passing_score = Column(Float, default=70.0, nullable=False)  # Percentage, 0-100
    blueprint = Column(JSON)  # e.g. {"onetSocCode": "15-1252.00", "strictnessLevel": 70}

    sessions = relationship("TestSession", back_populates="template")


class TestSession(Base):
    """One attempt at an assessment template."""

    __tablename__ = "test_sessions"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(
        Integer, ForeignKey("assessment_templates.id"), nullable=False, index=True
    )
    user_ref = Column(String(255), nullable=True, index=True)
    status = Column(Enum(SessionStatus), default=SessionStatus.IN_PROGRESS, nullable=False)
    started_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    completed_at = Column(DateTime(timezone=True))

    template = relationship("AssessmentTemplate", back_populates="sessions")
    answers = relationship(
        "TestAnswer", back_populates="session", cascade="all, delete-orphan"
    )
    result = relationship(
        "TestResult", back_populates="session", uselist=False, cascade="all, delete-orphan"
    )


class TestAnswer(Base):
    """Raw answer to one question within a session. Never mutated after creation."""

    __tablename__ = "test_answers"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer, ForeignKey("test_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id = Column(
        Integer, ForeignKey("assessment_questions.id", ondelete="CASCADE"), nullable=False
    )
    likert_value = Column(Integer, nullable=True)  # Ordinal rating, nominally 1-5
    score = Column(Float, nullable=True)  # Pre-computed score
    max_score = Column(Float, nullable=True)  # Absent means 1.0
    selected_option_ids = Column(JSON)  # For distractor analysis
    is_skipped = Column(Boolean, default=False, nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)

    session = relationship("TestSession", back_populates="answers")
    question = relationship("AssessmentQuestion")

    __table_args__ = (
        Index("ix_test_answers_session_id", "session_id"),
        Index("ix_test_answers_question_id", "question_id"),
    )


class TestResult(Base):
    """Scored outcome of a session; PENDING while scoring has not succeeded."""

    __tablename__ = "test_results"

    id = Column(Integer, primary_key=True, index=True)
    # One result per session: concurrent writers collide on this constraint
    session_id = Column(
        Integer,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    template_id = Column(Integer, nullable=True, index=True)
    goal = Column(Enum(AssessmentGoal), nullable=True)
    status = Column(Enum(ResultStatus), nullable=False, index=True)
    overall_score = Column(Float, nullable=True)
    overall_percentage = Column(Float, nullable=True)
    percentile = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)
    competency_scores = Column(JSON, nullable=True)  # List of CompetencyScore dicts
    big_five_profile = Column(JSON, nullable=True)  # Trait -> 0-100
    extended_metrics = Column(JSON, nullable=True)  # Goal-specific metrics
    questions_answered = Column(Integer, default=0, nullable=False)
    questions_skipped = Column(Integer, default=0, nullable=False)
    total_time_seconds = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    session = relationship("TestSession", back_populates="result")

    __table_args__ = (
        Index("ix_test_results_template_status", "template_id", "status"),
    )


class ItemStatistics(Base):
    """Psychometric statistics for one question item."""

    __tablename__ = "item_statistics"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(
        Integer,
        ForeignKey("assessment_questions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    response_count = Column(Integer, default=0, nullable=False)
    difficulty_index = Column(Float, nullable=True)  # Mean normalized score (p-value)
    discrimination_index = Column(Float, nullable=True)  # Point-biserial r
    previous_discrimination_index = Column(Float, nullable=True)
    difficulty_flag = Column(Enum(DifficultyFlag), default=DifficultyFlag.NONE, nullable=False)
    discrimination_flag = Column(
        Enum(DiscriminationFlag), default=DiscriminationFlag.NONE, nullable=False
    )
    validity_status = Column(
        Enum(ItemValidityStatus),
        default=ItemValidityStatus.PROBATION,
        nullable=False,
        index=True,
    )
    status_change_history = Column(JSON, nullable=True)
    # Example: [{"from_status": "probation", "to_status": "active",
    #            "timestamp": "2026-01-01T00:00:00+00:00", "reason": "rpb=0.350 ..."}]
    distractor_efficiency = Column(JSON, nullable=True)  # option id -> selection share
    last_calculated_at = Column(DateTime(timezone=True), nullable=True)

    question = relationship("AssessmentQuestion", back_populates="statistics")


class CompetencyReliability(Base):
    """Internal consistency (Cronbach's alpha) of one competency's items."""

    __tablename__ = "competency_reliability"

    id = Column(Integer, primary_key=True, index=True)
    competency_id = Column(
        Integer,
        ForeignKey("competencies.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    cronbach_alpha = Column(Float, nullable=True)
    alpha_if_deleted = Column(JSON, nullable=True)  # question id (str) -> alpha
    sample_size = Column(Integer, default=0, nullable=False)
    item_count = Column(Integer, default=0, nullable=False)
    reliability_status = Column(
        Enum(ReliabilityStatus),
        default=ReliabilityStatus.INSUFFICIENT_DATA,
        nullable=False,
        index=True,
    )
    last_calculated_at = Column(DateTime(timezone=True), nullable=True)

    competency = relationship("Competency", back_populates="reliability")
