"""
Competency scoring.

Turns the raw answers of a test session into a normalized, weighted,
multi-level competency profile:

    answers -> normalizer -> indicator aggregation -> competency roll-up
            -> evidence annotation / interpretation -> goal strategy
            -> orchestrator (persistence, idempotency, events)

Typical use:

    from scoring_engine.core.scoring import calculate_and_save_result

    result = calculate_and_save_result(db, session_id=42)
"""
from ._constants import (
    ProficiencyLevel,
    ProfilePatternCategory,
    TeamContribution,
    PROFILE_PATTERN_KEY,
    UNKNOWN_COMPETENCY_NAME,
    UNKNOWN_INDICATOR_TITLE,
)
from ._types import (
    AnswerRecord,
    QuestionInfo,
    IndicatorInfo,
    CompetencyInfo,
    SessionInfo,
    ScoringLookups,
    ScoringThresholds,
    IndicatorAggregation,
    CompetencyAggregation,
)
from .normalizer import normalize_answer, normalize_likert, normalize_precomputed
from .aggregation import (
    aggregate_indicators,
    roll_up_competencies,
    build_competency_scores,
    score_competencies,
)
from .interpretation import (
    proficiency_label,
    proficiency_level,
    classify_profile_pattern,
    build_profile_pattern,
)
from .evidence import annotate_evidence, calculate_overall
from .strategies import (
    STRATEGY_REGISTRY,
    ScoringStrategy,
    resolve_strategy,
    score_overview,
    score_job_fit,
    score_team_fit,
    score_legacy,
)
from .confidence import (
    calculate_sem,
    calculate_confidence_interval,
    enrich_with_confidence_intervals,
    estimate_score_sd,
)
from .percentile import calculate_percentile_rank, enrich_with_competency_percentiles
from .consistency import ConsistencyResult, analyze_response_consistency
from .repository import ScoringRepository, SqlAlchemyScoringRepository
from .orchestrator import ScoringOrchestrator, calculate_and_save_result

__all__ = [
    # Constants
    "ProficiencyLevel",
    "ProfilePatternCategory",
    "TeamContribution",
    "PROFILE_PATTERN_KEY",
    "UNKNOWN_COMPETENCY_NAME",
    "UNKNOWN_INDICATOR_TITLE",
    # Types
    "AnswerRecord",
    "QuestionInfo",
    "IndicatorInfo",
    "CompetencyInfo",
    "SessionInfo",
    "ScoringLookups",
    "ScoringThresholds",
    "IndicatorAggregation",
    "CompetencyAggregation",
    # Pipeline
    "normalize_answer",
    "normalize_likert",
    "normalize_precomputed",
    "aggregate_indicators",
    "roll_up_competencies",
    "build_competency_scores",
    "score_competencies",
    "proficiency_label",
    "proficiency_level",
    "classify_profile_pattern",
    "build_profile_pattern",
    "annotate_evidence",
    "calculate_overall",
    # Strategies
    "STRATEGY_REGISTRY",
    "ScoringStrategy",
    "resolve_strategy",
    "score_overview",
    "score_job_fit",
    "score_team_fit",
    "score_legacy",
    # Precision
    "calculate_sem",
    "calculate_confidence_interval",
    "enrich_with_confidence_intervals",
    "estimate_score_sd",
    "calculate_percentile_rank",
    "enrich_with_competency_percentiles",
    "ConsistencyResult",
    "analyze_response_consistency",
    # Orchestration
    "ScoringRepository",
    "SqlAlchemyScoringRepository",
    "ScoringOrchestrator",
    "calculate_and_save_result",
]
