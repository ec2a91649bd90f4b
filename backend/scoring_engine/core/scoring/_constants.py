"""
Shared constants for competency scoring.

Reference:
    Thresholds are defaults; runtime values come from Settings via
    ScoringThresholds.from_settings().
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple

from scoring_engine.models.models import QuestionType


# =============================================================================
# NORMALIZATION
# =============================================================================

# Ordinal ratings are clamped to this closed range before normalizing
LIKERT_MIN = 1
LIKERT_MAX = 5

ORDINAL_QUESTION_TYPES: FrozenSet[QuestionType] = frozenset(
    {
        QuestionType.LIKERT,
        QuestionType.LIKERT_SCALE,
        QuestionType.FREQUENCY_SCALE,
    }
)

# Rated on the ordinal scale when a rating is present, otherwise pre-scored
HYBRID_QUESTION_TYPES: FrozenSet[QuestionType] = frozenset(
    {
        QuestionType.CAPABILITY_ASSESSMENT,
        QuestionType.PEER_FEEDBACK,
    }
)


# =============================================================================
# PLACEHOLDERS
# =============================================================================

UNKNOWN_COMPETENCY_NAME = "Unknown Competency"
UNKNOWN_INDICATOR_TITLE = "Unknown Indicator"


# =============================================================================
# PROFICIENCY LABELS
# =============================================================================


class ProficiencyLevel(str, Enum):
    """Proficiency level for a competency or indicator percentage."""

    BEGINNING = "beginning"
    DEVELOPING = "developing"
    PROFICIENT = "proficient"
    ADVANCED = "advanced"
    EXPERT = "expert"


# Lower bounds (inclusive), highest first. Anything below 30 is BEGINNING.
PROFICIENCY_THRESHOLDS: Tuple[Tuple[float, ProficiencyLevel], ...] = (
    (85.0, ProficiencyLevel.EXPERT),
    (70.0, ProficiencyLevel.ADVANCED),
    (50.0, ProficiencyLevel.PROFICIENT),
    (30.0, ProficiencyLevel.DEVELOPING),
)

PROFICIENCY_LABELS: Dict[str, Dict[ProficiencyLevel, str]] = {
    "en": {
        ProficiencyLevel.BEGINNING: "Beginning",
        ProficiencyLevel.DEVELOPING: "Developing",
        ProficiencyLevel.PROFICIENT: "Proficient",
        ProficiencyLevel.ADVANCED: "Advanced",
        ProficiencyLevel.EXPERT: "Expert",
    },
    "ru": {
        ProficiencyLevel.BEGINNING: "Начальный",
        ProficiencyLevel.DEVELOPING: "Развивающийся",
        ProficiencyLevel.PROFICIENT: "Компетентный",
        ProficiencyLevel.ADVANCED: "Опытный",
        ProficiencyLevel.EXPERT: "Эксперт",
    },
}

DEFAULT_LOCALE = "en"


# =============================================================================
# PROFILE PATTERN
# =============================================================================


class ProfilePatternCategory(str, Enum):
    """Position of a competency relative to the test-taker's own overall score."""

    SIGNATURE_STRENGTH = "SIGNATURE_STRENGTH"
    STRENGTH = "STRENGTH"
    DEVELOPING = "DEVELOPING"
    CRITICAL_GAP = "CRITICAL_GAP"
    AVERAGE = "AVERAGE"


# Order in which categories appear in the profile pattern map
PROFILE_PATTERN_ORDER: Tuple[ProfilePatternCategory, ...] = (
    ProfilePatternCategory.SIGNATURE_STRENGTH,
    ProfilePatternCategory.STRENGTH,
    ProfilePatternCategory.DEVELOPING,
    ProfilePatternCategory.CRITICAL_GAP,
    ProfilePatternCategory.AVERAGE,
)

PROFILE_PATTERN_KEY = "profile_pattern"


# =============================================================================
# TEAM FIT
# =============================================================================


class TeamContribution(str, Enum):
    """How a competency contributes to a team's profile."""

    SATURATION = "saturation"  # Team already strong here
    DIVERSITY = "diversity"  # Adds a distinct strength
    GAP = "gap"


# O*NET benchmarks are on a 1-5 importance scale
ONET_BENCHMARK_TO_PERCENT = 20.0


# =============================================================================
# CONFIDENCE INTERVALS
# =============================================================================

DEFAULT_SCORE_SD = 15.0  # Assumed SD of percentage scores without enough history
MIN_SAMPLE_SIZE_FOR_SD = 30
MIN_SAMPLE_SIZE_FOR_BOOTSTRAP = 5
DEFAULT_CONFIDENCE_LEVEL = 0.95


# =============================================================================
# RESPONSE CONSISTENCY
# =============================================================================

# Answers faster than this are counted as speed anomalies
MIN_RESPONSE_TIME_SECONDS = 3
SPEED_ANOMALY_FLAG_RATE = 0.2

# Share of Likert answers with the most common value above which a session is flagged
STRAIGHT_LINING_THRESHOLD = 0.70

MIN_ANSWERS_FOR_VARIANCE = 3

# Expected within-competency variance of normalized scores
NORMAL_VARIANCE_MIN = 0.05
NORMAL_VARIANCE_MAX = 0.4
NO_VARIANCE_FACTOR = 0.7  # Used when no competency has enough answers
LOW_VARIANCE_FLAG = 0.02
HIGH_VARIANCE_FLAG = 0.6

# Weights of the composite consistency score
SPEED_WEIGHT = 0.3
STRAIGHT_LINING_WEIGHT = 0.3
VARIANCE_WEIGHT = 0.4
