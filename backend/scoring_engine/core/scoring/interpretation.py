"""
Score interpretation: proficiency labels and profile patterns.

Both classifications compare percentages rounded HALF_UP to four decimals,
so a value that is 30.0 after rounding is always treated as 30.0.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from scoring_engine.core.precision import is_at_least, is_below, round4

from ._constants import (
    DEFAULT_LOCALE,
    PROFICIENCY_LABELS,
    PROFICIENCY_THRESHOLDS,
    PROFILE_PATTERN_ORDER,
    ProficiencyLevel,
    ProfilePatternCategory,
)
from ._types import ScoringThresholds

logger = logging.getLogger(__name__)


def proficiency_level(percentage: float) -> ProficiencyLevel:
    """Map a 0-100 percentage to a proficiency level (lower bounds inclusive)."""
    for threshold, level in PROFICIENCY_THRESHOLDS:
        if is_at_least(percentage, threshold):
            return level
    return ProficiencyLevel.BEGINNING


def proficiency_label(percentage: float, locale: str = DEFAULT_LOCALE) -> str:
    """
    Human-readable proficiency label for a percentage.

    Unknown locales fall back to English.

    Example:
        >>> proficiency_label(70.0)
        'Advanced'
        >>> proficiency_label(29.9, locale="ru")
        'Начальный'
    """
    labels = PROFICIENCY_LABELS.get(locale)
    if labels is None:
        logger.debug(f"No proficiency labels for locale '{locale}', using '{DEFAULT_LOCALE}'")
        labels = PROFICIENCY_LABELS[DEFAULT_LOCALE]
    return labels[proficiency_level(percentage)]


def classify_profile_pattern(
    percentage: float,
    overall_percentage: float,
    thresholds: Optional[ScoringThresholds] = None,
) -> ProfilePatternCategory:
    """
    Classify a competency relative to the test-taker's overall percentage.

    Rules are evaluated in priority order:
        1. p >= S and p >= O + B  -> SIGNATURE_STRENGTH
        2. p >= S                 -> STRENGTH
        3. p <  C                 -> CRITICAL_GAP
        4. p >= D                 -> DEVELOPING
        5. C <= p < D             -> AVERAGE

    Args:
        percentage: Competency percentage (0-100)
        overall_percentage: Overall percentage of the same result
        thresholds: Classification thresholds (defaults when omitted)

    Returns:
        The profile pattern category
    """
    t = thresholds or ScoringThresholds()
    p = round4(percentage)

    if is_at_least(p, t.strength):
        if is_at_least(p, round4(overall_percentage) + t.signature_band_width):
            return ProfilePatternCategory.SIGNATURE_STRENGTH
        return ProfilePatternCategory.STRENGTH
    if is_below(p, t.critical_gap):
        return ProfilePatternCategory.CRITICAL_GAP
    if is_at_least(p, t.development):
        return ProfilePatternCategory.DEVELOPING
    return ProfilePatternCategory.AVERAGE


def build_profile_pattern(
    competencies: Iterable[Tuple[str, float]],
    overall_percentage: float,
    thresholds: Optional[ScoringThresholds] = None,
) -> Dict[str, List[str]]:
    """
    Group competency names by profile pattern category.

    Args:
        competencies: (competency name, percentage) pairs
        overall_percentage: Overall percentage of the result
        thresholds: Classification thresholds

    Returns:
        Category value -> competency names, in category display order.
        Categories with no competencies are omitted.
    """
    grouped: Dict[ProfilePatternCategory, List[str]] = {}
    for name, percentage in competencies:
        category = classify_profile_pattern(percentage, overall_percentage, thresholds)
        grouped.setdefault(category, []).append(name)

    return {
        category.value: grouped[category]
        for category in PROFILE_PATTERN_ORDER
        if category in grouped
    }
