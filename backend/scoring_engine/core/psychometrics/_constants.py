"""
Shared constants for psychometric item analysis and reliability.

Reference:
    Standard classical test theory thresholds: difficulty as the mean
    normalized score (p-value), discrimination as the item-total correlation,
    internal consistency as Cronbach's alpha.
"""

# =============================================================================
# SAMPLE SIZE
# =============================================================================

# Responses needed before difficulty/discrimination are trusted
MIN_RESPONSES = 50

# Sessions that answered all of a competency's items needed for alpha
MIN_SAMPLE_SIZE_FOR_ALPHA = 50

MIN_ITEMS_FOR_ALPHA = 2

# Alpha-if-item-deleted leaves k - 1 items, which must still be >= 2
MIN_ITEMS_FOR_ALPHA_IF_DELETED = 3

# A session enters the alpha matrix if it answered this share of the items
RESPONSE_COMPLETENESS_THRESHOLD = 0.9


# =============================================================================
# DIFFICULTY (p-value) THRESHOLDS
# =============================================================================

DIFFICULTY_TOO_HARD = 0.2  # p < 0.2
DIFFICULTY_TOO_EASY = 0.9  # p > 0.9


# =============================================================================
# DISCRIMINATION THRESHOLDS
# =============================================================================

DISCRIMINATION_NEGATIVE = 0.0
DISCRIMINATION_CRITICAL = 0.1
DISCRIMINATION_WARNING = 0.2
DISCRIMINATION_GOOD = 0.25
DISCRIMINATION_EXCELLENT = 0.3

# Minimum discrimination for an item to be ACTIVE
MIN_ACTIVE_DISCRIMINATION = DISCRIMINATION_EXCELLENT


# =============================================================================
# RELIABILITY (Cronbach's alpha) THRESHOLDS
# =============================================================================

ALPHA_RELIABLE = 0.7
ALPHA_ACCEPTABLE = 0.6


# =============================================================================
# REPORTING
# =============================================================================

TOP_FLAGGED_ITEMS_LIMIT = 10
UNKNOWN_LABEL = "Unknown"
