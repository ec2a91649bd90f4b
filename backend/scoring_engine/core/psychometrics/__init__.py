"""
Psychometric quality tracking for question items and competencies.

- item_analysis: difficulty, discrimination, flags, validity status
- reliability: Cronbach's alpha and reliability status
- service: persistence-backed recalculation, lifecycle and health report
"""
from .item_analysis import (
    calculate_difficulty_index,
    calculate_discrimination_index,
    calculate_distractor_efficiency,
    determine_difficulty_flag,
    determine_discrimination_flag,
    determine_validity_status,
    generate_status_reason,
)
from .reliability import (
    alpha_if_item_deleted,
    build_response_matrix,
    calculate_competency_alpha,
    cronbach_alpha,
    determine_reliability_status,
)
from .service import PsychometricAnalysisService

__all__ = [
    "calculate_difficulty_index",
    "calculate_discrimination_index",
    "calculate_distractor_efficiency",
    "determine_difficulty_flag",
    "determine_discrimination_flag",
    "determine_validity_status",
    "generate_status_reason",
    "alpha_if_item_deleted",
    "build_response_matrix",
    "calculate_competency_alpha",
    "cronbach_alpha",
    "determine_reliability_status",
    "PsychometricAnalysisService",
]
