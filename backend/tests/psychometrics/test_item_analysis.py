"""
Unit tests for item-level analysis: difficulty, discrimination, flags,
validity status and distractor efficiency.

Validity Test Cases:
- Fewer than the minimum responses -> PROBATION regardless of metrics
- Negative discrimination -> RETIRED
- Discrimination >= 0.30 with difficulty in 0.2-0.9 -> ACTIVE
- Discrimination not computable -> PROBATION
- Anything else -> FLAGGED_FOR_REVIEW
"""

import pytest

from scoring_engine.core.psychometrics import (
    calculate_difficulty_index,
    calculate_discrimination_index,
    calculate_distractor_efficiency,
    determine_difficulty_flag,
    determine_discrimination_flag,
    determine_validity_status,
    generate_status_reason,
)
from scoring_engine.models.models import (
    DifficultyFlag,
    DiscriminationFlag,
    ItemValidityStatus,
)

ITEMS = [0.0, 0.0, 1.0, 1.0, 1.0]
TOTALS = [0.2, 0.3, 0.7, 0.8, 0.9]


class TestDifficultyIndex:
    def test_mean_of_normalized_scores(self):
        assert calculate_difficulty_index([1.0, 0.0, 1.0, 1.0]) == pytest.approx(0.75)

    def test_rounded_to_four_decimals(self):
        assert calculate_difficulty_index([1.0, 0.0, 0.0]) == pytest.approx(0.3333)

    def test_no_responses(self):
        assert calculate_difficulty_index([]) is None


class TestDiscriminationIndex:
    def test_positive_correlation(self):
        assert calculate_discrimination_index(ITEMS, TOTALS, min_responses=5) == pytest.approx(
            0.9672, abs=1e-3
        )

    def test_negative_correlation(self):
        reversed_items = [1.0 - score for score in ITEMS]
        assert calculate_discrimination_index(
            reversed_items, TOTALS, min_responses=5
        ) == pytest.approx(-0.9672, abs=1e-3)

    def test_below_minimum_responses(self):
        assert calculate_discrimination_index(ITEMS, TOTALS) is None
        assert calculate_discrimination_index(ITEMS[:4], TOTALS[:4], min_responses=5) is None

    def test_constant_item_scores(self):
        assert calculate_discrimination_index([1.0] * 5, TOTALS, min_responses=5) is None

    def test_constant_totals(self):
        assert calculate_discrimination_index(ITEMS, [0.5] * 5, min_responses=5) is None

    def test_length_mismatch(self):
        assert calculate_discrimination_index(ITEMS, TOTALS[:4], min_responses=2) is None


class TestFlags:
    @pytest.mark.parametrize(
        "difficulty,expected",
        [
            (None, DifficultyFlag.NONE),
            (0.19, DifficultyFlag.TOO_HARD),
            (0.2, DifficultyFlag.NONE),
            (0.9, DifficultyFlag.NONE),
            (0.91, DifficultyFlag.TOO_EASY),
        ],
    )
    def test_difficulty_flag(self, difficulty, expected):
        assert determine_difficulty_flag(difficulty) == expected

    @pytest.mark.parametrize(
        "discrimination,expected",
        [
            (None, DiscriminationFlag.NONE),
            (-0.01, DiscriminationFlag.NEGATIVE),
            (0.0, DiscriminationFlag.CRITICAL),
            (0.09, DiscriminationFlag.CRITICAL),
            (0.1, DiscriminationFlag.WARNING),
            (0.24, DiscriminationFlag.WARNING),
            (0.25, DiscriminationFlag.NONE),
        ],
    )
    def test_discrimination_flag(self, discrimination, expected):
        assert determine_discrimination_flag(discrimination) == expected


class TestValidityStatus:
    @pytest.mark.parametrize(
        "count,difficulty,discrimination,expected",
        [
            (30, 0.5, 0.4, ItemValidityStatus.PROBATION),
            (30, 0.5, -0.5, ItemValidityStatus.PROBATION),
            (100, 0.5, -0.15, ItemValidityStatus.RETIRED),
            (100, 0.65, 0.35, ItemValidityStatus.ACTIVE),
            (50, 0.5, 0.3, ItemValidityStatus.ACTIVE),
            (100, 0.2, 0.3, ItemValidityStatus.ACTIVE),
            (100, 0.95, 0.15, ItemValidityStatus.FLAGGED_FOR_REVIEW),
            (100, 0.95, 0.35, ItemValidityStatus.FLAGGED_FOR_REVIEW),
            (100, 0.5, 0.29, ItemValidityStatus.FLAGGED_FOR_REVIEW),
            (100, None, 0.35, ItemValidityStatus.FLAGGED_FOR_REVIEW),
            (100, 0.5, None, ItemValidityStatus.PROBATION),
        ],
    )
    def test_decision(self, count, difficulty, discrimination, expected):
        assert determine_validity_status(count, difficulty, discrimination) == expected

    def test_custom_minimum(self):
        assert (
            determine_validity_status(10, 0.65, 0.35, min_responses=10)
            == ItemValidityStatus.ACTIVE
        )


class TestStatusReason:
    @pytest.mark.parametrize(
        "difficulty,discrimination,expected",
        [
            (0.65, 0.35, "rpb=0.350 (excellent), p=0.650 (acceptable)"),
            (0.5, 0.27, "rpb=0.270 (good), p=0.500 (acceptable)"),
            (0.95, 0.22, "rpb=0.220 (marginal), p=0.950 (too easy)"),
            (0.5, 0.15, "rpb=0.150 (poor), p=0.500 (acceptable)"),
            (0.1, -0.2, "rpb=-0.200 (toxic), p=0.100 (too hard)"),
        ],
    )
    def test_reason(self, difficulty, discrimination, expected):
        assert generate_status_reason(difficulty, discrimination) == expected

    def test_missing_metrics(self):
        assert generate_status_reason(0.4, None) == "p=0.400 (acceptable)"
        assert generate_status_reason(None, None) == ""


class TestDistractorEfficiency:
    def test_share_per_option(self):
        selections = [["a"], ["b"], ["a"], None, ["a", "c"]]

        assert calculate_distractor_efficiency(selections) == {
            "a": pytest.approx(0.6),
            "b": pytest.approx(0.2),
            "c": pytest.approx(0.2),
        }

    def test_option_ids_are_strings(self):
        assert calculate_distractor_efficiency([[1], [2], [2]]) == {
            "1": pytest.approx(0.3333),
            "2": pytest.approx(0.6667),
        }

    def test_no_selections(self):
        assert calculate_distractor_efficiency([None, []]) == {}
