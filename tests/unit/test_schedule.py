"""
Tests for schedule.py - Billing period arithmetic

Tests:
- total_periods rounds a trailing partial period up
- period_index / period_number at window edges
- period_start_block / period_end_block
- opened_periods clamping and prepayment allowance
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rental_ledger import (
    total_periods, period_index, period_number,
    period_start_block, period_end_block, opened_periods,
)


class TestTotalPeriods:

    def test_exact_multiple(self):
        assert total_periods(100, 1000, 100) == 9

    def test_partial_trailing_period_counts(self):
        assert total_periods(100, 1001, 100) == 10
        assert total_periods(100, 150, 100) == 1

    def test_window_shorter_than_period(self):
        assert total_periods(100, 1000, 4320) == 1

    def test_empty_window(self):
        assert total_periods(100, 100, 10) == 0
        assert total_periods(100, 50, 10) == 0

    def test_rejects_non_positive_length(self):
        with pytest.raises(ValueError, match="period_length must be positive"):
            total_periods(0, 10, 0)


class TestPeriodIndex:

    def test_first_block_is_index_zero(self):
        assert period_index(100, 100, 100) == 0
        assert period_number(100, 100, 100) == 1

    def test_last_block_of_first_period(self):
        assert period_index(199, 100, 100) == 0

    def test_second_period(self):
        assert period_index(200, 100, 100) == 1
        assert period_number(250, 100, 100) == 2

    def test_before_window_is_negative(self):
        assert period_index(99, 100, 100) == -1
        assert period_number(3, 100, 100) <= 0

    @given(
        start=st.integers(min_value=0, max_value=10_000),
        offset=st.integers(min_value=0, max_value=100_000),
        length=st.integers(min_value=1, max_value=5_000),
    )
    @settings(max_examples=100)
    def test_block_lies_inside_its_period(self, start, offset, length):
        """PROPERTY: every block falls in [period_start, period_start + length)."""
        now = start + offset
        number = period_number(now, start, length)
        first = period_start_block(start, number, length)
        assert first <= now < first + length


class TestPeriodBounds:

    def test_period_start_block(self):
        assert period_start_block(100, 1, 100) == 100
        assert period_start_block(100, 9, 100) == 900

    def test_period_end_capped_at_window_end(self):
        assert period_end_block(100, 950, 9, 100) == 950
        assert period_end_block(100, 1000, 1, 100) == 200

    def test_period_number_must_be_positive(self):
        with pytest.raises(ValueError, match="period number"):
            period_start_block(100, 0, 100)


class TestOpenedPeriods:

    def test_none_before_start(self):
        assert opened_periods(99, 100, 1000, 100) == 0

    def test_one_at_start(self):
        assert opened_periods(100, 100, 1000, 100) == 1

    def test_clamped_to_total(self):
        assert opened_periods(5000, 100, 1000, 100) == 9

    def test_prepayment_opens_period_early(self):
        assert opened_periods(3, 100, 1000, 100, prepayment_blocks=97) == 1
        assert opened_periods(3, 100, 1000, 100, prepayment_blocks=96) == 0
