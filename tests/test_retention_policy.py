"""Tests for the budget-driven retention policy."""

from dataclasses import dataclass

import pytest

from config.settings import Settings
from memory.retention_policy import RetentionPolicy


@dataclass
class Unit:
    char_count: int


class TestRetentionPolicy:
    """Test compaction triggers and range selection."""

    def setup_method(self):
        """Set up test fixtures."""
        # 10% of 1000 -> 100 chars for both tiers
        self.policy = RetentionPolicy(Settings(max_context_chars=1000))

    def test_default_threshold(self):
        """Test that default thresholds are 10% of 100,000 characters."""
        policy = RetentionPolicy(Settings())
        assert policy.threshold(1) == 10_000
        assert policy.threshold(2) == 10_000

    def test_should_compact_only_above_threshold(self):
        """Test that exactly reaching the threshold does not trigger compaction."""
        assert not self.policy.should_compact(1, 100)
        assert self.policy.should_compact(1, 101)
        assert self.policy.should_compact(2, 150)

    def test_invalid_tier_rejected(self):
        """Test that only tiers 1 and 2 are accepted."""
        with pytest.raises(ValueError):
            self.policy.should_compact(3, 500)

    def test_select_range_takes_one_threshold_of_oldest(self):
        """Test that selection stops before exceeding the threshold."""
        pending = [Unit(40), Unit(40), Unit(40), Unit(40)]

        assert self.policy.select_range(1, pending) == (0, 2)

    def test_select_range_always_takes_oldest_unit(self):
        """Test that an oversized first unit is still selected alone."""
        pending = [Unit(250), Unit(10)]

        assert self.policy.select_range(1, pending) == (0, 1)

    def test_select_range_empty(self):
        """Test that nothing pending selects nothing."""
        assert self.policy.select_range(1, []) is None

    def test_should_compact_units_sums_chars(self):
        """Test that pending units are summed before comparing."""
        assert not self.policy.should_compact_units(1, [Unit(50), Unit(50)])
        assert self.policy.should_compact_units(1, [Unit(50), Unit(51)])

    def test_count_trigger_for_l2(self):
        """Test the count-based L2 trigger."""
        policy = RetentionPolicy(Settings(l2_trigger="count", l2_count_threshold=3))
        pending = [Unit(1), Unit(1), Unit(1), Unit(1)]

        assert not policy.should_compact_units(2, pending[:2])
        assert policy.should_compact_units(2, pending)
        assert policy.select_range(2, pending) == (0, 3)

    def test_count_trigger_does_not_affect_l1(self):
        """Test that L1 keeps the character trigger in count mode."""
        policy = RetentionPolicy(Settings(max_context_chars=1000, l2_trigger="count"))

        assert not policy.should_compact_units(1, [Unit(1)] * 10)
