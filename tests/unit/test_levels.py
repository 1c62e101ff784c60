"""Unit tests for the level curve."""
import pytest

from readquest.services.levels import (
    LEVEL_THRESHOLDS,
    level_for,
    level_progress,
    levels_gained,
    xp_for_level,
)


class TestLevelFor:
    def test_table_thresholds(self):
        """Each threshold is the first xp of its level."""
        for i, threshold in enumerate(LEVEL_THRESHOLDS, start=1):
            assert level_for(threshold) == i
            if threshold > 0:
                assert level_for(threshold - 1) == i - 1

    def test_known_points(self):
        assert level_for(0) == 1
        assert level_for(99) == 1
        assert level_for(100) == 2
        assert level_for(10449) == 19
        assert level_for(10450) == 20

    def test_beyond_table(self):
        """Past the last threshold: one level per 1000 xp."""
        assert level_for(11449) == 20
        assert level_for(11450) == 21
        assert level_for(10450 + 5 * 1000) == 25

    def test_negative_xp_is_level_one(self):
        assert level_for(-50) == 1

    def test_monotonic(self):
        prev = level_for(0)
        for xp in range(0, 40_000, 37):
            cur = level_for(xp)
            assert cur >= prev
            prev = cur


class TestHelpers:
    @pytest.mark.parametrize("level", [1, 2, 10, 20, 21, 30])
    def test_xp_for_level_round_trips(self, level):
        assert level_for(xp_for_level(level)) == level

    def test_progress_inside_level(self):
        prog = level_progress(175)  # level 2 spans 100..250
        assert prog.level == 2
        assert prog.current_xp == 75
        assert prog.level_span == 150
        assert prog.percent == 50

    def test_levels_gained(self):
        assert levels_gained(90, 260) == [2, 3]
        assert levels_gained(260, 260) == []
        assert levels_gained(10_000, 12_500) == [20, 21, 22]
