"""Unit tests for the daily streak transition."""
from datetime import date, timedelta

from readquest.services.streak import StreakState, next_streak

TODAY = date(2026, 10, 19)


class TestNextStreak:
    def test_first_participation(self):
        s = next_streak(StreakState(), TODAY)
        assert s.current_streak == 1
        assert s.max_streak == 1
        assert s.broken_streak_value is None
        assert s.last_participation_date == TODAY

    def test_consecutive_day_increments(self):
        s = next_streak(StreakState(4, 4, TODAY - timedelta(days=1)), TODAY)
        assert s.current_streak == 5
        assert s.max_streak == 5

    def test_same_day_unchanged(self):
        state = StreakState(4, 9, TODAY)
        assert next_streak(state, TODAY) == state

    def test_gap_resets_and_keeps_broken_value(self):
        s = next_streak(StreakState(6, 9, TODAY - timedelta(days=3)), TODAY)
        assert s.current_streak == 1
        assert s.max_streak == 9
        assert s.broken_streak_value == 6

    def test_gap_from_zero_has_nothing_to_recover(self):
        s = next_streak(StreakState(0, 3, TODAY - timedelta(days=10)), TODAY)
        assert s.current_streak == 1
        assert s.broken_streak_value is None
