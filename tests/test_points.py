"""Tests for the pure points engine."""

from datetime import date, datetime

import pytest

from app.gamification.points import (
    calculate_chapter_points,
    iso_week,
    next_streak_days,
    rank_progress_percentage,
    reaches_rank_ceiling,
    round_half_up,
    streak_multiplier,
)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(37.5) == 38

    def test_below_half_rounds_down(self):
        assert round_half_up(2.49) == 2

    def test_integers_unchanged(self):
        assert round_half_up(100) == 100


class TestStreakMultiplier:
    @pytest.mark.parametrize("days,expected", [
        (0, 1.0), (6, 1.0), (7, 1.1), (29, 1.1),
        (30, 1.25), (89, 1.25), (90, 1.5), (365, 1.5),
    ])
    def test_tiers(self, days, expected):
        assert streak_multiplier(days) == expected


class TestNextStreakDays:
    def test_first_activity_starts_at_one(self):
        assert next_streak_days(0, None, date(2024, 3, 1)) == 1

    def test_same_day_keeps_streak(self):
        assert next_streak_days(5, datetime(2024, 3, 1, 8), datetime(2024, 3, 1, 22)) == 5

    def test_next_day_extends_streak(self):
        assert next_streak_days(5, datetime(2024, 3, 1, 23, 50), datetime(2024, 3, 2, 0, 10)) == 6

    def test_gap_resets_streak(self):
        assert next_streak_days(40, date(2024, 3, 1), date(2024, 3, 3)) == 1

    def test_clock_going_backwards_resets_streak(self):
        assert next_streak_days(4, date(2024, 3, 5), date(2024, 3, 4)) == 1


class TestFirstCompletion:
    def test_first_time_bonus_only(self):
        result = calculate_chapter_points(100, is_first_time=True, completion_time=300)

        assert result.base_points == 100
        assert result.bonus_breakdown == {"first_time": 20}
        assert result.total_points == 120
        assert result.streak_multiplier == 1.0
        assert result.final_points == 120

    def test_all_bonuses_with_streak(self):
        result = calculate_chapter_points(
            100, is_first_time=True, completion_time=100,
            quiz_score=95, expected_time=200, streak_days=7
        )

        assert result.bonus_breakdown == {"first_time": 20, "perfect": 15, "speed": 10}
        assert result.bonus_points == 45
        assert result.total_points == 145
        assert result.final_points == 160  # 145 * 1.1 = 159.5

    def test_bonuses_are_rounded_individually(self):
        result = calculate_chapter_points(
            33.333, is_first_time=True, completion_time=10, quiz_score=100, expected_time=60
        )

        assert result.base_points == 33
        assert result.bonus_breakdown == {"first_time": 7, "perfect": 5, "speed": 3}
        assert result.final_points == 48

    def test_fractional_budget_rounds_half_up(self):
        result = calculate_chapter_points(2.5, is_first_time=True, completion_time=10)
        assert result.base_points == 3


class TestBonusConditions:
    def test_score_below_threshold_is_not_perfect(self):
        result = calculate_chapter_points(100, True, 100, quiz_score=94.9)
        assert not result.is_perfect_score
        assert "perfect" not in result.bonus_breakdown

    def test_missing_quiz_score_is_not_perfect(self):
        assert not calculate_chapter_points(100, True, 100).is_perfect_score

    def test_speed_needs_less_than_three_quarters(self):
        assert not calculate_chapter_points(100, True, 150, expected_time=200).has_speed_bonus
        assert calculate_chapter_points(100, True, 149, expected_time=200).has_speed_bonus

    def test_no_expected_time_means_no_speed_bonus(self):
        assert not calculate_chapter_points(100, True, 1, expected_time=None).has_speed_bonus
        assert not calculate_chapter_points(100, True, 1, expected_time=0).has_speed_bonus


class TestRepeatCompletion:
    def test_repeat_pays_thirty_percent_without_bonuses(self):
        result = calculate_chapter_points(
            100, is_first_time=False, completion_time=10, quiz_score=100, expected_time=600
        )

        assert result.base_points == 30
        assert result.bonus_points == 0
        assert result.bonus_breakdown == {}
        assert result.is_perfect_score
        assert result.has_speed_bonus
        assert result.final_points == 30

    def test_repeat_still_gets_streak_multiplier(self):
        result = calculate_chapter_points(100, is_first_time=False, completion_time=10, streak_days=30)
        assert result.final_points == 38  # 30 * 1.25 = 37.5


class TestRankProgress:
    CURRENT = {"rank_number": 2, "min_points": 1000, "max_points": 2500}
    NEXT = {"rank_number": 3, "min_points": 2500, "max_points": 5000}

    def test_halfway(self):
        assert rank_progress_percentage(1750, self.CURRENT, self.NEXT) == 50

    def test_at_rank_floor(self):
        assert rank_progress_percentage(1000, self.CURRENT, self.NEXT) == 0

    def test_capped_at_hundred(self):
        assert rank_progress_percentage(9000, self.CURRENT, self.NEXT) == 100

    def test_top_rank_is_complete(self):
        assert rank_progress_percentage(400000, {"min_points": 350000, "max_points": None}, None) == 100

    def test_ceiling_reached(self):
        assert reaches_rank_ceiling(2500, self.CURRENT)
        assert not reaches_rank_ceiling(2499, self.CURRENT)

    def test_top_rank_has_no_ceiling(self):
        assert not reaches_rank_ceiling(10 ** 9, {"min_points": 350000, "max_points": None})


class TestIsoWeek:
    def test_mid_year(self):
        assert iso_week(datetime(2024, 6, 16, 23, 59)) == (24, 2024)

    def test_new_year_boundary_uses_iso_year(self):
        assert iso_week(datetime(2024, 12, 30)) == (1, 2025)
