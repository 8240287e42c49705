"""
Points Engine
Pure calculation rules for chapter completion points, streaks and rank progress.

Completion points:
    base      = round(points_per_chapter)            (first completion)
    base      = round(base * 0.3)                    (repeat, no bonuses)
    bonuses   = first_time 20% + perfect 15% + speed 10% of the original base
    final     = round((base + bonuses) * streak_multiplier)

Every rounding is half-up so 2.5 becomes 3 (Python's round() would give 2).
"""

import math
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Dict, Optional, Tuple, Union

# ==================== CONSTANTS ====================

REPEAT_COMPLETION_RATE = 0.3
FIRST_TIME_BONUS_RATE = 0.2
PERFECT_SCORE_BONUS_RATE = 0.15
SPEED_BONUS_RATE = 0.1

PERFECT_SCORE_THRESHOLD = 95
SPEED_TIME_RATIO = 0.75

# (minimum streak days, multiplier), highest tier first
STREAK_MULTIPLIERS = (
    (90, 1.5),
    (30, 1.25),
    (7, 1.1),
)
DEFAULT_STREAK_MULTIPLIER = 1.0


@dataclass
class PointsBreakdown:
    base_points: int
    bonus_points: int
    bonus_breakdown: Dict[str, int]
    total_points: int
    streak_multiplier: float
    final_points: int
    is_first_time: bool
    is_perfect_score: bool
    has_speed_bonus: bool
    streak_days: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


# ==================== ROUNDING ====================

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ==================== STREAKS ====================

def streak_multiplier(streak_days: int) -> float:
    for min_days, multiplier in STREAK_MULTIPLIERS:
        if streak_days >= min_days:
            return multiplier
    return DEFAULT_STREAK_MULTIPLIER


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def next_streak_days(current_streak: int, last_streak_date: Optional[Union[date, datetime]],
                     today: Union[date, datetime]) -> int:
    """
    Same calendar day keeps the streak, the next day extends it,
    anything else (a gap or a clock going backwards) restarts at 1.
    """
    if last_streak_date is None:
        return 1

    days = (_as_date(today) - _as_date(last_streak_date)).days
    if days == 0:
        return max(current_streak, 1)
    if days == 1:
        return current_streak + 1
    return 1


# ==================== COMPLETION POINTS ====================

def calculate_chapter_points(
    points_per_chapter: float,
    is_first_time: bool,
    completion_time: float,
    quiz_score: Optional[float] = None,
    expected_time: Optional[float] = None,
    streak_days: int = 0,
) -> PointsBreakdown:
    original_base = round_half_up(points_per_chapter)

    is_perfect_score = quiz_score is not None and quiz_score >= PERFECT_SCORE_THRESHOLD
    has_speed_bonus = bool(expected_time) and completion_time < expected_time * SPEED_TIME_RATIO

    bonus_breakdown: Dict[str, int] = {}
    if is_first_time:
        base_points = original_base
        bonus_breakdown["first_time"] = round_half_up(original_base * FIRST_TIME_BONUS_RATE)
        if is_perfect_score:
            bonus_breakdown["perfect"] = round_half_up(original_base * PERFECT_SCORE_BONUS_RATE)
        if has_speed_bonus:
            bonus_breakdown["speed"] = round_half_up(original_base * SPEED_BONUS_RATE)
    else:
        base_points = round_half_up(original_base * REPEAT_COMPLETION_RATE)

    bonus_points = sum(bonus_breakdown.values())
    total_points = base_points + bonus_points
    multiplier = streak_multiplier(streak_days)

    return PointsBreakdown(
        base_points=base_points,
        bonus_points=bonus_points,
        bonus_breakdown=bonus_breakdown,
        total_points=total_points,
        streak_multiplier=multiplier,
        final_points=max(0, round_half_up(total_points * multiplier)),
        is_first_time=is_first_time,
        is_perfect_score=is_perfect_score,
        has_speed_bonus=has_speed_bonus,
        streak_days=streak_days,
    )


# ==================== RANK PROGRESS ====================

def rank_progress_percentage(total_points: int, current_cfg: Optional[dict],
                             next_cfg: Optional[dict]) -> int:
    if not current_cfg or not next_cfg:
        return 100

    span = next_cfg["min_points"] - current_cfg["min_points"]
    if span <= 0:
        return 100

    progress = round_half_up((total_points - current_cfg["min_points"]) / span * 100)
    return max(0, min(100, progress))


def reaches_rank_ceiling(total_points: int, current_cfg: Optional[dict]) -> bool:
    if not current_cfg or current_cfg.get("max_points") is None:
        return False
    return total_points >= current_cfg["max_points"]


def iso_week(moment: datetime) -> Tuple[int, int]:
    """(ISO week number, ISO year) used to key weekly snapshots"""
    iso_year, week_number, _ = moment.isocalendar()
    return week_number, iso_year
