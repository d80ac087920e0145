"""
Gamification rules for the progression engine

This package implements the pure and storage-light parts of progression:
- XP awards and leveling
- Daily streak tracking with monthly freezes
- Lives (hearts) with timed refill
- Achievement evaluation
- Weekly leaderboard aggregation

The workout completion flow that ties them together lives in
progression.services.progression_service.
"""

from progression.gamification.xp_system import (
    level_for,
    calculate_level_from_xp,
    calculate_workout_xp,
    apply_experience,
    default_rule_table,
)
from progression.gamification.streak_system import update_streak, use_streak_freeze, get_streak_info
from progression.gamification.lives_system import deduct_life, check_and_restore_lives, get_lives_info
from progression.gamification.achievement_system import evaluate_achievements, check_and_award_achievements
from progression.gamification.leaderboard import (
    get_week_start,
    record_activity,
    get_weekly_leaderboard,
    get_user_rank,
)

__all__ = [
    "level_for",
    "calculate_level_from_xp",
    "calculate_workout_xp",
    "apply_experience",
    "default_rule_table",
    "update_streak",
    "use_streak_freeze",
    "get_streak_info",
    "deduct_life",
    "check_and_restore_lives",
    "get_lives_info",
    "evaluate_achievements",
    "check_and_award_achievements",
    "get_week_start",
    "record_activity",
    "get_weekly_leaderboard",
    "get_user_rank",
]
