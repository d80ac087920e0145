"""
Database queries - re-export all functions.

Module organization:
- user.py: Progression rows (load, create, compare-and-set update)
- workouts.py: Workout lookups and completion history
- achievements.py: Achievement catalog and unlocks
- leaderboard.py: Weekly leaderboard upsert and ranking
"""

# User progression
from progression.db.queries.user import (
    get_user_progression,
    create_user_progression,
    update_user_progression,
)

# Workouts
from progression.db.queries.workouts import (
    get_workout,
    count_completed_workouts_between,
    count_completed_workouts_on_day,
    count_category_workouts,
    get_completion_days,
    has_workout_on_each_of_last_7_days,
)

# Achievements
from progression.db.queries.achievements import (
    get_all_achievements,
    get_unlocked_achievement_ids,
    get_recent_unlocks,
    insert_unlock_if_absent,
)

# Leaderboard
from progression.db.queries.leaderboard import (
    upsert_leaderboard_row,
    get_leaderboard,
)

__all__ = [
    "get_user_progression",
    "create_user_progression",
    "update_user_progression",
    "get_workout",
    "count_completed_workouts_between",
    "count_completed_workouts_on_day",
    "count_category_workouts",
    "get_completion_days",
    "has_workout_on_each_of_last_7_days",
    "get_all_achievements",
    "get_unlocked_achievement_ids",
    "get_recent_unlocks",
    "insert_unlock_if_absent",
    "upsert_leaderboard_row",
    "get_leaderboard",
]
