"""
XP and Leveling System

Computes XP awards for completed workouts and maps cumulative XP to levels.

Leveling Curve:
- Levels 1-15 follow LEVEL_THRESHOLDS (100, 250, 450, ... 5950 XP)
- Level 16+ costs a flat 1000 XP per level

XP Award Rules (stock table, see default_rule_table()):
- Workout completion: 50 XP
- Duration bonus: 2 XP per full minute
- Perfect workout (every card completed): 25 XP
- First workout of the day: 15 XP
- Streak bonus (highest tier only): 3 days 25 XP, 7 days 100 XP, 30 days 500 XP
"""

from typing import Dict, List, Tuple
import logging

from progression.models.progression import UserProgressionState, WorkoutCompletionEvent
from progression.models.xp_rules import XpRule, XpRuleTable

logger = logging.getLogger(__name__)

# Cumulative XP needed to reach level i + 1
LEVEL_THRESHOLDS = [
    0,      # Level 1
    100,    # Level 2
    250,    # Level 3
    450,    # Level 4
    700,    # Level 5
    1000,   # Level 6
    1350,   # Level 7
    1750,   # Level 8
    2200,   # Level 9
    2700,   # Level 10
    3250,   # Level 11
    3850,   # Level 12
    4500,   # Level 13
    5200,   # Level 14
    5950,   # Level 15
]

# Cost of every level past the end of LEVEL_THRESHOLDS
LEVEL_INCREMENT_AFTER_TABLE = 1000

# Streak tiers, checked highest first; only one ever applies
STREAK_TIERS = [
    (30, "streak_bonus_30"),
    (7, "streak_bonus_7"),
    (3, "streak_bonus_3"),
]


def _threshold_for_level(level: int) -> int:
    """Cumulative XP at which level starts (level >= 1)"""
    if level <= len(LEVEL_THRESHOLDS):
        return LEVEL_THRESHOLDS[level - 1]
    extra_levels = level - len(LEVEL_THRESHOLDS)
    return LEVEL_THRESHOLDS[-1] + extra_levels * LEVEL_INCREMENT_AFTER_TABLE


def level_for(total_xp: int) -> Tuple[int, int]:
    """
    Map cumulative XP to (level, xp_to_next_level)

    Pure and total: negative input is treated as 0.
    """
    xp = max(0, total_xp)

    if xp >= LEVEL_THRESHOLDS[-1]:
        extra_levels = (xp - LEVEL_THRESHOLDS[-1]) // LEVEL_INCREMENT_AFTER_TABLE
        level = len(LEVEL_THRESHOLDS) + extra_levels
    else:
        level = 1
        for i, threshold in enumerate(LEVEL_THRESHOLDS):
            if xp >= threshold:
                level = i + 1

    next_threshold = _threshold_for_level(level + 1)
    return level, max(0, next_threshold - xp)


def calculate_level_from_xp(total_xp: int) -> Dict[str, int]:
    """
    Calculate level details from total XP

    Returns:
        {
            'current_level': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'total_xp_for_next_level': int
        }
    """
    xp = max(0, total_xp)
    level, xp_to_next = level_for(xp)

    return {
        "current_level": level,
        "xp_in_current_level": xp - _threshold_for_level(level),
        "xp_to_next_level": xp_to_next,
        "total_xp_for_next_level": _threshold_for_level(level + 1),
    }


def apply_experience(state: UserProgressionState, xp_gained: int) -> bool:
    """
    Add XP to state and recompute the derived level fields

    Returns:
        True if the level went up
    """
    old_level = state.current_level
    new_total = state.experience_points + max(0, xp_gained)
    level, xp_to_next = level_for(new_total)

    state.experience_points = new_total
    state.current_level = level
    state.xp_to_next_level = xp_to_next

    leveled_up = level > old_level
    if leveled_up:
        logger.info(f"User {state.user_id} leveled up from {old_level} to {level}!")
    return leveled_up


def default_rule_table() -> XpRuleTable:
    """Stock XP rules"""
    rules = [
        XpRule(activity_type="workout_complete", base_xp=50, description="Complete a workout"),
        XpRule(
            activity_type="workout_duration_bonus",
            base_xp=2,
            multiplier_field="duration_minutes",
            description="Bonus XP per minute of workout",
        ),
        XpRule(activity_type="streak_bonus_3", base_xp=25, description="3-day streak bonus"),
        XpRule(activity_type="streak_bonus_7", base_xp=100, description="7-day streak bonus"),
        XpRule(activity_type="streak_bonus_30", base_xp=500, description="30-day streak bonus"),
        XpRule(activity_type="perfect_workout", base_xp=25, description="Complete workout with all exercises"),
        XpRule(activity_type="first_daily_workout", base_xp=15, description="First workout of the day"),
    ]
    return XpRuleTable(version=1, rules={rule.activity_type: rule for rule in rules})


def get_xp_breakdown(
    event: WorkoutCompletionEvent,
    current_streak: int,
    is_first_workout_today: bool,
    rule_table: XpRuleTable,
) -> List[Tuple[str, int]]:
    """
    Per-rule XP contributions for one workout

    Args:
        event: The completed workout
        current_streak: Streak before this workout updates it
        is_first_workout_today: No earlier completed workout on the user's local day
        rule_table: Rules to apply

    Returns:
        List of (activity_type, xp) pairs, in evaluation order
    """
    breakdown: List[Tuple[str, int]] = []

    base = rule_table.get_active("workout_complete")
    if base:
        breakdown.append((base.activity_type, base.base_xp))

    if event.duration_seconds is not None:
        duration_bonus = rule_table.get_active("workout_duration_bonus")
        if duration_bonus:
            breakdown.append((duration_bonus.activity_type, duration_bonus.base_xp * event.duration_minutes))

    if event.is_perfect:
        perfect = rule_table.get_active("perfect_workout")
        if perfect:
            breakdown.append((perfect.activity_type, perfect.base_xp))

    if is_first_workout_today:
        first_daily = rule_table.get_active("first_daily_workout")
        if first_daily:
            breakdown.append((first_daily.activity_type, first_daily.base_xp))

    # Highest qualifying tier only; an inactive tier is not replaced by a lower one
    for min_streak, activity_type in STREAK_TIERS:
        if current_streak >= min_streak:
            streak_bonus = rule_table.get_active(activity_type)
            if streak_bonus:
                breakdown.append((streak_bonus.activity_type, streak_bonus.base_xp))
            break

    return breakdown


def calculate_workout_xp(
    event: WorkoutCompletionEvent,
    current_streak: int,
    is_first_workout_today: bool,
    rule_table: XpRuleTable,
) -> int:
    """
    Calculate XP for a workout

    Has no side effects; the streak passed in is the value before this
    workout's own streak update.
    """
    breakdown = get_xp_breakdown(event, current_streak, is_first_workout_today, rule_table)
    total = sum(amount for _, amount in breakdown)

    logger.debug(
        f"XP for workout {event.workout_id} (rules v{rule_table.version}): "
        f"{total} from {breakdown}"
    )
    return max(0, total)
