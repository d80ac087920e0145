"""
Daily Streak Tracking System

A streak counts consecutive calendar days (in the user's timezone) with at
least one completed workout.

Features:
- Same-day repeat workouts never double-count
- Best (longest) streak tracking
- Streak freezes: up to MAX_STREAK_FREEZES_PER_MONTH per calendar month,
  applied ahead of time to protect exactly one missed day
"""

from datetime import datetime, timedelta
import logging

from progression import config
from progression.models.progression import StreakInfo, StreakUpdate, UserProgressionState
from progression.utils.datetime_helpers import local_date, month_key, to_utc

logger = logging.getLogger(__name__)


def _set_streak(state: UserProgressionState, new_streak: int) -> None:
    # longest first so the longest >= current invariant holds at every assignment
    state.longest_streak = max(state.longest_streak, new_streak)
    state.current_streak = new_streak


def update_streak(state: UserProgressionState, now: datetime) -> StreakUpdate:
    """
    Advance the daily streak for a workout completed at `now`

    Logic:
    - No previous workout: streak starts at 1
    - Last workout today: no change
    - Last workout yesterday: streak + 1
    - Gap of more than one day: reset to 1, unless the single missed day was
      protected by a freeze beforehand, in which case the streak is kept as is

    Mutates the in-memory state only; persisting it is the caller's job.
    """
    today = local_date(now, state.timezone)
    old_streak = state.current_streak

    streak_increased = False
    streak_maintained = True
    streak_protected = False

    if state.last_workout_date is None:
        _set_streak(state, 1)
        streak_increased = True

    else:
        last_day = local_date(state.last_workout_date, state.timezone)
        gap_days = (today - last_day).days

        if gap_days <= 0:
            # Same day (or an out-of-order event): already counted
            pass

        elif gap_days == 1:
            _set_streak(state, old_streak + 1)
            streak_increased = True

        elif gap_days == 2 and state.streak_protected_date == today - timedelta(days=1):
            # The one missed day was frozen ahead of time
            streak_protected = True
            state.streak_protected_date = None
            logger.info(f"User {state.user_id} streak of {old_streak} protected by freeze")

        else:
            _set_streak(state, 1)
            streak_maintained = False
            streak_increased = True
            logger.info(
                f"User {state.user_id} streak broken. "
                f"Was {old_streak}, gap was {gap_days} days"
            )

    if state.last_workout_date is None or to_utc(now) > to_utc(state.last_workout_date):
        state.last_workout_date = now

    logger.info(
        f"Updated streak for user {state.user_id}: "
        f"{old_streak} → {state.current_streak} days"
    )

    return StreakUpdate(
        new_streak=state.current_streak,
        streak_increased=streak_increased,
        streak_maintained=streak_maintained,
        streak_protected=streak_protected,
        previous_streak=old_streak,
    )


def roll_freeze_month(state: UserProgressionState, now: datetime) -> bool:
    """
    Reset the monthly freeze counter when a new calendar month has started

    Returns:
        True if the counter was reset
    """
    current_month = month_key(local_date(now, state.timezone))
    if state.streak_freeze_month == current_month:
        return False

    state.streak_freeze_uses_this_month = 0
    state.streak_freeze_month = current_month
    return True


def use_streak_freeze(state: UserProgressionState, now: datetime) -> bool:
    """
    Spend a freeze to protect today against breaking the streak

    Returns:
        False when this month's freezes are used up (state unchanged apart
        from the monthly roll-over), True otherwise
    """
    roll_freeze_month(state, now)

    if state.streak_freeze_uses_this_month >= config.MAX_STREAK_FREEZES_PER_MONTH:
        logger.info(f"User {state.user_id} has no streak freezes left this month")
        return False

    state.streak_freeze_uses_this_month += 1
    state.streak_protected_date = local_date(now, state.timezone)

    logger.info(
        f"User {state.user_id} used streak freeze "
        f"({state.streak_freeze_uses_this_month}/{config.MAX_STREAK_FREEZES_PER_MONTH} this month)"
    )
    return True


def get_streak_info(state: UserProgressionState, now: datetime) -> StreakInfo:
    """
    Read-only streak view, including whether the streak is about to break

    The streak is at risk when the last workout was before yesterday and
    yesterday was not protected by a freeze.
    """
    today = local_date(now, state.timezone)
    yesterday = today - timedelta(days=1)

    current_month = month_key(today)
    uses = state.streak_freeze_uses_this_month if state.streak_freeze_month == current_month else 0
    freezes_remaining = max(0, config.MAX_STREAK_FREEZES_PER_MONTH - uses)

    is_at_risk = False
    if state.last_workout_date and state.current_streak > 0:
        last_day = local_date(state.last_workout_date, state.timezone)
        is_at_risk = last_day < yesterday and state.streak_protected_date != yesterday

    return StreakInfo(
        current_streak=state.current_streak,
        longest_streak=state.longest_streak,
        last_workout_date=state.last_workout_date,
        streak_freeze_uses=uses,
        freezes_remaining=freezes_remaining,
        can_use_freeze=freezes_remaining > 0,
        is_at_risk=is_at_risk,
    )
