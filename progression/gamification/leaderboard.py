"""
Weekly Leaderboard

Per-user XP, workout and minute totals bucketed by ISO week (Monday 00:00
in LEADERBOARD_TIMEZONE). Rows are created on a user's first activity of the
week and only ever incremented afterwards.
"""

from datetime import date, datetime
from typing import List, Optional
import logging

from progression import config
from progression.db.store import ProgressionStore
from progression.models.leaderboard import LeaderboardEntry, LeaderboardStanding
from progression.utils.datetime_helpers import now_utc, start_of_iso_week

logger = logging.getLogger(__name__)


def get_week_start(now: datetime) -> date:
    """Monday of the leaderboard week containing now"""
    return start_of_iso_week(now, config.LEADERBOARD_TIMEZONE)


async def record_activity(
    store: ProgressionStore,
    user_id: str,
    xp_gained: int,
    minutes_gained: int,
    now: datetime,
) -> date:
    """
    Add one workout's XP and minutes to the user's row for this week

    Returns:
        The week_start the activity was recorded under
    """
    week_start = get_week_start(now)
    await store.upsert_leaderboard_row(user_id, week_start, xp_gained, minutes_gained)

    logger.debug(
        f"Leaderboard week {week_start.isoformat()}: user {user_id} "
        f"+{xp_gained} XP, +{minutes_gained} min"
    )
    return week_start


async def get_weekly_leaderboard(
    store: ProgressionStore,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[LeaderboardEntry]:
    """
    Current week's rows, highest weekly XP first

    Ties keep insertion order. `now` defaults to the current time.
    """
    if limit is None:
        limit = config.LEADERBOARD_DEFAULT_LIMIT
    if limit <= 0:
        return []

    week_start = get_week_start(now or now_utc())
    return await store.load_leaderboard(week_start, limit)


def rank_entries(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Order rows by weekly XP descending; stable, so ties keep their order"""
    return sorted(entries, key=lambda entry: entry.weekly_xp, reverse=True)


async def get_user_rank(
    store: ProgressionStore,
    user_id: str,
    now: datetime,
) -> LeaderboardStanding:
    """
    A user's 1-based rank on the current week's board

    rank is None when the user has no activity this week.
    """
    entries = await store.load_leaderboard(get_week_start(now))

    for position, entry in enumerate(entries, start=1):
        if entry.user_id == user_id:
            return LeaderboardStanding(
                rank=position,
                weekly_xp=entry.weekly_xp,
                weekly_workouts=entry.weekly_workouts,
                weekly_minutes=entry.weekly_minutes,
                total_participants=len(entries),
            )

    return LeaderboardStanding(total_participants=len(entries))
