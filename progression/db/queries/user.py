"""User progression queries"""
import logging
from typing import Optional
import psycopg
from progression.db.connection import db
from progression.exceptions import ConcurrentModificationError
from progression.models.progression import UserProgressionState

logger = logging.getLogger(__name__)

_STATE_COLUMNS = """
    user_id, experience_points, current_level, xp_to_next_level,
    current_streak, longest_streak, last_workout_date,
    streak_freeze_uses_this_month, streak_freeze_month, streak_protected_date,
    lives_remaining, lives_refill_at, last_life_loss,
    total_workouts, total_minutes, timezone, version
"""


async def get_user_progression(
    user_id: str,
    conn: Optional[psycopg.AsyncConnection] = None
) -> Optional[UserProgressionState]:
    """
    Get a user's progression row

    Returns:
        UserProgressionState, or None if the user has no row
    """
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_STATE_COLUMNS}
                FROM user_progression
                WHERE user_id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()

    return UserProgressionState(**row) if row else None


async def create_user_progression(
    state: UserProgressionState,
    conn: Optional[psycopg.AsyncConnection] = None
) -> None:
    """Insert a new progression row (account creation)"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_progression (user_id, experience_points, current_level, xp_to_next_level,
                                              lives_remaining, timezone, version)
                VALUES (%s, %s, %s, %s, %s, %s, 0)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (
                    state.user_id,
                    state.experience_points,
                    state.current_level,
                    state.xp_to_next_level,
                    state.lives_remaining,
                    state.timezone,
                )
            )
    logger.info(f"Created progression record for user {state.user_id}")


async def update_user_progression(
    state: UserProgressionState,
    expected_version: int,
    conn: Optional[psycopg.AsyncConnection] = None
) -> int:
    """
    Compare-and-set update of a progression row

    Args:
        state: New state to write
        expected_version: Version the caller loaded

    Returns:
        The new version

    Raises:
        ConcurrentModificationError: Row changed (or vanished) since it was loaded
    """
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                UPDATE user_progression
                SET experience_points = %s,
                    current_level = %s,
                    xp_to_next_level = %s,
                    current_streak = %s,
                    longest_streak = %s,
                    last_workout_date = %s,
                    streak_freeze_uses_this_month = %s,
                    streak_freeze_month = %s,
                    streak_protected_date = %s,
                    lives_remaining = %s,
                    lives_refill_at = %s,
                    last_life_loss = %s,
                    total_workouts = %s,
                    total_minutes = %s,
                    version = version + 1,
                    updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s AND version = %s
                RETURNING version
                """,
                (
                    state.experience_points,
                    state.current_level,
                    state.xp_to_next_level,
                    state.current_streak,
                    state.longest_streak,
                    state.last_workout_date,
                    state.streak_freeze_uses_this_month,
                    state.streak_freeze_month,
                    state.streak_protected_date,
                    state.lives_remaining,
                    state.lives_refill_at,
                    state.last_life_loss,
                    state.total_workouts,
                    state.total_minutes,
                    state.user_id,
                    expected_version,
                )
            )
            row = await cur.fetchone()

    if not row:
        raise ConcurrentModificationError(
            message=f"Progression for user {state.user_id} changed since version {expected_version}",
            expected_version=expected_version,
            user_id=state.user_id,
            operation="update_user_progression",
        )

    return row["version"]
