"""Workout history queries"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional
import psycopg
from progression.db.connection import db
from progression.models.progression import WorkoutRecord
from progression.utils.datetime_helpers import get_day_end_utc, get_day_start_utc, local_date, to_utc

logger = logging.getLogger(__name__)


async def get_workout(
    workout_id: int,
    conn: Optional[psycopg.AsyncConnection] = None
) -> Optional[WorkoutRecord]:
    """Get a workout with its deck category"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                SELECT w.id, w.user_id, d.category, w.completed_at
                FROM workouts w
                LEFT JOIN decks d ON d.id = w.deck_id
                WHERE w.id = %s
                """,
                (workout_id,)
            )
            row = await cur.fetchone()

    return WorkoutRecord(**row) if row else None


async def count_completed_workouts_between(
    user_id: str,
    start_utc: datetime,
    end_utc: datetime,
    exclude_workout_id: Optional[int] = None,
    conn: Optional[psycopg.AsyncConnection] = None
) -> int:
    """Count completed workouts with start_utc <= completed_at < end_utc"""
    query = """
        SELECT COUNT(*) AS count
        FROM workouts
        WHERE user_id = %s
          AND completed_at >= %s
          AND completed_at < %s
    """
    params = [user_id, start_utc, end_utc]

    if exclude_workout_id is not None:
        query += " AND id <> %s"
        params.append(exclude_workout_id)

    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(query, tuple(params))
            row = await cur.fetchone()

    return row["count"] if row else 0


async def count_completed_workouts_on_day(
    user_id: str,
    day: date,
    tz_name: str,
    before: Optional[datetime] = None,
    exclude_workout_id: Optional[int] = None,
    conn: Optional[psycopg.AsyncConnection] = None
) -> int:
    """
    Count completed workouts on a local calendar day

    before narrows the window to workouts completed strictly earlier.
    """
    end_utc = get_day_end_utc(day, tz_name)
    if before is not None:
        end_utc = min(end_utc, to_utc(before))

    return await count_completed_workouts_between(
        user_id,
        get_day_start_utc(day, tz_name),
        end_utc,
        exclude_workout_id=exclude_workout_id,
        conn=conn
    )


async def count_category_workouts(
    user_id: str,
    category: str,
    conn: Optional[psycopg.AsyncConnection] = None
) -> int:
    """Count completed workouts whose deck belongs to category"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS count
                FROM workouts w
                JOIN decks d ON d.id = w.deck_id
                WHERE w.user_id = %s
                  AND w.completed_at IS NOT NULL
                  AND d.category = %s
                """,
                (user_id, category)
            )
            row = await cur.fetchone()

    return row["count"] if row else 0


async def get_completion_days(
    user_id: str,
    first_day: date,
    last_day: date,
    tz_name: str,
    conn: Optional[psycopg.AsyncConnection] = None
) -> set[date]:
    """Distinct local days in [first_day, last_day] with a completed workout"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                SELECT completed_at
                FROM workouts
                WHERE user_id = %s
                  AND completed_at >= %s
                  AND completed_at < %s
                """,
                (user_id, get_day_start_utc(first_day, tz_name), get_day_end_utc(last_day, tz_name))
            )
            rows = await cur.fetchall()

    return {local_date(row["completed_at"], tz_name) for row in rows}


async def has_workout_on_each_of_last_7_days(
    user_id: str,
    now: datetime,
    tz_name: str,
    conn: Optional[psycopg.AsyncConnection] = None
) -> bool:
    """True if each of the 7 local days ending today has a completed workout"""
    today = local_date(now, tz_name)
    first_day = today - timedelta(days=6)
    days = await get_completion_days(user_id, first_day, today, tz_name, conn=conn)
    return len(days) >= 7
